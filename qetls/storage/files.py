"""
File-backed key/certificate storage.

Responsibilities:

- Write a generated key/cert pair as two PEM files (key file mode 0600).
- Read CA key/cert files back for leaf issuance.
- Drive the generator from option models (CAOptions / PKIOptions):
    * generate_ca_to_files(...)
    * generate_tls_key_cert_pair(...)
    * generate_tls_key_cert_pair_to_files(...)
- Bundle checks against files:
    * cert_in_ca_file(...)          missing bundle -> False
    * check_ca_cert_in_bundle(...)  missing files  -> FileReadError

Long-lived callers can pass a CAMaterialCache so CA files are parsed
once and re-read only when they change on disk.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from qetls.common.config import CAOptions, PKIOptions
from qetls.common.errors import ConfigurationError, FileReadError
from qetls.common.utils import expand_path, file_exists
from qetls.crypto import certgen
from qetls.crypto.bundle import cert_in_bundle
from qetls.crypto.pem import cert_to_pem, key_to_pem, pem_to_cert, pem_to_key

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
KeyCertPair = Tuple[rsa.RSAPrivateKey, x509.Certificate]


def read_file(path: PathLike, what: str) -> bytes:
    """
    Read a whole file, mapping every failure to FileReadError.

    Args:
        path: File to read (`~` and env vars are expanded).
        what: Human label used in error messages ("CA private key", ...).
    """
    if not path:
        raise FileReadError(f"{what} file path must be specified")

    resolved = expand_path(path)
    if not resolved.is_file():
        raise FileReadError(f"{what} file does not exist: {path}")

    try:
        return resolved.read_bytes()
    except OSError as exc:
        raise FileReadError(f"failed to read {what} file {path}: {exc}") from exc


def _write_file(path: Path, data: bytes, mode: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    # O_CREAT mode only applies to new files
    os.chmod(path, mode)


def write_key_cert_pair(
    key: rsa.RSAPrivateKey,
    cert: x509.Certificate,
    key_file: PathLike,
    cert_file: PathLike,
) -> None:
    """PEM-encode and write the private key (0600) and certificate (0644)."""
    key_path = expand_path(key_file)
    cert_path = expand_path(cert_file)

    _write_file(key_path, key_to_pem(key), 0o600)
    _write_file(cert_path, cert_to_pem(cert), 0o644)
    logger.debug("wrote key to %s and certificate to %s", key_path, cert_path)


def load_ca(key_file: PathLike, cert_file: PathLike) -> KeyCertPair:
    """
    Load a CA private key and certificate from PEM files.

    Raises:
        FileReadError if a path is empty, missing or unreadable.
        DecodeError if the content is not a PEM RSA key / certificate.
    """
    ca_key = pem_to_key(read_file(key_file, "CA private key"))
    ca_cert = pem_to_cert(read_file(cert_file, "CA certificate"))
    return ca_key, ca_cert


@dataclass(frozen=True)
class _CacheKey:
    key_path: Path
    cert_path: Path
    key_mtime_ns: int
    cert_mtime_ns: int


class CAMaterialCache:
    """
    Parsed CA key/cert pairs keyed by file identity.

    An entry is keyed by the resolved paths and their modification
    times, so rewriting a CA on disk (e.g. `tls ca-gen` again) yields a
    fresh load. The cache is an ordinary object: create one, pass it to
    the functions that should share it. It is safe to share between
    threads.
    """

    def __init__(self) -> None:
        self._entries: Dict[_CacheKey, KeyCertPair] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _cache_key(key_file: PathLike, cert_file: PathLike) -> _CacheKey:
        key_path = expand_path(key_file).resolve()
        cert_path = expand_path(cert_file).resolve()
        try:
            return _CacheKey(
                key_path=key_path,
                cert_path=cert_path,
                key_mtime_ns=key_path.stat().st_mtime_ns,
                cert_mtime_ns=cert_path.stat().st_mtime_ns,
            )
        except OSError as exc:
            raise FileReadError(f"cannot stat CA files {key_file}, {cert_file}: {exc}") from exc

    def load(self, key_file: PathLike, cert_file: PathLike) -> KeyCertPair:
        """Return the CA pair for these files, loading it on a miss."""
        if not key_file or not cert_file:
            # let load_ca produce the usual error message
            return load_ca(key_file, cert_file)

        cache_key = self._cache_key(key_file, cert_file)
        with self._lock:
            cached = self._entries.get(cache_key)
        if cached is not None:
            logger.debug("CA material cache hit for %s", cache_key.cert_path)
            return cached

        pair = load_ca(key_file, cert_file)
        with self._lock:
            # drop stale entries for the same files
            for stale in [k for k in self._entries
                          if (k.key_path, k.cert_path) == (cache_key.key_path, cache_key.cert_path)]:
                del self._entries[stale]
            self._entries[cache_key] = pair
        return pair

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def generate_ca_to_files(opts: CAOptions) -> KeyCertPair:
    """
    Generate a CA key/cert pair and save it to `opts.ca_key_file` / `opts.ca_cert_file`.

    Raises:
        ConfigurationError if either output path is empty.
    """
    if not opts.ca_key_file:
        raise ConfigurationError("ca_key_file needs to be specified to save the TLS CA private key")
    if not opts.ca_cert_file:
        raise ConfigurationError("ca_cert_file needs to be specified to save the TLS CA certificate")

    key, cert = certgen.generate_ca_with(opts.subject, opts.dns_name)
    write_key_cert_pair(key, cert, opts.ca_key_file, opts.ca_cert_file)
    return key, cert


def generate_tls_key_cert_pair(
    subject: str,
    dns_name: str,
    ca_key_file: PathLike,
    ca_cert_file: PathLike,
    cache: Optional[CAMaterialCache] = None,
) -> KeyCertPair:
    """
    Issue a leaf key/cert pair signed by the CA stored in the given files.

    Raises:
        FileReadError, DecodeError (CA material), InvalidCAError,
        KeyGenerationError, SigningError
    """
    if cache is not None:
        ca_key, ca_cert = cache.load(ca_key_file, ca_cert_file)
    else:
        ca_key, ca_cert = load_ca(ca_key_file, ca_cert_file)
    return certgen.generate_leaf_with(ca_key, ca_cert, subject=subject, dns_name=dns_name)


def generate_tls_key_cert_pair_to_files(
    opts: PKIOptions,
    cache: Optional[CAMaterialCache] = None,
) -> KeyCertPair:
    """
    Issue a leaf key/cert pair and save it to `opts.key_file` / `opts.cert_file`.

    Raises:
        ConfigurationError if either output path is empty, plus everything
        generate_tls_key_cert_pair raises.
    """
    if not opts.key_file:
        raise ConfigurationError("key_file needs to be specified to save the TLS private key")
    if not opts.cert_file:
        raise ConfigurationError("cert_file needs to be specified to save the TLS certificate")

    key, cert = generate_tls_key_cert_pair(
        opts.subject,
        opts.dns_name,
        opts.ca.ca_key_file,
        opts.ca.ca_cert_file,
        cache=cache,
    )
    write_key_cert_pair(key, cert, opts.key_file, opts.cert_file)
    return key, cert


def cert_in_ca_file(cert_pem: Union[bytes, str], ca_file: PathLike) -> bool:
    """
    Check whether `cert_pem` is in the bundle file `ca_file`
    (e.g. /etc/pki/tls/certs/ca-bundle.crt). A missing bundle means False.
    """
    if not file_exists(ca_file):
        return False
    return cert_in_bundle(cert_pem, read_file(ca_file, "CA bundle"))


def check_ca_cert_in_bundle(ca_cert_file: PathLike, ca_bundle_file: PathLike) -> bool:
    """
    Check whether the certificate in `ca_cert_file` is included in `ca_bundle_file`.

    Raises:
        FileReadError if either file is missing or unreadable.
        ParseError if the CA certificate file does not hold a certificate.
    """
    cert_pem = read_file(ca_cert_file, "CA certificate")
    bundle_pem = read_file(ca_bundle_file, "CA bundle")
    return cert_in_bundle(cert_pem, bundle_pem)
