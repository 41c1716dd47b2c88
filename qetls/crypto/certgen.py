"""
RSA key + X.509 certificate generation.

Two primitives:

    generate_self_signed(cfg)              -> (key, cert)   # root CA
    generate_signed(ca_key, ca_cert, cfg)  -> (key, cert)   # leaf

plus convenience wrappers that start from the default template:

    generate_ca()
    generate_ca_with(subject, dns_name)
    generate_leaf_with(ca_key, ca_cert, subject, dns_name)

Serial numbers are drawn at random for every issuance and never
tracked; uniqueness is probabilistic only.

Nothing here touches the filesystem; see storage/files.py for that.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa

from qetls.common.config import RSA_PUBLIC_EXPONENT
from qetls.common.errors import InvalidCAError, KeyGenerationError, SigningError
from qetls.crypto import pki
from qetls.crypto.template import (
    CertificateRequestConfig,
    build_config,
    build_extensions,
    default_cert_config,
)

logger = logging.getLogger(__name__)

KeyCertPair = Tuple[rsa.RSAPrivateKey, x509.Certificate]


def generate_key(key_size: int) -> rsa.RSAPrivateKey:
    """
    Generate an RSA private key.

    Raises:
        KeyGenerationError if `key_size` is rejected (e.g. below 1024 bits).
    """
    try:
        key = rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=key_size,
        )
    except (ValueError, TypeError) as exc:
        raise KeyGenerationError(f"cannot generate {key_size}-bit RSA key: {exc}") from exc

    logger.debug("generated %d-bit RSA key", key_size)
    return key


def _builder(
    cfg: CertificateRequestConfig,
    public_key: rsa.RSAPublicKey,
    issuer: Optional[x509.Name] = None,
) -> x509.CertificateBuilder:
    """Certificate builder for `cfg`; issuer defaults to the subject (self-signed)."""
    now = datetime.now(timezone.utc)
    try:
        subject = cfg.subject.to_x509_name()
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject if issuer is None else issuer)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + cfg.validity)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        )
        for extension, critical in build_extensions(cfg):
            builder = builder.add_extension(extension, critical=critical)
    except (ValueError, TypeError) as exc:
        raise SigningError(f"invalid certificate template: {exc}") from exc
    return builder


def _sign(builder: x509.CertificateBuilder, signing_key: rsa.RSAPrivateKey) -> x509.Certificate:
    try:
        return builder.sign(private_key=signing_key, algorithm=hashes.SHA256())
    except (ValueError, TypeError) as exc:
        raise SigningError(f"failed to sign certificate: {exc}") from exc


def generate_self_signed(cfg: CertificateRequestConfig) -> KeyCertPair:
    """
    Generate a key pair and a certificate signed by that same key.

    Subject and issuer are both `cfg.subject`; the CA flag is `cfg.is_ca`.

    Raises:
        KeyGenerationError, SigningError
    """
    key = generate_key(cfg.key_size)
    cert = _sign(_builder(cfg, key.public_key()), key)

    logger.debug(
        "self-signed certificate issued: subject=%s serial=%x ca=%s",
        cert.subject.rfc4514_string(),
        cert.serial_number,
        cfg.is_ca,
    )
    return key, cert


def generate_signed(
    ca_key: rsa.RSAPrivateKey,
    ca_cert: x509.Certificate,
    cfg: CertificateRequestConfig,
) -> KeyCertPair:
    """
    Generate a fresh leaf key pair and a certificate signed by the CA.

    The leaf is never a CA, whatever `cfg.is_ca` says.

    Raises:
        InvalidCAError if `ca_key` does not belong to `ca_cert`, or the
        issued certificate does not verify against `ca_cert`.
        KeyGenerationError, SigningError
    """
    if not isinstance(ca_key, rsa.RSAPrivateKey):
        raise InvalidCAError(f"CA key must be an RSA private key, got {type(ca_key).__name__}")
    if not pki.key_matches_certificate(ca_key, ca_cert):
        raise InvalidCAError("CA private key does not match the CA certificate public key")

    if cfg.is_ca:
        logger.debug("ignoring is_ca=True for a CA-signed certificate")
        cfg = build_config(cfg, is_ca=False)

    key = generate_key(cfg.key_size)

    builder = _builder(cfg, key.public_key(), issuer=ca_cert.subject).add_extension(
        x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_cert.public_key()),
        critical=False,
    )
    cert = _sign(builder, ca_key)

    if not pki.is_issued_by(cert, ca_cert):
        raise InvalidCAError("issued certificate does not verify against the CA certificate")

    logger.debug(
        "certificate issued: subject=%s issuer=%s serial=%x",
        cert.subject.rfc4514_string(),
        cert.issuer.rfc4514_string(),
        cert.serial_number,
    )
    return key, cert


def generate_ca() -> KeyCertPair:
    """Generate a CA key/cert pair from the default template."""
    return generate_self_signed(build_config(default_cert_config(), is_ca=True))


def generate_ca_with(subject: str = "", dns_name: str = "") -> KeyCertPair:
    """Generate a CA key/cert pair, overriding subject and/or DNS name."""
    cfg = build_config(default_cert_config(), subject=subject, dns_name=dns_name, is_ca=True)
    return generate_self_signed(cfg)


def generate_leaf_with(
    ca_key: rsa.RSAPrivateKey,
    ca_cert: x509.Certificate,
    subject: str = "",
    dns_name: str = "",
) -> KeyCertPair:
    """Issue a leaf key/cert pair from the default template plus overrides."""
    cfg = build_config(default_cert_config(), subject=subject, dns_name=dns_name, is_ca=False)
    return generate_signed(ca_key, ca_cert, cfg)
