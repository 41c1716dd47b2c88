"""
Certificate request templates.

A CertificateRequestConfig carries the semantic fields of a certificate
that is about to be issued: key size, SAN entries, key usages, subject,
validity and the CA flag. The generator in `certgen.py` turns it into
a signed X.509 certificate.

Defaults:
  - 2048-bit RSA key
  - SAN: DNS:openqe.github.io
  - KeyUsage: digitalSignature only (also for CAs)
  - Subject: C=CN, O=OpenShift, OU=Hypershift QE, CN=default-ca
  - Validity: 365 days
  - IsCA: False
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import FrozenSet, List, Tuple, Union

from cryptography import x509

from qetls.common.config import (
    DEFAULT_CA_SUBJECT,
    DEFAULT_DNS_NAME,
    DEFAULT_KEY_SIZE,
    DEFAULT_VALIDITY,
)
from qetls.crypto.dn import DistinguishedName, parse_subject

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# Flag names accepted in CertificateRequestConfig.key_usage; they match
# the keyword arguments of x509.KeyUsage.
KEY_USAGE_FLAGS: Tuple[str, ...] = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
    "encipher_only",
    "decipher_only",
)


@dataclass(frozen=True)
class CertificateRequestConfig:
    key_size: int = DEFAULT_KEY_SIZE
    dns_names: Tuple[str, ...] = (DEFAULT_DNS_NAME,)
    ip_addresses: Tuple[IPAddress, ...] = ()
    ext_key_usages: Tuple[x509.ObjectIdentifier, ...] = ()
    key_usage: FrozenSet[str] = frozenset({"digital_signature"})
    subject: DistinguishedName = field(
        default_factory=lambda: parse_subject(DEFAULT_CA_SUBJECT)
    )
    validity: timedelta = DEFAULT_VALIDITY
    is_ca: bool = False


def default_cert_config() -> CertificateRequestConfig:
    """Return a fresh config holding the compiled-in defaults."""
    return CertificateRequestConfig()


def build_config(
    defaults: CertificateRequestConfig,
    subject: str = "",
    dns_name: str = "",
    is_ca: bool = False,
) -> CertificateRequestConfig:
    """
    Apply caller overrides on top of `defaults` (which is never mutated).

    - non-empty `subject` replaces the default subject (parsed as a DN)
    - non-empty `dns_name` becomes the only DNS SAN entry
    - `is_ca` always comes from the caller
    """
    changes = {"is_ca": is_ca}
    if subject:
        changes["subject"] = parse_subject(subject)
    if dns_name:
        changes["dns_names"] = (dns_name,)
    return replace(defaults, **changes)


def build_key_usage(flags: FrozenSet[str]) -> x509.KeyUsage:
    """
    Turn a set of flag names into an x509.KeyUsage extension value.

    Raises ValueError for unknown flag names, or for encipher_only /
    decipher_only without key_agreement.
    """
    unknown = set(flags) - set(KEY_USAGE_FLAGS)
    if unknown:
        raise ValueError(f"Unknown key usage flag(s): {', '.join(sorted(unknown))}")
    return x509.KeyUsage(**{name: name in flags for name in KEY_USAGE_FLAGS})


def build_san(cfg: CertificateRequestConfig) -> List[x509.GeneralName]:
    """SAN entries: every DNS name in order, then every IP address."""
    names: List[x509.GeneralName] = [x509.DNSName(n) for n in cfg.dns_names]
    names += [x509.IPAddress(ip) for ip in cfg.ip_addresses]
    return names


def build_extensions(
    cfg: CertificateRequestConfig,
) -> List[Tuple[x509.ExtensionType, bool]]:
    """
    Return (extension, critical) pairs derived from a config.

    The CA flag carries no path-length constraint (depth-1 hierarchies only).
    """
    extensions: List[Tuple[x509.ExtensionType, bool]] = [
        (x509.BasicConstraints(ca=cfg.is_ca, path_length=None), True),
        (build_key_usage(cfg.key_usage), True),
    ]

    san = build_san(cfg)
    if san:
        extensions.append((x509.SubjectAlternativeName(san), False))

    if cfg.ext_key_usages:
        extensions.append((x509.ExtendedKeyUsage(list(cfg.ext_key_usages)), False))

    return extensions
