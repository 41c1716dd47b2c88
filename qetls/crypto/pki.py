"""
PKI helpers: issuer checks, certificate verification and summaries.

Responsibilities:
  - Check that a certificate was signed by a given issuer certificate.
  - Check that a CA private key belongs to a CA certificate.
  - Verify a certificate against a CA:
      1) Has a valid CA signature.
      2) Is currently within its validity period.
      3) Optionally, has a SAN DNSName (or CN fallback) matching a hostname.
  - Summarise a certificate for logs and the CLI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

from qetls.common.errors import CertificateVerificationError
from qetls.common.utils import colon_hex


def get_common_name(name: x509.Name) -> Optional[str]:
    """Extract Common Name (CN) from a Name, or None if missing."""
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return None
    return attrs[-1].value


def get_san_dns_names(cert: x509.Certificate) -> List[str]:
    """Return all SAN DNSName entries in order (empty if there is no SAN)."""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)


def is_ca_certificate(cert: x509.Certificate) -> bool:
    try:
        bc = cert.extensions.get_extension_for_class(x509.BasicConstraints)
    except x509.ExtensionNotFound:
        return False
    return bc.value.ca


def key_matches_certificate(key: rsa.RSAPrivateKey, cert: x509.Certificate) -> bool:
    """True if `key` is the private half of the public key in `cert`."""
    pub = cert.public_key()
    if not isinstance(pub, rsa.RSAPublicKey):
        return False
    return key.public_key().public_numbers() == pub.public_numbers()


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """
    True if `cert` names `issuer` as its issuer AND carries a valid
    RSA PKCS#1 v1.5 signature made with the issuer's key.
    """
    if cert.issuer != issuer.subject:
        return False

    pub = issuer.public_key()
    if not isinstance(pub, rsa.RSAPublicKey):
        return False

    try:
        pub.verify(
            cert.signature,
            cert.tbs_certificate_bytes,
            padding.PKCS1v15(),
            cert.signature_hash_algorithm,
        )
    except InvalidSignature:
        return False
    return True


def verify_certificate(
    cert: x509.Certificate,
    ca_cert: x509.Certificate,
    expected_hostname: Optional[str] = None,
) -> bool:
    """
    Validate a certificate issued by `ca_cert`.

    Checks:
      1. Signature: cert must be signed by ca_cert.
      2. Time: not expired and not before validity.
      3. Hostname (only when expected_hostname is given): must match one
         of the SAN DNSNames, or the CN if there is no SAN.

    Raises:
      CertificateVerificationError with the failing check.

    Returns:
      True if certificate is valid.
    """
    if not is_issued_by(cert, ca_cert):
        raise CertificateVerificationError("invalid CA signature")

    now = datetime.now(timezone.utc)
    if now < cert.not_valid_before_utc or now > cert.not_valid_after_utc:
        raise CertificateVerificationError("certificate expired or not yet valid")

    if expected_hostname is None:
        return True

    san_dns = get_san_dns_names(cert)
    cn = get_common_name(cert.subject)

    if san_dns:
        hostname_ok = expected_hostname in san_dns
    else:
        hostname_ok = cn == expected_hostname

    if not hostname_ok:
        raise CertificateVerificationError(
            f"hostname mismatch (expected={expected_hostname}, "
            f"san_dns={san_dns}, cn={cn})"
        )

    return True


def fingerprint_sha256(cert: x509.Certificate) -> str:
    return colon_hex(cert.fingerprint(hashes.SHA256()).hex())


def describe_certificate(cert: x509.Certificate) -> Dict[str, Any]:
    """Plain-data summary of a certificate (for logging / printing)."""
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "serial": f"{cert.serial_number:x}",
        "not_before": cert.not_valid_before_utc.isoformat(),
        "not_after": cert.not_valid_after_utc.isoformat(),
        "dns_names": get_san_dns_names(cert),
        "is_ca": is_ca_certificate(cert),
        "sha256": fingerprint_sha256(cert),
    }
