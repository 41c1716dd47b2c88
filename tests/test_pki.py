"""Tests for issuer checks and certificate verification."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from qetls.common.errors import CertificateVerificationError, SigningError
from qetls.crypto import certgen
from qetls.crypto.pki import (
    describe_certificate,
    get_common_name,
    is_issued_by,
    key_matches_certificate,
    verify_certificate,
)
from qetls.crypto.template import default_cert_config


class TestIssuerChecks:
    def test_key_matches_own_certificate(self, ca_key, ca_cert):
        assert key_matches_certificate(ca_key, ca_cert)

    def test_key_does_not_match_leaf(self, ca_key, leaf_pair):
        assert not key_matches_certificate(ca_key, leaf_pair[1])

    def test_leaf_not_issued_by_itself(self, leaf_pair):
        assert not is_issued_by(leaf_pair[1], leaf_pair[1])

    def test_ca_not_issued_by_leaf(self, ca_cert, leaf_pair):
        assert not is_issued_by(ca_cert, leaf_pair[1])


class TestVerifyCertificate:
    def test_valid_leaf(self, ca_cert, leaf_pair):
        assert verify_certificate(leaf_pair[1], ca_cert) is True

    def test_hostname_from_san(self, ca_cert, leaf_pair):
        assert verify_certificate(leaf_pair[1], ca_cert, expected_hostname="example.test")

    def test_hostname_mismatch(self, ca_cert, leaf_pair):
        with pytest.raises(CertificateVerificationError, match="hostname mismatch"):
            verify_certificate(leaf_pair[1], ca_cert, expected_hostname="other.test")

    def test_foreign_ca(self, leaf_pair):
        _, other_ca = certgen.generate_ca_with("/C=US/O=Test/CN=root")
        with pytest.raises(CertificateVerificationError, match="signature"):
            verify_certificate(leaf_pair[1], other_ca)

    def test_expired(self, ca_key, ca_cert):
        now = datetime.now(timezone.utc)
        key = rsa.generate_private_key(public_exponent=65537, key_size=1024)
        leaf = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "old")]))
            .issuer_name(ca_cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=10))
            .not_valid_after(now - timedelta(days=1))
            .sign(private_key=ca_key, algorithm=hashes.SHA256())
        )
        with pytest.raises(CertificateVerificationError, match="expired"):
            verify_certificate(leaf, ca_cert)

    def test_invalid_validity_is_signing_error(self, ca_key, ca_cert):
        cfg = replace(default_cert_config(), key_size=1024, validity=timedelta(seconds=-1))
        with pytest.raises(SigningError):
            certgen.generate_signed(ca_key, ca_cert, cfg)


class TestDescribe:
    def test_summary_fields(self, ca_cert, leaf_pair):
        info = describe_certificate(leaf_pair[1])
        assert info["subject"] == "CN=leaf,O=Test"
        assert info["issuer"] == ca_cert.subject.rfc4514_string()
        assert info["dns_names"] == ["example.test"]
        assert info["is_ca"] is False
        assert len(info["sha256"].split(":")) == 32

    def test_common_name(self, ca_cert):
        assert get_common_name(ca_cert.subject) == "root"
