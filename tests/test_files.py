"""Tests for file-backed generation and bundle checks."""

import os
import stat

import pytest

from qetls.common.config import CAOptions, PKIOptions
from qetls.common.errors import (
    ConfigurationError,
    DecodeError,
    FileReadError,
    InvalidCAError,
    ParseError,
)
from qetls.crypto.pem import cert_to_pem, pem_to_cert, pem_to_key
from qetls.crypto.pki import get_san_dns_names, is_issued_by
from qetls.storage import files


class TestWriteAndLoad:
    def test_round_trip(self, ca_files, ca_key, ca_cert):
        key, cert = files.load_ca(*ca_files)
        assert key.private_numbers() == ca_key.private_numbers()
        assert cert == ca_cert

    def test_key_file_is_private(self, ca_files):
        key_path, cert_path = ca_files
        assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(cert_path).st_mode) == 0o644

    def test_creates_parent_directories(self, tmp_path, ca_key, ca_cert):
        key_path = tmp_path / "nested" / "dir" / "ca.key"
        cert_path = tmp_path / "nested" / "dir" / "ca.crt"
        files.write_key_cert_pair(ca_key, ca_cert, key_path, cert_path)
        assert key_path.is_file() and cert_path.is_file()

    def test_missing_files(self, tmp_path):
        with pytest.raises(FileReadError, match="does not exist"):
            files.load_ca(tmp_path / "nope.key", tmp_path / "nope.crt")

    def test_empty_path(self, ca_files):
        with pytest.raises(FileReadError, match="must be specified"):
            files.load_ca("", ca_files[1])

    def test_malformed_content(self, tmp_path, ca_files):
        bad = tmp_path / "bad.key"
        bad.write_text("garbage")
        with pytest.raises(DecodeError):
            files.load_ca(bad, ca_files[1])


class TestGenerateToFiles:
    def test_ca_to_files(self, tmp_path):
        opts = CAOptions(
            subject="/C=US/O=Test/CN=file-root",
            dns_name="root.test",
            ca_key_file=str(tmp_path / "ca.key"),
            ca_cert_file=str(tmp_path / "ca.crt"),
        )
        _, cert = files.generate_ca_to_files(opts)

        on_disk = pem_to_cert((tmp_path / "ca.crt").read_bytes())
        assert on_disk == cert
        assert on_disk.issuer == on_disk.subject
        pem_to_key((tmp_path / "ca.key").read_bytes())

    @pytest.mark.parametrize("missing", ["ca_key_file", "ca_cert_file"])
    def test_ca_requires_paths(self, tmp_path, missing):
        opts = CAOptions(ca_key_file=str(tmp_path / "k"), ca_cert_file=str(tmp_path / "c"))
        opts = opts.model_copy(update={missing: ""})
        with pytest.raises(ConfigurationError):
            files.generate_ca_to_files(opts)

    def test_leaf_to_files(self, tmp_path, ca_files, ca_cert):
        key_path, cert_path = ca_files
        opts = PKIOptions(
            ca=CAOptions(ca_key_file=str(key_path), ca_cert_file=str(cert_path)),
            subject="CN=server",
            dns_name="server.test",
            key_file=str(tmp_path / "tls.key"),
            cert_file=str(tmp_path / "tls.crt"),
        )
        files.generate_tls_key_cert_pair_to_files(opts)

        leaf = pem_to_cert((tmp_path / "tls.crt").read_bytes())
        assert is_issued_by(leaf, ca_cert)
        assert get_san_dns_names(leaf) == ["server.test"]

    def test_leaf_requires_paths(self, ca_files):
        opts = PKIOptions(
            ca=CAOptions(ca_key_file=str(ca_files[0]), ca_cert_file=str(ca_files[1])),
            key_file="",
            cert_file="tls.crt",
        )
        with pytest.raises(ConfigurationError):
            files.generate_tls_key_cert_pair_to_files(opts)

    def test_leaf_with_missing_ca(self, tmp_path):
        with pytest.raises(FileReadError):
            files.generate_tls_key_cert_pair("CN=x", "x.test", tmp_path / "ca.key", tmp_path / "ca.crt")

    def test_leaf_with_mismatched_ca_files(self, tmp_path, ca_files, leaf_pair):
        # leaf key paired with the CA certificate
        key_path = tmp_path / "wrong.key"
        files.write_key_cert_pair(leaf_pair[0], leaf_pair[1], key_path, tmp_path / "leaf.crt")
        with pytest.raises(InvalidCAError):
            files.generate_tls_key_cert_pair("CN=x", "x.test", key_path, ca_files[1])


class TestCAMaterialCache:
    def test_hit_returns_same_objects(self, ca_files):
        cache = files.CAMaterialCache()
        first = cache.load(*ca_files)
        second = cache.load(*ca_files)
        assert first[1] is second[1]
        assert len(cache) == 1

    def test_rewritten_files_are_reloaded(self, ca_files, ca_key, ca_cert):
        cache = files.CAMaterialCache()
        first = cache.load(*ca_files)

        key_path, cert_path = ca_files
        stat_before = os.stat(cert_path)
        files.write_key_cert_pair(ca_key, ca_cert, key_path, cert_path)
        os.utime(cert_path, ns=(stat_before.st_atime_ns, stat_before.st_mtime_ns + 1_000_000_000))

        reloaded = cache.load(*ca_files)
        assert reloaded[1] is not first[1]
        assert len(cache) == 1

    def test_used_for_leaf_issuance(self, tmp_path, ca_files, ca_cert):
        cache = files.CAMaterialCache()
        _, leaf = files.generate_tls_key_cert_pair("CN=a", "a.test", *ca_files, cache=cache)
        assert is_issued_by(leaf, ca_cert)
        assert len(cache) == 1

    def test_missing_files(self, tmp_path):
        with pytest.raises(FileReadError):
            files.CAMaterialCache().load(tmp_path / "a", tmp_path / "b")

    def test_clear(self, ca_files):
        cache = files.CAMaterialCache()
        cache.load(*ca_files)
        cache.clear()
        assert len(cache) == 0


class TestBundleFiles:
    def test_check_ca_cert_in_bundle(self, tmp_path, ca_files, leaf_pair):
        bundle = tmp_path / "bundle.crt"
        bundle.write_bytes(cert_to_pem(leaf_pair[1]) + ca_files[1].read_bytes())
        assert files.check_ca_cert_in_bundle(ca_files[1], bundle) is True

    def test_check_not_in_bundle(self, tmp_path, ca_files, leaf_pair):
        bundle = tmp_path / "bundle.crt"
        bundle.write_bytes(cert_to_pem(leaf_pair[1]))
        assert files.check_ca_cert_in_bundle(ca_files[1], bundle) is False

    def test_check_missing_bundle(self, tmp_path, ca_files):
        with pytest.raises(FileReadError, match="CA bundle"):
            files.check_ca_cert_in_bundle(ca_files[1], tmp_path / "missing.crt")

    def test_check_missing_cert(self, tmp_path, ca_files):
        with pytest.raises(FileReadError, match="CA certificate"):
            files.check_ca_cert_in_bundle(tmp_path / "missing.crt", ca_files[1])

    def test_check_unparsable_cert(self, tmp_path, ca_files):
        bad = tmp_path / "bad.crt"
        bad.write_text("nope")
        with pytest.raises(ParseError):
            files.check_ca_cert_in_bundle(bad, ca_files[1])

    def test_cert_in_ca_file_missing_bundle(self, tmp_path, ca_cert_pem):
        assert files.cert_in_ca_file(ca_cert_pem, tmp_path / "missing.crt") is False

    def test_cert_in_ca_file(self, ca_files, ca_cert_pem):
        assert files.cert_in_ca_file(ca_cert_pem, ca_files[1]) is True
