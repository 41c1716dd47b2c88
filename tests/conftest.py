"""Shared fixtures: one CA for the whole session keeps RSA generation cheap."""

import logging

import pytest

from qetls.common.logger import ROOT_LOGGER_NAME
from qetls.crypto import certgen
from qetls.crypto.pem import cert_to_pem, key_to_pem
from qetls.storage.files import write_key_cert_pair

ROOT_SUBJECT = "/C=US/O=Test/CN=root"


@pytest.fixture(scope="session")
def ca_pair():
    return certgen.generate_ca_with(ROOT_SUBJECT, "ca.example.test")


@pytest.fixture(scope="session")
def ca_key(ca_pair):
    return ca_pair[0]


@pytest.fixture(scope="session")
def ca_cert(ca_pair):
    return ca_pair[1]


@pytest.fixture(scope="session")
def leaf_pair(ca_key, ca_cert):
    return certgen.generate_leaf_with(ca_key, ca_cert, subject="CN=leaf,O=Test", dns_name="example.test")


@pytest.fixture(scope="session")
def ca_cert_pem(ca_cert) -> bytes:
    return cert_to_pem(ca_cert)


@pytest.fixture(scope="session")
def ca_key_pem(ca_key) -> bytes:
    return key_to_pem(ca_key)


@pytest.fixture()
def ca_files(tmp_path, ca_key, ca_cert):
    """CA key/cert written to a temp dir; returns (key_path, cert_path)."""
    key_path = tmp_path / "ca.key"
    cert_path = tmp_path / "ca.crt"
    write_key_cert_pair(ca_key, ca_cert, key_path, cert_path)
    return key_path, cert_path


@pytest.fixture(autouse=True)
def reset_qetls_logging():
    """Drop handlers installed by setup_logging so they never outlive capsys."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
