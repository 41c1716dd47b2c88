"""
Option models and defaults for CA / leaf certificate generation.

Defaults can be overridden with environment variables (or a `.env`
file in the working directory):

    QETLS_CA_SUBJECT=C=CN, O=OpenShift, OU=Hypershift QE, CN=default-ca
    QETLS_CA_DNS_NAME=openqe.github.io
    QETLS_CA_KEY_FILE=ca.key
    QETLS_CA_CERT_FILE=ca.crt

    QETLS_SUBJECT=C=CN, O=OpenShift, OU=Hypershift QE, CN=default-server
    QETLS_DNS_NAME=server.openqe.github.io
    QETLS_KEY_FILE=tls.key
    QETLS_CERT_FILE=tls.crt

    QETLS_CA_BUNDLE_FILE=/etc/pki/tls/certs/ca-bundle.crt

Key size and validity are not configurable at runtime.
"""

import os
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Load .env so the CLI picks up overrides without exporting them.
load_dotenv()


DEFAULT_KEY_SIZE: Final[int] = 2048
DEFAULT_VALIDITY: Final[timedelta] = timedelta(days=365)
RSA_PUBLIC_EXPONENT: Final[int] = 65537

DEFAULT_DNS_NAME: Final[str] = "openqe.github.io"
DEFAULT_CA_SUBJECT: Final[str] = "C=CN, O=OpenShift, OU=Hypershift QE, CN=default-ca"
DEFAULT_SERVER_SUBJECT: Final[str] = "C=CN, O=OpenShift, OU=Hypershift QE, CN=default-server"
DEFAULT_SERVER_DNS_NAME: Final[str] = "server.openqe.github.io"
DEFAULT_CA_BUNDLE_FILE: Final[str] = "/etc/pki/tls/certs/ca-bundle.crt"

# ConfigMap key holding the trusted bundle in OpenShift/Kubernetes.
CA_BUNDLE_CONFIG_MAP_KEY: Final[str] = "ca-bundle.crt"


class OptionsBase(BaseModel):
    # CLI flags are applied with model_copy(update=...) / attribute assignment
    model_config = ConfigDict(validate_assignment=True)


class CAOptions(OptionsBase):
    """Inputs for generating a CA key/cert pair to files."""

    subject: str = ""
    dns_name: str = ""
    ca_key_file: str = ""
    ca_cert_file: str = ""


class PKIOptions(OptionsBase):
    """Inputs for issuing a leaf key/cert pair signed by a CA on disk."""

    ca: CAOptions = Field(default_factory=CAOptions)
    subject: str = ""
    dns_name: str = ""
    key_file: str = ""
    cert_file: str = ""


class CACheckOptions(OptionsBase):
    """Inputs for checking a CA certificate against a bundle file."""

    ca_cert_file: str = ""
    ca_bundle_file: str = ""


def default_ca_options() -> CAOptions:
    """Build CAOptions from the environment, falling back to built-in defaults."""
    return CAOptions(
        subject=os.getenv("QETLS_CA_SUBJECT", DEFAULT_CA_SUBJECT),
        dns_name=os.getenv("QETLS_CA_DNS_NAME", DEFAULT_DNS_NAME),
        ca_key_file=os.getenv("QETLS_CA_KEY_FILE", "ca.key"),
        ca_cert_file=os.getenv("QETLS_CA_CERT_FILE", "ca.crt"),
    )


def default_pki_options() -> PKIOptions:
    """Build PKIOptions (with nested CA options) from the environment."""
    return PKIOptions(
        ca=default_ca_options(),
        subject=os.getenv("QETLS_SUBJECT", DEFAULT_SERVER_SUBJECT),
        dns_name=os.getenv("QETLS_DNS_NAME", DEFAULT_SERVER_DNS_NAME),
        key_file=os.getenv("QETLS_KEY_FILE", "tls.key"),
        cert_file=os.getenv("QETLS_CERT_FILE", "tls.crt"),
    )


def default_ca_check_options() -> CACheckOptions:
    return CACheckOptions(
        ca_cert_file="",
        ca_bundle_file=os.getenv("QETLS_CA_BUNDLE_FILE", DEFAULT_CA_BUNDLE_FILE),
    )
