"""
Trust-bundle membership checks.

A bundle is any blob of concatenated PEM blocks, e.g. the system bundle
at /etc/pki/tls/certs/ca-bundle.crt or the `ca-bundle.crt` entry of an
OpenShift ConfigMap. Membership is exact identity: the DER bytes of the
target certificate must appear as one of the bundle's certificates.
Same subject with a different serial is NOT a match.
"""

from __future__ import annotations

import logging
from typing import Mapping, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from qetls.common.config import CA_BUNDLE_CONFIG_MAP_KEY
from qetls.common.errors import DecodeError, ParseError
from qetls.crypto.pem import CERTIFICATE_BLOCK, iter_pem_blocks, pem_to_cert

logger = logging.getLogger(__name__)


def cert_in_bundle(
    target_pem: Union[bytes, str],
    bundle_pem: Union[bytes, str],
) -> bool:
    """
    Return True if the certificate in `target_pem` is present in `bundle_pem`.

    Raises:
        ParseError if `target_pem` does not hold a decodable certificate.

    Bundle entries that are not CERTIFICATE blocks, or that fail to
    parse, are skipped so a single corrupt entry in a large system
    bundle does not abort the check.
    """
    try:
        want = pem_to_cert(target_pem)
    except DecodeError as exc:
        raise ParseError(f"cannot parse certificate to look up: {exc}") from exc

    want_der = want.public_bytes(serialization.Encoding.DER)

    for index, (block_type, der) in enumerate(iter_pem_blocks(bundle_pem)):
        if block_type != CERTIFICATE_BLOCK:
            continue
        try:
            candidate = x509.load_der_x509_certificate(der)
        except ValueError:
            logger.debug("skipping unparsable certificate #%d in bundle", index)
            continue

        if candidate.public_bytes(serialization.Encoding.DER) == want_der:
            logger.debug("certificate %s found at block #%d", want.subject.rfc4514_string(), index)
            return True

    return False


def cert_in_config_map(data: Mapping[str, str], cert_pem: Union[bytes, str]) -> bool:
    """
    Check a ConfigMap-shaped mapping (its `data` section) for `cert_pem`.

    A mapping without a `ca-bundle.crt` entry has no bundle yet, so the
    answer is False rather than an error.
    """
    bundle = data.get(CA_BUNDLE_CONFIG_MAP_KEY)
    if bundle is None:
        return False
    return cert_in_bundle(cert_pem, bundle)
