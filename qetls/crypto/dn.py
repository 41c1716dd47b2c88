"""
Distinguished-name parsing for human-supplied subject strings.

Two syntaxes are accepted and auto-detected:

    /C=US/O=Org/OU=Unit/CN=name       OpenSSL "oneline" (leading slash)
    CN=name, O=Org, OU=Unit, C=US     RFC 2253 style (comma separated)

Parsing is deliberately lenient: segments without '=' are skipped and
nothing ever raises. There is no escaping, so a value containing the
separator character ('/' or ',') is split in two.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from cryptography import x509
from cryptography.x509.oid import NameOID, ObjectIdentifier

# Placeholder OID for attribute keys we do not recognise; the value is
# kept so no caller input is lost.
EXTRA_NAME_OID = "2.5.4.9999"


@dataclass(frozen=True)
class DistinguishedName:
    country: Tuple[str, ...] = ()
    organization: Tuple[str, ...] = ()
    organizational_unit: Tuple[str, ...] = ()
    locality: Tuple[str, ...] = ()
    province: Tuple[str, ...] = ()
    common_name: str = ""
    # (oid, value) pairs
    extra_names: Tuple[Tuple[str, str], ...] = ()

    def is_empty(self) -> bool:
        return not (
            self.country
            or self.organization
            or self.organizational_unit
            or self.locality
            or self.province
            or self.common_name
            or self.extra_names
        )

    def to_x509_name(self) -> x509.Name:
        """
        Build a `cryptography` Name in the order C, ST, L, O, OU, CN, extras.

        Raises ValueError if `cryptography` rejects a value (e.g. a
        country that is not a two-letter code).
        """
        attrs: List[x509.NameAttribute] = []
        attrs += [x509.NameAttribute(NameOID.COUNTRY_NAME, v) for v in self.country]
        attrs += [x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, v) for v in self.province]
        attrs += [x509.NameAttribute(NameOID.LOCALITY_NAME, v) for v in self.locality]
        attrs += [x509.NameAttribute(NameOID.ORGANIZATION_NAME, v) for v in self.organization]
        attrs += [
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, v)
            for v in self.organizational_unit
        ]
        if self.common_name:
            attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, self.common_name))
        attrs += [
            x509.NameAttribute(ObjectIdentifier(oid), value)
            for oid, value in self.extra_names
        ]
        return x509.Name(attrs)

    def __str__(self) -> str:
        parts = [f"C={v}" for v in self.country]
        parts += [f"ST={v}" for v in self.province]
        parts += [f"L={v}" for v in self.locality]
        parts += [f"O={v}" for v in self.organization]
        parts += [f"OU={v}" for v in self.organizational_unit]
        if self.common_name:
            parts.append(f"CN={self.common_name}")
        parts += [f"{oid}={v}" for oid, v in self.extra_names]
        return ", ".join(parts)


def _split_segments(subject: str) -> List[str]:
    if subject.startswith("/"):
        return subject[1:].split("/")
    return subject.split(",")


def parse_subject(subject: str) -> DistinguishedName:
    """
    Parse a subject string into a DistinguishedName.

    Keys are case-insensitive and matched against C, O, OU, CN, L, ST.
    CN is single-valued (last occurrence wins); the others keep every
    value in input order. Unknown keys land in `extra_names`.
    """
    country: List[str] = []
    organization: List[str] = []
    organizational_unit: List[str] = []
    locality: List[str] = []
    province: List[str] = []
    extra_names: List[Tuple[str, str]] = []
    common_name = ""

    for segment in _split_segments(subject or ""):
        key, sep, value = segment.strip().partition("=")
        if not sep:
            continue

        key = key.upper()
        if key == "C":
            country.append(value)
        elif key == "O":
            organization.append(value)
        elif key == "OU":
            organizational_unit.append(value)
        elif key == "CN":
            common_name = value
        elif key == "L":
            locality.append(value)
        elif key == "ST":
            province.append(value)
        else:
            extra_names.append((EXTRA_NAME_OID, value))

    return DistinguishedName(
        country=tuple(country),
        organization=tuple(organization),
        organizational_unit=tuple(organizational_unit),
        locality=tuple(locality),
        province=tuple(province),
        common_name=common_name,
        extra_names=tuple(extra_names),
    )
