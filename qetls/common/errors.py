"""
Error taxonomy for the TLS engine.

Every failure the engine surfaces is a TLSError subclass, so callers
(CLI, orchestration code) can catch one type and report `str(exc)`.
Errors raised by `cryptography` are wrapped with `raise ... from exc`
to keep the original traceback.
"""


class TLSError(Exception):
    """Base class for all engine errors."""


class KeyGenerationError(TLSError):
    """The RSA key-generation primitive rejected the requested parameters."""


class SigningError(TLSError):
    """A certificate template could not be encoded or signed."""


class InvalidCAError(TLSError):
    """The supplied CA key and certificate do not form a usable issuer."""


class DecodeError(TLSError):
    """Malformed PEM/DER input, wrong block type or unsupported key type."""


class ParseError(TLSError):
    """The certificate being looked up in a bundle cannot be decoded."""


class CertificateVerificationError(TLSError):
    """A certificate failed signature, validity or hostname checks."""


class ConfigurationError(TLSError):
    """Required options (e.g. output file paths) are missing."""


class FileReadError(TLSError):
    """A key, certificate or bundle file is missing or unreadable."""
