"""
Common helpers: path expansion, file checks, and fingerprint formatting.

Used by:
  - storage/files.py (reading/writing key and certificate files)
  - crypto/pki.py (certificate fingerprints for logs and the CLI)
"""

import os
from pathlib import Path
from typing import Union


def expand_path(path: Union[str, Path]) -> Path:
    """Expand `~` and environment variables in a user-supplied path."""
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def file_exists(path: Union[str, Path, None]) -> bool:
    """
    Return True if `path` names an existing regular file.

    Empty or None paths are reported as missing rather than raising.
    """
    if not path:
        return False
    return expand_path(path).is_file()


def colon_hex(hex_digest: str) -> str:
    """Format a hex digest as upper-case colon-separated pairs (AB:CD:...)."""
    upper = hex_digest.upper()
    return ":".join(upper[i:i + 2] for i in range(0, len(upper), 2))
