"""SHA-256 checksum verification against a release checksum manifest.

Release manifests use the ``sha256sum`` format, one entry per line::

    <hex digest>  <filename>

The filename field is matched exactly. ``sha256sum`` may prefix it with ``*``
(binary mode) or ``./``; both are ignored.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Dict, Optional

CHUNK_SIZE = 64 * 1024


def file_sha256(path: Path) -> str:
    """Compute the hex SHA-256 digest of a file, reading it in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_checksum(path: Path, expected_hex: str) -> bool:
    """Check that a file's SHA-256 digest matches ``expected_hex``.

    The comparison ignores case and surrounding whitespace.
    """
    return file_sha256(path) == expected_hex.strip().lower()


def _normalize_filename(field: str) -> str:
    name = field.lstrip("*")
    while name.startswith("./"):
        name = name[2:]
    return name


def parse_checksum_manifest(text: str) -> Dict[str, str]:
    """Parse a manifest into a filename -> digest mapping.

    Blank and malformed lines are skipped. When a filename appears more than
    once the first entry wins.
    """
    entries: Dict[str, str] = {}
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        digest = fields[0].lower()
        filename = _normalize_filename(" ".join(fields[1:]))
        if filename and filename not in entries:
            entries[filename] = digest
    return entries


def find_expected_digest(text: str, filename: str) -> Optional[str]:
    """Return the manifest digest for ``filename``, or None if not listed."""
    return parse_checksum_manifest(text).get(filename)


def read_manifest(path: Path) -> str:
    return path.read_text(encoding="utf-8")
