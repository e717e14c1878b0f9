from __future__ import annotations

import hashlib
from pathlib import Path

from pkgrelay.errors import IntegrityError
from pkgrelay.models import PublishedPackageClaim
from pkgrelay.report import debug

DIGEST_LENGTH = 64


def sha256_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_checksum(path: Path, claim: PublishedPackageClaim) -> str:
    """Raise :class:`IntegrityError` unless *path* hashes to the claimed SHA-256."""

    debug("Confirming sha256")
    actual = sha256_file(path)[:DIGEST_LENGTH]
    if claim.checksum != actual:
        raise IntegrityError(f"{claim.label()}: Found artifact with non-matching SHA256 {actual}")
    return actual
