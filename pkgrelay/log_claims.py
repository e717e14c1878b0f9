"""Extract package publication claims from a job log."""
from __future__ import annotations

import re
from typing import Dict, List

from pkgrelay.models import JobRecord, PublishedPackageClaim
from pkgrelay.report import debug

CLAIM_PATTERN = re.compile(r"--- Uploaded package (\S+) as a GitHub artifact \(SHA256: (\S+)\) ---")
LINE_SPLIT = re.compile(r"\r?\n")


def should_scan(job: JobRecord) -> bool:
    if job.status != "completed":
        debug(f"{job.name}: {job.status}")
        return False
    return True


def extract_claims(text: str) -> List[PublishedPackageClaim]:
    """Return the claims in log order; a repeated package name keeps its first claim."""

    claims: Dict[str, PublishedPackageClaim] = {}
    for line in LINE_SPLIT.split(text):
        match = CLAIM_PATTERN.search(line)
        if match is None:
            continue
        name, checksum = match.group(1), match.group(2)
        if name not in claims:
            claims[name] = PublishedPackageClaim(name=name, checksum=checksum)
    return list(claims.values())
