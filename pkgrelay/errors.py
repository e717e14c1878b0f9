"""Error taxonomy for the relay pipeline.

Every error the relay reports derives from :class:`RelayError` so the loop can
recover at package, run or triple granularity without catching unrelated bugs.
"""
from __future__ import annotations

from typing import Optional, Sequence


class RelayError(Exception):
    """Base class for reportable relay failures."""


class ConfigurationError(RelayError):
    """Malformed input, missing setting or unknown workflow."""


class NotFoundError(RelayError):
    """Something the relay expected to exist is absent."""


class GitHubApiError(RelayError):
    def __init__(self, status: int, url: str, message: str = "") -> None:
        self.status = status
        self.url = url
        detail = f": {message}" if message else ""
        super().__init__(f"GitHub API request to {url} failed with HTTP {status}{detail}")


class GitHubNotFound(GitHubApiError, NotFoundError):
    """HTTP 404 from the GitHub API."""


class IntegrityError(RelayError):
    """Checksum or tag mismatch between what a build claimed and what it produced."""


class UnsupportedTypeError(RelayError):
    """Package name does not follow a supported naming convention."""


class TransientRunError(RelayError):
    """Log retrieval failed on an otherwise recent run (archived or expired logs)."""


class ArtifactDownloadError(RelayError):
    """The artifact storage returned a non-OK response."""


class ToolError(RelayError):
    def __init__(self, command: Sequence[str], returncode: int, output: Optional[str] = None) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output or ""
        message = f"Command {' '.join(self.command)!r} exited with {returncode}"
        if self.output.strip():
            message += f": {self.output.strip()}"
        super().__init__(message)
