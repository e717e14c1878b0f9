from __future__ import annotations

import hashlib
import io
import zipfile
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

import pytest

from pkgrelay.errors import GitHubNotFound, ToolError

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def artifact_zip(name: str, content: bytes) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(name, content)
    return buffer.getvalue()


def marker(name: str, checksum: str) -> str:
    return f"--- Uploaded package {name} as a GitHub artifact (SHA256: {checksum}) ---"


class FakeResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200, reason: str = "OK") -> None:
        self.content = content
        self.status_code = status_code
        self.reason = reason
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeGitHubClient:
    """Serves canned GitHub responses keyed by API path."""

    def __init__(self) -> None:
        self.pages: Dict[str, object] = {}
        self.json: Dict[str, object] = {}
        self.logs: Dict[str, object] = {}
        self.downloads: Dict[str, FakeResponse] = {}
        self.calls: List[tuple] = []

    def paginate(self, path: str, key: Optional[str] = None, params: Optional[dict] = None) -> Iterator[dict]:
        self.calls.append(("paginate", path))
        value = self.pages.get(path)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise GitHubNotFound(404, path)
        yield from value  # type: ignore[misc]

    def get_json(self, path: str, params: Optional[dict] = None) -> object:
        self.calls.append(("get_json", path, dict(params or {})))
        value = self.json.get(path)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise GitHubNotFound(404, path)
        return value

    def get_text(self, path: str) -> str:
        self.calls.append(("get_text", path))
        value = self.logs.get(path)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise GitHubNotFound(404, path)
        return str(value)

    def resolve_redirect(self, url: str) -> str:
        self.calls.append(("resolve_redirect", url))
        return f"https://storage.example/{url.rsplit('/', 2)[-2]}"

    def open_download(self, url: str) -> FakeResponse:
        self.calls.append(("download", url))
        return self.downloads.get(url) or FakeResponse(status_code=404, reason="Not Found")

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


class FakeDocker:
    def __init__(self, loaded: Optional[str] = None, push_error: bool = False) -> None:
        self.loaded = loaded
        self.push_error = push_error
        self.calls: List[tuple] = []

    def load(self, archive) -> str:
        self.calls.append(("load", archive.name))
        loaded = self.loaded or archive.name.replace(".docker.tar.gz", "").replace("_", ":", 1)
        return f"Loaded image: {loaded}\n"

    def tag(self, source: str, target: str) -> str:
        self.calls.append(("tag", source, target))
        return ""

    def push(self, target: str) -> str:
        self.calls.append(("push", target))
        if self.push_error:
            raise ToolError(["docker", "push", target], 1, "denied: permission_denied")
        return f"{target}: digest: sha256:abc size: 1\n"

    def login(self, host: str, user: str, password_file) -> str:
        self.calls.append(("login", host, user, password_file.read_text(encoding="utf-8")))
        return "Login Succeeded\n"


class FakeNuget:
    def __init__(self) -> None:
        self.pushed: List[str] = []

    def push(self, package, source: str = "github") -> str:
        self.pushed.append(package.name)
        return ""


@pytest.fixture
def github() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def docker() -> FakeDocker:
    return FakeDocker()
