"""Records passed between the relay stages and package name parsing."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Union

from pkgrelay.errors import UnsupportedTypeError

DOCKER_SUFFIX = ".docker.tar.gz"
NUGET_SUFFIX = ".nupkg"


@dataclass(frozen=True)
class Workflow:
    owner: str
    repo: str
    id: int
    name: str
    html_url: str = ""


@dataclass(frozen=True)
class WorkflowRunReference:
    owner: str
    repo: str
    workflow_id: int
    workflow_name: str
    id: int
    run_number: int
    branch: str
    updated_at: datetime
    html_url: str

    def describe(self) -> str:
        return (
            f"workflow run number {self.run_number} "
            f"(url {self.html_url}, updated at {self.updated_at.isoformat()})"
        )


@dataclass(frozen=True)
class JobRecord:
    id: int
    name: str
    status: str
    run: WorkflowRunReference


@dataclass(frozen=True)
class PublishedPackageClaim:
    name: str
    checksum: str

    def label(self) -> str:
        return f"{self.name} [{self.checksum}]"


@dataclass(frozen=True)
class ArtifactHandle:
    id: int
    name: str
    archive_download_url: str
    run: WorkflowRunReference


@dataclass(frozen=True)
class ContainerImageIdentity:
    filename: str
    image: str
    tag: str

    @property
    def repotag(self) -> str:
        return f"{self.image}:{self.tag}"


@dataclass(frozen=True)
class NugetPackageIdentity:
    filename: str
    package_id: str
    version: str


PackageIdentity = Union[ContainerImageIdentity, NugetPackageIdentity]


def parse_datetime(value: Optional[str]) -> datetime:
    """Parse GitHub's ``2024-01-02T03:04:05Z`` timestamps into aware datetimes."""

    if not value:
        raise ValueError("missing timestamp")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def run_from_payload(workflow: Workflow, payload: Dict[str, object]) -> WorkflowRunReference:
    return WorkflowRunReference(
        owner=workflow.owner,
        repo=workflow.repo,
        workflow_id=workflow.id,
        workflow_name=workflow.name,
        id=int(payload["id"]),
        run_number=int(payload.get("run_number") or 0),
        branch=str(payload.get("head_branch") or ""),
        updated_at=parse_datetime(str(payload.get("updated_at") or "")),
        html_url=str(payload.get("html_url") or ""),
    )


def _parse_container(name: str) -> ContainerImageIdentity:
    stem = name[: -len(DOCKER_SUFFIX)]
    parts = stem.split("_")
    if len(parts) != 2 or not all(parts):
        raise UnsupportedTypeError(
            "Docker package filenames must be in the format "
            f"<package name>_<tag>{DOCKER_SUFFIX}. Found {name}"
        )
    return ContainerImageIdentity(filename=name, image=parts[0], tag=parts[1])


def _parse_nuget(name: str) -> NugetPackageIdentity:
    stem = name[: -len(NUGET_SUFFIX)]
    segments = stem.split(".")
    for index, segment in enumerate(segments):
        if index and segment.isdigit():
            return NugetPackageIdentity(
                filename=name,
                package_id=".".join(segments[:index]),
                version=".".join(segments[index:]),
            )
    raise UnsupportedTypeError(
        f"NuGet package filenames must be in the format <package name>.<version>{NUGET_SUFFIX}. Found {name}"
    )


def parse_package_identity(name: str) -> PackageIdentity:
    # The name becomes a local filename, so it must stay inside the working directory.
    if "/" in name or "\\" in name or name.startswith("."):
        raise UnsupportedTypeError(f"Package name {name} is not a plain filename")
    if name.endswith(DOCKER_SUFFIX):
        return _parse_container(name)
    if name.endswith(NUGET_SUFFIX):
        return _parse_nuget(name)
    raise UnsupportedTypeError(f"Package type for {name} not currently supported")
