"""Decide whether a claimed package is already present in the destination registry.

Two lookup strategies exist and they do not agree in coverage:

* ``ContainerTagGate`` asks the registry for the versions of one image and is
  authoritative. A 404 means the image has never been pushed, which is the
  normal "safe to publish" signal rather than a failure.
* ``RegistrySnapshot`` enumerates every package of a type once per batch.
  The package listing endpoint has been seen to omit some packages, so it is
  only used for legacy NuGet packages where no per-identity lookup exists.
"""
from __future__ import annotations

from typing import Optional, Set
from urllib.parse import quote

from pkgrelay.errors import GitHubNotFound, UnsupportedTypeError
from pkgrelay.github_api import GitHubClient
from pkgrelay.models import ContainerImageIdentity, NugetPackageIdentity, PackageIdentity
from pkgrelay.report import debug


def _package_root(owner_kind: str, owner: str) -> str:
    return f"{owner_kind}/{owner}/packages"


class ContainerTagGate:
    def __init__(self, client: GitHubClient, owner: str, repo: str, owner_kind: str = "orgs") -> None:
        self.client = client
        self.owner = owner
        self.repo = repo
        self.owner_kind = owner_kind

    def versions_path(self, image: str) -> str:
        # Container packages pushed from a repository are named "<repo>/<image>", lower-cased like their tags.
        package_name = quote(f"{self.repo}/{image}".lower(), safe="")
        return f"{_package_root(self.owner_kind, self.owner)}/container/{package_name}/versions"

    def existing_tags(self, image: str) -> Optional[Set[str]]:
        """Return every tag of *image*, or ``None`` when the image does not exist yet."""

        try:
            versions = list(self.client.paginate(self.versions_path(image)))
        except GitHubNotFound:
            return None
        tags: Set[str] = set()
        for version in versions:
            metadata = version.get("metadata")
            container = metadata.get("container") if isinstance(metadata, dict) else None
            if not isinstance(container, dict):
                continue
            for tag in container.get("tags") or []:
                tags.add(str(tag).lower())
        return tags

    def is_published(self, identity: ContainerImageIdentity) -> bool:
        tags = self.existing_tags(identity.image)
        if tags is None:
            debug(f"Package {identity.image} not found in package registry. It will be pushed to the registry.")
            return False
        if identity.tag.lower() in tags:
            debug(
                f"Tag {identity.tag} of {identity.image} already present in package registry. Skipping."
            )
            return True
        debug(
            f"Tag {identity.tag} of {identity.image} not found in package registry. "
            "It will be pushed to the registry."
        )
        return False


class RegistrySnapshot:
    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        package_type: str = "nuget",
        owner_kind: str = "orgs",
    ) -> None:
        self.client = client
        self.owner = owner
        self.repo = repo
        self.package_type = package_type
        self.owner_kind = owner_kind
        self._identities: Optional[Set[str]] = None

    def identities(self) -> Set[str]:
        if self._identities is None:
            self._identities = self._load()
        return self._identities

    def _load(self) -> Set[str]:
        root = _package_root(self.owner_kind, self.owner)
        identities: Set[str] = set()
        packages = self.client.paginate(root, params={"package_type": self.package_type})
        for package in packages:
            repository = package.get("repository") or {}
            if isinstance(repository, dict) and repository.get("name") != self.repo:
                continue
            name = str(package.get("name") or "")
            if not name:
                continue
            versions_path = f"{root}/{self.package_type}/{quote(name, safe='')}/versions"
            for version in self.client.paginate(versions_path):
                identities.add(f"{name}.{version.get('name')}.nupkg".lower())
        debug(
            f"Found {len(identities)} {self.package_type} package version(s) in "
            f"{self.owner}/{self.repo}"
        )
        return identities

    def is_published(self, identity: NugetPackageIdentity) -> bool:
        if identity.filename.lower() in self.identities():
            debug(f"{identity.filename} already present in package registry. Skipping.")
            return True
        debug(f"{identity.filename} not found in package registry. It will be pushed to the registry.")
        return False


class PublishGate:
    def __init__(self, containers: ContainerTagGate, nuget: Optional[RegistrySnapshot] = None) -> None:
        self.containers = containers
        self.nuget = nuget

    def is_published(self, identity: PackageIdentity) -> bool:
        if isinstance(identity, ContainerImageIdentity):
            return self.containers.is_published(identity)
        if isinstance(identity, NugetPackageIdentity) and self.nuget is not None:
            return self.nuget.is_published(identity)
        raise UnsupportedTypeError(f"No registry lookup available for {identity.filename}")
