"""Push verified artifacts into the destination repository's package registry."""
from __future__ import annotations

import re
import shutil
import zipfile
from pathlib import Path
from typing import List, Optional

from pkgrelay.errors import IntegrityError, NotFoundError
from pkgrelay.models import DOCKER_SUFFIX, ContainerImageIdentity, NugetPackageIdentity
from pkgrelay.registry_clients import NUGET_SOURCE_NAME, REGISTRY_HOST, DockerCli, DotnetNugetCli
from pkgrelay.report import debug

LOAD_OUTPUT_FILENAME = "docker_load_output"
LOADED_REPOTAG_FILENAME = "loaded_repotag"
DESTINATION_REPOTAG_FILENAME = "destination_repotag"

LOADED_IMAGE_PATTERN = re.compile(r"^Loaded image: (\S+)\s*$", re.MULTILINE)
REPOSITORY_URL_PATTERN = re.compile(r'repository url="[^"]*"')


def parse_loaded_repotag(output: str) -> Optional[str]:
    match = LOADED_IMAGE_PATTERN.search(output)
    return match.group(1) if match else None


def repotag_from_filename(filename: str) -> str:
    return filename.replace(DOCKER_SUFFIX, "").replace("_", ":", 1)


def destination_tag(owner: str, repo: str, repotag: str, host: str = REGISTRY_HOST) -> str:
    # Registries are case sensitive and only accept lower-case references.
    return f"{host}/{owner}/{repo}/{repotag}".lower()


class ContainerImageRepublisher:
    def __init__(self, docker: DockerCli, owner: str, repo: str, workdir: Path, host: str = REGISTRY_HOST) -> None:
        self.docker = docker
        self.owner = owner
        self.repo = repo
        self.workdir = workdir
        self.host = host

    def republish(self, identity: ContainerImageIdentity, archive: Path) -> str:
        debug(f"- Uploading docker image from {archive.name}")
        output = self.docker.load(archive)
        (self.workdir / LOAD_OUTPUT_FILENAME).write_text(output, encoding="utf-8")

        loaded = parse_loaded_repotag(output)
        if not loaded:
            raise IntegrityError(f"{identity.filename}: docker load did not report a loaded image tag")
        (self.workdir / LOADED_REPOTAG_FILENAME).write_text(loaded + "\n", encoding="utf-8")

        # The gate reads tags from filenames, so the image must match its filename.
        expected = repotag_from_filename(identity.filename)
        debug(f"Confirming repo/tag in file {loaded} consistent with repo/tag guessed from filename {expected}")
        if loaded.rsplit("/", 1)[-1] != expected:
            raise IntegrityError(
                f"{identity.filename}: loaded image {loaded} does not match {expected} derived from the filename"
            )

        target = destination_tag(self.owner, self.repo, expected, host=self.host)
        (self.workdir / DESTINATION_REPOTAG_FILENAME).write_text(target + "\n", encoding="utf-8")

        debug(f"Will retag {loaded} as {target} then push")
        tag_output = self.docker.tag(loaded, target)
        push_output = self.docker.push(target)
        debug(f"Docker operations output: {tag_output}{push_output}")
        return target


def rewrite_repository_url(text: str, owner: str, repo: str) -> str:
    replacement = f'repository url="https://github.com/{owner}/{repo}"'
    lines: List[str] = text.split("\n")
    for index, line in enumerate(lines):
        new_line = REPOSITORY_URL_PATTERN.sub(replacement, line)
        if new_line != line:
            debug(f"- {line} -> {new_line.strip()}")
            lines[index] = new_line
        else:
            debug(f"- {line}")
    return "\n".join(lines)


def replace_zip_member(archive: Path, member: str, content: bytes) -> None:
    """Rewrite *archive* with *member* replaced by *content*; other entries are copied as-is."""

    staging = archive.with_name(archive.name + ".tmp")
    with zipfile.ZipFile(archive) as source, zipfile.ZipFile(staging, "w", zipfile.ZIP_DEFLATED) as target:
        for entry in source.infolist():
            if entry.filename == member:
                continue
            target.writestr(entry, source.read(entry))
        target.writestr(member, content)
    staging.replace(archive)


class NugetRepublisher:
    def __init__(self, nuget: DotnetNugetCli, owner: str, repo: str, workdir: Path) -> None:
        self.nuget = nuget
        self.owner = owner
        self.repo = repo
        self.workdir = workdir

    def republish(self, identity: NugetPackageIdentity, package: Path) -> str:
        debug("- Unpacking NuGet package")
        extracted = self.workdir / f"{identity.filename}.extracted"
        shutil.rmtree(extracted, ignore_errors=True)
        with zipfile.ZipFile(package) as zf:
            members = zf.namelist()
            zf.extractall(extracted)

        nuspec = next((name for name in members if name.endswith("nuspec")), None)
        if nuspec is None:
            raise NotFoundError(f"{identity.filename}: Couldn't find .nuspec file in NuGet package")

        debug(
            f"- Updating {nuspec} to reference this repository "
            "(required for GitHub package upload to succeed)"
        )
        manifest = extracted / nuspec
        text = manifest.read_text(encoding="utf-8")
        updated = rewrite_repository_url(text, self.owner, self.repo)
        manifest.write_text(updated, encoding="utf-8")
        replace_zip_member(package, nuspec, updated.encode("utf-8"))

        debug(f"- Uploading NuGet package to https://github.com/{self.owner}")
        self.nuget.push(package, NUGET_SOURCE_NAME)
        debug(f"- Uploaded {identity.filename}")
        return f"{identity.package_id} {identity.version}"
