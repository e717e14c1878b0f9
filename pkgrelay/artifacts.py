"""Locate, download and unpack the artifact a build claims to have uploaded."""
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Iterable

from pkgrelay.errors import ArtifactDownloadError, NotFoundError
from pkgrelay.github_api import GitHubClient
from pkgrelay.models import ArtifactHandle, WorkflowRunReference
from pkgrelay.report import debug

CHUNK_SIZE = 1024 * 1024


def find_artifact(artifacts: Iterable[dict], run: WorkflowRunReference, name: str) -> ArtifactHandle:
    for item in artifacts:
        if item.get("name") != name:
            continue
        artifact_id = int(item["id"])
        url = str(
            item.get("archive_download_url")
            or f"repos/{run.owner}/{run.repo}/actions/artifacts/{artifact_id}/zip"
        )
        return ArtifactHandle(id=artifact_id, name=name, archive_download_url=url, run=run)
    raise NotFoundError(f"{name}: No artifact with that name uploaded by workflow run")


def download_artifact(client: GitHubClient, handle: ArtifactHandle, dest_dir: Path) -> Path:
    """Stream the artifact archive to ``<dest_dir>/<name>.zip`` and return that path."""

    source = f"{handle.run.owner}/{handle.run.repo}"
    debug(f"Resolving download URL for artifact {handle.id} from {source}")
    location = client.resolve_redirect(handle.archive_download_url)

    debug(f"Downloading artifact {handle.id} from {source}")
    dest_dir.mkdir(parents=True, exist_ok=True)
    zip_path = dest_dir / f"{handle.name}.zip"
    response = client.open_download(location)
    try:
        if not response.ok:
            raise ArtifactDownloadError(
                f"Unable to download artifact {handle.id} from {source}: "
                f"Unexpected response {response.status_code} {response.reason}"
            )
        with zip_path.open("wb") as handle_out:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    handle_out.write(chunk)
    finally:
        response.close()
    return zip_path


def extract_package(zip_path: Path, package_name: str, dest_dir: Path) -> Path:
    """Unpack the artifact archive over *dest_dir*, drop the archive and return the package path."""

    debug("Unzipping")
    try:
        with zipfile.ZipFile(zip_path) as zf:
            zf.extractall(dest_dir)
    except zipfile.BadZipFile as exc:
        raise ArtifactDownloadError(f"{zip_path.name} is not a valid artifact archive: {exc}") from exc
    finally:
        zip_path.unlink(missing_ok=True)

    package_path = dest_dir / package_name
    if not package_path.is_file():
        raise NotFoundError(f"{package_name}: artifact archive does not contain the package file")
    return package_path
