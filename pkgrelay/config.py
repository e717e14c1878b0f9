"""Relay settings from the environment, an optional YAML file and the command line."""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import yaml

from pkgrelay.errors import ConfigurationError
from pkgrelay.github_api import DEFAULT_API_URL

OWNER_KINDS = ("orgs", "users")

# option name -> environment variables consulted in order. INPUT_* are the
# names GitHub Actions uses for action inputs.
ENV_SOURCES: Dict[str, tuple] = {
    "source_owner": ("INPUT_SOURCE-OWNER", "SOURCE_OWNER"),
    "source_repo_workflow_branches": (
        "INPUT_SOURCE-REPO-WORKFLOW-BRANCHES",
        "SOURCE_REPO_WORKFLOW_BRANCHES",
    ),
    "source_token": ("INPUT_SOURCE-TOKEN", "SOURCE_TOKEN"),
    "package_push_user": ("INPUT_PACKAGE-PUSH-USER", "PACKAGE_PUSH_USER"),
    "package_push_token": ("INPUT_PACKAGE-PUSH-TOKEN", "PACKAGE_PUSH_TOKEN"),
    "repository": ("GITHUB_REPOSITORY",),
    "api_url": ("GITHUB_API_URL",),
}

BOOL_KEYS = ("enable_nuget", "skip_login")


@dataclass(frozen=True)
class Target:
    repo: str
    workflow: str
    branch: str

    def __str__(self) -> str:
        return f"{self.repo}/{self.workflow}/{self.branch}"


def parse_target(raw: str) -> Target:
    parts = raw.split("/")
    if len(parts) != 3:
        raise ConfigurationError(
            "source-repo-workflow-branches should be a comma-separated list of repo/workflow/branch: "
            f"Found {raw}"
        )
    return Target(repo=parts[0], workflow=parts[1], branch=parts[2])


def split_targets(value: Union[str, Iterable[str], None]) -> List[str]:
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else [str(item) for item in value]
    return [item.strip() for item in items if item.strip()]


@dataclass
class RelayConfig:
    source_owner: str = ""
    targets: List[str] = field(default_factory=list)
    source_token: str = ""
    package_push_user: str = ""
    package_push_token: str = ""
    repository: str = ""
    api_url: str = DEFAULT_API_URL
    owner_kind: str = "orgs"
    enable_nuget: bool = False
    skip_login: bool = False
    workdir: Path = field(default_factory=Path.cwd)

    @property
    def destination_owner(self) -> str:
        return self.repository.split("/")[0]

    @property
    def destination_repo(self) -> str:
        return self.repository.split("/")[1]

    def validate(self) -> None:
        missing = [
            name
            for name, value in (
                ("source-owner", self.source_owner),
                ("source-repo-workflow-branches", self.targets),
                ("source-token", self.source_token),
                ("repository", self.repository),
            )
            if not value
        ]
        if not self.skip_login:
            missing.extend(
                name
                for name, value in (
                    ("package-push-user", self.package_push_user),
                    ("package-push-token", self.package_push_token),
                )
                if not value
            )
        if missing:
            raise ConfigurationError(f"Missing required setting(s): {', '.join(missing)}")
        if self.repository.count("/") != 1 or not all(self.repository.split("/")):
            raise ConfigurationError(f"repository must be owner/repo: Found {self.repository}")
        if self.owner_kind not in OWNER_KINDS:
            raise ConfigurationError(f"owner-kind must be one of {', '.join(OWNER_KINDS)}: Found {self.owner_kind}")


def _env_values(environ: Mapping[str, str]) -> Dict[str, object]:
    values: Dict[str, object] = {}
    for key, names in ENV_SOURCES.items():
        for name in names:
            value = environ.get(name)
            if value:
                values[key] = value
                break
    return values


def load_yaml_config(path: Path) -> Dict[str, object]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping at the top level")
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def build_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> RelayConfig:
    """Merge settings: command line over YAML file over environment."""

    values = _env_values(os.environ if environ is None else environ)
    config_path = getattr(args, "config", None)
    if config_path:
        values.update(load_yaml_config(Path(config_path)))
    for key, value in vars(args).items():
        if key == "config" or value is None:
            continue
        if key in BOOL_KEYS and value is False:
            continue
        values[key] = value

    config = RelayConfig(
        source_owner=str(values.get("source_owner") or ""),
        targets=split_targets(values.get("source_repo_workflow_branches")),  # type: ignore[arg-type]
        source_token=str(values.get("source_token") or ""),
        package_push_user=str(values.get("package_push_user") or ""),
        package_push_token=str(values.get("package_push_token") or ""),
        repository=str(values.get("repository") or ""),
        api_url=str(values.get("api_url") or DEFAULT_API_URL),
        owner_kind=str(values.get("owner_kind") or "orgs"),
        enable_nuget=_as_bool(values.get("enable_nuget", False)),
        skip_login=_as_bool(values.get("skip_login", False)),
        workdir=Path(str(values.get("workdir") or Path.cwd())).resolve(),
    )
    config.validate()
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Republish packages uploaded by source workflow runs into this repository's registry"
    )
    parser.add_argument("--config", help="YAML file with relay settings")
    parser.add_argument("--source-owner")
    parser.add_argument(
        "--source-repo-workflow-branches",
        help="Comma-separated list of repo/workflow/branch triples",
    )
    parser.add_argument("--source-token", help="Token with read access to the source repositories")
    parser.add_argument("--package-push-user")
    parser.add_argument("--package-push-token")
    parser.add_argument("--repository", help="Destination owner/repo (defaults to GITHUB_REPOSITORY)")
    parser.add_argument("--api-url")
    parser.add_argument("--owner-kind", choices=OWNER_KINDS)
    parser.add_argument("--enable-nuget", action="store_true", help="Republish legacy .nupkg packages")
    parser.add_argument("--skip-login", action="store_true", help="Reuse existing registry credentials")
    parser.add_argument("--workdir", help="Scratch directory for downloads and credential files")
    return parser
