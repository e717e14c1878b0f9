#!/usr/bin/env python3
"""Republish packages built by source workflow runs into this repository's registry.

For every configured ``repo/workflow/branch`` triple the relay:

1. finds the workflow by name and lists its runs on the branch that were
   updated in the last 12 hours,
2. reads each completed job's log for ``--- Uploaded package ... ---`` markers,
3. skips packages the destination registry already has,
4. downloads the matching run artifact and checks its SHA-256 against the log,
5. pushes the package to the destination registry.

Failures are reported and isolated to the smallest unit (package, run,
triple); the batch keeps going and exits non-zero at the end if anything
was reported.
"""
from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import requests

from pkgrelay.artifacts import download_artifact, extract_package, find_artifact
from pkgrelay.config import RelayConfig, Target, build_config, build_parser, parse_target
from pkgrelay.credentials import docker_login, write_nuget_config
from pkgrelay.errors import ConfigurationError, RelayError, UnsupportedTypeError
from pkgrelay.github_api import GitHubClient
from pkgrelay.integrity import verify_checksum
from pkgrelay.log_claims import extract_claims, should_scan
from pkgrelay.models import (
    ContainerImageIdentity,
    NugetPackageIdentity,
    PackageIdentity,
    PublishedPackageClaim,
    WorkflowRunReference,
    parse_package_identity,
)
from pkgrelay.publish_gate import ContainerTagGate, PublishGate, RegistrySnapshot
from pkgrelay.registry_clients import DockerCli, DotnetNugetCli
from pkgrelay.report import BatchReport, debug
from pkgrelay.republish import ContainerImageRepublisher, NugetRepublisher
from pkgrelay.workflow_runs import (
    fetch_job_log,
    find_workflow,
    list_jobs,
    list_recent_runs,
    list_run_artifacts,
    recency_threshold,
)

Republisher = Union[ContainerImageRepublisher, NugetRepublisher]

PACKAGE_ERRORS = (RelayError, requests.RequestException, OSError)


class Relay:
    def __init__(
        self,
        client: GitHubClient,
        source_owner: str,
        gate: PublishGate,
        republishers: Dict[type, Republisher],
        workdir: Path,
        report: Optional[BatchReport] = None,
        nuget_enabled: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        self.client = client
        self.source_owner = source_owner
        self.gate = gate
        self.republishers = republishers
        self.workdir = workdir
        self.report = report or BatchReport()
        self.nuget_enabled = nuget_enabled
        self.threshold = recency_threshold(now)

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        client: Optional[GitHubClient] = None,
        docker: Optional[DockerCli] = None,
        nuget: Optional[DotnetNugetCli] = None,
        report: Optional[BatchReport] = None,
        now: Optional[datetime] = None,
    ) -> "Relay":
        client = client or GitHubClient(config.source_token, api_url=config.api_url)
        owner, repo = config.destination_owner, config.destination_repo
        gate = PublishGate(
            ContainerTagGate(client, owner, repo, owner_kind=config.owner_kind),
            RegistrySnapshot(client, owner, repo, package_type="nuget", owner_kind=config.owner_kind)
            if config.enable_nuget
            else None,
        )
        republishers: Dict[type, Republisher] = {
            ContainerImageIdentity: ContainerImageRepublisher(
                docker or DockerCli(cwd=config.workdir), owner, repo, config.workdir
            ),
        }
        if config.enable_nuget:
            republishers[NugetPackageIdentity] = NugetRepublisher(
                nuget or DotnetNugetCli(cwd=config.workdir), owner, repo, config.workdir
            )
        return cls(
            client,
            config.source_owner,
            gate,
            republishers,
            config.workdir,
            report=report,
            nuget_enabled=config.enable_nuget,
            now=now,
        )

    def run(self, targets: List[str]) -> BatchReport:
        for raw in targets:
            try:
                target = parse_target(raw)
            except ConfigurationError as exc:
                self.report.fail(str(exc))
                continue
            try:
                self.process_target(target)
            except Exception as exc:
                self.report.fail(f"{target}: {exc}")
        return self.report

    def process_target(self, target: Target) -> None:
        workflow = find_workflow(self.client, self.source_owner, target.repo, target.workflow)
        runs = list_recent_runs(self.client, workflow, target.branch, self.threshold)
        for run in runs:
            # Old runs can look recent once GitHub archives their logs.
            try:
                self.process_run(run)
            except Exception as exc:
                debug(f"Error checking {run.describe()}")
                self.report.fail(f"{run.owner}/{run.repo} run {run.run_number}: {exc}")

    def process_run(self, run: WorkflowRunReference) -> None:
        debug(f"Checking {run.describe()}")
        artifacts = list_run_artifacts(self.client, run)
        for job in list_jobs(self.client, run):
            if not should_scan(job):
                continue
            claims = extract_claims(fetch_job_log(self.client, job))
            for claim in claims:
                debug(f"Build has published a package named {claim.name}")
            debug(f"{job.name}: {job.status}, published {len(claims)} package(s):")
            for claim in claims:
                try:
                    self.process_claim(run, artifacts, claim)
                except PACKAGE_ERRORS as exc:
                    self.report.fail(str(exc) if isinstance(exc, RelayError) else f"{claim.label()}: {exc}")

    def process_claim(self, run: WorkflowRunReference, artifacts: List[dict], claim: PublishedPackageClaim) -> bool:
        """Republish one claimed package; returns ``False`` when it was already present."""

        identity = parse_package_identity(claim.name)
        if isinstance(identity, NugetPackageIdentity) and not self.nuget_enabled:
            raise UnsupportedTypeError(f"{claim.name}: NuGet support is disabled")
        if self.gate.is_published(identity):
            self.report.record_skipped(claim.name)
            return False

        handle = find_artifact(artifacts, run, claim.name)
        zip_path = download_artifact(self.client, handle, self.workdir)
        package_path = extract_package(zip_path, claim.name, self.workdir)
        verify_checksum(package_path, claim)

        debug(f"{claim.label()}: Downloaded artifact, SHA256 matches, republishing:")
        self.republisher_for(identity).republish(identity, package_path)  # type: ignore[arg-type]
        self.report.record_published(claim.name)
        return True

    def republisher_for(self, identity: PackageIdentity) -> Republisher:
        republisher = self.republishers.get(type(identity))
        if republisher is None:
            raise UnsupportedTypeError(f"Package type for {identity.filename} not currently supported")
        return republisher


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    report = BatchReport()

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        report.fail(str(exc))
        return report.exit_code

    debug(
        f"Starting with parameters sourceOwner={config.source_owner} "
        f"packagePushUser={config.package_push_user} thisOwner/thisRepo={config.repository}"
    )
    config.workdir.mkdir(parents=True, exist_ok=True)
    docker = DockerCli(cwd=config.workdir)

    if not config.skip_login:
        try:
            if config.enable_nuget:
                write_nuget_config(
                    config.workdir, config.destination_owner, config.package_push_user, config.package_push_token
                )
            docker_login(docker, config.workdir, config.package_push_user, config.package_push_token)
        except (RelayError, OSError) as exc:
            report.fail(f"Registry login failed: {exc}")
            report.write_step_summary()
            return report.exit_code

    relay = Relay.from_config(config, docker=docker, report=report)
    relay.run(config.targets)

    debug(
        f"Published {len(report.published)} package(s), {len(report.skipped)} already present, "
        f"{len(report.errors)} error(s)"
    )
    report.write_step_summary()
    report.write_outputs()
    return report.exit_code


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main(sys.argv[1:]))
