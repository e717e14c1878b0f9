"""Discover recent runs of a named workflow and pull their jobs, logs and artifacts."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import requests

from pkgrelay.errors import ConfigurationError, GitHubApiError, TransientRunError
from pkgrelay.github_api import GitHubClient
from pkgrelay.models import JobRecord, Workflow, WorkflowRunReference, run_from_payload
from pkgrelay.report import debug

# Runs last updated before this window are never scanned.
RECENCY_WINDOW = timedelta(hours=12)


def recency_threshold(now: Optional[datetime] = None) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    return now - RECENCY_WINDOW


def find_workflow(client: GitHubClient, owner: str, repo: str, name: str) -> Workflow:
    debug(f'Looking for workflows named "{name}" in {owner}/{repo}')
    for item in client.paginate(f"repos/{owner}/{repo}/actions/workflows", key="workflows"):
        if item.get("name") == name:
            workflow = Workflow(
                owner=owner,
                repo=repo,
                id=int(item["id"]),
                name=name,
                html_url=str(item.get("html_url") or ""),
            )
            debug(f"Found workflow with id {workflow.id} name {workflow.name} url {workflow.html_url}")
            return workflow
    raise ConfigurationError(f'Failed to find workflow "{name}" in {owner}/{repo}')


def list_recent_runs(
    client: GitHubClient,
    workflow: Workflow,
    branch: str,
    threshold: datetime,
) -> List[WorkflowRunReference]:
    debug(f"Looking for runs of that workflow on branch {branch}")
    # A single page: runs come back newest first, so older pages fall outside the window.
    payload = client.get_json(
        f"repos/{workflow.owner}/{workflow.repo}/actions/workflows/{workflow.id}/runs",
        params={"branch": branch, "per_page": 100},
    )
    items = payload.get("workflow_runs") if isinstance(payload, dict) else None
    runs = [run_from_payload(workflow, item) for item in items or [] if isinstance(item, dict)]
    recent = [run for run in runs if run.updated_at > threshold]
    debug(
        f"Found {len(runs)} workflow run(s) in total. Of these, {len(recent)} were updated after "
        f"{threshold.isoformat()}, the rest will be ignored."
    )
    return recent


def list_jobs(client: GitHubClient, run: WorkflowRunReference) -> List[JobRecord]:
    return [
        JobRecord(
            id=int(item["id"]),
            name=str(item.get("name") or item["id"]),
            status=str(item.get("status") or ""),
            run=run,
        )
        for item in client.paginate(f"repos/{run.owner}/{run.repo}/actions/runs/{run.id}/jobs", key="jobs")
    ]


def list_run_artifacts(client: GitHubClient, run: WorkflowRunReference) -> List[dict]:
    return list(client.paginate(f"repos/{run.owner}/{run.repo}/actions/runs/{run.id}/artifacts", key="artifacts"))


def fetch_job_log(client: GitHubClient, job: JobRecord) -> str:
    run = job.run
    try:
        return client.get_text(f"repos/{run.owner}/{run.repo}/actions/jobs/{job.id}/logs")
    except (GitHubApiError, requests.RequestException) as exc:
        raise TransientRunError(
            f"Unable to retrieve log for job {job.name} ({job.id}) of run number {run.run_number}: {exc}"
        ) from exc
