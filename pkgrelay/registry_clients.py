"""Subprocess wrappers for the registry tools (docker, dotnet nuget)."""
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from pkgrelay.errors import ToolError

REGISTRY_HOST = "ghcr.io"
NUGET_SOURCE_NAME = "github"


def run_tool(
    command: Sequence[str],
    cwd: Optional[Path] = None,
    stdin_path: Optional[Path] = None,
) -> str:
    """Run *command*, returning combined stdout/stderr; a non-zero exit raises :class:`ToolError`."""

    stdin = stdin_path.open("rb") if stdin_path else None
    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd else None,
            stdin=stdin,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ToolError(command, 127, str(exc)) from exc
    finally:
        if stdin is not None:
            stdin.close()
    output = proc.stdout.decode("utf-8", errors="replace") if proc.stdout else ""
    if proc.returncode != 0:
        raise ToolError(command, proc.returncode, output)
    return output


class DockerCli:
    def __init__(self, executable: str = "docker", cwd: Optional[Path] = None) -> None:
        self.executable = executable
        self.cwd = cwd

    def _run(self, args: List[str], stdin_path: Optional[Path] = None) -> str:
        return run_tool([self.executable, *args], cwd=self.cwd, stdin_path=stdin_path)

    def login(self, host: str, user: str, password_file: Path) -> str:
        return self._run(["login", host, "--username", user, "--password-stdin"], stdin_path=password_file)

    def load(self, archive: Path) -> str:
        # docker load understands gzip-compressed archives directly.
        return self._run(["load", "--input", str(archive.resolve())])

    def tag(self, source: str, target: str) -> str:
        return self._run(["tag", source, target])

    def push(self, target: str) -> str:
        return self._run(["push", target])


class DotnetNugetCli:
    def __init__(self, executable: str = "dotnet", cwd: Optional[Path] = None) -> None:
        self.executable = executable
        self.cwd = cwd

    def push(self, package: Path, source: str = NUGET_SOURCE_NAME) -> str:
        return run_tool(
            [self.executable, "nuget", "push", str(package.resolve()), "--source", source],
            cwd=self.cwd,
        )
