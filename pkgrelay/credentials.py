"""Write registry credentials into the working directory before the relay starts.

Both files hold clear-text secrets; removing them is left to the job's cleanup.
"""
from __future__ import annotations

from pathlib import Path

from pkgrelay.registry_clients import NUGET_SOURCE_NAME, REGISTRY_HOST, DockerCli
from pkgrelay.report import debug

NUGET_CONFIG_FILENAME = "nuget.config"
DOCKER_PASSWORD_FILENAME = "docker.password"

NUGET_CONFIG_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<configuration>
    <packageSources>
        <clear />
        <add key="{source}" value="{url}" />
    </packageSources>
    <packageSourceCredentials>
        <{source}>
            <add key="Username" value="{user}" />
            <add key="ClearTextPassword" value="{token}" />
        </{source}>
    </packageSourceCredentials>
</configuration>
"""


def nuget_source_url(owner: str) -> str:
    return f"https://nuget.pkg.github.com/{owner}/index.json"


def write_nuget_config(workdir: Path, owner: str, user: str, token: str) -> Path:
    path = workdir / NUGET_CONFIG_FILENAME
    path.write_text(
        NUGET_CONFIG_TEMPLATE.format(source=NUGET_SOURCE_NAME, url=nuget_source_url(owner), user=user, token=token),
        encoding="utf-8",
    )
    debug(f"Wrote {path.name} for {nuget_source_url(owner)}")
    return path


def docker_login(docker: DockerCli, workdir: Path, user: str, token: str, host: str = REGISTRY_HOST) -> Path:
    password_file = workdir / DOCKER_PASSWORD_FILENAME
    password_file.write_text(token, encoding="utf-8")
    debug(f"Logging in to {host} as {user}")
    docker.login(host, user, password_file)
    return password_file
