import argparse
from pathlib import Path

import pytest

from pkgrelay.config import RelayConfig, build_config, build_parser, parse_target, split_targets
from pkgrelay.errors import ConfigurationError

ENV = {
    "INPUT_SOURCE-OWNER": "acme",
    "INPUT_SOURCE-REPO-WORKFLOW-BRANCHES": "app/Build/main, lib/Release/release ,",
    "INPUT_SOURCE-TOKEN": "source-token",
    "INPUT_PACKAGE-PUSH-USER": "bot",
    "INPUT_PACKAGE-PUSH-TOKEN": "push-token",
    "GITHUB_REPOSITORY": "acme/mirror",
}


def _args(*argv: str) -> argparse.Namespace:
    return build_parser().parse_args(list(argv))


def test_parse_target_requires_three_segments():
    target = parse_target("app/Build/main")

    assert (target.repo, target.workflow, target.branch) == ("app", "Build", "main")
    assert str(target) == "app/Build/main"
    for raw in ("app/Build", "app/Build/main/extra", "app"):
        with pytest.raises(ConfigurationError, match=f"Found {raw}"):
            parse_target(raw)


def test_split_targets_accepts_strings_and_lists():
    assert split_targets(" a/b/c ,, d/e/f ") == ["a/b/c", "d/e/f"]
    assert split_targets(["a/b/c", " d/e/f "]) == ["a/b/c", "d/e/f"]
    assert split_targets(None) == []


def test_environment_inputs(tmp_path):
    config = build_config(_args("--workdir", str(tmp_path)), environ=ENV)

    assert config.source_owner == "acme"
    assert config.targets == ["app/Build/main", "lib/Release/release"]
    assert config.destination_owner == "acme"
    assert config.destination_repo == "mirror"
    assert config.enable_nuget is False
    assert config.owner_kind == "orgs"
    assert config.workdir == tmp_path.resolve()


def test_relative_workdir_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = build_config(_args("--workdir", "scratch"), environ=ENV)

    assert config.workdir.is_absolute()
    assert config.workdir == (tmp_path / "scratch").resolve()


def test_yaml_overrides_environment_and_cli_overrides_yaml(tmp_path):
    config_path = tmp_path / "relay.yml"
    config_path.write_text(
        "source-owner: yaml-owner\n"
        "source-repo-workflow-branches:\n"
        "  - app/Build/main\n"
        "enable-nuget: true\n"
        "owner-kind: users\n",
        encoding="utf-8",
    )

    config = build_config(
        _args("--config", str(config_path), "--source-owner", "cli-owner"),
        environ=ENV,
    )

    assert config.source_owner == "cli-owner"
    assert config.targets == ["app/Build/main"]
    assert config.enable_nuget is True
    assert config.owner_kind == "users"


def test_missing_settings_are_reported_together():
    with pytest.raises(ConfigurationError) as excinfo:
        build_config(_args(), environ={"GITHUB_REPOSITORY": "acme/mirror"})

    message = str(excinfo.value)
    for name in ("source-owner", "source-token", "package-push-user", "package-push-token"):
        assert name in message


def test_skip_login_does_not_need_push_credentials():
    env = {key: value for key, value in ENV.items() if "PACKAGE-PUSH" not in key}

    config = build_config(_args("--skip-login"), environ=env)

    assert config.skip_login is True


def test_repository_must_be_owner_slash_repo():
    config = RelayConfig(
        source_owner="acme",
        targets=["app/Build/main"],
        source_token="t",
        repository="acme",
        skip_login=True,
    )

    with pytest.raises(ConfigurationError, match="owner/repo"):
        config.validate()


def test_non_mapping_yaml_is_rejected(tmp_path):
    config_path = tmp_path / "relay.yml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="mapping"):
        build_config(_args("--config", str(config_path)), environ=ENV)
