from __future__ import annotations

import pytest
from google.auth.exceptions import DefaultCredentialsError

from firebase_kit import auth
from firebase_kit.config import DeploymentConfig
from firebase_kit.errors import AuthError, CommandFailedError, ToolNotFoundError
from firebase_kit.subprocess_utils import RunResult


def _cfg(**overrides) -> DeploymentConfig:
    data = {"projectBaseName": "acme", "organization": "com.acme", "githubRepo": "acme/mobile"}
    data.update(overrides)
    return DeploymentConfig.from_dict(data)


class _Creds:
    service_account_email = "ci@acme.iam.gserviceaccount.com"


def _runner(responses):
    def run(cmd, **kwargs):
        response = responses[tuple(cmd[:2])]
        if isinstance(response, Exception):
            raise response
        return RunResult(returncode=0, stdout=response, stderr="")

    return run


def test_detect_session_uses_env_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
    monkeypatch.setattr(auth.google.auth, "default", lambda: (_Creds(), "acme-dev"))

    session = auth.detect_session(_cfg(), runner=_runner({("pulumi", "whoami"): "tester\n"}))

    assert session.pulumi_user == "tester"
    assert session.github_token == "ghp_env"
    assert session.gcp_account == "ci@acme.iam.gserviceaccount.com"
    assert "ghp_env" not in repr(session)


def test_config_token_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
    monkeypatch.setattr(auth.google.auth, "default", lambda: (_Creds(), None))

    session = auth.detect_session(
        _cfg(githubToken="ghp_cfg"), runner=_runner({("pulumi", "whoami"): "tester"})
    )

    assert session.github_token == "ghp_cfg"


def test_gh_cli_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(auth.google.auth, "default", lambda: (_Creds(), None))

    session = auth.detect_session(
        _cfg(), runner=_runner({("pulumi", "whoami"): "tester", ("gh", "auth"): "gho_cli\n"})
    )

    assert session.github_token == "gho_cli"


def test_pulumi_not_logged_in_has_hint() -> None:
    runner = _runner({("pulumi", "whoami"): CommandFailedError(["pulumi", "whoami"], returncode=255)})

    with pytest.raises(AuthError) as excinfo:
        auth.detect_session(_cfg(), runner=runner)

    assert excinfo.value.service == "pulumi"
    assert "pulumi login" in excinfo.value.hint


def test_pulumi_missing_is_auth_error() -> None:
    runner = _runner({("pulumi", "whoami"): ToolNotFoundError(["pulumi", "whoami"])})

    with pytest.raises(AuthError):
        auth.detect_session(_cfg(), runner=runner)


def test_missing_adc_has_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")

    def no_creds():
        raise DefaultCredentialsError("no credentials")

    monkeypatch.setattr(auth.google.auth, "default", no_creds)

    with pytest.raises(AuthError) as excinfo:
        auth.detect_session(_cfg(), runner=_runner({("pulumi", "whoami"): "tester"}))

    assert "application-default login" in excinfo.value.hint


def test_check_tools_reports_missing_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(auth, "is_available", lambda tool: tool != "keytool")

    with pytest.raises(AuthError) as excinfo:
        auth.check_tools()

    assert excinfo.value.service == "keytool"
