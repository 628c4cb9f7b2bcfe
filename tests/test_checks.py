from __future__ import annotations

import pytest

from firebase_kit import checks
from firebase_kit.config import DeploymentConfig
from firebase_kit.errors import CommandFailedError


def _cfg(**overrides) -> DeploymentConfig:
    data = {
        "projectBaseName": "acme",
        "organization": "com.acme",
        "githubRepo": "acme/mobile",
        "environments": ["dev"],
        "enableStorage": False,
    }
    data.update(overrides)
    return DeploymentConfig.from_dict(data)


def test_missing_project_is_not_an_issue(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, **kwargs):
        raise CommandFailedError(cmd, returncode=1, stderr="NOT_FOUND: project acme-dev")

    monkeypatch.setattr(checks, "run_command", fake_run)
    monkeypatch.setattr(checks, "is_available", lambda tool: True)

    report, has_issues = checks.check_all(_cfg(), show_all=True)

    assert not has_issues
    assert "없음 (배포 시 생성됨) (acme-dev)" in report


def test_permission_denied_is_an_issue(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, **kwargs):
        raise CommandFailedError(cmd, returncode=1, stderr="PERMISSION_DENIED (403)")

    monkeypatch.setattr(checks, "run_command", fake_run)
    monkeypatch.setattr(checks, "is_available", lambda tool: True)

    report, has_issues = checks.check_all(_cfg())

    assert has_issues
    assert "[ISSUE]" in report


def test_missing_tool_is_an_issue(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(checks, "run_command", lambda cmd, **kwargs: None)
    monkeypatch.setattr(checks, "is_available", lambda tool: tool != "firebase")

    report, has_issues = checks.check_all(_cfg())

    assert has_issues
    assert "Tool: 없음 (firebase)" in report


def test_storage_bucket_check(monkeypatch: pytest.MonkeyPatch) -> None:
    class FakeBucket:
        def exists(self):
            return True

    class FakeClient:
        def __init__(self, project=None):
            self.project = project

        def bucket(self, name):
            assert name == "acme-dev.appspot.com"
            return FakeBucket()

    monkeypatch.setattr(checks.storage, "Client", FakeClient)

    text, issue = checks.check_storage_bucket(_cfg(enableStorage=True).environment_config("dev"))

    assert not issue
    assert "버킷 존재함" in text
