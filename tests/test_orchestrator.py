from typing import List

import pytest

from firebase_kit import orchestrator
from firebase_kit.config import DeploymentConfig, EnvironmentConfig


def _cfg(**overrides) -> DeploymentConfig:
    data = {
        "projectBaseName": "acme",
        "organization": "com.acme",
        "githubRepo": "acme/mobile",
        "environments": ["dev", "staging", "prod"],
    }
    data.update(overrides)
    return DeploymentConfig.from_dict(data)


def test_one_failing_environment_does_not_block_others() -> None:
    cfg = _cfg()
    calls: List[str] = []

    def provisioner(env: EnvironmentConfig):
        calls.append(env.name)
        if env.name == "staging":
            raise RuntimeError("project creation failed")
        return f"handle-{env.project_id}"

    result = orchestrator.provision_environments(cfg, provisioner=provisioner)

    assert calls == ["dev", "staging", "prod"]
    assert result.handles == {"dev": "handle-acme-dev", "prod": "handle-acme-prod"}
    assert result.failed == {"staging": "project creation failed"}
    assert result.completed == ["dev", "prod"]
    assert not result.complete


def test_all_environments_succeed() -> None:
    cfg = _cfg(environments=["dev", "prod"])

    result = orchestrator.provision_environments(cfg, provisioner=lambda env: env.project_id)

    assert result.complete
    assert list(result.handles) == ["dev", "prod"]


def test_render_plan_lists_environments_and_secrets() -> None:
    cfg = _cfg(environments=["dev", "prod"], enableStorage=False)

    plan = orchestrator.render_plan(cfg)

    assert "# Firebase infrastructure plan" in plan
    assert "- project id: acme-dev" in plan
    assert "- project id: acme-prod (protected)" in plan
    assert "- storage: SKIPPED" in plan
    assert "storage bucket" not in plan
    assert "- FIREBASE_SERVICE_ACCOUNT_PROD" in plan
    assert "- ANDROID_KEYSTORE" in plan


@pytest.mark.parametrize(
    "flags, absent",
    [
        ({"enableFirestore": False}, "firestore.googleapis.com"),
        ({"enableStorage": False}, "storage.googleapis.com"),
        ({"enableAuth": False}, "identitytoolkit.googleapis.com"),
        ({"enableFunctions": False}, "cloudfunctions.googleapis.com"),
    ],
)
def test_required_apis_follow_feature_flags(flags, absent) -> None:
    from firebase_kit.environment import required_apis

    env = _cfg(**flags).environment_config("dev")

    apis = required_apis(env)

    assert absent not in apis
    assert "firebase.googleapis.com" in apis
    assert apis == sorted(set(apis))


def test_rules_api_only_when_rules_are_deployed() -> None:
    from firebase_kit.environment import required_apis

    env = _cfg(enableFirestore=False, enableStorage=False).environment_config("dev")

    assert "firebaserules.googleapis.com" not in required_apis(env)
