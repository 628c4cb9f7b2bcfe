from __future__ import annotations

import pulumi
import pytest

from firebase_kit.config import DeploymentConfig
from firebase_kit.environment import CICD_ROLES, provision_environment


SERVICE_TYPE = "gcp:projects/service:Service"


def _env(**overrides):
    data = {
        "projectBaseName": "acme",
        "organization": "com.acme",
        "githubRepo": "acme/mobile",
        "environments": ["dev", "prod"],
        "androidPackageName": "com.acme.app",
        "iosBundleId": "com.acme.app",
    }
    data.update(overrides)
    return DeploymentConfig.from_dict(data)


def _provision(env_cfg):
    @pulumi.runtime.test
    def run():
        handle = provision_environment(env_cfg)
        return pulumi.Output.all(handle.project_id, handle.service_account_key)

    run()


def test_full_environment_graph(pulumi_mocks) -> None:
    _provision(_env().environment_config("dev"))

    names = pulumi_mocks.names()
    for expected in (
        "acme-dev-project",
        "acme-dev-firebase",
        "acme-dev-web-app",
        "acme-dev-web-config",
        "acme-dev-android-app",
        "acme-dev-google-services-json",
        "acme-dev-ios-app",
        "acme-dev-google-services-plist",
        "acme-dev-firestore",
        "acme-dev-storage",
        "acme-dev-sa",
        "acme-dev-sa-key",
        "acme-dev-firestore-rules",
        "acme-dev-storage-rules",
    ):
        assert expected in names

    project = pulumi_mocks.named("acme-dev-project")
    assert project.inputs["projectId"] == "acme-dev"
    assert pulumi_mocks.named("acme-dev-android-app").inputs["identifier"] == "com.acme.app.dev"
    assert pulumi_mocks.named("acme-dev-ios-app").inputs["identifier"] == "com.acme.app.dev"
    grants = [n for n in names if n.startswith("acme-dev-sa-roles-")]
    assert len(grants) == len(CICD_ROLES)

    bucket = pulumi_mocks.named("acme-dev-storage")
    assert bucket.typ == "pulumi-python:dynamic:Resource"
    assert bucket.inputs["location"] == "EU"


def test_firestore_disabled_skips_database_and_rules(pulumi_mocks) -> None:
    _provision(_env(enableFirestore=False).environment_config("dev"))

    names = pulumi_mocks.names()
    assert "acme-dev-firestore" not in names
    assert "acme-dev-firestore-rules" not in names
    assert "acme-dev-storage-rules" in names
    services = {s.inputs["service"] for s in pulumi_mocks.of_type(SERVICE_TYPE)}
    assert "firestore.googleapis.com" not in services


def test_storage_disabled_skips_bucket_and_rules(pulumi_mocks) -> None:
    _provision(_env(enableStorage=False).environment_config("dev"))

    names = pulumi_mocks.names()
    assert "acme-dev-storage" not in names
    assert "acme-dev-storage-rules" not in names
    assert "acme-dev-firestore-rules" in names


def test_both_disabled_deploys_no_rules(pulumi_mocks) -> None:
    _provision(_env(enableFirestore=False, enableStorage=False).environment_config("dev"))

    names = pulumi_mocks.names()
    assert not any(n.endswith("-rules") for n in names)
    services = {s.inputs["service"] for s in pulumi_mocks.of_type(SERVICE_TYPE)}
    assert "firebaserules.googleapis.com" not in services


@pytest.mark.parametrize("env, protected", [("dev", False), ("prod", True)])
def test_only_production_is_protected(pulumi_mocks, env: str, protected: bool) -> None:
    _provision(_env().environment_config(env))

    project = pulumi_mocks.named(f"acme-{env}-project")
    assert project.inputs["deletionPolicy"] == ("PREVENT" if protected else "DELETE")


def test_bucket_failure_becomes_environment_warning(pulumi_mocks) -> None:
    base = pulumi_mocks.new_resource

    def bucket_fails(args):
        resource_id, outputs = base(args)
        if args.name == "acme-dev-storage":
            outputs.update(ok=False, warning="Storage 버킷 구성 실패 (acme-dev.appspot.com): 403")
        return [resource_id, outputs]

    pulumi_mocks.new_resource = bucket_fails
    captured = {}

    @pulumi.runtime.test
    def run():
        handle = provision_environment(_env().environment_config("dev"))
        return handle.warnings.apply(lambda ws: captured.setdefault("warnings", ws))

    run()

    assert captured["warnings"] == ["Storage 버킷 구성 실패 (acme-dev.appspot.com): 403"]
    # 버킷 실패와 관계없이 키 발급과 규칙 배포는 계속 선언된다
    assert "acme-dev-sa-key" in pulumi_mocks.names()
    assert "acme-dev-storage-rules" in pulumi_mocks.names()
