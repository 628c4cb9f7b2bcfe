"""
program
-------

Pulumi 프로그램 본체. 스택 설정을 읽어 환경 프로비저닝, 서명 키, GitHub secret 을 연결하고
출력값을 export 한다. driver 가 Automation API 의 inline program 으로 실행한다.
"""

from __future__ import annotations

from typing import Tuple

import pulumi

from .config import DeploymentConfig
from .github_secrets import PublishResult, publish_secrets
from .orchestrator import ProvisioningResult, provision_environments
from .signing import SigningMaterial, generate_signing_material


def export_outputs(
    result: ProvisioningResult,
    signing: SigningMaterial,
    published: PublishResult,
) -> None:
    for env, handle in result.handles.items():
        pulumi.export(f"firebase_project_id_{env}", handle.project_id)
        pulumi.export(f"firebase_project_number_{env}", handle.project_number)
        pulumi.export(f"firebase_web_api_key_{env}", handle.web_api_key)
        pulumi.export(f"web_api_key_available_{env}", handle.web_api_key_available)
        pulumi.export(f"service_account_email_{env}", handle.service_account_email)
        pulumi.export(f"service_account_key_{env}", pulumi.Output.secret(handle.service_account_key))
        pulumi.export(f"google_services_json_{env}", pulumi.Output.secret(handle.google_services_json))
        pulumi.export(f"google_services_plist_{env}", pulumi.Output.secret(handle.google_services_plist))
        pulumi.export(f"warnings_{env}", handle.warnings)

    pulumi.export("androidKeystore", pulumi.Output.secret(signing.keystore_base64))
    pulumi.export("androidKeystorePassword", pulumi.Output.secret(signing.keystore_password))
    pulumi.export("androidKeyPassword", pulumi.Output.secret(signing.key_password))
    pulumi.export("androidKeyAlias", signing.key_alias)

    pulumi.export("githubSecretsConfigured", published.configured)
    pulumi.export("githubSecretsCount", published.count)
    pulumi.export("failedEnvironments", result.failed)


def run(cfg: DeploymentConfig) -> Tuple[ProvisioningResult, SigningMaterial, PublishResult]:
    """설정 하나로 전체 리소스 그래프를 선언하고 출력값까지 export 한다."""
    # 환경 프로비저닝과 서명 키는 서로 의존하지 않는다.
    result = provision_environments(cfg)
    signing = generate_signing_material(
        key_alias=cfg.key_alias,
        organization=cfg.organization,
        common_name=cfg.base_name,
    )

    for env, reason in result.failed.items():
        pulumi.log.error(f"환경 {env} 선언 실패: {reason}")

    published = publish_secrets(
        cfg.github_owner,
        cfg.github_repository_name,
        result.handles,
        signing,
        token=cfg.github_token,
    )

    export_outputs(result, signing, published)
    return result, signing, published


def main() -> None:
    run(DeploymentConfig.from_pulumi_config(pulumi.Config()))
