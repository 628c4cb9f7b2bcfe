from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List

from .config import DeploymentConfig, EnvironmentConfig
from .environment import EnvironmentHandle, provision_environment, required_apis
from .github_secrets import secret_names
from .logging_utils import get_logger


logger = get_logger(__name__)


Provisioner = Callable[[EnvironmentConfig], EnvironmentHandle]


@dataclass
class ProvisioningResult:
    handles: Dict[str, EnvironmentHandle] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def completed(self) -> List[str]:
        return list(self.handles)

    @property
    def complete(self) -> bool:
        """선언된 모든 환경에 handle 이 있을 때만 True."""
        return not self.failed


def provision_environments(
    cfg: DeploymentConfig,
    provisioner: Provisioner = provision_environment,
) -> ProvisioningResult:
    """
    환경마다 provisioner 를 한 번씩 호출한다.

    환경끼리는 아무것도 공유하지 않으므로 한 환경의 실패가 다른 환경을 막지 않는다.
    실패한 환경은 failed 에 이유와 함께 남는다.
    """
    result = ProvisioningResult()

    logger.info("프로비저닝 대상 환경: %s", cfg.environments)

    for env in cfg.environments:
        env_cfg = cfg.environment_config(env)
        try:
            result.handles[env] = provisioner(env_cfg)
        except Exception as e:  # noqa: BLE001
            logger.exception("환경 프로비저닝 실패: %s", env)
            result.failed[env] = str(e) or e.__class__.__name__
            continue

    if result.failed:
        logger.warning(
            "일부 환경이 실패했습니다. 완료=%s 실패=%s",
            result.completed,
            sorted(result.failed),
        )
    return result


def render_plan(cfg: DeploymentConfig) -> str:
    """
    설정만으로 어떤 리소스가 만들어질지 요약 텍스트를 리턴한다.
    외부 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Firebase infrastructure plan")
    lines.append(f"- stack: {cfg.stack_name}")
    lines.append(f"- organization: {cfg.organization}")
    lines.append(f"- github repo: {cfg.github_repo}")
    lines.append("")

    lines.append("## Config summary")
    lines.append(f"- firestore_region: {cfg.firestore_region}")
    lines.append(f"- functions_region: {cfg.functions_region}")
    lines.append(f"- storage_location: {cfg.storage_location}")
    lines.append(f"- billing_account: {'(set)' if cfg.gcp_billing_account else '(not set)'}")
    lines.append(f"- gcp_organization_id: {cfg.gcp_organization_id or '(not set)'}")
    lines.append("")

    lines.append("## Features")
    for name, enabled in (
        ("auth", cfg.enable_auth),
        ("firestore", cfg.enable_firestore),
        ("functions", cfg.enable_functions),
        ("storage", cfg.enable_storage),
        ("hosting", cfg.enable_hosting),
    ):
        lines.append(f"- {name}: {'ENABLED' if enabled else 'SKIPPED'}")
    lines.append("")

    lines.append("## Environments")
    for env in cfg.environments:
        env_cfg = cfg.environment_config(env)
        lines.append(f"### {env.upper()}")
        lines.append(f"- project id: {env_cfg.project_id}{' (protected)' if env_cfg.protected else ''}")
        lines.append(f"- android app: {env_cfg.android_package_name}")
        lines.append(f"- ios app: {env_cfg.ios_bundle_id}")
        lines.append(f"- service account: {env_cfg.service_account_id}")
        lines.append(f"- apis: {len(required_apis(env_cfg))}")
        if env_cfg.enable_firestore:
            lines.append(f"- firestore: {env_cfg.firestore_region}")
        if env_cfg.enable_storage:
            lines.append(f"- storage bucket: {env_cfg.project_id}.appspot.com ({env_cfg.storage_location})")
        lines.append("")

    lines.append("## Shared")
    lines.append(f"- android signing key alias: {cfg.key_alias}")
    lines.append("")

    lines.append("## GitHub secrets")
    for name in secret_names(cfg.environments):
        lines.append(f"- {name}")

    return "\n".join(lines)
