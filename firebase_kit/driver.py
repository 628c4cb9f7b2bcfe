"""
driver
------

Pulumi Automation API 로 스택을 실행하는 배포 드라이버.

- deploy : 스택 생성/선택 -> 설정 저장 -> up -> 출력 수집 -> 환경별 분류 -> manifest 저장
- destroy: 기존 스택만 선택(새로 만들지 않음) -> (선택) protect 해제 -> destroy

생성이 시작된 뒤 실패해도 롤백하지 않는다. 엔진 상태가 다음 재실행/수동 정리의 기준이 된다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from pulumi import automation as auto

from . import program
from .auth import Session
from .config import DeploymentConfig
from .errors import StackNotFoundError
from .logging_utils import get_logger
from .manifest import OutputManifest, collect_manifest, write_manifest


logger = get_logger(__name__)


PROJECT_NAME = "firebase-infrastructure"

# 이 출력들이 모두 있어야 환경 하나가 끝까지 만들어진 것으로 본다.
_REQUIRED_ENV_OUTPUTS = (
    "firebase_project_id",
    "service_account_email",
    "service_account_key",
    "google_services_json",
    "google_services_plist",
)

# up 이 실패한 경우, 이번 실행에서 이 리소스들이 모두 끝났어야 환경을 성공으로 본다.
_TERMINAL_RESOURCES = ("sa-key", "google-services-json", "google-services-plist")

# 설정 파일에서 빠지면 스택 설정에서도 지워야 하는 키들
_OPTIONAL_CONFIG_KEYS = ("gcpBillingAccount", "gcpOrganizationId", "githubToken")

OnOutput = Callable[[str], Any]


def _resource_name(urn: str) -> str:
    return urn.rsplit("::", 1)[-1]


@dataclass
class ResourceEvents:
    """
    up 실행 중 엔진 이벤트를 받아 이번 실행의 리소스별 결과를 모은다. (키: 리소스 이름)
    stack.up(on_event=...) 콜백으로 넘긴다.
    """

    failed: Dict[str, str] = field(default_factory=dict)
    completed: Set[str] = field(default_factory=set)

    def __call__(self, event: Any) -> None:
        diagnostic = getattr(event, "diagnostic_event", None)
        if diagnostic is not None and diagnostic.urn and diagnostic.severity == "error":
            message = (diagnostic.message or "").strip() or "리소스 작업 실패"
            self.failed.setdefault(_resource_name(diagnostic.urn), message)

        op_failed = getattr(event, "res_op_failed_event", None)
        if op_failed is not None:
            meta = op_failed.metadata
            self.failed.setdefault(_resource_name(meta.urn), f"리소스 {meta.op} 실패")

        outputs = getattr(event, "res_outputs_event", None)
        if outputs is not None and not getattr(outputs, "planning", False):
            self.completed.add(_resource_name(outputs.metadata.urn))

    def failures_by_environment(self, project_ids: Mapping[str, str]) -> Dict[str, str]:
        """리소스 이름의 프로젝트 ID 접두사로 실패를 환경에 묶는다. 환경별 첫 실패만 남긴다."""
        failures: Dict[str, str] = {}
        for name, message in self.failed.items():
            env = _environment_of(name, project_ids)
            if env is not None:
                failures.setdefault(env, f"{name}: {message}")
        return failures


def _environment_of(resource_name: str, project_ids: Mapping[str, str]) -> Optional[str]:
    # acme-dev 와 acme-dev-eu 처럼 접두사가 겹치면 더 긴 쪽이 맞다
    matches = [env for env, pid in project_ids.items() if resource_name.startswith(f"{pid}-")]
    if not matches:
        return None
    return max(matches, key=lambda env: len(project_ids[env]))


@dataclass
class DeployReport:
    stack_name: str
    environments: List[str]
    succeeded: List[str] = field(default_factory=list)
    warned: Dict[str, List[str]] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    resource_changes: Dict[str, int] = field(default_factory=dict)
    manifest: OutputManifest = field(default_factory=OutputManifest)
    manifest_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


def _output_value(outputs: Mapping[str, Any], key: str) -> Any:
    output = outputs.get(key)
    return getattr(output, "value", output)


def classify_environments(
    project_ids: Mapping[str, str],
    outputs: Mapping[str, Any],
    error: Optional[str] = None,
    events: Optional[ResourceEvents] = None,
) -> tuple[List[str], Dict[str, List[str]], Dict[str, str]]:
    """
    이번 up 의 결과로 환경을 succeeded / warned / failed 로 나눈다.
    warned 는 succeeded 의 부분집합이다. (만들어졌지만 best-effort 단계 경고가 있음)

    project_ids: 환경 이름 -> 프로젝트 ID (설정 순서 유지)
    error 가 있으면 outputs 는 보지 않고 이번 실행의 엔진 이벤트만 믿는다.
    """
    events = events or ResourceEvents()
    event_failures = events.failures_by_environment(project_ids)
    declared_failures = {} if error else (_output_value(outputs, "failedEnvironments") or {})

    succeeded: List[str] = []
    warned: Dict[str, List[str]] = {}
    failed: Dict[str, str] = {}

    for env, project_id in project_ids.items():
        if env in event_failures:
            failed[env] = event_failures[env]
            continue
        if env in declared_failures:
            failed[env] = str(declared_failures[env])
            continue
        if error:
            finished = all(f"{project_id}-{suffix}" in events.completed for suffix in _TERMINAL_RESOURCES)
            if finished:
                succeeded.append(env)
            else:
                failed[env] = error
            continue
        missing = [k for k in _REQUIRED_ENV_OUTPUTS if not _output_value(outputs, f"{k}_{env}")]
        if missing:
            failed[env] = f"출력값 누락: {', '.join(missing)}"
            continue
        succeeded.append(env)
        warnings = _output_value(outputs, f"warnings_{env}") or []
        if warnings:
            warned[env] = list(warnings)

    return succeeded, warned, failed


def _on_output(on_output: Optional[OnOutput]) -> OnOutput:
    if on_output is not None:
        return on_output
    return lambda line: logger.info("%s", line.rstrip())


def deploy(
    cfg: DeploymentConfig,
    session: Session,
    *,
    stack_name: Optional[str] = None,
    output_dir: str = ".",
    on_output: Optional[OnOutput] = None,
) -> DeployReport:
    """
    스택을 up 하고 DeployReport 를 리턴한다.
    manifest 는 모든 환경이 성공했을 때만 저장한다.
    """
    name = stack_name or cfg.stack_name
    report = DeployReport(stack_name=name, environments=list(cfg.environments))

    logger.info("스택 선택/생성: %s (pulumi user=%s)", name, session.pulumi_user)
    stack = auto.create_or_select_stack(
        stack_name=name,
        project_name=PROJECT_NAME,
        program=program.main,
    )
    values = cfg.to_stack_config(github_token=session.github_token)
    stack.set_all_config(values)
    stale = [key for key in _OPTIONAL_CONFIG_KEYS if key not in values]
    if stale:
        stack.remove_all_config(stale)

    events = ResourceEvents()
    outputs: Mapping[str, Any] = {}
    try:
        result = stack.up(on_output=_on_output(on_output), on_event=events, continue_on_error=True)
        outputs = result.outputs
        report.resource_changes = dict(result.summary.resource_changes or {})
    except auto.ConcurrentUpdateError as e:
        logger.error("다른 실행이 이 스택을 업데이트 중입니다: %s", name)
        report.error = f"스택 {name} 에 대한 다른 실행이 진행 중입니다: {e}"
    except auto.CommandError as e:
        logger.exception("pulumi up 실패")
        report.error = str(e)

    project_ids = {env: cfg.project_id(env) for env in report.environments}
    report.succeeded, report.warned, report.failed = classify_environments(
        project_ids, outputs, error=report.error, events=events
    )
    report.manifest = collect_manifest(outputs)

    if report.ok:
        report.manifest_path = write_manifest(report.manifest, output_dir)
        logger.info("출력 manifest 저장: %s", report.manifest_path)
    else:
        logger.warning("실패한 환경이 있어 manifest 를 저장하지 않습니다: %s", sorted(report.failed))

    return report


def _unprotect_all(stack: Any) -> int:
    """스택 상태를 export -> protect 해제 -> import. 해제한 리소스 수를 리턴한다."""
    state = stack.export_stack()
    resources = (state.deployment or {}).get("resources", [])
    count = 0
    for resource in resources:
        if resource.get("protect"):
            resource["protect"] = False
            count += 1
    if count:
        stack.import_stack(state)
    logger.info("protect 해제: %d개 리소스", count)
    return count


def destroy(
    stack_name: str,
    *,
    unprotect: bool = False,
    on_output: Optional[OnOutput] = None,
) -> Dict[str, int]:
    """
    기존 스택의 리소스를 모두 삭제한다. 스택 상태가 없으면 StackNotFoundError.
    protect 된 리소스(prod 프로젝트 등)는 unprotect=True 일 때만 지울 수 있다.
    """
    try:
        stack = auto.select_stack(
            stack_name=stack_name,
            project_name=PROJECT_NAME,
            program=program.main,
        )
    except auto.StackNotFoundError as e:
        raise StackNotFoundError(stack_name) from e

    if unprotect:
        _unprotect_all(stack)

    result = stack.destroy(on_output=_on_output(on_output))
    return dict(result.summary.resource_changes or {})


def format_deploy_summary(report: DeployReport, cfg: DeploymentConfig) -> str:
    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- stack: {report.stack_name}")
    lines.append("")

    lines.append("## Resource changes")
    if report.resource_changes:
        for op in ("create", "update", "replace", "delete", "same"):
            if op in report.resource_changes:
                lines.append(f"- {op}: {report.resource_changes[op]}")
        for op, count in sorted(report.resource_changes.items()):
            if op not in ("create", "update", "replace", "delete", "same"):
                lines.append(f"- {op}: {count}")
    else:
        lines.append("- (none)")
    lines.append("")

    lines.append("## Succeeded environments")
    if report.succeeded:
        for env in report.succeeded:
            project_id = _output_value(report.manifest.values, f"firebase_project_id_{env}") or cfg.project_id(env)
            lines.append(f"- {env}: {project_id}")
            lines.append(f"  console: https://console.firebase.google.com/project/{project_id}")
    else:
        lines.append("- (none)")
    lines.append("")

    lines.append("## Warned environments")
    if report.warned:
        for env, warnings in report.warned.items():
            lines.append(f"- {env}")
            for warning in warnings:
                lines.append(f"  - {warning}")
    else:
        lines.append("- (none)")
    lines.append("")

    lines.append("## Failed environments")
    if report.failed:
        for env, reason in report.failed.items():
            lines.append(f"- {env}: {reason}")
    else:
        lines.append("- (none)")
    lines.append("")

    lines.append("## GitHub")
    count = report.manifest.values.get("githubSecretsCount")
    lines.append(f"- secrets: {count if count is not None else '(unknown)'}")
    lines.append(f"- https://github.com/{cfg.github_repo}/settings/secrets/actions")

    if report.manifest_path:
        lines.append("")
        secret_count = len(report.manifest.secret_keys)
        lines.append(f"Outputs written to {report.manifest_path} ({secret_count} secret values, keep it private)")
    if report.error:
        lines.append("")
        lines.append(f"[ERROR] {report.error}")

    return "\n".join(lines)
