"""
checks
------

배포 전 사전 점검. 리소스를 만들거나 바꾸지 않고 현재 상태만 조회한다.
"""

from __future__ import annotations

from typing import List, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

from .auth import REQUIRED_TOOLS
from .config import DeploymentConfig, EnvironmentConfig
from .errors import CommandFailedError, ToolNotFoundError
from .gcp_storage import default_bucket_name
from .logging_utils import get_logger
from .subprocess_utils import is_available, run_command


logger = get_logger(__name__)


def check_tools() -> List[Tuple[str, bool]]:
    results: List[Tuple[str, bool]] = []
    for tool in REQUIRED_TOOLS:
        if is_available(tool):
            results.append((f"Tool: 설치됨 ({tool})", False))
        else:
            results.append((f"Tool: 없음 ({tool}) - {REQUIRED_TOOLS[tool]}", True))
    return results


def check_project(env: EnvironmentConfig) -> Tuple[str, bool]:
    """
    gcloud projects describe 로 프로젝트 존재 여부를 본다.
    아직 없는 것은 배포가 만들 예정이므로 이슈가 아니다.
    """
    cmd = ["gcloud", "projects", "describe", env.project_id, "--quiet"]
    logger.info("프로젝트 존재 여부 확인: %s", env.project_id)
    try:
        run_command(cmd, timeout=120)
    except ToolNotFoundError:
        return "Project: gcloud 명령을 찾을 수 없어 확인 불가", True
    except CommandFailedError as e:
        text = e.stderr.lower()
        if "not_found" in text or "not found" in text:
            return f"Project: 없음 (배포 시 생성됨) ({env.project_id})", False
        if "permission" in text or "403" in text:
            return f"Project: 접근 권한 없음 ({env.project_id}) - 다른 계정 소유일 수 있음", True
        return f"Project: 조회 실패 (gcloud projects describe, exit={e.returncode})", True
    return f"Project: 존재함 ({env.project_id})", False


def check_storage_bucket(env: EnvironmentConfig) -> Tuple[str, bool]:
    """Storage 기본 버킷 존재 여부. 확인만 하고 생성하지 않는다."""
    if not env.enable_storage:
        return "Storage: enableStorage=false (체크 건너뜀)", False

    bucket_name = default_bucket_name(env.project_id)
    try:
        client = storage.Client(project=env.project_id)
        exists = client.bucket(bucket_name).exists()
    except gcp_exceptions.Forbidden:
        return f"Storage: 버킷 접근 권한 없음 ({bucket_name})", True
    except gcp_exceptions.GoogleAPICallError as e:
        return f"Storage: 버킷 조회 실패 ({bucket_name}): {e}", True

    if exists:
        return f"Storage: 버킷 존재함 ({bucket_name})", False
    return f"Storage: 버킷 없음 (배포 시 생성됨) ({bucket_name})", False


def check_all(cfg: DeploymentConfig, show_all: bool = False) -> Tuple[str, bool]:
    """
    도구 설치, 환경별 프로젝트/버킷 상태를 점검해 리포트와 이슈 여부를 리턴한다.
    show_all=False 이면 이슈 항목만 출력한다.
    """
    lines: List[str] = ["# Preflight check", ""]
    has_issues = False

    def add(section: List[Tuple[str, bool]]) -> None:
        nonlocal has_issues
        shown = 0
        for text, issue in section:
            has_issues = has_issues or issue
            if show_all or issue:
                lines.append(f"- {'[ISSUE] ' if issue else ''}{text}")
                shown += 1
        if shown == 0:
            lines.append("- (no issues)")

    lines.append("## Tools")
    add(check_tools())
    lines.append("")

    for env in cfg.environments:
        env_cfg = cfg.environment_config(env)
        lines.append(f"## {env.upper()} ({env_cfg.project_id})")
        try:
            section = [check_project(env_cfg), check_storage_bucket(env_cfg)]
        except Exception as e:  # noqa: BLE001
            logger.exception("환경 점검 실패: %s", env)
            section = [(f"Check: 점검 중 오류 ({e})", True)]
        add(section)
        lines.append("")

    return "\n".join(lines).rstrip(), has_issues
