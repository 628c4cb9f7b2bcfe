import json
import os
import sys
from typing import Any, Dict, Optional

import click

from . import driver
from .auth import check_tools, detect_session
from .checks import check_all
from .config import (
    DEFAULT_ENVIRONMENTS,
    DEFAULT_FIRESTORE_REGION,
    DEFAULT_FUNCTIONS_REGION,
    DeploymentConfig,
    load_config_file,
    load_env_files,
)
from .errors import AuthError, ConfigError, StackNotFoundError
from .logging_utils import get_logger, setup_logging
from .orchestrator import render_plan


logger = get_logger(__name__)


EXAMPLE_CONFIG_NAME = "firebase-infra.example.json"
DEFAULT_CONFIG_NAME = "firebase-infra.json"


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다. (-vv 는 google/pulumi 라이브러리 로그까지)",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """Flutter 앱용 멀티 환경 Firebase 인프라 프로비저닝 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose
    load_env_files(chdir)


def _resolve(ctx: click.Context, path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(ctx.obj["chdir"], path)


def _load_config(ctx: click.Context, path: str) -> DeploymentConfig:
    try:
        cfg = load_config_file(_resolve(ctx, path))
    except ConfigError as e:
        click.echo(f"[ERROR] {e}", err=True)
        sys.exit(1)
    logger.debug("Config loaded: %s", cfg)
    return cfg


@main.command()
@click.argument("config_file", type=click.Path(dir_okay=False))
@click.pass_context
def plan(ctx: click.Context, config_file: str) -> None:
    """설정 파일만으로 생성될 리소스를 요약 출력 (외부 호출 없음)"""
    cfg = _load_config(ctx, config_file)
    click.echo(render_plan(cfg))


@main.command(name="deploy")
@click.argument("config_file", type=click.Path(dir_okay=False))
@click.option("-y", "--yes", is_flag=True, help="확인 프롬프트 없이 바로 배포합니다.")
@click.option("--stack", "stack_name", type=str, default=None, help="스택 이름 (기본: <projectBaseName>-infra)")
@click.pass_context
def deploy(ctx: click.Context, config_file: str, yes: bool, stack_name: Optional[str]) -> None:
    """환경별 Firebase 프로젝트, 서명 키, GitHub secret 을 생성/업데이트"""
    cfg = _load_config(ctx, config_file)

    try:
        check_tools()
        session = detect_session(cfg)
    except AuthError as e:
        click.echo(f"[ERROR] 인증 확인 실패: {e}", err=True)
        sys.exit(1)

    click.echo(render_plan(cfg))
    click.echo("")
    if not yes:
        click.confirm("위 구성으로 배포를 진행할까요?", abort=True)

    try:
        report = driver.deploy(
            cfg,
            session,
            stack_name=stack_name,
            output_dir=ctx.obj["chdir"],
            on_output=lambda line: click.echo(line, nl=False),
        )
    except Exception as e:  # noqa: BLE001
        logger.exception("배포 중 오류 발생")
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)

    click.echo(driver.format_deploy_summary(report, cfg))

    # 환경 하나라도 실패했다면 전체 명령은 실패(exit 1)로 간주
    if not report.ok:
        sys.exit(1)


@main.command()
@click.argument("stack_name", type=str)
@click.option("-y", "--yes", is_flag=True, help="확인 프롬프트 없이 바로 삭제합니다.")
@click.option(
    "--unprotect",
    is_flag=True,
    help="protect 된 리소스(기본: prod 프로젝트)의 보호를 해제한 뒤 삭제합니다.",
)
def destroy(stack_name: str, yes: bool, unprotect: bool) -> None:
    """스택이 관리하는 모든 리소스를 삭제 (되돌릴 수 없음)"""
    if not yes:
        click.confirm(
            f"스택 {stack_name} 의 모든 리소스를 삭제합니다. 되돌릴 수 없습니다. 계속할까요?",
            abort=True,
        )

    try:
        changes = driver.destroy(
            stack_name,
            unprotect=unprotect,
            on_output=lambda line: click.echo(line, nl=False),
        )
    except StackNotFoundError as e:
        click.echo(f"[ERROR] {e}", err=True)
        sys.exit(1)
    except Exception as e:  # noqa: BLE001
        logger.exception("삭제 중 오류 발생")
        click.echo(f"[ERROR] 삭제 실패: {e}", err=True)
        if not unprotect:
            click.echo("protect 된 리소스가 있다면 --unprotect 옵션을 사용하세요.", err=True)
        sys.exit(1)

    click.echo(f"스택 {stack_name} 삭제 완료: {changes}")


@main.command()
@click.argument("config_file", type=click.Path(dir_okay=False))
@click.option(
    "-a",
    "--all",
    "show_all",
    is_flag=True,
    help="모든 체크 항목의 상세 상태를 출력합니다. (기본은 이슈만 요약)",
)
@click.pass_context
def check(ctx: click.Context, config_file: str, show_all: bool) -> None:
    """
    배포 전에 도구 설치, 로그인, 환경별 프로젝트/버킷 상태를 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)
    """
    cfg = _load_config(ctx, config_file)

    try:
        session = detect_session(cfg)
        click.echo(f"Pulumi: {session.pulumi_user} / GCP: {session.gcp_account or '(unknown)'}")
    except AuthError as e:
        click.echo(f"[ISSUE] {e}")
        auth_issue = True
    else:
        auth_issue = False

    try:
        report, has_issues = check_all(cfg, show_all=show_all)
    except Exception as e:  # noqa: BLE001
        logger.exception("사전 체크 중 오류 발생")
        click.echo(f"[ERROR] 체크 실패: {e}", err=True)
        sys.exit(1)

    click.echo(report)

    # 치명적인 이슈가 있으면 exit 1 로 종료하여 CI 등에서 감지 가능하게 한다.
    if has_issues or auth_issue:
        sys.exit(1)


def _prompt_config() -> Dict[str, Any]:
    base = click.prompt("프로젝트 기본 이름 (예: my-app)", type=str)
    organization = click.prompt("조직 (역도메인, 예: com.mycompany)", type=str)
    default_app_id = f"{organization}.{base.lower().replace('-', '_')}"
    environments = click.prompt("환경 목록 (쉼표 구분)", default=",".join(DEFAULT_ENVIRONMENTS))
    data: Dict[str, Any] = {
        "projectBaseName": base,
        "organization": organization,
        "environments": [e.strip() for e in environments.split(",") if e.strip()],
        "githubRepo": click.prompt("GitHub 저장소 (owner/name)", type=str),
        "androidPackageName": click.prompt("Android 패키지 이름", default=default_app_id),
        "iosBundleId": click.prompt("iOS 번들 ID", default=default_app_id),
        "firestoreRegion": click.prompt("Firestore 리전", default=DEFAULT_FIRESTORE_REGION),
        "firebaseFunctionsRegion": click.prompt("Functions 리전", default=DEFAULT_FUNCTIONS_REGION),
        "enableAuth": click.confirm("Authentication 사용?", default=True),
        "enableFirestore": click.confirm("Firestore 사용?", default=True),
        "enableFunctions": click.confirm("Cloud Functions 사용?", default=True),
        "enableStorage": click.confirm("Storage 사용?", default=True),
        "enableHosting": click.confirm("Hosting 사용?", default=False),
    }
    billing = click.prompt("GCP 결제 계정 ID (없으면 엔터)", default="", show_default=False)
    if billing:
        data["gcpBillingAccount"] = billing
    org_id = click.prompt("GCP 조직 ID (없으면 엔터)", default="", show_default=False)
    if org_id:
        data["gcpOrganizationId"] = org_id
    return data


@main.command()
@click.option("-o", "--output", "output", default=DEFAULT_CONFIG_NAME, show_default=True, help="생성할 설정 파일")
@click.option("--template", is_flag=True, help="질문 없이 패키지에 포함된 예시 설정을 복사합니다.")
@click.pass_context
def init(ctx: click.Context, output: str, template: bool) -> None:
    """대화형 질문 또는 예시 템플릿으로 설정 파일을 만든다."""
    from importlib import resources

    target = _resolve(ctx, output)
    if os.path.exists(target):
        click.echo(f"{output} 이(가) 이미 존재하여 건너뜀")
        return

    if template:
        try:
            src = resources.files("firebase_kit").joinpath("examples").joinpath(EXAMPLE_CONFIG_NAME)
            with src.open("r", encoding="utf-8") as f, open(target, "w", encoding="utf-8") as dst:
                dst.write(f.read())
        except FileNotFoundError:
            click.echo(f"템플릿 {EXAMPLE_CONFIG_NAME} 을(를) 패키지에서 찾을 수 없습니다.", err=True)
            sys.exit(1)
        click.echo(f"{output} 템플릿을 생성했습니다.")
        return

    data = _prompt_config()
    try:
        DeploymentConfig.from_dict(data)
    except ConfigError as e:
        click.echo(f"[ERROR] {e}", err=True)
        sys.exit(1)

    with open(target, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
    click.echo(f"{output} 을(를) 생성했습니다. 다음 단계: firebase-infra deploy {output}")
