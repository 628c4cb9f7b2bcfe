"""
auth
----

외부 서비스 로그인 상태(pulumi / GitHub / Google ADC)와 필수 CLI 도구 설치 여부를 확인한다.

driver 는 프로세스 전역 상태를 직접 읽지 않고, 여기서 만든 Session 을 인자로 받는다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import google.auth
from google.auth.exceptions import DefaultCredentialsError

from .config import DeploymentConfig
from .errors import AuthError, CommandFailedError, ToolNotFoundError
from .logging_utils import get_logger
from .subprocess_utils import RunResult, is_available, run_command


logger = get_logger(__name__)


Runner = Callable[..., RunResult]

REQUIRED_TOOLS = {
    "firebase": "npm install -g firebase-tools",
    "gcloud": "https://cloud.google.com/sdk/docs/install 참고하여 gcloud CLI 설치",
    "keytool": "JDK 설치 후 keytool 이 PATH 에 있는지 확인",
}


@dataclass(frozen=True)
class Session:
    pulumi_user: str
    github_token: str
    gcp_account: Optional[str] = None

    def __repr__(self) -> str:
        return f"Session(pulumi_user={self.pulumi_user!r}, github_token='****', gcp_account={self.gcp_account!r})"


def check_tools(tools: Sequence[str] = tuple(REQUIRED_TOOLS)) -> None:
    """필수 CLI 가 PATH 에 없으면 첫 번째 누락 도구에 대해 AuthError."""
    for tool in tools:
        if not is_available(tool):
            raise AuthError(tool, "명령을 찾을 수 없습니다.", hint=REQUIRED_TOOLS.get(tool, ""))


def _pulumi_user(runner: Runner) -> str:
    try:
        result = runner(["pulumi", "whoami"], timeout=60)
    except ToolNotFoundError as e:
        raise AuthError(
            "pulumi",
            "pulumi CLI 를 찾을 수 없습니다.",
            hint="curl -fsSL https://get.pulumi.com | sh",
        ) from e
    except CommandFailedError as e:
        raise AuthError(
            "pulumi",
            "로그인되어 있지 않습니다.",
            hint="pulumi login (로컬 상태 저장은 pulumi login --local)",
        ) from e
    return result.stdout.strip()


def _github_token(cfg: DeploymentConfig, runner: Runner) -> str:
    if isinstance(cfg.github_token, str) and cfg.github_token:
        return cfg.github_token

    token = os.getenv("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = runner(["gh", "auth", "token"], timeout=60)
    except CommandFailedError as e:
        raise AuthError(
            "github",
            "GitHub 토큰을 찾을 수 없습니다. (githubToken / GITHUB_TOKEN / gh CLI)",
            hint="gh auth login 또는 GITHUB_TOKEN 환경변수 설정",
        ) from e

    token = result.stdout.strip()
    if not token:
        raise AuthError("github", "gh auth token 결과가 비어 있습니다.", hint="gh auth login")
    return token


def _gcp_account() -> Optional[str]:
    try:
        credentials, project = google.auth.default()
    except DefaultCredentialsError as e:
        raise AuthError(
            "gcp",
            "Google Application Default Credentials 가 없습니다.",
            hint="gcloud auth application-default login",
        ) from e
    account = getattr(credentials, "service_account_email", None) or getattr(credentials, "account", None)
    logger.debug("ADC 확인: account=%s, project=%s", account, project)
    return account or None


def detect_session(cfg: DeploymentConfig, runner: Runner = run_command) -> Session:
    """
    배포에 필요한 로그인 상태를 모두 확인해 Session 을 만든다.
    하나라도 빠지면 어떤 명령으로 로그인해야 하는지 담은 AuthError.
    """
    user = _pulumi_user(runner)
    logger.info("Pulumi 로그인 확인: %s", user)

    token = _github_token(cfg, runner)
    logger.info("GitHub 토큰 확인 완료")

    account = _gcp_account()
    logger.info("Google ADC 확인: %s", account or "(계정 정보 없음)")

    return Session(pulumi_user=user, github_token=token, gcp_account=account)
