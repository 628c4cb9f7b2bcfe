"""
subprocess_utils
----------------

gcloud / firebase / keytool / pulumi / gh 등 외부 CLI 호출 공통 유틸.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Optional, Sequence

from .errors import CommandFailedError, ToolNotFoundError
from .logging_utils import get_logger


logger = get_logger(__name__)


# 로그에 그대로 남기면 안 되는 인자 (keytool 비밀번호 등)
_SENSITIVE_FLAGS = {"-storepass", "-keypass", "--token"}


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def redact(cmd: Sequence[str]) -> str:
    """민감한 플래그 바로 뒤의 값을 가린 명령 문자열."""
    parts: list[str] = []
    hide_next = False
    for part in cmd:
        if hide_next:
            parts.append("****")
            hide_next = False
            continue
        parts.append(part)
        if part in _SENSITIVE_FLAGS:
            hide_next = True
    return " ".join(parts)


def is_available(tool: str) -> bool:
    return shutil.which(tool) is not None


def run_command(
    cmd: Sequence[str],
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = 900.0,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.
    stdout/stderr 를 캡처하고, 실패 시 CommandFailedError 에 그대로 담는다.
    """
    printable = redact(cmd)
    logger.info("명령 실행: %s", printable)

    try:
        result = subprocess.run(
            list(cmd),
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        raise ToolNotFoundError(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise CommandFailedError(
            cmd,
            returncode=-1,
            message=f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {printable}",
        ) from e
    except subprocess.CalledProcessError as e:
        stdout = (e.stdout or "").strip()
        stderr = (e.stderr or "").strip()
        detail = ""
        if stderr:
            detail = "\nstderr:\n" + shorten(stderr, width=2000)
        elif stdout:
            detail = "\nstdout:\n" + shorten(stdout, width=2000)
        raise CommandFailedError(
            cmd,
            returncode=e.returncode,
            stdout=stdout,
            stderr=stderr,
            message=f"명령 실행 실패: {printable} (exit={e.returncode}){detail}",
        ) from e

    if result.stdout:
        logger.debug("명령 stdout: %s", shorten(result.stdout.strip(), width=2000))
    if result.stderr:
        logger.debug("명령 stderr: %s", shorten(result.stderr.strip(), width=2000))
    return RunResult(returncode=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")
