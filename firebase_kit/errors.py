"""
errors
------

firebase_kit 전역에서 사용하는 예외 계층.

CLI(cli.py)만 이 예외들을 잡아 종료 코드로 바꾸고,
나머지 모듈은 그대로 전파한다.
"""

from __future__ import annotations

from typing import Optional, Sequence


ALREADY_EXISTS_SIGNALS = (
    "already_exists",
    "already exists",
    "alreadyexists",
    "error 409",
    "http 409",
    "(409)",
)


class FirebaseKitError(Exception):
    """firebase_kit 예외의 공통 부모."""


class ConfigError(FirebaseKitError, ValueError):
    """설정 파일/값이 잘못된 경우. 어떤 필드가 문제인지 함께 담는다."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"설정 오류 ({field}): {message}")


class AuthError(FirebaseKitError, RuntimeError):
    """외부 서비스에 로그인되어 있지 않거나 도구가 설치되어 있지 않은 경우."""

    def __init__(self, service: str, message: str, hint: str = "") -> None:
        self.service = service
        self.hint = hint
        text = f"{service}: {message}"
        if hint:
            text += f"\n해결 방법: {hint}"
        super().__init__(text)


class CommandFailedError(FirebaseKitError, RuntimeError):
    """외부 명령이 0 이 아닌 코드로 종료된 경우."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(message or f"명령 실행 실패: {' '.join(self.cmd)} (exit={returncode})")

    @property
    def already_exists(self) -> bool:
        """이미 존재하는 리소스라서 실패한 경우인지 판단한다."""
        text = f"{self.stdout}\n{self.stderr}".lower()
        return any(signal in text for signal in ALREADY_EXISTS_SIGNALS)


class ToolNotFoundError(CommandFailedError):
    """실행 파일 자체를 찾을 수 없는 경우."""

    def __init__(self, cmd: Sequence[str]) -> None:
        super().__init__(
            cmd,
            returncode=127,
            message=f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (설치 및 PATH 설정을 확인하세요)",
        )


class StackNotFoundError(FirebaseKitError):
    """destroy 대상 스택에 저장된 상태가 없는 경우."""

    def __init__(self, stack_name: str) -> None:
        self.stack_name = stack_name
        super().__init__(f"스택을 찾을 수 없습니다: {stack_name}")
