from __future__ import annotations

import sys

import pytest

from firebase_kit.errors import CommandFailedError, ToolNotFoundError
from firebase_kit.subprocess_utils import redact, run_command


def test_capture_mode_returns_output() -> None:
    result = run_command([sys.executable, "-c", "print('hello')"], timeout=30)

    assert result.returncode == 0
    assert result.stdout.strip() == "hello"


def test_failure_keeps_stderr_for_already_exists_detection() -> None:
    cmd = [
        sys.executable,
        "-c",
        "import sys; sys.stderr.write('Error: ALREADY_EXISTS: app exists'); sys.exit(2)",
    ]

    with pytest.raises(CommandFailedError) as excinfo:
        run_command(cmd, timeout=30)

    assert excinfo.value.returncode == 2
    assert excinfo.value.already_exists


def test_plain_failure_is_not_already_exists() -> None:
    with pytest.raises(CommandFailedError) as excinfo:
        run_command([sys.executable, "-c", "import sys; sys.exit(1)"], timeout=30)

    assert not excinfo.value.already_exists


def test_missing_tool_raises_tool_not_found() -> None:
    with pytest.raises(ToolNotFoundError) as excinfo:
        run_command(["firebase-kit-no-such-tool", "--version"])

    assert excinfo.value.returncode == 127


def test_timeout_raises_command_failed() -> None:
    with pytest.raises(CommandFailedError) as excinfo:
        run_command([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)

    assert excinfo.value.returncode == -1


def test_redact_hides_passwords() -> None:
    text = redact(["keytool", "-storepass", "s3cret", "-keypass", "other", "-alias", "key"])

    assert "s3cret" not in text
    assert "other" not in text
    assert "-alias key" in text
