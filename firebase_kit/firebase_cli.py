"""
firebase_cli
------------

firebase / gcloud CLI 를 감싸는 Firebase 관련 작업 모음.

모든 함수는 재실행해도 안전해야 한다(idempotent).
이미 존재하는 리소스는 성공으로 취급하고,
best-effort 작업(Firestore DB, 보안 규칙)은 예외 대신 경고 문자열을 돌려준다.
"""

from __future__ import annotations

import base64
import json
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import CommandFailedError
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


PLATFORMS = ("ANDROID", "IOS", "WEB")

CONFIG_FILE_NAMES = {
    "ANDROID": "google-services.json",
    "IOS": "GoogleService-Info.plist",
}

# apps:list 결과에서 앱 식별자로 쓰일 수 있는 키들
_IDENTIFIER_KEYS = ("packageName", "bundleId", "namespace")


@dataclass(frozen=True)
class WebApiKey:
    """
    웹 앱 SDK 설정에서 꺼낸 API 키.

    값을 얻지 못한 경우(value=None)도 정상적인 결과이며,
    reason 에 이유를 남긴다.
    """

    value: Optional[str] = None
    reason: str = ""

    @property
    def available(self) -> bool:
        return bool(self.value)

    def or_empty(self) -> str:
        return self.value or ""


@dataclass(frozen=True)
class BestEffortResult:
    ok: bool
    warning: Optional[str] = None


def _parse_json_output(raw: str) -> Any:
    """
    firebase --json 출력 파싱.
    앞쪽에 경고 문구가 섞여 나오는 경우가 있어 첫 '{' 부터 해석한다.
    """
    text = (raw or "").strip()
    start = text.find("{")
    if start < 0:
        raise ValueError("JSON 출력이 아닙니다.")
    return json.loads(text[start:])


def _result_of(payload: Any) -> Any:
    if isinstance(payload, dict) and "result" in payload:
        return payload["result"]
    return payload


def parse_web_api_key(raw: str) -> WebApiKey:
    """apps:sdkconfig WEB --json 출력에서 apiKey 를 꺼낸다. 실패해도 예외를 던지지 않는다."""
    try:
        payload = _parse_json_output(raw)
    except ValueError as e:
        return WebApiKey(reason=f"sdkconfig 출력 파싱 실패: {e}")

    candidates: List[Any] = []
    result = _result_of(payload)
    for source in (result, payload):
        if isinstance(source, dict):
            candidates.append(source.get("sdkConfig"))
            candidates.append(source)
            contents = source.get("fileContents")
            if isinstance(contents, str):
                try:
                    candidates.append(_parse_json_output(contents))
                except ValueError:
                    pass

    for candidate in candidates:
        if isinstance(candidate, dict):
            key = candidate.get("apiKey")
            if isinstance(key, str) and key:
                return WebApiKey(value=key)

    return WebApiKey(reason="sdkconfig 출력에 apiKey 가 없습니다.")


def add_firebase(project_id: str) -> None:
    """GCP 프로젝트에 Firebase 를 붙인다. 이미 붙어 있으면 그대로 성공."""
    cmd = ["firebase", "projects:addfirebase", project_id, "--non-interactive"]
    try:
        run_command(cmd)
        logger.info("Firebase 를 프로젝트에 추가했습니다: %s", project_id)
    except CommandFailedError as e:
        if not e.already_exists:
            raise
        logger.info("이미 Firebase 가 활성화된 프로젝트입니다: %s", project_id)


def list_apps(project_id: str, platform: str) -> List[Dict[str, Any]]:
    cmd = ["firebase", "apps:list", platform, "--project", project_id, "--json"]
    result = run_command(cmd)
    try:
        apps = _result_of(_parse_json_output(result.stdout))
    except ValueError as e:
        raise CommandFailedError(
            cmd,
            returncode=0,
            stdout=result.stdout,
            message=f"apps:list 출력을 해석할 수 없습니다: {e}",
        ) from e
    return [a for a in apps or [] if isinstance(a, dict)]


def _find_app(apps: List[Dict[str, Any]], display_name: str, identifier: Optional[str]) -> Optional[str]:
    for app in apps:
        if identifier and any(app.get(k) == identifier for k in _IDENTIFIER_KEYS):
            return app.get("appId")
    for app in apps:
        if app.get("displayName") == display_name:
            return app.get("appId")
    return None


def ensure_app(project_id: str, platform: str, display_name: str, identifier: Optional[str] = None) -> str:
    """
    앱을 등록하고 appId 를 반환한다.
    같은 패키지명/번들 ID(웹은 표시 이름)의 앱이 이미 있으면 재사용한다.
    """
    platform = platform.upper()
    if platform not in PLATFORMS:
        raise ValueError(f"알 수 없는 플랫폼입니다: {platform!r}")

    existing = _find_app(list_apps(project_id, platform), display_name, identifier)
    if existing:
        logger.info("기존 %s 앱을 사용합니다: %s (%s)", platform, existing, project_id)
        return existing

    cmd = ["firebase", "apps:create", platform, display_name, "--project", project_id, "--json"]
    if platform == "ANDROID" and identifier:
        cmd += ["--package-name", identifier]
    elif platform == "IOS" and identifier:
        cmd += ["--bundle-id", identifier]

    try:
        result = run_command(cmd)
    except CommandFailedError as e:
        if not e.already_exists:
            raise
        # 목록 조회와 생성 사이에 다른 실행이 먼저 만든 경우
        existing = _find_app(list_apps(project_id, platform), display_name, identifier)
        if existing:
            return existing
        raise

    try:
        app_id = _result_of(_parse_json_output(result.stdout)).get("appId")
    except (ValueError, AttributeError):
        app_id = None
    if not app_id:
        app_id = _find_app(list_apps(project_id, platform), display_name, identifier)
    if not app_id:
        raise CommandFailedError(cmd, returncode=0, stdout=result.stdout, message="생성된 앱의 appId 를 확인할 수 없습니다.")

    logger.info("%s 앱을 등록했습니다: %s (%s)", platform, app_id, project_id)
    return app_id


def fetch_sdk_config(project_id: str, platform: str, app_id: str) -> str:
    """
    Android/iOS: 설정 파일(google-services.json / GoogleService-Info.plist)을 받아 base64 로 반환.
    WEB: --json 원문을 그대로 반환 (parse_web_api_key 로 해석).
    """
    platform = platform.upper()
    if platform == "WEB":
        result = run_command(["firebase", "apps:sdkconfig", "WEB", app_id, "--project", project_id, "--json"])
        return result.stdout

    file_name = CONFIG_FILE_NAMES[platform]
    with tempfile.TemporaryDirectory(prefix="firebase-sdkconfig-") as tmp:
        out_path = os.path.join(tmp, file_name)
        run_command(
            ["firebase", "apps:sdkconfig", platform, app_id, "--project", project_id, "--out", out_path]
        )
        with open(out_path, "rb") as f:
            return base64.b64encode(f.read()).decode("ascii")


def create_firestore_database(project_id: str, location: str) -> BestEffortResult:
    cmd = [
        "gcloud",
        "firestore",
        "databases",
        "create",
        f"--project={project_id}",
        f"--location={location}",
        "--type=firestore-native",
        "--quiet",
    ]
    try:
        run_command(cmd)
    except CommandFailedError as e:
        if e.already_exists:
            logger.info("Firestore 데이터베이스가 이미 존재합니다: %s", project_id)
            return BestEffortResult(ok=True)
        logger.warning("Firestore 데이터베이스 생성 실패 (계속 진행): %s", e)
        return BestEffortResult(ok=False, warning=f"Firestore 데이터베이스 생성 실패: {e}")
    logger.info("Firestore 데이터베이스를 생성했습니다: %s (%s)", project_id, location)
    return BestEffortResult(ok=True)


def deploy_security_rules(project_id: str, service: str, rules_text: str) -> BestEffortResult:
    """
    firestore / storage 보안 규칙 배포.
    임시 디렉토리에 firebase.json 과 규칙 파일을 만든 뒤 firebase deploy 를 실행한다.
    """
    if service not in ("firestore", "storage"):
        raise ValueError(f"알 수 없는 규칙 대상입니다: {service!r}")

    rules_file = f"{service}.rules"
    only = "firestore:rules" if service == "firestore" else "storage"

    with tempfile.TemporaryDirectory(prefix=f"{service}-rules-") as tmp:
        with open(os.path.join(tmp, rules_file), "w", encoding="utf-8") as f:
            f.write(rules_text)
        with open(os.path.join(tmp, "firebase.json"), "w", encoding="utf-8") as f:
            json.dump({service: {"rules": rules_file}}, f, indent=2)

        try:
            run_command(
                ["firebase", "deploy", "--only", only, "--project", project_id, "--non-interactive"],
                cwd=tmp,
            )
        except CommandFailedError as e:
            logger.warning("%s 보안 규칙 배포 실패 (계속 진행): %s", service, e)
            return BestEffortResult(ok=False, warning=f"{service} 보안 규칙 배포 실패: {e}")

    logger.info("%s 보안 규칙을 배포했습니다: %s", service, project_id)
    return BestEffortResult(ok=True)
