from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .logging_utils import get_logger


logger = get_logger(__name__)


ENV_FILES_DEFAULT_ORDER = [".env", ".env.secrets"]

DEFAULT_ENVIRONMENTS = ["dev", "staging", "prod"]
DEFAULT_FIRESTORE_REGION = "eur3"
DEFAULT_FUNCTIONS_REGION = "europe-west1"
DEFAULT_STORAGE_LOCATION = "EU"
DEFAULT_PROTECTED_ENVIRONMENTS = ["prod"]

_BASE_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")
# 환경 이름은 Android 패키지명 조각으로도 쓰이므로 하이픈을 허용하지 않는다
_ENV_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_ORGANIZATION_RE = re.compile(r"^[a-z][a-z0-9]*(\.[a-z][a-z0-9]*)+$")
_GITHUB_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
# GCP 프로젝트 ID 규칙: 6~30자, 소문자로 시작, 하이픈으로 끝나지 않음
_PROJECT_ID_RE = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")

SERVICE_ACCOUNT_ID_MAX = 30

# 설정 파일 키(camelCase) -> DeploymentConfig 필드
_FILE_KEYS = {
    "projectBaseName": "project_base_name",
    "organization": "organization",
    "environments": "environments",
    "githubRepo": "github_repo",
    "androidPackageName": "android_package_name",
    "iosBundleId": "ios_bundle_id",
    "gcpBillingAccount": "gcp_billing_account",
    "gcpOrganizationId": "gcp_organization_id",
    "githubToken": "github_token",
    "firestoreRegion": "firestore_region",
    "firebaseFunctionsRegion": "functions_region",
    "storageLocation": "storage_location",
    "protectedEnvironments": "protected_environments",
    "enableAuth": "enable_auth",
    "enableFirestore": "enable_firestore",
    "enableFunctions": "enable_functions",
    "enableStorage": "enable_storage",
    "enableHosting": "enable_hosting",
}


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    (GITHUB_TOKEN, PULUMI_CONFIG_PASSPHRASE, GOOGLE_APPLICATION_CREDENTIALS 등)
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_bool(raw: Any, default: bool = False) -> bool:
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def sanitize_base_name(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def derive_project_id(base_name: str, environment: str) -> str:
    """(baseName, env) 에서 GCP/Firebase 프로젝트 ID 를 만든다. 항상 같은 입력 -> 같은 출력."""
    return f"{sanitize_base_name(base_name)}-{environment.strip().lower().replace('_', '-')}"


def derive_service_account_id(project_id: str) -> str:
    return f"{project_id}-cicd"[:SERVICE_ACCOUNT_ID_MAX].rstrip("-")


def secret_suffix(environment: str) -> str:
    """GitHub secret 이름에 붙는 환경 접미사 (dev -> DEV, qa_eu -> QA_EU)."""
    return environment.upper().replace("-", "_")


@dataclass(frozen=True)
class EnvironmentConfig:
    """환경 하나(dev/staging/prod ...)를 프로비저닝하는 데 필요한 값."""

    name: str
    project_id: str
    android_package_name: str
    ios_bundle_id: str
    billing_account: Any = None
    organization_id: Optional[str] = None
    enable_auth: bool = True
    enable_firestore: bool = True
    enable_functions: bool = True
    enable_storage: bool = True
    enable_hosting: bool = False
    firestore_region: str = DEFAULT_FIRESTORE_REGION
    functions_region: str = DEFAULT_FUNCTIONS_REGION
    storage_location: str = DEFAULT_STORAGE_LOCATION
    protected: bool = False

    @property
    def service_account_id(self) -> str:
        return derive_service_account_id(self.project_id)


@dataclass
class DeploymentConfig:
    # 필수
    project_base_name: str
    organization: str
    github_repo: str

    environments: List[str] = field(default_factory=lambda: list(DEFAULT_ENVIRONMENTS))
    android_package_name: Optional[str] = None
    ios_bundle_id: Optional[str] = None

    # 선택
    gcp_billing_account: Any = None
    gcp_organization_id: Optional[str] = None
    github_token: Any = None

    # 리전
    firestore_region: str = DEFAULT_FIRESTORE_REGION
    functions_region: str = DEFAULT_FUNCTIONS_REGION
    storage_location: str = DEFAULT_STORAGE_LOCATION

    # 토글
    enable_auth: bool = True
    enable_firestore: bool = True
    enable_functions: bool = True
    enable_storage: bool = True
    enable_hosting: bool = False

    protected_environments: List[str] = field(
        default_factory=lambda: list(DEFAULT_PROTECTED_ENVIRONMENTS)
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeploymentConfig":
        """
        설정 파일(JSON) 내용으로 DeploymentConfig 를 만든다.
        외부 호출 전에 모든 검증을 끝내고, 문제가 있으면 ConfigError 를 던진다.
        """
        unknown = sorted(k for k in data if k not in _FILE_KEYS)
        if unknown:
            logger.debug("알 수 없는 설정 키를 무시합니다: %s", unknown)

        def req(key: str) -> str:
            val = data.get(key)
            if val is None or (isinstance(val, str) and not val.strip()):
                raise ConfigError(key, "필수 값이 없습니다.")
            if not isinstance(val, str):
                raise ConfigError(key, "문자열이어야 합니다.")
            return val.strip()

        def opt(key: str) -> Optional[str]:
            val = data.get(key)
            if val is None or (isinstance(val, str) and not val.strip()):
                return None
            return str(val).strip()

        base_name = req("projectBaseName")
        organization = req("organization")
        github_repo = req("githubRepo")

        environments = data.get("environments")
        if environments is None:
            environments = list(DEFAULT_ENVIRONMENTS)
        elif isinstance(environments, str):
            environments = [e.strip() for e in environments.split(",") if e.strip()]
        if not isinstance(environments, list) or not all(isinstance(e, str) for e in environments):
            raise ConfigError("environments", "문자열 배열이어야 합니다.")

        protected = data.get("protectedEnvironments")
        if protected is None:
            protected = list(DEFAULT_PROTECTED_ENVIRONMENTS)
        elif not isinstance(protected, list):
            raise ConfigError("protectedEnvironments", "문자열 배열이어야 합니다.")

        default_app_id = f"{organization}.{base_name.lower().replace('-', '_')}"

        cfg = cls(
            project_base_name=base_name,
            organization=organization,
            github_repo=github_repo,
            environments=[e.strip().lower() for e in environments],
            android_package_name=opt("androidPackageName") or default_app_id,
            ios_bundle_id=opt("iosBundleId") or default_app_id,
            gcp_billing_account=opt("gcpBillingAccount"),
            gcp_organization_id=opt("gcpOrganizationId"),
            github_token=opt("githubToken"),
            firestore_region=opt("firestoreRegion") or DEFAULT_FIRESTORE_REGION,
            functions_region=opt("firebaseFunctionsRegion") or DEFAULT_FUNCTIONS_REGION,
            storage_location=opt("storageLocation") or DEFAULT_STORAGE_LOCATION,
            enable_auth=_get_bool(data.get("enableAuth"), True),
            enable_firestore=_get_bool(data.get("enableFirestore"), True),
            enable_functions=_get_bool(data.get("enableFunctions"), True),
            enable_storage=_get_bool(data.get("enableStorage"), True),
            enable_hosting=_get_bool(data.get("enableHosting"), False),
            protected_environments=[str(p).strip().lower() for p in protected],
        )
        cfg.validate()
        return cfg

    @classmethod
    def from_pulumi_config(cls, config: Any) -> "DeploymentConfig":
        """
        Pulumi 프로그램 안에서 스택 설정(pulumi.Config)을 읽어 DeploymentConfig 를 만든다.
        비밀 값(결제 계정, GitHub 토큰)은 Output 그대로 유지한다.
        """
        data: Dict[str, Any] = {}
        for key in _FILE_KEYS:
            if key in ("gcpBillingAccount", "githubToken"):
                continue
            if key in ("environments", "protectedEnvironments"):
                val = config.get_object(key)
            else:
                val = config.get(key)
            if val is not None:
                data[key] = val

        cfg = cls.from_dict(data)
        return replace(
            cfg,
            gcp_billing_account=config.get_secret("gcpBillingAccount"),
            github_token=config.get_secret("githubToken"),
        )

    def validate(self) -> None:
        if not _BASE_NAME_RE.match(self.base_name):
            raise ConfigError(
                "projectBaseName",
                "소문자로 시작하고 소문자/숫자/하이픈/언더스코어만 사용할 수 있습니다.",
            )
        if not _ORGANIZATION_RE.match(self.organization):
            raise ConfigError("organization", "역도메인 형식이어야 합니다. (예: com.mycompany)")
        if not _GITHUB_REPO_RE.match(self.github_repo):
            raise ConfigError("githubRepo", "owner/repository 형식이어야 합니다.")
        if not self.environments:
            raise ConfigError("environments", "환경이 하나 이상 필요합니다.")

        seen_ids: Dict[str, str] = {}
        seen_suffixes: Dict[str, str] = {}
        for env in self.environments:
            if not _ENV_NAME_RE.match(env):
                raise ConfigError(
                    "environments",
                    f"잘못된 환경 이름입니다: {env!r} (소문자로 시작, 소문자/숫자/_ 만 허용. 하이픈은 Android 패키지명에 쓸 수 없음)",
                )
            project_id = self.project_id(env)
            if not _PROJECT_ID_RE.match(project_id):
                raise ConfigError(
                    "environments",
                    f"프로젝트 ID {project_id!r} 가 GCP 규칙(6~30자, 소문자 시작)에 맞지 않습니다.",
                )
            if project_id in seen_ids:
                raise ConfigError(
                    "environments",
                    f"환경 {seen_ids[project_id]!r} 와 {env!r} 의 프로젝트 ID 가 같습니다: {project_id}",
                )
            suffix = secret_suffix(env)
            if suffix in seen_suffixes:
                raise ConfigError(
                    "environments",
                    f"환경 {seen_suffixes[suffix]!r} 와 {env!r} 의 secret 접미사가 같습니다: {suffix}",
                )
            seen_ids[project_id] = env
            seen_suffixes[suffix] = env

    @property
    def base_name(self) -> str:
        return sanitize_base_name(self.project_base_name)

    @property
    def stack_name(self) -> str:
        return f"{self.base_name}-infra"

    @property
    def key_alias(self) -> str:
        return f"{self.base_name}-key"

    @property
    def github_owner(self) -> str:
        return self.github_repo.split("/", 1)[0]

    @property
    def github_repository_name(self) -> str:
        return self.github_repo.split("/", 1)[1]

    def project_id(self, environment: str) -> str:
        return derive_project_id(self.project_base_name, environment)

    def is_protected(self, environment: str) -> bool:
        return environment in self.protected_environments

    def environment_config(self, environment: str) -> EnvironmentConfig:
        return EnvironmentConfig(
            name=environment,
            project_id=self.project_id(environment),
            android_package_name=f"{self.android_package_name}.{environment}",
            # iOS 번들 ID 는 언더스코어를 허용하지 않는다
            ios_bundle_id=f"{self.ios_bundle_id}.{environment}".replace("_", "-"),
            billing_account=self.gcp_billing_account,
            organization_id=self.gcp_organization_id,
            enable_auth=self.enable_auth,
            enable_firestore=self.enable_firestore,
            enable_functions=self.enable_functions,
            enable_storage=self.enable_storage,
            enable_hosting=self.enable_hosting,
            firestore_region=self.firestore_region,
            functions_region=self.functions_region,
            storage_location=self.storage_location,
            protected=self.is_protected(environment),
        )

    def to_stack_config(self, github_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Pulumi 스택 설정으로 저장할 값들을 ConfigValue 로 변환한다.
        결제 계정과 GitHub 토큰은 secret 으로 저장한다.
        """
        from pulumi.automation import ConfigValue

        values: Dict[str, Any] = {
            "projectBaseName": ConfigValue(value=self.base_name),
            "organization": ConfigValue(value=self.organization),
            "environments": ConfigValue(value=json.dumps(self.environments)),
            "githubRepo": ConfigValue(value=self.github_repo),
            "androidPackageName": ConfigValue(value=self.android_package_name or ""),
            "iosBundleId": ConfigValue(value=self.ios_bundle_id or ""),
            "firestoreRegion": ConfigValue(value=self.firestore_region),
            "firebaseFunctionsRegion": ConfigValue(value=self.functions_region),
            "storageLocation": ConfigValue(value=self.storage_location),
            "protectedEnvironments": ConfigValue(value=json.dumps(self.protected_environments)),
            "enableAuth": ConfigValue(value=str(self.enable_auth).lower()),
            "enableFirestore": ConfigValue(value=str(self.enable_firestore).lower()),
            "enableFunctions": ConfigValue(value=str(self.enable_functions).lower()),
            "enableStorage": ConfigValue(value=str(self.enable_storage).lower()),
            "enableHosting": ConfigValue(value=str(self.enable_hosting).lower()),
        }
        if self.gcp_billing_account:
            values["gcpBillingAccount"] = ConfigValue(value=str(self.gcp_billing_account), secret=True)
        if self.gcp_organization_id:
            values["gcpOrganizationId"] = ConfigValue(value=self.gcp_organization_id)
        token = github_token or (self.github_token if isinstance(self.github_token, str) else None)
        if token:
            values["githubToken"] = ConfigValue(value=token, secret=True)
        return values


def load_config_file(path: str) -> DeploymentConfig:
    """JSON 설정 파일을 읽어 검증된 DeploymentConfig 를 반환한다."""
    if not os.path.exists(path):
        raise ConfigError("config", f"설정 파일을 찾을 수 없습니다: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError("config", f"JSON 파싱 실패: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config", "최상위 값은 JSON 객체여야 합니다.")
    return DeploymentConfig.from_dict(data)
