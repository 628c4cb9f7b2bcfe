"""
github_secrets
--------------

환경별 Firebase 출력과 공유 서명 키를 GitHub Actions secret 으로 등록하는 모듈.

secret 이름은 입력만으로 결정된다:
    환경별  <CATEGORY>_<ENV>   (FIREBASE_PROJECT_ID_DEV ...)
    공유    ANDROID_KEYSTORE, KEYSTORE_PASSWORD, KEY_PASSWORD, KEY_ALIAS
ActionsSecret 은 같은 이름이면 덮어쓰므로 재실행해도 secret 이 중복되지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

import pulumi
import pulumi_github as github

from .config import secret_suffix
from .environment import EnvironmentHandle
from .logging_utils import get_logger
from .signing import SigningMaterial


logger = get_logger(__name__)


# (secret 접두사, EnvironmentHandle 속성, secret 여부)
ENVIRONMENT_SECRETS = [
    ("FIREBASE_PROJECT_ID", "project_id", False),
    ("FIREBASE_SERVICE_ACCOUNT", "service_account_key", True),
    ("GOOGLE_SERVICES_JSON", "google_services_json", True),
    ("GOOGLE_SERVICES_PLIST", "google_services_plist", True),
]

# (secret 이름, SigningMaterial 속성, secret 여부)
SHARED_SECRETS = [
    ("ANDROID_KEYSTORE", "keystore_base64", True),
    ("KEYSTORE_PASSWORD", "keystore_password", True),
    ("KEY_PASSWORD", "key_password", True),
    ("KEY_ALIAS", "key_alias", False),
]


@dataclass(frozen=True)
class SecretRecord:
    name: str
    value: Any
    secret: bool

    @property
    def resource_name(self) -> str:
        return "secret-" + self.name.lower().replace("_", "-")


@dataclass
class PublishResult:
    repository: str
    names: List[str]
    count: pulumi.Output[int]

    @property
    def configured(self) -> pulumi.Output[bool]:
        expected = len(self.names)
        return self.count.apply(lambda c: expected > 0 and c == expected)


def environment_secret_name(prefix: str, environment: str) -> str:
    return f"{prefix}_{secret_suffix(environment)}"


def secret_names(environments: Sequence[str]) -> List[str]:
    names = [environment_secret_name(prefix, env) for env in environments for prefix, _, _ in ENVIRONMENT_SECRETS]
    names += [name for name, _, _ in SHARED_SECRETS]
    return names


def build_secret_records(
    handles: Mapping[str, EnvironmentHandle],
    signing: SigningMaterial,
) -> List[SecretRecord]:
    """
    등록할 secret 목록을 만든다. 순서는 환경 순서 -> 공유 secret 순으로 고정.
    이름이 겹치면 ValueError.
    """
    records: List[SecretRecord] = []
    for env, handle in handles.items():
        for prefix, attr, is_secret in ENVIRONMENT_SECRETS:
            records.append(
                SecretRecord(
                    name=environment_secret_name(prefix, env),
                    value=getattr(handle, attr),
                    secret=is_secret,
                )
            )
    for name, attr, is_secret in SHARED_SECRETS:
        records.append(SecretRecord(name=name, value=getattr(signing, attr), secret=is_secret))

    seen: set[str] = set()
    for record in records:
        if record.name in seen:
            raise ValueError(f"GitHub secret 이름이 중복됩니다: {record.name}")
        seen.add(record.name)
    return records


def publish_secrets(
    owner: str,
    repository_name: str,
    handles: Mapping[str, EnvironmentHandle],
    signing: SigningMaterial,
    token: Optional[pulumi.Input[str]] = None,
) -> PublishResult:
    """
    owner/repository_name 저장소에 secret 을 upsert 한다.
    token 이 없으면 github provider 가 GITHUB_TOKEN 환경변수를 사용한다.
    """
    repository = f"{owner}/{repository_name}"
    records = build_secret_records(handles, signing)

    pulumi.log.info(f"GitHub secret {len(records)}개 등록 예정: {repository}")

    provider = github.Provider("github", owner=owner, token=token)
    opts = pulumi.ResourceOptions(provider=provider)

    created: List[github.ActionsSecret] = []
    for record in records:
        value = pulumi.Output.secret(record.value) if record.secret else record.value
        created.append(
            github.ActionsSecret(
                record.resource_name,
                repository=repository_name,
                secret_name=record.name,
                plaintext_value=value,
                opts=opts,
            )
        )

    count = pulumi.Output.all(*[s.id for s in created]).apply(lambda ids: sum(1 for i in ids if i))
    return PublishResult(repository=repository, names=[r.name for r in records], count=count)
