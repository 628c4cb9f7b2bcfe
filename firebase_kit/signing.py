"""
signing
-------

모든 환경이 공유하는 Android 서명 키(keystore + 비밀번호 2개)를 만든다.

keystore 파일은 임시 디렉토리 안에서만 존재하고,
base64 로 읽어 들인 뒤 성공/실패와 무관하게 삭제된다.
"""

from __future__ import annotations

import base64
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Optional

import pulumi
import pulumi_random as random
from pulumi.dynamic import CreateResult, DiffResult, Resource, ResourceProvider

from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


DEFAULT_VALIDITY_DAYS = 10000
DEFAULT_KEY_SIZE = 2048
PASSWORD_LENGTH = 32
PASSWORD_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

_DN_SPECIAL = set(',+"\\<>;=')


def escape_dn_value(value: str) -> str:
    """RFC 2253 distinguished name 값 이스케이프."""
    escaped = "".join("\\" + ch if ch in _DN_SPECIAL else ch for ch in value)
    if escaped.startswith((" ", "#")):
        escaped = "\\" + escaped
    if len(value) > 1 and value.endswith(" "):
        escaped = escaped[:-1] + "\\ "
    return escaped


def build_dname(common_name: str, organization: str) -> str:
    cn = escape_dn_value(common_name)
    org = escape_dn_value(organization)
    return f"CN={cn}, OU={org}, O={org}, L=Unknown, ST=Unknown, C=US"


def build_keystore(
    key_alias: str,
    organization: str,
    common_name: str,
    store_password: str,
    key_password: str,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
    key_size: int = DEFAULT_KEY_SIZE,
) -> str:
    """
    keytool 로 RSA 서명 키를 담은 JKS keystore 를 만들고 base64 문자열로 반환한다.

    PKCS12 는 store/key 비밀번호를 따로 둘 수 없으므로 JKS 형식을 사용한다.
    """
    with tempfile.TemporaryDirectory(prefix="android-signing-") as tmp:
        keystore_path = os.path.join(tmp, f"{key_alias}.jks")
        cmd = [
            "keytool",
            "-genkeypair",
            "-v",
            "-storetype",
            "JKS",
            "-keystore",
            keystore_path,
            "-alias",
            key_alias,
            "-keyalg",
            "RSA",
            "-keysize",
            str(key_size),
            "-validity",
            str(validity_days),
            "-storepass",
            store_password,
            "-keypass",
            key_password,
            "-dname",
            build_dname(common_name, organization),
            "-noprompt",
        ]
        run_command(cmd)
        with open(keystore_path, "rb") as f:
            encoded = base64.b64encode(f.read()).decode("ascii")

    logger.info("Android 서명 키를 생성했습니다: alias=%s (%d bit, %d일)", key_alias, key_size, validity_days)
    return encoded


_KEYSTORE_INPUTS = (
    "key_alias",
    "organization",
    "common_name",
    "store_password",
    "key_password",
    "validity_days",
    "key_size",
)


class _AndroidKeystoreProvider(ResourceProvider):
    def create(self, props: Any) -> CreateResult:
        keystore = build_keystore(
            key_alias=props["key_alias"],
            organization=props["organization"],
            common_name=props["common_name"],
            store_password=props["store_password"],
            key_password=props["key_password"],
            validity_days=int(props["validity_days"]),
            key_size=int(props["key_size"]),
        )
        outs = {k: props[k] for k in _KEYSTORE_INPUTS}
        outs["keystore_base64"] = keystore
        return CreateResult(id_=props["key_alias"], outs=outs)

    def diff(self, _id: str, olds: Any, news: Any) -> DiffResult:
        # 입력이 하나라도 바뀌면 새 키를 만들어야 한다
        replaces = [k for k in _KEYSTORE_INPUTS if olds.get(k) != news.get(k)]
        return DiffResult(changes=bool(replaces), replaces=replaces, delete_before_replace=False)


class AndroidKeystore(Resource):
    keystore_base64: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        key_alias: str,
        organization: str,
        common_name: str,
        store_password: pulumi.Input[str],
        key_password: pulumi.Input[str],
        validity_days: int = DEFAULT_VALIDITY_DAYS,
        key_size: int = DEFAULT_KEY_SIZE,
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> None:
        opts = pulumi.ResourceOptions.merge(
            opts,
            pulumi.ResourceOptions(
                additional_secret_outputs=["keystore_base64", "store_password", "key_password"]
            ),
        )
        super().__init__(
            _AndroidKeystoreProvider(),
            name,
            {
                "key_alias": key_alias,
                "organization": organization,
                "common_name": common_name,
                "store_password": store_password,
                "key_password": key_password,
                "validity_days": validity_days,
                "key_size": key_size,
                "keystore_base64": None,
            },
            opts,
        )


@dataclass
class SigningMaterial:
    key_alias: str
    keystore_base64: pulumi.Output[str]
    keystore_password: pulumi.Output[str]
    key_password: pulumi.Output[str]


def _password(name: str) -> random.RandomPassword:
    return random.RandomPassword(
        name,
        length=PASSWORD_LENGTH,
        special=True,
        override_special=PASSWORD_SPECIAL_CHARS,
    )


def generate_signing_material(
    key_alias: str,
    organization: str,
    common_name: str,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
    key_size: int = DEFAULT_KEY_SIZE,
) -> SigningMaterial:
    """
    배포 전체에서 한 번만 호출한다.
    비밀번호 두 개는 RandomPassword 로 만들어 상태에 보관되므로 재실행해도 키가 바뀌지 않는다.
    """
    pulumi.log.info(f"Android 서명 키 준비: {key_alias}")

    keystore_password = _password(f"{key_alias}-keystore-password")
    key_password = _password(f"{key_alias}-key-password")

    keystore = AndroidKeystore(
        f"{key_alias}-keystore",
        key_alias=key_alias,
        organization=organization,
        common_name=common_name,
        store_password=keystore_password.result,
        key_password=key_password.result,
        validity_days=validity_days,
        key_size=key_size,
    )

    return SigningMaterial(
        key_alias=key_alias,
        keystore_base64=keystore.keystore_base64,
        keystore_password=keystore_password.result,
        key_password=key_password.result,
    )
