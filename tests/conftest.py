"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 firebase_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.

리소스 그래프 테스트는 pulumi.runtime.set_mocks 로 실제 엔진 대신 가짜 엔진을 쓴다.
"""

from __future__ import annotations

import os
import sys
from typing import Any, Dict, List

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


DYNAMIC_TYPE = "pulumi-python:dynamic:Resource"


class FirebaseMocks:
    """등록된 리소스를 기록하고, 각 타입에 필요한 가짜 출력값을 채워준다."""

    def __init__(self) -> None:
        self.resources: List[Any] = []

    def new_resource(self, args: Any):
        self.resources.append(args)
        outputs: Dict[str, Any] = dict(args.inputs)

        if args.typ == "gcp:organizations/project:Project":
            outputs["number"] = "123456789012"
        elif args.typ == "gcp:serviceaccount/account:Account":
            email = f"{args.inputs.get('accountId')}@example.iam.gserviceaccount.com"
            outputs["email"] = email
            outputs["name"] = f"projects/-/serviceAccounts/{email}"
        elif args.typ == "gcp:serviceaccount/key:Key":
            outputs["privateKey"] = "c2VydmljZS1hY2NvdW50LWtleQ=="
        elif args.typ == "random:index/randomPassword:RandomPassword":
            outputs["result"] = "x" * 32
        elif args.typ == DYNAMIC_TYPE:
            outputs.update(
                app_id=f"1:123:{args.name}",
                content_base64="Y29uZmln",
                api_key="AIza-test",
                api_key_available=True,
                warning=None,
                ok=True,
                keystore_base64="a2V5c3RvcmU=",
            )
        return [f"{args.name}_id", outputs]

    def call(self, args: Any):
        return {}

    def of_type(self, typ: str) -> List[Any]:
        return [r for r in self.resources if r.typ == typ]

    def names(self) -> List[str]:
        return [r.name for r in self.resources]

    def named(self, name: str) -> Any:
        for r in self.resources:
            if r.name == name:
                return r
        raise KeyError(name)


@pytest.fixture
def pulumi_mocks() -> FirebaseMocks:
    import pulumi

    class _Mocks(FirebaseMocks, pulumi.runtime.Mocks):
        pass

    mocks = _Mocks()
    pulumi.runtime.set_mocks(mocks, project="firebase-infrastructure", stack="test", preview=False)
    return mocks
