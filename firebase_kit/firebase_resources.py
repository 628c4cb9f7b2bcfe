"""
firebase_resources
------------------

firebase_cli 의 작업들을 Pulumi 리소스 그래프 안에서 실행하기 위한 dynamic resource 모음.

엔진이 depends_on 관계에 따라 실행 순서/병렬성을 결정하고,
결과(appId, 설정 파일 등)는 스택 상태에 남아 재실행 시 다시 호출되지 않는다.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import pulumi
from pulumi.dynamic import CreateResult, DiffResult, Resource, ResourceProvider, UpdateResult

from . import firebase_cli, gcp_storage


def _replaces(keys: Sequence[str], olds: Any, news: Any) -> list[str]:
    return [k for k in keys if olds.get(k) != news.get(k)]


class _BackendProvider(ResourceProvider):
    def create(self, props: Any) -> CreateResult:
        firebase_cli.add_firebase(props["project_id"])
        return CreateResult(id_=props["project_id"], outs={"project_id": props["project_id"]})

    def diff(self, _id: str, olds: Any, news: Any) -> DiffResult:
        replaces = _replaces(["project_id"], olds, news)
        return DiffResult(changes=bool(replaces), replaces=replaces)

    def delete(self, _id: str, _props: Any) -> None:
        # Firebase 는 GCP 프로젝트와 함께 정리된다
        return None


class FirebaseBackend(Resource):
    project_id: pulumi.Output[str]

    def __init__(self, name: str, project_id: pulumi.Input[str], opts: Optional[pulumi.ResourceOptions] = None) -> None:
        super().__init__(_BackendProvider(), name, {"project_id": project_id}, opts)


_APP_INPUTS = ("project_id", "platform", "display_name", "identifier")


class _AppProvider(ResourceProvider):
    def create(self, props: Any) -> CreateResult:
        app_id = firebase_cli.ensure_app(
            props["project_id"],
            props["platform"],
            props["display_name"],
            props.get("identifier"),
        )
        outs = {k: props.get(k) for k in _APP_INPUTS}
        outs["app_id"] = app_id
        return CreateResult(id_=app_id, outs=outs)

    def diff(self, _id: str, olds: Any, news: Any) -> DiffResult:
        replaces = _replaces(_APP_INPUTS, olds, news)
        return DiffResult(changes=bool(replaces), replaces=replaces)

    def delete(self, _id: str, _props: Any) -> None:
        return None


class FirebaseApp(Resource):
    app_id: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        project_id: pulumi.Input[str],
        platform: str,
        display_name: str,
        identifier: Optional[str] = None,
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> None:
        super().__init__(
            _AppProvider(),
            name,
            {
                "project_id": project_id,
                "platform": platform,
                "display_name": display_name,
                "identifier": identifier,
                "app_id": None,
            },
            opts,
        )


_APP_CONFIG_INPUTS = ("project_id", "platform", "app_id")


class _AppConfigProvider(ResourceProvider):
    def create(self, props: Any) -> CreateResult:
        platform = props["platform"].upper()
        raw = firebase_cli.fetch_sdk_config(props["project_id"], platform, props["app_id"])
        outs = {k: props[k] for k in _APP_CONFIG_INPUTS}
        if platform == "WEB":
            api_key = firebase_cli.parse_web_api_key(raw)
            outs.update(
                content_base64="",
                api_key=api_key.or_empty(),
                api_key_available=api_key.available,
                warning=None if api_key.available else f"웹 API 키를 가져오지 못했습니다: {api_key.reason}",
            )
        else:
            outs.update(content_base64=raw, api_key="", api_key_available=False, warning=None)
        return CreateResult(id_=f"{props['project_id']}/{props['app_id']}", outs=outs)

    def diff(self, _id: str, olds: Any, news: Any) -> DiffResult:
        replaces = _replaces(_APP_CONFIG_INPUTS, olds, news)
        return DiffResult(changes=bool(replaces), replaces=replaces)

    def delete(self, _id: str, _props: Any) -> None:
        return None


class FirebaseAppConfig(Resource):
    content_base64: pulumi.Output[str]
    api_key: pulumi.Output[str]
    api_key_available: pulumi.Output[bool]
    warning: pulumi.Output[Optional[str]]

    def __init__(
        self,
        name: str,
        project_id: pulumi.Input[str],
        platform: str,
        app_id: pulumi.Input[str],
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> None:
        opts = pulumi.ResourceOptions.merge(
            opts, pulumi.ResourceOptions(additional_secret_outputs=["content_base64"])
        )
        super().__init__(
            _AppConfigProvider(),
            name,
            {
                "project_id": project_id,
                "platform": platform,
                "app_id": app_id,
                "content_base64": None,
                "api_key": None,
                "api_key_available": None,
                "warning": None,
            },
            opts,
        )


class _BestEffortProvider(ResourceProvider):
    """
    실패해도 리소스 자체는 생성된 것으로 기록하고 warning 을 남긴다.
    이전 실행이 실패했다면 다음 실행에서 update 로 다시 시도한다.
    """

    inputs: Sequence[str] = ()

    def _apply(self, props: Any) -> dict:
        raise NotImplementedError

    def create(self, props: Any) -> CreateResult:
        outs = self._apply(props)
        return CreateResult(id_=f"{props['project_id']}/{self.__class__.__name__}", outs=outs)

    def diff(self, _id: str, olds: Any, news: Any) -> DiffResult:
        replaces = _replaces(["project_id"], olds, news)
        changed = bool(_replaces(self.inputs, olds, news)) or not olds.get("ok", False)
        return DiffResult(changes=changed or bool(replaces), replaces=replaces)

    def update(self, _id: str, _olds: Any, news: Any) -> UpdateResult:
        return UpdateResult(outs=self._apply(news))

    def delete(self, _id: str, _props: Any) -> None:
        return None


class _FirestoreProvider(_BestEffortProvider):
    inputs = ("project_id", "location")

    def _apply(self, props: Any) -> dict:
        result = firebase_cli.create_firestore_database(props["project_id"], props["location"])
        return {
            "project_id": props["project_id"],
            "location": props["location"],
            "ok": result.ok,
            "warning": result.warning,
        }


class FirestoreDatabase(Resource):
    ok: pulumi.Output[bool]
    warning: pulumi.Output[Optional[str]]

    def __init__(
        self,
        name: str,
        project_id: pulumi.Input[str],
        location: str,
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> None:
        super().__init__(
            _FirestoreProvider(),
            name,
            {"project_id": project_id, "location": location, "ok": None, "warning": None},
            opts,
        )


class _RulesProvider(_BestEffortProvider):
    inputs = ("project_id", "service", "rules")

    def _apply(self, props: Any) -> dict:
        result = firebase_cli.deploy_security_rules(props["project_id"], props["service"], props["rules"])
        return {
            "project_id": props["project_id"],
            "service": props["service"],
            "rules": props["rules"],
            "ok": result.ok,
            "warning": result.warning,
        }


class SecurityRules(Resource):
    ok: pulumi.Output[bool]
    warning: pulumi.Output[Optional[str]]

    def __init__(
        self,
        name: str,
        project_id: pulumi.Input[str],
        service: str,
        rules: str,
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> None:
        super().__init__(
            _RulesProvider(),
            name,
            {"project_id": project_id, "service": service, "rules": rules, "ok": None, "warning": None},
            opts,
        )


class _BucketProvider(_BestEffortProvider):
    inputs = ("project_id", "location")

    def _apply(self, props: Any) -> dict:
        result = gcp_storage.ensure_storage_bucket(props["project_id"], props["location"])
        return {
            "project_id": props["project_id"],
            "location": props["location"],
            "bucket_name": gcp_storage.default_bucket_name(props["project_id"]),
            "ok": result.ok,
            "warning": result.warning,
        }


class StorageBucket(Resource):
    bucket_name: pulumi.Output[str]
    ok: pulumi.Output[bool]
    warning: pulumi.Output[Optional[str]]

    def __init__(
        self,
        name: str,
        project_id: pulumi.Input[str],
        location: str,
        opts: Optional[pulumi.ResourceOptions] = None,
    ) -> None:
        super().__init__(
            _BucketProvider(),
            name,
            {"project_id": project_id, "location": location, "bucket_name": None, "ok": None, "warning": None},
            opts,
        )
