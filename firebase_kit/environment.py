"""
environment
-----------

환경 하나(dev/staging/prod ...)의 GCP 프로젝트 + Firebase 백엔드를 선언하는 모듈.

리소스 간 순서는 depends_on 으로만 표현하고, 실제 실행 순서와 병렬성은 Pulumi 엔진이 결정한다.

    project
      └─ APIs (병렬)
           ├─ Firebase 백엔드 ─┬─ web 앱 ── web 설정(API 키)
           │                  ├─ Android 앱 ── google-services.json
           │                  └─ iOS 앱 ── GoogleService-Info.plist
           ├─ Firestore DB ── Firestore 규칙        (enable_firestore)
           ├─ Storage 버킷 ── Storage 규칙           (enable_storage)
           └─ CI/CD 서비스 계정 ── 역할 부여(병렬) ── 키
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pulumi
import pulumi_gcp as gcp

from .config import EnvironmentConfig
from .firebase_resources import (
    FirebaseApp,
    FirebaseAppConfig,
    FirebaseBackend,
    FirestoreDatabase,
    SecurityRules,
    StorageBucket,
)
from .rules import FIRESTORE_RULES, STORAGE_RULES


REQUIRED_APIS_BASE = [
    "firebase.googleapis.com",
    "firebasehosting.googleapis.com",
    "cloudresourcemanager.googleapis.com",
    "serviceusage.googleapis.com",
    "iam.googleapis.com",
    "iamcredentials.googleapis.com",
]

REQUIRED_APIS_AUTH = ["identitytoolkit.googleapis.com"]
REQUIRED_APIS_FIRESTORE = ["firestore.googleapis.com"]
REQUIRED_APIS_STORAGE = ["storage.googleapis.com", "storage-api.googleapis.com"]
REQUIRED_APIS_FUNCTIONS = [
    "cloudfunctions.googleapis.com",
    "cloudbuild.googleapis.com",
    "run.googleapis.com",
]
REQUIRED_APIS_RULES = ["firebaserules.googleapis.com"]

CICD_ROLES = [
    "roles/firebase.admin",
    "roles/firebaseauth.admin",
    "roles/datastore.user",
    "roles/cloudfunctions.admin",
    "roles/storage.admin",
    "roles/iam.serviceAccountUser",
]


@dataclass
class EnvironmentHandle:
    name: str
    project_id: pulumi.Output[str]
    project_number: pulumi.Output[str]
    web_api_key: pulumi.Output[str]
    web_api_key_available: pulumi.Output[bool]
    service_account_email: pulumi.Output[str]
    service_account_key: pulumi.Output[str]
    google_services_json: pulumi.Output[str]
    google_services_plist: pulumi.Output[str]
    warnings: pulumi.Output[List[str]]
    protected: bool = False


def required_apis(env: EnvironmentConfig) -> List[str]:
    apis = list(REQUIRED_APIS_BASE)
    if env.enable_auth:
        apis += REQUIRED_APIS_AUTH
    if env.enable_firestore:
        apis += REQUIRED_APIS_FIRESTORE
    if env.enable_storage:
        apis += REQUIRED_APIS_STORAGE
    if env.enable_functions:
        apis += REQUIRED_APIS_FUNCTIONS
    if env.enable_firestore or env.enable_storage:
        apis += REQUIRED_APIS_RULES
    return sorted(set(apis))


def _resource_suffix(value: str) -> str:
    return value.replace("/", "-").replace(".", "-")


def provision_environment(env: EnvironmentConfig) -> EnvironmentHandle:
    """환경 하나의 리소스 그래프를 선언하고, 결과 Output 들을 EnvironmentHandle 로 묶어 반환한다."""
    name = env.project_id
    pulumi.log.info(f"Firebase 환경 선언: {name} (protected={env.protected})")

    # 1) 프로젝트. 보호 대상 환경은 삭제를 막는다.
    project = gcp.organizations.Project(
        f"{name}-project",
        project_id=env.project_id,
        name=env.project_id,
        billing_account=env.billing_account,
        org_id=env.organization_id,
        labels={"environment": env.name, "managed-by": "pulumi"},
        deletion_policy="PREVENT" if env.protected else "DELETE",
        opts=pulumi.ResourceOptions(protect=env.protected),
    )

    # 2) API 활성화. 서로는 독립적이고, 이후 단계는 전부 이 집합에 의존한다.
    services = [
        gcp.projects.Service(
            f"{name}-api-{_resource_suffix(api)}",
            project=project.project_id,
            service=api,
            disable_dependent_services=False,
            disable_on_destroy=False,
        )
        for api in required_apis(env)
    ]
    after_apis = pulumi.ResourceOptions(depends_on=services)

    # 3) Firebase 백엔드
    backend = FirebaseBackend(f"{name}-firebase", project_id=project.project_id, opts=after_apis)
    after_backend = pulumi.ResourceOptions(depends_on=[backend])

    # 4) 웹 앱 (공개 API 키 용도)
    web_app = FirebaseApp(
        f"{name}-web-app",
        project_id=project.project_id,
        platform="WEB",
        display_name=f"{name}-web",
        opts=after_backend,
    )
    web_config = FirebaseAppConfig(
        f"{name}-web-config",
        project_id=project.project_id,
        platform="WEB",
        app_id=web_app.app_id,
    )

    # 5) + 6) 모바일 앱과 플랫폼 설정 파일
    android_app = FirebaseApp(
        f"{name}-android-app",
        project_id=project.project_id,
        platform="ANDROID",
        display_name=f"{name}-android",
        identifier=env.android_package_name,
        opts=after_backend,
    )
    google_services_json = FirebaseAppConfig(
        f"{name}-google-services-json",
        project_id=project.project_id,
        platform="ANDROID",
        app_id=android_app.app_id,
    )

    ios_app = FirebaseApp(
        f"{name}-ios-app",
        project_id=project.project_id,
        platform="IOS",
        display_name=f"{name}-ios",
        identifier=env.ios_bundle_id,
        opts=after_backend,
    )
    google_services_plist = FirebaseAppConfig(
        f"{name}-google-services-plist",
        project_id=project.project_id,
        platform="IOS",
        app_id=ios_app.app_id,
    )

    warnings: List[pulumi.Output[Optional[str]]] = [web_config.warning]

    # 7) Firestore (best-effort)
    firestore: Optional[FirestoreDatabase] = None
    if env.enable_firestore:
        firestore = FirestoreDatabase(
            f"{name}-firestore",
            project_id=project.project_id,
            location=env.firestore_region,
            opts=after_apis,
        )
        warnings.append(firestore.warning)

    # 8) Storage 기본 버킷 (best-effort)
    bucket: Optional[StorageBucket] = None
    if env.enable_storage:
        bucket = StorageBucket(
            f"{name}-storage",
            project_id=project.project_id,
            location=env.storage_location,
            opts=after_apis,
        )
        warnings.append(bucket.warning)

    # 9) CI/CD 서비스 계정과 역할
    service_account = gcp.serviceaccount.Account(
        f"{name}-sa",
        project=project.project_id,
        account_id=env.service_account_id,
        display_name=f"CI/CD Service Account for {name}",
        description="Service account for GitHub Actions CI/CD",
        opts=after_apis,
    )
    member = pulumi.Output.concat("serviceAccount:", service_account.email)
    bindings = [
        gcp.projects.IAMMember(
            f"{name}-sa-{_resource_suffix(role)}",
            project=project.project_id,
            role=role,
            member=member,
        )
        for role in CICD_ROLES
    ]

    # 10) 모든 역할 부여가 끝난 뒤 키 발급
    service_account_key = gcp.serviceaccount.Key(
        f"{name}-sa-key",
        service_account_id=service_account.name,
        opts=pulumi.ResourceOptions(depends_on=bindings),
    )

    # 11) 보안 규칙 (best-effort)
    if firestore is not None:
        firestore_rules = SecurityRules(
            f"{name}-firestore-rules",
            project_id=project.project_id,
            service="firestore",
            rules=FIRESTORE_RULES,
            opts=pulumi.ResourceOptions(depends_on=[firestore, backend]),
        )
        warnings.append(firestore_rules.warning)
    if bucket is not None:
        storage_rules = SecurityRules(
            f"{name}-storage-rules",
            project_id=project.project_id,
            service="storage",
            rules=STORAGE_RULES,
            opts=pulumi.ResourceOptions(depends_on=[bucket, backend]),
        )
        warnings.append(storage_rules.warning)

    return EnvironmentHandle(
        name=env.name,
        project_id=project.project_id,
        project_number=project.number,
        web_api_key=web_config.api_key,
        web_api_key_available=web_config.api_key_available,
        service_account_email=service_account.email,
        service_account_key=service_account_key.private_key,
        google_services_json=google_services_json.content_base64,
        google_services_plist=google_services_plist.content_base64,
        warnings=pulumi.Output.all(*warnings).apply(lambda ws: [w for w in ws if w]),
        protected=env.protected,
    )
