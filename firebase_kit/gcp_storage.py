"""
gcp_storage
-----------

Firebase Storage 기본 버킷(<project>.appspot.com) 구성.

버킷은 best-effort 단계라 실패해도 예외 대신 BestEffortResult 로 경고를 돌려준다.
"""

from __future__ import annotations

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from .firebase_cli import BestEffortResult
from .logging_utils import get_logger


logger = get_logger(__name__)


STORAGE_CORS_METHODS = ["GET", "HEAD", "PUT", "POST", "DELETE"]

STORAGE_CORS = {
    "origin": ["*"],
    "method": STORAGE_CORS_METHODS,
    "responseHeader": ["*"],
    "maxAgeSeconds": 3600,
}


def default_bucket_name(project_id: str) -> str:
    return f"{project_id}.appspot.com"


def ensure_storage_bucket(project_id: str, location: str) -> BestEffortResult:
    """
    기본 버킷이 없으면 만들고, 있으면 CORS 설정만 맞춘다.
    """
    bucket_name = default_bucket_name(project_id)
    logger.info("Storage 버킷 확인: %s (location=%s)", bucket_name, location)

    try:
        client = storage.Client(project=project_id)
        bucket = client.bucket(bucket_name)

        if bucket.exists():
            bucket.cors = [STORAGE_CORS]
            bucket.patch()
            logger.info("기존 Storage 버킷을 사용합니다: %s", bucket_name)
            return BestEffortResult(ok=True)

        bucket.cors = [STORAGE_CORS]
        bucket.iam_configuration.uniform_bucket_level_access_enabled = True
        client.create_bucket(bucket, location=location)
    except gcp_exceptions.Conflict:
        # exists() 와 create 사이에 다른 실행(또는 Firebase)이 먼저 만든 경우
        logger.info("Storage 버킷이 이미 존재합니다: %s", bucket_name)
        return BestEffortResult(ok=True)
    except (gcp_exceptions.GoogleAPICallError, auth_exceptions.GoogleAuthError) as e:
        logger.warning("Storage 버킷 구성 실패 (계속 진행): %s", e)
        return BestEffortResult(ok=False, warning=f"Storage 버킷 구성 실패 ({bucket_name}): {e}")

    logger.info("Storage 버킷을 생성했습니다: %s (location=%s)", bucket_name, location)
    return BestEffortResult(ok=True)
