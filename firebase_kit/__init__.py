"""
firebase_kit
------------

Flutter 앱용 멀티 환경(dev/staging/prod ...) Firebase 인프라 프로비저닝 CLI 패키지.
환경마다 GCP 프로젝트 + Firebase 백엔드를 만들고, Android 서명 키를 한 번 생성한 뒤
결과를 GitHub Actions secret 으로 등록한다. 실제 리소스 그래프 실행은 Pulumi 엔진이 담당한다.
"""

__all__ = [
    "config",
    "driver",
    "orchestrator",
]
