"""
manifest
--------

스택 출력값을 평탄한 key -> value JSON 으로 저장한다.
secret 값도 파일에는 평문으로 들어가므로 파일 자체를 민감 정보로 다뤄야 한다.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Set


MANIFEST_FILE_NAME = "firebase-infrastructure-outputs.json"


@dataclass
class OutputManifest:
    values: Dict[str, Any] = field(default_factory=dict)
    secret_keys: Set[str] = field(default_factory=set)


def collect_manifest(outputs: Mapping[str, Any]) -> OutputManifest:
    """
    stack.outputs() 결과(OutputValue: .value/.secret)를 OutputManifest 로 모은다.
    일반 값이 섞여 들어와도 그대로 받아들인다.
    """
    manifest = OutputManifest()
    for key, output in outputs.items():
        value = getattr(output, "value", output)
        manifest.values[key] = value
        if getattr(output, "secret", False):
            manifest.secret_keys.add(key)
    return manifest


def write_manifest(manifest: OutputManifest, output_dir: str = ".") -> str:
    path = os.path.join(output_dir, MANIFEST_FILE_NAME)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest.values, f, indent=2, sort_keys=True)
        f.write("\n")
    return path
