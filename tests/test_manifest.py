import json
from types import SimpleNamespace

from firebase_kit.manifest import MANIFEST_FILE_NAME, collect_manifest, write_manifest


def test_secret_keys_are_flagged_but_written_plain(tmp_path) -> None:
    outputs = {
        "firebase_project_id_dev": SimpleNamespace(value="acme-dev", secret=False),
        "service_account_key_dev": SimpleNamespace(value="a2V5", secret=True),
    }

    manifest = collect_manifest(outputs)

    assert manifest.secret_keys == {"service_account_key_dev"}

    path = write_manifest(manifest, str(tmp_path))

    assert path.endswith(MANIFEST_FILE_NAME)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data == {"firebase_project_id_dev": "acme-dev", "service_account_key_dev": "a2V5"}


def test_manifest_is_overwritten(tmp_path) -> None:
    write_manifest(collect_manifest({"a": 1}), str(tmp_path))
    path = write_manifest(collect_manifest({"b": 2}), str(tmp_path))

    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"b": 2}
