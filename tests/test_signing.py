from __future__ import annotations

import base64
import os

import pytest

from firebase_kit import signing
from firebase_kit.errors import CommandFailedError


def _keystore_path(cmd) -> str:
    return cmd[cmd.index("-keystore") + 1]


def test_keystore_file_removed_after_success(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run(cmd, **kwargs):
        path = _keystore_path(cmd)
        with open(path, "wb") as f:
            f.write(b"keystore-bytes")
        seen["path"] = path
        seen["cmd"] = list(cmd)
        return None

    monkeypatch.setattr(signing, "run_command", fake_run)

    encoded = signing.build_keystore("acme-key", "com.acme", "acme", "store-pw", "key-pw")

    assert base64.b64decode(encoded) == b"keystore-bytes"
    assert not os.path.exists(seen["path"])
    assert not os.path.exists(os.path.dirname(seen["path"]))
    assert seen["cmd"][seen["cmd"].index("-keysize") + 1] == "2048"
    assert seen["cmd"][seen["cmd"].index("-validity") + 1] == "10000"


def test_keystore_file_removed_after_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run(cmd, **kwargs):
        path = _keystore_path(cmd)
        # 도구가 파일을 일부 쓰고 실패한 상황
        with open(path, "wb") as f:
            f.write(b"partial")
        seen["path"] = path
        raise CommandFailedError(cmd, returncode=1, stderr="keytool error")

    monkeypatch.setattr(signing, "run_command", fake_run)

    with pytest.raises(CommandFailedError):
        signing.build_keystore("acme-key", "com.acme", "acme", "store-pw", "key-pw")

    assert not os.path.exists(seen["path"])
    assert not os.path.exists(os.path.dirname(seen["path"]))


def test_dname_escapes_special_characters() -> None:
    dname = signing.build_dname("Acme, Inc", "com.acme")

    assert dname.startswith("CN=Acme\\, Inc, OU=com.acme, O=com.acme")


def test_escape_dn_value_leading_hash_and_trailing_space() -> None:
    assert signing.escape_dn_value("#x") == "\\#x"
    assert signing.escape_dn_value("a ") == "a\\ "


def test_signing_material_is_created_once(pulumi_mocks) -> None:
    import pulumi

    @pulumi.runtime.test
    def run():
        material = signing.generate_signing_material("acme-key", "com.acme", "acme")
        return material.keystore_base64

    run()

    assert pulumi_mocks.names().count("acme-key-keystore") == 1
    passwords = pulumi_mocks.of_type("random:index/randomPassword:RandomPassword")
    assert sorted(p.name for p in passwords) == ["acme-key-key-password", "acme-key-keystore-password"]
    for p in passwords:
        assert p.inputs["length"] == 32
