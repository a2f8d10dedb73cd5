import hashlib
from unittest import mock

import pytest

from margined_deploy import artifacts
from margined_deploy.artifacts import ArtifactStore, fetch_artifact

WASM = b"\x00asm\x01\x00\x00\x00"


def test_store_resolves_existing_artifact(tmp_path):
    (tmp_path / "margined_vamm.wasm").write_bytes(WASM)
    store = ArtifactStore(tmp_path)
    assert "margined_vamm.wasm" in store
    assert store.read("margined_vamm.wasm") == WASM


def test_store_missing_artifact(tmp_path):
    store = ArtifactStore(str(tmp_path))
    assert "margined_engine.wasm" not in store
    with pytest.raises(FileNotFoundError, match="margined_engine.wasm"):
        store.path("margined_engine.wasm")


def test_fetch_skips_present_file(tmp_path, monkeypatch):
    dest = tmp_path / "cw20_base.wasm"
    dest.write_bytes(WASM)
    get = mock.Mock()
    monkeypatch.setattr(artifacts.requests, "get", get)
    assert fetch_artifact("http://example.test/cw20_base.wasm", dest) == dest
    get.assert_not_called()


def test_fetch_writes_verified_download(tmp_path, monkeypatch):
    response = mock.Mock(content=WASM)
    monkeypatch.setattr(artifacts.requests, "get", mock.Mock(return_value=response))
    dest = tmp_path / "nested" / "cw20_base.wasm"
    digest = hashlib.sha256(WASM).hexdigest().upper()
    assert fetch_artifact("http://example.test/cw20_base.wasm", dest, sha256=digest) == dest
    assert dest.read_bytes() == WASM


def test_fetch_checksum_mismatch_leaves_no_file(tmp_path, monkeypatch):
    response = mock.Mock(content=WASM)
    monkeypatch.setattr(artifacts.requests, "get", mock.Mock(return_value=response))
    dest = tmp_path / "cw20_base.wasm"
    with pytest.raises(ValueError, match="Checksum mismatch"):
        fetch_artifact("http://example.test/cw20_base.wasm", dest, sha256="00" * 32)
    assert not dest.exists()
