from qetls.common.utils import colon_hex, expand_path, file_exists


def test_colon_hex():
    assert colon_hex("0a1bff") == "0A:1B:FF"


def test_expand_path_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert expand_path("~/ca.key") == tmp_path / "ca.key"


def test_expand_path_env_var(monkeypatch, tmp_path):
    monkeypatch.setenv("QETLS_TEST_DIR", str(tmp_path))
    assert expand_path("$QETLS_TEST_DIR/ca.crt") == tmp_path / "ca.crt"


def test_file_exists(tmp_path):
    f = tmp_path / "x.pem"
    assert not file_exists(f)
    assert not file_exists("")
    assert not file_exists(None)
    assert not file_exists(tmp_path)
    f.write_text("x")
    assert file_exists(f)
