from pathlib import Path

from cardwallet.config import ensure_workspace, storage_path


def test_first_run_creates_conf(tmp_path: Path):
    paths, settings = ensure_workspace(tmp_path)

    assert (tmp_path / "var").is_dir()
    assert paths.conf_file == tmp_path / "local" / "cardwallet.conf"
    txt = paths.conf_file.read_text()
    assert 'api_base_url = "http://localhost:5002"' in txt
    assert settings.settle_delay == 1.5
    assert settings.max_retries == 3
    assert storage_path(paths, settings) == tmp_path / "var" / "storage.json"


def test_existing_conf_is_read(tmp_path: Path):
    conf = tmp_path / "local" / "cardwallet.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text('api_base_url = "https://cards.example.com/"\nsettle_delay = 0\ndefault_region = "us"\n')

    _, settings = ensure_workspace(tmp_path)

    assert settings.api_base_url == "https://cards.example.com"
    assert settings.settle_delay == 0
    assert settings.default_region == "US"
    assert settings.request_timeout == 10.0


def test_malformed_conf_falls_back_to_defaults(tmp_path: Path, caplog):
    conf = tmp_path / "local" / "cardwallet.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text("api_base_url = [unterminated\n")

    _, settings = ensure_workspace(tmp_path)

    assert settings.api_base_url == "http://localhost:5002"
    assert "malformed" in caplog.text.lower()


def test_absolute_storage_file(tmp_path: Path):
    paths, settings = ensure_workspace(tmp_path)
    settings.storage_file = str(tmp_path / "elsewhere.json")
    assert storage_path(paths, settings) == tmp_path / "elsewhere.json"
