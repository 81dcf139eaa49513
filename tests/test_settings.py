from pathlib import Path

import pytest

from gene_guidance.constants import DATA_DIR_ENV, DB_FILENAME
from gene_guidance.core.settings import (
    AppSettings,
    get_config_path,
    load_settings,
    resolve_data_dir,
    resolve_db_path,
    save_settings,
)


def test_settings_first_run_and_roundtrip(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)

    settings, first_run = load_settings()
    assert first_run is True
    assert settings.data_dir == str(tmp_path / ".gene_guidance" / "data")
    assert not get_config_path().exists()

    save_settings(AppSettings(data_dir=str(tmp_path / "store"), fetch_workers=2, log_level="DEBUG"))
    settings, first_run = load_settings()
    assert first_run is False
    assert settings.fetch_workers == 2
    assert resolve_db_path(settings) == (tmp_path / "store" / DB_FILENAME).resolve()


def test_data_dir_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "elsewhere"))
    settings = AppSettings(data_dir=str(tmp_path / "ignored"))
    assert resolve_data_dir(settings) == (tmp_path / "elsewhere").resolve()


def test_fetch_workers_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AppSettings(data_dir="x", fetch_workers=0)
