from pathlib import Path

import pytest
import yaml

from crabgrab.config import (
    Config,
    config_defaults,
    config_schema,
    config_to_dict,
    load_config,
    validate_config_dict,
    validate_config_file,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in config_defaults():
        monkeypatch.delenv(f"CRABGRAB_{key.upper()}", raising=False)
    monkeypatch.delenv("CRABGRAB_CONFIG", raising=False)
    monkeypatch.delenv("CRABGRAB_CONFIG_PATH", raising=False)


def write_config(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


def test_defaults_when_file_missing(tmp_path):
    config = load_config(config_path=tmp_path / "missing.yaml")

    assert config.backend == "wayland-capture"
    assert config.max_texture_side == 2048
    assert config.capture_workers == 4
    assert isinstance(config.output_dir, Path)


def test_file_values_are_applied(tmp_path):
    path = write_config(tmp_path / "config.yaml", {
        "backend": "mss",
        "max_texture_side": 4096,
        "output_dir": "~/shots",
        "not_a_key": 1,
    })

    config = load_config(config_path=path)

    assert config.backend == "mss"
    assert config.max_texture_side == 4096
    assert config.output_dir == Path("~/shots").expanduser()


def test_env_beats_file_and_overrides_beat_env(tmp_path, monkeypatch):
    path = write_config(tmp_path / "config.yaml", {"max_texture_side": 4096, "auto_save": True})
    monkeypatch.setenv("CRABGRAB_MAX_TEXTURE_SIDE", "1024")
    monkeypatch.setenv("CRABGRAB_AUTO_SAVE", "no")

    config = load_config(config_path=path)
    assert config.max_texture_side == 1024
    assert config.auto_save is False

    config = load_config(config_path=path, overrides={"max_texture_side": 512, "backend": None})
    assert config.max_texture_side == 512
    assert config.backend == "wayland-capture"


def test_config_path_from_env(tmp_path, monkeypatch):
    path = write_config(tmp_path / "elsewhere.yaml", {"default_format": "jpg"})
    monkeypatch.setenv("CRABGRAB_CONFIG", str(path))

    assert load_config().default_format == "jpg"


def test_broken_file_is_ignored_unless_strict(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("backend: [unclosed")

    assert load_config(config_path=path).backend == "wayland-capture"
    with pytest.raises(ValueError):
        load_config(config_path=path, strict=True)


def test_validate_reports_problems():
    errors = validate_config_dict({
        "backend": "x11",
        "max_texture_side": 0,
        "default_quality": 101,
        "auto_save": "yes",
        "bogus": True,
    })

    assert "backend must be one of: mss, wayland-capture" in errors
    assert "max_texture_side must be >= 1" in errors
    assert "default_quality must be <= 100" in errors
    assert "auto_save must be a boolean" in errors
    assert "Unknown config key: bogus" in errors


def test_validate_accepts_defaults(tmp_path):
    path = write_config(tmp_path / "config.yaml", config_defaults())

    assert validate_config_file(path) == []
    assert validate_config_dict([]) == ["Config must be a mapping/object"]


def test_schema_covers_every_default():
    assert set(config_schema()["properties"]) == set(config_defaults())


def test_config_to_dict_round_trips_through_load(tmp_path):
    original = Config(backend="mss", max_texture_side=300, output_dir=tmp_path)
    path = write_config(tmp_path / "config.yaml", config_to_dict(original))

    assert load_config(config_path=path) == original


def test_out_of_range_values_fall_back_to_defaults(tmp_path, monkeypatch, caplog):
    path = write_config(tmp_path / "config.yaml", {
        "max_texture_side": 0,
        "capture_workers": -3,
        "backend": "x11",
        "default_quality": 80,
    })
    monkeypatch.setenv("CRABGRAB_DEFAULT_QUALITY", "500")

    config = load_config(config_path=path)

    assert config.max_texture_side == 2048
    assert config.capture_workers == 4
    assert config.backend == "wayland-capture"
    assert config.default_quality == 90
    assert "max_texture_side must be >= 1" in caplog.text


def test_out_of_range_override_rejected_when_strict(tmp_path):
    with pytest.raises(ValueError, match="max_texture_side must be >= 1"):
        load_config(config_path=tmp_path / "missing.yaml", overrides={"max_texture_side": 0}, strict=True)
