"""Configuration management for crabgrab.

Configuration priority (highest to lowest):
1. CLI overrides (passed to load_config)
2. Environment variables (CRABGRAB_*)
3. Config file (~/.config/crabgrab/config.yaml)
4. Built-in defaults
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any

import yaml
from platformdirs import user_config_dir

APP_NAME = "crabgrab"
ENV_PREFIX = "CRABGRAB"
CONFIG_DIR = Path(user_config_dir(APP_NAME))
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"

log = logging.getLogger(__name__)


@dataclass
class Config:
    """crabgrab configuration."""

    # Capture
    backend: str = "wayland-capture"
    wayland_capture: str = "wayland-capture"
    capture_workers: int = 4
    max_texture_side: int = 2048

    # Output settings
    output_dir: Path = field(default_factory=lambda: Path.home() / "Pictures" / "screenshots")
    default_format: str = "png"
    default_quality: int = 90
    auto_save: bool = True

    # Feedback
    enable_sound: bool = True
    enable_notification: bool = True
    enable_clipboard: bool = True

    # Silent mode output (for scripting)
    silent_output_dir: Path = field(default_factory=lambda: Path("/tmp"))

    # Hooks
    hooks_dir: Optional[Path] = field(default_factory=lambda: CONFIG_DIR / "hooks")

    def __post_init__(self):
        # Convert string paths to Path objects
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)
        if isinstance(self.silent_output_dir, str):
            self.silent_output_dir = Path(self.silent_output_dir)
        if isinstance(self.hooks_dir, str):
            self.hooks_dir = Path(self.hooks_dir)


BACKENDS = {"wayland-capture", "mss"}
DEFAULT_FORMATS = {"png", "jpg", "jpeg", "webp"}
PATH_KEYS = {"output_dir", "silent_output_dir", "hooks_dir"}
INT_KEYS = {"capture_workers", "max_texture_side", "default_quality"}
BOOL_KEYS = {"auto_save", "enable_sound", "enable_notification", "enable_clipboard"}


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}_{name}")


def _config_path_from_env() -> Optional[Path]:
    value = _env("CONFIG") or _env("CONFIG_PATH")
    if value:
        return Path(value).expanduser()
    return None


def _load_config_file(path: Path, strict: bool = False) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        if strict:
            raise ValueError(f"Failed to parse config file {path}: {exc}")
        return {}

    if not isinstance(data, dict):
        if strict:
            raise ValueError(f"Config file {path} must be a mapping")
        return {}

    return data


def _expand_path(value: Any) -> Any:
    if value is None:
        return value
    return str(Path(value).expanduser())


def config_defaults() -> dict:
    return {
        "backend": "wayland-capture",
        "wayland_capture": "wayland-capture",
        "capture_workers": 4,
        "max_texture_side": 2048,
        "output_dir": str(Path.home() / "Pictures" / "screenshots"),
        "default_format": "png",
        "default_quality": 90,
        "auto_save": True,
        "enable_sound": True,
        "enable_notification": True,
        "enable_clipboard": True,
        "silent_output_dir": "/tmp",
        "hooks_dir": str(CONFIG_DIR / "hooks"),
    }


def _load_env_overrides() -> dict:
    config: dict[str, Any] = {}

    for key in config_defaults():
        value = _env(key.upper())
        if value is None:
            continue
        if key in PATH_KEYS:
            config[key] = _expand_path(value)
        elif key in INT_KEYS:
            try:
                config[key] = int(value)
            except ValueError:
                continue
        elif key in BOOL_KEYS:
            config[key] = value.lower() in ("true", "1", "yes", "on")
        else:
            config[key] = value

    return config


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    return config_path or _config_path_from_env() or DEFAULT_CONFIG_PATH


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict] = None,
    strict: bool = False,
) -> Config:
    """Load configuration from all sources."""
    resolved_path = resolve_config_path(config_path)

    config_dict = config_defaults()
    file_config = _load_config_file(resolved_path, strict=strict)
    config_dict.update({k: v for k, v in file_config.items() if k in config_dict})
    config_dict.update(_load_env_overrides())

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                config_dict[key] = value

    for key in PATH_KEYS:
        if key in config_dict and config_dict[key] is not None:
            config_dict[key] = _expand_path(config_dict[key])

    _apply_schema(config_dict, strict=strict)
    return Config(**config_dict)


def _apply_schema(config_dict: dict, strict: bool = False) -> None:
    """Replace values that fail the schema with their defaults.

    Raises:
        ValueError: In strict mode, instead of replacing
    """
    defaults = config_defaults()
    for key, value in list(config_dict.items()):
        errors = validate_config_dict({key: value})
        if not errors:
            continue
        if strict:
            raise ValueError("; ".join(errors))
        log.warning("Ignoring invalid config value (%s), using %r", "; ".join(errors), defaults[key])
        config_dict[key] = defaults[key]


# Global config instance (lazy loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace (or with None, reset) the global configuration instance."""
    global _config
    _config = config


def config_schema() -> dict:
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {
            "backend": {"type": "string", "enum": sorted(BACKENDS)},
            "wayland_capture": {"type": "string"},
            "capture_workers": {"type": "integer", "minimum": 1},
            "max_texture_side": {"type": "integer", "minimum": 1},
            "output_dir": {"type": "string"},
            "default_format": {"type": "string", "enum": sorted(DEFAULT_FORMATS)},
            "default_quality": {"type": "integer", "minimum": 1, "maximum": 100},
            "auto_save": {"type": "boolean"},
            "enable_sound": {"type": "boolean"},
            "enable_notification": {"type": "boolean"},
            "enable_clipboard": {"type": "boolean"},
            "silent_output_dir": {"type": "string"},
            "hooks_dir": {"type": ["string", "null"]},
        },
        "additionalProperties": False,
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config_dict(data: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Config must be a mapping/object"]

    schema = config_schema()
    props = schema.get("properties", {})
    allowed_keys = set(props.keys())

    for key in data.keys():
        if key not in allowed_keys:
            errors.append(f"Unknown config key: {key}")

    def check_type(key: str, value: Any, expected: str) -> None:
        if expected == "string" and not isinstance(value, str):
            errors.append(f"{key} must be a string")
        elif expected == "integer" and not _is_int(value):
            errors.append(f"{key} must be an integer")
        elif expected == "boolean" and not isinstance(value, bool):
            errors.append(f"{key} must be a boolean")

    for key, value in data.items():
        if key not in props:
            continue
        spec = props[key]
        expected = spec.get("type")
        if isinstance(expected, list):
            if value is None and "null" in expected:
                continue
            if "string" in expected and isinstance(value, str):
                continue
            errors.append(f"{key} must be one of types: {', '.join(expected)}")
            continue
        if isinstance(expected, str):
            check_type(key, value, expected)

        if "enum" in spec and isinstance(value, str) and value not in spec["enum"]:
            errors.append(f"{key} must be one of: {', '.join(spec['enum'])}")
        if _is_int(value):
            if "minimum" in spec and value < spec["minimum"]:
                errors.append(f"{key} must be >= {spec['minimum']}")
            if "maximum" in spec and value > spec["maximum"]:
                errors.append(f"{key} must be <= {spec['maximum']}")

    return errors


def validate_config_file(config_path: Optional[Path] = None) -> list[str]:
    path = resolve_config_path(config_path)
    if not path.exists():
        return []
    data = _load_config_file(path, strict=True)
    return validate_config_dict(data)


def config_to_dict(config: Config) -> dict:
    def _format(value: Any) -> Any:
        if isinstance(value, Path):
            return str(value)
        return value

    return {
        "backend": config.backend,
        "wayland_capture": config.wayland_capture,
        "capture_workers": config.capture_workers,
        "max_texture_side": config.max_texture_side,
        "output_dir": _format(config.output_dir),
        "default_format": config.default_format,
        "default_quality": config.default_quality,
        "auto_save": config.auto_save,
        "enable_sound": config.enable_sound,
        "enable_notification": config.enable_notification,
        "enable_clipboard": config.enable_clipboard,
        "silent_output_dir": _format(config.silent_output_dir),
        "hooks_dir": _format(config.hooks_dir) if config.hooks_dir else None,
    }
