from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import Dict, Optional, TypeAlias
import tomllib

from pydantic import BaseModel, Field, ValidationError, field_validator

from datacompat.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "datacompat.toml"
PYPROJECT_NAME = "pyproject.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

DEFAULT_FLOAT_TYPES: Dict[str, str] = {
    "float": "0.0",
    "numpy.float32": "0.0",
    "numpy.float64": "0.0",
}


class DataCompatSettings(BaseModel):
    marker_suffix: str = "Data"
    float_types: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_FLOAT_TYPES))
    check_mandatory_in_build: bool = True
    max_rounds: int = 10
    output_dir: Optional[str] = None
    header: str = "Generated by datacompat. Do not edit."

    @field_validator("marker_suffix")
    @classmethod
    def _suffix_is_identifier(cls, value: str) -> str:
        if value and not value.isidentifier():
            raise ValueError(f"marker_suffix must be an identifier fragment, got {value!r}")
        return value

    @field_validator("max_rounds")
    @classmethod
    def _positive_rounds(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_rounds must be at least 1")
        return value


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    """Return the raw datacompat table.

    An explicit ``config_path`` wins. Otherwise ``datacompat.toml`` under
    ``root`` is used, falling back to ``[tool.datacompat]`` in
    ``pyproject.toml``.
    """
    base = root if root is not None else Path.cwd()
    if config_path is not None:
        data = _load_toml(config_path)
        if config_path.name == PYPROJECT_NAME:
            return _tool_section(data)
        section = data.get("datacompat", data)
        return section if isinstance(section, dict) else {}
    data = _load_toml(base / DEFAULT_CONFIG_NAME)
    if data:
        section = data.get("datacompat", {})
        return section if isinstance(section, dict) else {}
    return _tool_section(_load_toml(base / PYPROJECT_NAME))


def _tool_section(data: TomlTable) -> TomlTable:
    tool = data.get("tool", {})
    if not isinstance(tool, dict):
        return {}
    section = tool.get("datacompat", {})
    return section if isinstance(section, dict) else {}


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def load_settings(
    root: Path | None = None,
    config_path: Path | None = None,
    overrides: TomlTable | None = None,
) -> DataCompatSettings:
    defaults = load_config(root=root, config_path=config_path)
    merged = merge_payload(overrides or {}, defaults)
    float_types = merged.get("float_types")
    if isinstance(float_types, dict):
        merged["float_types"] = {**DEFAULT_FLOAT_TYPES, **float_types}
    try:
        return DataCompatSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DataCompatSettings",
    "load_config",
    "load_settings",
    "merge_payload",
]
