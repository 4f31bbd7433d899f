"""Configuration for disk traversal and file extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

import tomllib

from .floppy import DEFAULT_SECTORS_PER_TRACK, DEFAULT_TRACKS

# 35 tracks of 16 sectors: a chain longer than the disk must revisit a sector.
DEFAULT_MAX_CHAIN_LENGTH = DEFAULT_TRACKS * DEFAULT_SECTORS_PER_TRACK

DEFAULT_EXTENSIONS: Dict[str, str] = {
    "T": ".txt",
    "I": ".int",
    "A": ".bas",
    "B": ".bin",
    "R": ".rel",
    "S": ".s",
    "a": ".a",
    "b": ".b",
}
UNKNOWN_EXTENSION = ".dat"


class ConfigError(ValueError):
    """Raised when a configuration file fails validation."""


@dataclass(frozen=True)
class DiskConfig:
    """Traversal limits and geometry defaults used by :class:`AppleDisk`."""

    max_chain_length: int = DEFAULT_MAX_CHAIN_LENGTH
    strict_chains: bool = False
    default_sectors_per_track: int = DEFAULT_SECTORS_PER_TRACK
    minimum_tracks: int = DEFAULT_TRACKS


@dataclass(frozen=True)
class ExtractConfig:
    """Output settings for the extraction CLI."""

    output: Path | None = None
    decode_text: bool = True
    list_basic: bool = False
    extensions: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_EXTENSIONS), hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "extensions", MappingProxyType(dict(self.extensions)))

    def extension_for(self, type_code: str) -> str:
        return self.extensions.get(type_code, UNKNOWN_EXTENSION)


@dataclass(frozen=True)
class AppConfig:
    disk: DiskConfig = field(default_factory=DiskConfig)
    extract: ExtractConfig = field(default_factory=ExtractConfig)


def load_config(config_path: Path) -> AppConfig:
    """Parse and validate the TOML configuration at ``config_path``."""

    with config_path.open("rb") as stream:
        try:
            raw_data = tomllib.load(stream)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {config_path}: {exc}") from exc

    disk = _parse_disk_section(_table(raw_data, "disk"))
    extract = _parse_extract_section(_table(raw_data, "extract"), base=config_path.parent)
    return AppConfig(disk=disk, extract=extract)


def _table(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    table = data.get(name, {})
    if not isinstance(table, Mapping):
        raise ConfigError(f"[{name}] section must be a table")
    return table


def _parse_disk_section(section: Mapping[str, Any]) -> DiskConfig:
    defaults = DiskConfig()
    max_chain_length = _positive_int(
        section, "max_chain_length", defaults.max_chain_length
    )
    sectors = _positive_int(
        section, "default_sectors_per_track", defaults.default_sectors_per_track
    )
    if sectors not in (13, 16):
        raise ConfigError(f"default_sectors_per_track must be 13 or 16, received {sectors}")
    minimum_tracks = _positive_int(section, "minimum_tracks", defaults.minimum_tracks)
    return DiskConfig(
        max_chain_length=max_chain_length,
        strict_chains=_boolean(section, "strict_chains", defaults.strict_chains),
        default_sectors_per_track=sectors,
        minimum_tracks=minimum_tracks,
    )


def _parse_extract_section(section: Mapping[str, Any], *, base: Path) -> ExtractConfig:
    output = section.get("output")
    if output is not None:
        if not isinstance(output, str):
            raise ConfigError("extract.output must be a string path")
        output_path = Path(output).expanduser()
        if not output_path.is_absolute():
            output_path = (base / output_path).resolve()
    else:
        output_path = None

    extensions = dict(DEFAULT_EXTENSIONS)
    overrides = section.get("extensions", {})
    if not isinstance(overrides, Mapping):
        raise ConfigError("[extract.extensions] must be a table")
    for code, extension in overrides.items():
        if not isinstance(extension, str):
            raise ConfigError(f"extension for type {code!r} must be a string")
        if extension and not extension.startswith("."):
            extension = f".{extension}"
        extensions[code] = extension

    return ExtractConfig(
        output=output_path,
        decode_text=_boolean(section, "decode_text", True),
        list_basic=_boolean(section, "list_basic", False),
        extensions=extensions,
    )


def _positive_int(section: Mapping[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, received {value!r}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, received {value}")
    return value


def _boolean(section: Mapping[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, received {value!r}")
    return value


__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_EXTENSIONS",
    "DiskConfig",
    "ExtractConfig",
    "UNKNOWN_EXTENSION",
    "load_config",
]
