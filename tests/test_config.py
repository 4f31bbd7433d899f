from __future__ import annotations

from pathlib import Path

import pytest

from appledisk.config import (
    DEFAULT_EXTENSIONS,
    AppConfig,
    ConfigError,
    DiskConfig,
    ExtractConfig,
    load_config,
)


def _write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "appledisk.toml"
    path.write_text(content, encoding="utf-8")
    return path


def test_defaults():
    config = AppConfig()

    assert config.disk == DiskConfig(
        max_chain_length=560,
        strict_chains=False,
        default_sectors_per_track=16,
        minimum_tracks=35,
    )
    assert config.extract.output is None
    assert config.extract.decode_text is True
    assert config.extract.list_basic is False
    assert config.extract.extensions == DEFAULT_EXTENSIONS


def test_empty_file_yields_defaults(tmp_path):
    assert load_config(_write_config(tmp_path, "")) == AppConfig()


def test_load_config_reads_both_sections(tmp_path):
    path = _write_config(
        tmp_path,
        """
[disk]
max_chain_length = 64
strict_chains = true
default_sectors_per_track = 13
minimum_tracks = 40

[extract]
output = "out"
decode_text = false
list_basic = true

[extract.extensions]
B = "bin65"
T = ".text"
""",
    )

    config = load_config(path)

    assert config.disk == DiskConfig(
        max_chain_length=64,
        strict_chains=True,
        default_sectors_per_track=13,
        minimum_tracks=40,
    )
    assert config.extract.output == (tmp_path / "out").resolve()
    assert config.extract.decode_text is False
    assert config.extract.list_basic is True
    assert config.extract.extension_for("B") == ".bin65"
    assert config.extract.extension_for("T") == ".text"
    assert config.extract.extension_for("A") == ".bas"


def test_absolute_output_is_kept(tmp_path):
    target = tmp_path / "elsewhere"
    path = _write_config(tmp_path, f'[extract]\noutput = "{target.as_posix()}"\n')
    assert load_config(path).extract.output == target


def test_unknown_type_uses_fallback_extension():
    assert ExtractConfig().extension_for("?") == ".dat"


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("[disk]\nmax_chain_length = 0\n", "must be positive"),
        ("[disk]\nmax_chain_length = \"many\"\n", "must be an integer"),
        ("[disk]\nmax_chain_length = true\n", "must be an integer"),
        ("[disk]\ndefault_sectors_per_track = 18\n", "13 or 16"),
        ("[disk]\nstrict_chains = 1\n", "true or false"),
        ("disk = 5\n", "must be a table"),
        ("[extract]\noutput = 3\n", "string path"),
        ("[extract]\nextensions = 3\n", "must be a table"),
        ("[extract.extensions]\nB = 4\n", "must be a string"),
        ("[disk\n", "invalid TOML"),
    ],
)
def test_invalid_configuration_raises(tmp_path, content, message):
    with pytest.raises(ConfigError, match=message):
        load_config(_write_config(tmp_path, content))


def test_extract_config_is_hashable_and_read_only():
    config = ExtractConfig(extensions={"B": ".bin"})

    assert hash(config) == hash(ExtractConfig(extensions={"B": ".obj"}))
    assert hash(AppConfig()) == hash(AppConfig())
    with pytest.raises(TypeError):
        config.extensions["B"] = ".obj"  # type: ignore[index]


def test_extract_config_copies_its_extension_map():
    extensions = {"B": ".bin"}
    config = ExtractConfig(extensions=extensions)
    extensions["B"] = ".obj"

    assert config.extension_for("B") == ".bin"
