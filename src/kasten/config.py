"""KastenConfig: user configuration read from a TOML file.

Lookup order for the file: ``$KASTEN_CONFIG``, then
``~/.config/kasten/config.toml``.  A missing file means defaults.

Example::

    [kasten]
    root = "~/notes/zettelkasten"
    editor = "nvim"            # default: $VISUAL, then $EDITOR, then vi
    picker = "fzf"             # "fzf", "prompt" or any fzf-compatible command
    log_level = "INFO"

``$KASTEN_ROOT`` overrides ``root``.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kasten.editor import ExternalEditor, editor_from_env
from kasten.errors import ConfigError
from kasten.picker import DEFAULT_PICKER, Picker, picker_from_name

DEFAULT_ROOT = "~/.zettelkasten"
DEFAULT_CONFIG_PATH = "~/.config/kasten/config.toml"


@dataclass
class KastenConfig:
    root: Path = Path(DEFAULT_ROOT).expanduser()
    editor: str | None = None
    picker: str = DEFAULT_PICKER
    log_level: str = "WARNING"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KastenConfig":
        section = data.get("kasten", data)
        if not isinstance(section, dict):
            raise ConfigError("[kasten] must be a table")
        cfg = cls()
        if "root" in section:
            cfg.root = Path(str(section["root"])).expanduser()
        if section.get("editor"):
            cfg.editor = str(section["editor"])
        if section.get("picker"):
            cfg.picker = str(section["picker"])
        if "log_level" in section:
            cfg.log_level = str(section["log_level"]).upper()
        return cfg

    def make_editor(self) -> ExternalEditor:
        return ExternalEditor(self.editor) if self.editor else editor_from_env()

    def make_picker(self) -> Picker:
        return picker_from_name(self.picker)


def config_path(environ: dict[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    return Path(env.get("KASTEN_CONFIG") or DEFAULT_CONFIG_PATH).expanduser()


def load_config(path: Path | None = None, environ: dict[str, str] | None = None) -> KastenConfig:
    """Read the config file (if any) and apply environment overrides."""
    env = os.environ if environ is None else environ
    path = config_path(env) if path is None else Path(path)

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "rb") as fh:
                data = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"{path}: {exc.strerror or exc}") from exc

    cfg = KastenConfig.from_dict(data)
    if env.get("KASTEN_ROOT"):
        cfg.root = Path(env["KASTEN_ROOT"]).expanduser()
    return cfg
