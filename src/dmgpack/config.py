# This file is part of dmgpack, a tool for packaging desktop applications as macOS disk images.
#
# Copyright 2025 Canonical Ltd.
#
# SPDX-License-Identifier: GPL-3.0-only
#
# dmgpack is free software: you can redistribute it and/or modify it under
# the terms of the GNU General Public License version 3, as published by the
# Free Software Foundation.
#
# dmgpack is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE. See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with
# dmgpack. If not, see <http://www.gnu.org/licenses/>.

"""Configuration utilities for dmgpack.

Configuration lives in ``dmgpack.yaml`` at the project root. Values found
there are merged section by section over DEFAULT_CONFIG, so a project only
needs to spell out what differs from the defaults.
"""

from __future__ import annotations

import copy
import json
import shlex
from pathlib import Path
from typing import Any

import yaml

from dmgpack.exceptions import ConfigError

CONFIG_FILENAME = "dmgpack.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "name": "KaTrain",
        "install_link": "/Applications",
    },
    "version": {
        "source": "katrain/core/constants.py",
        "symbol": "VERSION",
        "plist_key": "CFBundleShortVersionString",
    },
    "build": {
        "command": [
            ".venv/bin/pyinstaller",
            "spec/KaTrain.spec",
            "--clean",
            "--noconfirm",
            "--log-level",
            "WARN",
        ],
        "version_env": "KATRAIN_VERSION",
    },
    "paths": {
        "dist": "dist",
        "build": "build",
        "staging": "dmg_temp",
        "output": ".",
        "runs_root": ".dmgpack/runs",
    },
    "dmg": {
        "extension": "dmg",
        "volname": None,
        "volicon": "katrain/img/icon.icns",
        "window_pos": [200, 120],
        "window_size": [800, 400],
        "icon_size": 100,
        "icon_pos": [200, 190],
        "app_drop_link": [600, 185],
        "format": "UDZO",
    },
    "clean": {
        "exclude": [".venv", ".git", "node_modules"],
    },
    "behavior": {
        "tool_timeout": None,
        "lock": True,
    },
}


def get_config_path(project_root: Path) -> Path:
    """Return the path to the project's config file."""
    return project_root / CONFIG_FILENAME


def write_default_config(project_root: Path) -> bool:
    """Create the config file with defaults if it does not exist.

    Returns True if a file was written.
    """
    cfg_path = get_config_path(project_root)
    if cfg_path.exists():
        return False
    cfg_path.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))
    return True


DMG_PAIR_KEYS = ("window_pos", "window_size", "icon_pos", "app_drop_link")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_dmg_layout(dmg: dict[str, Any], cfg_path: Path) -> None:
    """Raise ConfigError unless the Finder layout values are integers."""
    for key in DMG_PAIR_KEYS:
        value = dmg.get(key)
        if value is None:
            continue
        if not isinstance(value, list) or len(value) != 2 or not all(_is_int(v) for v in value):
            raise ConfigError(
                message=f"dmg.{key} in {cfg_path} must be a pair of integers, got {value!r}"
            )
    icon_size = dmg.get("icon_size")
    if not _is_int(icon_size):
        raise ConfigError(message=f"dmg.icon_size in {cfg_path} must be an integer, got {icon_size!r}")


def load_config(project_root: Path) -> dict[str, Any]:
    """Load the project configuration and merge it with defaults.

    A missing file yields the defaults. A file that is not valid YAML, or
    whose top level is not a mapping, raises ConfigError, as do an empty
    build command and non-integer Finder layout values.
    """
    cfg_path = get_config_path(project_root)
    raw: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            loaded = yaml.safe_load(cfg_path.read_text())
        except yaml.YAMLError as e:
            raise ConfigError(message=f"Invalid YAML in {cfg_path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(message=f"{cfg_path} must contain a mapping at the top level")
        raw = loaded

    unknown = sorted(set(raw) - set(DEFAULT_CONFIG))
    if unknown:
        raise ConfigError(message=f"Unknown section(s) in {cfg_path}: {', '.join(unknown)}")

    # Shallow merge per top-level section.
    merged: dict[str, Any] = {}
    for key, val in DEFAULT_CONFIG.items():
        section = raw.get(key)
        if section is None:
            merged[key] = copy.deepcopy(val)
        elif isinstance(section, dict):
            merged[key] = {**copy.deepcopy(val), **section}
        else:
            raise ConfigError(message=f"Section '{key}' in {cfg_path} must be a mapping")

    command = merged["build"]["command"]
    if isinstance(command, str):
        command = merged["build"]["command"] = shlex.split(command)
    if not isinstance(command, list) or not command:
        raise ConfigError(message="build.command must be a non-empty list or string")

    _check_dmg_layout(merged["dmg"], cfg_path)

    return merged


if __name__ == "__main__":
    # Basic smoke-check
    print(json.dumps(load_config(Path.cwd()), indent=2))
