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

"""Resolve the authoritative application version from source.

The version constant is read by parsing the declaring module with ``ast``.
The module is never imported, so resolution has no side effects and does
not depend on anything the build produced.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from pathlib import Path

from packaging.version import InvalidVersion, Version

from dmgpack.exceptions import ResolutionError

logger = logging.getLogger(__name__)


def _assigned_string(node: ast.stmt, symbol: str) -> ast.expr | None:
    """Return the value expression if node assigns symbol at module level."""
    if isinstance(node, ast.Assign):
        for target in node.targets:
            if isinstance(target, ast.Name) and target.id == symbol:
                return node.value
    elif isinstance(node, ast.AnnAssign):
        if isinstance(node.target, ast.Name) and node.target.id == symbol and node.value is not None:
            return node.value
    return None


def validate_version(value: str) -> str:
    """Return value stripped if it parses as a version, else raise ResolutionError."""
    text = value.strip()
    try:
        Version(text)
    except InvalidVersion as e:
        raise ResolutionError(message=f"'{value}' is not a valid version string") from e
    return text


@dataclass(frozen=True)
class VersionResolver:
    """Reads a module-level string constant declaring the application version.

    Attributes:
        source: Python file declaring the constant.
        symbol: Name of the constant (e.g., "VERSION").
    """

    source: Path
    symbol: str = "VERSION"

    def resolve(self) -> str:
        """Return the declared version.

        Raises:
            ResolutionError: If the file cannot be read or parsed, the
                constant is missing or not a string literal, or its value
                is not a valid version.
        """
        try:
            text = self.source.read_text(encoding="utf-8")
        except OSError as e:
            raise ResolutionError(message=f"Cannot read version source {self.source}: {e}") from e

        try:
            tree = ast.parse(text, filename=str(self.source))
        except SyntaxError as e:
            raise ResolutionError(message=f"Cannot parse version source {self.source}: {e}") from e

        value: ast.expr | None = None
        for node in tree.body:
            found = _assigned_string(node, self.symbol)
            if found is not None:
                # Last assignment wins, as it would at import time.
                value = found

        if value is None:
            raise ResolutionError(message=f"{self.symbol} is not declared in {self.source}")
        if not isinstance(value, ast.Constant) or not isinstance(value.value, str):
            raise ResolutionError(
                message=f"{self.symbol} in {self.source} must be assigned a string literal"
            )

        version = validate_version(value.value)
        logger.debug(f"Resolved {self.symbol}={version} from {self.source}")
        return version
