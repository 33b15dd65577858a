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

"""External tool discovery for dmgpack.

Reports which of the build executable and the image-authoring tools are
present on the host, with install hints for the missing ones.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolCheck:
    """Result of checking for external tools."""

    tools: dict[str, Path | None] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    def is_complete(self) -> bool:
        """Return True if all checked tools are available."""
        return len(self.missing) == 0

    def get_path(self, tool: str) -> Path | None:
        """Get the path to a tool, or None if not found."""
        return self.tools.get(tool)


# Image tools in order of preference
IMAGE_TOOLS = [
    "create-dmg",
    "hdiutil",
]

INSTALL_INSTRUCTIONS: dict[str, str] = {
    "create-dmg": "brew install create-dmg",
    "hdiutil": "built into macOS",
    "pyinstaller": "pip install pyinstaller",
}


def find_tool(name: str, cwd: Path | None = None) -> Path | None:
    """Find an executable by name in PATH, or by path relative to cwd.

    Args:
        name: Tool name or path (e.g., ".venv/bin/pyinstaller").
        cwd: Directory that relative paths are resolved against.

    Returns:
        Path to the tool if found, None otherwise.
    """
    if "/" in name:
        candidate = Path(name)
        if not candidate.is_absolute() and cwd is not None:
            candidate = cwd / candidate
        found = shutil.which(str(candidate))
    else:
        found = shutil.which(name)
    if found:
        return Path(found)
    return None


def check_tools(build_executable: str | None = None, cwd: Path | None = None) -> ToolCheck:
    """Check for the build executable and the image-authoring tools.

    The image tools are alternatives, so they are only reported missing when
    none of them is present.
    """
    result = ToolCheck()

    if build_executable:
        path = find_tool(build_executable, cwd)
        result.tools[build_executable] = path
        if path is None:
            result.missing.append(build_executable)

    for tool in IMAGE_TOOLS:
        result.tools[tool] = find_tool(tool)
    if all(result.tools[tool] is None for tool in IMAGE_TOOLS):
        result.missing.extend(IMAGE_TOOLS)

    return result


def get_missing_tools_message(missing: list[str]) -> str:
    """Generate a user-friendly message for installing missing tools."""
    if not missing:
        return ""

    lines = ["The following tools are missing:"]
    for tool in missing:
        instruction = INSTALL_INSTRUCTIONS.get(Path(tool).name, f"Install {tool}")
        lines.append(f"  - {tool}: {instruction}")
    return "\n".join(lines)
