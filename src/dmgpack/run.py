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

"""Run context manager for dmgpack CLI runs.

Each invocation gets a run directory under the project's runs root holding
a JSONL event log, a summary.json and one log file per external tool. The
context also holds an exclusive lock on the runs root so that two pipelines
cannot share a checkout.
"""

from __future__ import annotations

import contextlib
import datetime
import fcntl
import json
import signal
import sys
import threading
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Any

from dmgpack.exceptions import ConfigError

LOCK_FILENAME = ".lock"


class RunContext:
    """Context manager that creates a run directory and records run events.

    Usage:
        with RunContext("package", paths.runs_root) as run:
            run.log_event({"event": "stage.build.start"})
            ...
    """

    def __init__(self, command: str, runs_root: Path, lock: bool = True) -> None:
        self.command = command
        self.runs_root = runs_root
        self.lock = lock
        now_utc = datetime.datetime.now(datetime.timezone.utc)
        self.run_id = now_utc.strftime("%Y%m%dT%H%M%SZ") + f"-{command}-" + uuid.uuid4().hex[:8]
        self.run_path = self.runs_root / self.run_id
        self.logs_path = self.run_path / "logs"
        self.events_file: IO[str] | None = None
        self._lock_file: IO[str] | None = None
        self.summary: dict[str, Any] = {"command": command, "start_utc": now_utc.isoformat()}

    def _acquire_lock(self) -> None:
        lock_path = self.runs_root / LOCK_FILENAME
        fd = lock_path.open("w")
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fd.close()
            raise ConfigError(
                message=f"Another dmgpack run holds {lock_path}; only one run per checkout is supported"
            ) from None
        self._lock_file = fd

    def _release_lock(self) -> None:
        if self._lock_file is None:
            return
        with contextlib.suppress(OSError):
            fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
        self._lock_file.close()
        self._lock_file = None

    def __enter__(self) -> RunContext:
        self.runs_root.mkdir(parents=True, exist_ok=True)
        if self.lock:
            self._acquire_lock()
        self.run_path.mkdir(parents=True, exist_ok=True)
        self.logs_path.mkdir(parents=True, exist_ok=True)
        self.events_file = (self.run_path / "events.jsonl").open("a", encoding="utf-8")
        self.log_event({"event": "run.start", "run_id": self.run_id, "command": self.command})
        return self

    def log_event(self, event: dict[str, Any]) -> None:
        """Write a JSONL event with a timestamp."""
        if self.events_file is None:  # pragma: no cover
            return
        payload = {"timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(), **event}
        self.events_file.write(json.dumps(payload, default=str) + "\n")
        self.events_file.flush()

    def tool_log(self, name: str) -> Path:
        """Return the log file path for an external tool invocation."""
        return self.logs_path / f"{name}.log"

    def write_summary(self, **kwargs: Any) -> None:
        self.summary.update(kwargs)
        (self.run_path / "summary.json").write_text(json.dumps(self.summary, indent=2, default=str))

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: object,
    ) -> bool | None:
        if exc is None:
            status = self.summary.get("status", "success")
        elif isinstance(exc, KeyboardInterrupt):
            status = "interrupted"
        else:
            status = "failed"
            self.summary["error"] = str(exc)

        self.summary["end_utc"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
        self.summary["status"] = status
        try:
            self.write_summary()
            with contextlib.suppress(Exception):
                self.log_event({"event": "run.end", "status": status})
        finally:
            if self.events_file is not None:
                self.events_file.close()
                self.events_file = None
            self._release_lock()

        # Do not suppress exceptions
        return None


# Activity lines go to the terminal as "[phase] description".

def activity(phase: str, description: str) -> None:
    with contextlib.suppress(Exception):
        print(f"[{phase}] {description}", file=sys.stdout, flush=True)


@contextlib.contextmanager
def interrupt_on_sigterm() -> Iterator[None]:
    """Deliver SIGTERM as KeyboardInterrupt so cleanup blocks still run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: object) -> None:
        raise KeyboardInterrupt(f"signal {signum}")

    previous = signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)
