"""Structured scan event logging (JSON lines)."""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, List, Optional, Set

from fpvscan.util.time import utc_now_str


class ScanLogger:
    """Append one JSON object per scan event to a log file and optional mirrors."""

    def __init__(self, log_path: Path, mirror_paths: Optional[List[Path]] = None):
        self.log_path = log_path
        self.mirror_paths: List[Path] = []
        self._ensure_parent(self.log_path)
        seen: Set[str] = {str(self.log_path)}
        for mirror in mirror_paths or []:
            resolved = mirror
            if not resolved.is_absolute():
                resolved = (Path.cwd() / resolved).absolute()
            if str(resolved) in seen:
                continue
            self._ensure_parent(resolved)
            self.mirror_paths.append(resolved)
            seen.add(str(resolved))
        self.run_id = f"run-{int(time.time() * 1000)}-pid{os.getpid()}"
        self.current_session: Optional[int] = None
        self._lock = threading.Lock()

    @staticmethod
    def _ensure_parent(path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

    @classmethod
    def from_path(cls, path: str, extra_targets: Optional[List[str]] = None) -> "ScanLogger":
        log_path = Path(path).expanduser()
        if not log_path.is_absolute():
            log_path = (Path.cwd() / log_path).absolute()
        extra_paths = [Path(target).expanduser() for target in extra_targets or [] if target]
        return cls(log_path, extra_paths)

    def start_session(self, session_id: int, **metadata: Any) -> None:
        self.current_session = session_id
        self.log("scan_start", **metadata)

    def log(self, event: str, **fields: Any) -> None:
        record = {
            "ts": utc_now_str(),
            "run_id": self.run_id,
            "session_id": self.current_session,
            "event": event,
            **fields,
        }
        line = json.dumps(record, default=str) + "\n"
        targets = [self.log_path] + self.mirror_paths
        with self._lock:
            for target in targets:
                try:
                    with target.open("a", encoding="utf-8") as fh:
                        fh.write(line)
                except OSError:
                    continue
