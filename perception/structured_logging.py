"""Structured JSONL event log for extraction passes."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(slots=True)
class LogPaths:
    base: Path
    events: Path


class ExtractionEventLog:
    """Writes one JSON line per extraction pass."""

    def __init__(self, session_id: str, paths: LogPaths) -> None:
        self.session_id = session_id
        self.paths = paths
        self._step = 0
        self._events_file = paths.events.open("a", encoding="utf-8")

    def log_pass(
        self,
        *,
        mode: str,
        chunk: Optional[int],
        index_offset: int,
        candidate_count: int,
        duration_ms: float,
        document_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        self._step += 1
        payload = {
            "ts": time.time(),
            "session_id": self.session_id,
            "step": self._step,
            "mode": mode,
            "chunk": chunk,
            "index_offset": index_offset,
            "candidate_count": candidate_count,
            "duration_ms": round(duration_ms, 2),
            "document_id": document_id,
            "metadata": metadata or {},
        }
        self._events_file.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._events_file.flush()
        return self._step

    def close(self) -> None:
        try:
            self._events_file.close()
        except OSError:
            pass


def prepare_log_paths(session_id: str, log_root: Path) -> LogPaths:
    base_dir = log_root / session_id
    base_dir.mkdir(parents=True, exist_ok=True)
    return LogPaths(base=base_dir, events=base_dir / "events.jsonl")
