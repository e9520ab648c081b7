"""Configuration loader for the perception runtime."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict


DEFAULTS: Dict[str, Any] = {
    "settle_quiet_ms": 100,
    "visibility_slack": 1.0,
    "box_height_ratio": 0.75,
    "log_root": "runs",
    "event_log": False,
    "headless": True,
    "navigation_timeout_ms": 30000,
    "cdp_url": "",
    "server_port": 7000,
}

_TRUTHY = {"true", "1", "yes"}


@dataclass(slots=True)
class PerceptionConfig:
    settle_quiet_ms: int = DEFAULTS["settle_quiet_ms"]
    visibility_slack: float = DEFAULTS["visibility_slack"]
    box_height_ratio: float = DEFAULTS["box_height_ratio"]
    log_root: Path = field(default_factory=lambda: Path(DEFAULTS["log_root"]))
    event_log: bool = DEFAULTS["event_log"]
    headless: bool = DEFAULTS["headless"]
    navigation_timeout_ms: int = DEFAULTS["navigation_timeout_ms"]
    cdp_url: str = DEFAULTS["cdp_url"]
    server_port: int = DEFAULTS["server_port"]

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "PerceptionConfig":
        data = dict(DEFAULTS)
        data.update(mapping)
        return cls(
            settle_quiet_ms=max(0, int(data["settle_quiet_ms"])),
            visibility_slack=max(0.0, float(data["visibility_slack"])),
            box_height_ratio=float(data["box_height_ratio"]),
            log_root=Path(data["log_root"]),
            event_log=str(data["event_log"]).lower() in _TRUTHY,
            headless=str(data["headless"]).lower() in _TRUTHY,
            navigation_timeout_ms=int(data["navigation_timeout_ms"]),
            cdp_url=str(data["cdp_url"] or ""),
            server_port=int(data["server_port"]),
        )


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_config(config_path: Path | None = None) -> PerceptionConfig:
    """Load configuration from environment, optional TOML file, and defaults."""

    env_map: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if key.startswith("PERCEPTION_"):
            name = key[len("PERCEPTION_"):].lower()
            if name in DEFAULTS:
                env_map[name] = value

    path = config_path or Path("config.toml")
    file_map = _load_toml(path).get("perception", {})

    merged = {**file_map, **env_map}
    return PerceptionConfig.from_mapping(merged)
