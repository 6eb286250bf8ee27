from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from shared.logging.logger import get_logger

log = get_logger("shared.config.system")

_CONFIG_PATH = Path(__file__).parent / "system.json"

# Must hold several full event batches.
MIN_MAX_PENDING = 16


@dataclass
class ObserverApiConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3001
    allow_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    max_pending: int = 256


@dataclass
class StorageConfig:
    state_dir: str = "shared/state"
    journal_path: Optional[str] = None
    export_enabled: bool = True


@dataclass
class DiscordConfig:
    enabled: bool = True
    token_env: str = "DISCORD_BOT_TOKEN"
    sync_guild_id: Optional[int] = None
    logs_char_limit: int = 2000


@dataclass
class BoardReloadConfig:
    enabled: bool = True
    interval_seconds: float = 5.0


@dataclass
class SystemConfig:
    observer: ObserverApiConfig = field(default_factory=ObserverApiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    board_reload: BoardReloadConfig = field(default_factory=BoardReloadConfig)
    board_path: Optional[str] = None


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.warning(f"system.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError) as e:
        log.warning(f"Failed to load system.json ({e}); using defaults")
        return {}


def _as_bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    log.warning(f"{key} must be boolean; defaulting to {str(default).lower()}")
    return default


def _as_int(raw: Dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        log.warning(f"{key} must be an integer; defaulting to {default}")
        return default


def _load_observer(raw: Optional[Dict[str, Any]]) -> ObserverApiConfig:
    if not isinstance(raw, dict):
        return ObserverApiConfig()

    origins = raw.get("allow_origins")
    if isinstance(origins, list) and all(isinstance(o, str) for o in origins):
        allow_origins = list(origins)
    else:
        if origins is not None:
            log.warning("allow_origins must be a list of strings; using defaults")
        allow_origins = ObserverApiConfig().allow_origins

    return ObserverApiConfig(
        enabled=_as_bool(raw, "enabled", ObserverApiConfig.enabled),
        host=str(raw.get("host", ObserverApiConfig.host)),
        port=_as_int(raw, "port", ObserverApiConfig.port),
        allow_origins=allow_origins,
        max_pending=_as_max_pending(raw),
    )


def _as_max_pending(raw: Dict[str, Any]) -> int:
    value = _as_int(raw, "max_pending", ObserverApiConfig.max_pending)
    if value < MIN_MAX_PENDING:
        log.warning(f"max_pending must be at least {MIN_MAX_PENDING}; using {MIN_MAX_PENDING}")
        return MIN_MAX_PENDING
    return value


def _load_storage(raw: Optional[Dict[str, Any]]) -> StorageConfig:
    if not isinstance(raw, dict):
        return StorageConfig()

    journal = raw.get("journal_path")
    return StorageConfig(
        state_dir=str(raw.get("state_dir", StorageConfig.state_dir)),
        journal_path=str(journal) if journal else None,
        export_enabled=_as_bool(raw, "export_enabled", StorageConfig.export_enabled),
    )


def _load_discord(raw: Optional[Dict[str, Any]]) -> DiscordConfig:
    if not isinstance(raw, dict):
        return DiscordConfig()

    guild = raw.get("sync_guild_id")
    try:
        guild_id = int(guild) if guild not in (None, "") else None
    except (TypeError, ValueError):
        log.warning("sync_guild_id must be an integer; syncing commands globally")
        guild_id = None

    return DiscordConfig(
        enabled=_as_bool(raw, "enabled", DiscordConfig.enabled),
        token_env=str(raw.get("token_env", DiscordConfig.token_env)),
        sync_guild_id=guild_id,
        logs_char_limit=max(10, _as_int(raw, "logs_char_limit", DiscordConfig.logs_char_limit)),
    )


def _load_board_reload(raw: Optional[Dict[str, Any]]) -> BoardReloadConfig:
    if not isinstance(raw, dict):
        return BoardReloadConfig()

    interval = raw.get("interval_seconds", BoardReloadConfig.interval_seconds)
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        log.warning(f"interval_seconds must be a number; defaulting to {BoardReloadConfig.interval_seconds}")
        interval = BoardReloadConfig.interval_seconds

    return BoardReloadConfig(
        enabled=_as_bool(raw, "enabled", BoardReloadConfig.enabled),
        interval_seconds=max(0.5, interval),
    )


def apply_env_overrides(cfg: SystemConfig) -> SystemConfig:
    """
    Environment wins over system.json (deploy-time overrides).
    """
    host = os.getenv("TILERACE_OBSERVER_HOST")
    if host:
        cfg.observer.host = host

    port = os.getenv("TILERACE_OBSERVER_PORT")
    if port:
        try:
            cfg.observer.port = int(port)
        except ValueError:
            log.warning(f"Invalid TILERACE_OBSERVER_PORT={port}; using {cfg.observer.port}")

    origins = os.getenv("TILERACE_ALLOW_ORIGINS")
    if origins:
        cfg.observer.allow_origins = [o.strip() for o in origins.split(",") if o.strip()]

    state_dir = os.getenv("TILERACE_STATE_DIR")
    if state_dir:
        cfg.storage.state_dir = state_dir

    journal = os.getenv("TILERACE_JOURNAL_PATH")
    if journal:
        cfg.storage.journal_path = journal

    board = os.getenv("TILERACE_BOARD_PATH")
    if board:
        cfg.board_path = board

    return cfg


def load_system_config(raw: Optional[Dict[str, Any]] = None, *, env: bool = True) -> SystemConfig:
    raw = raw if raw is not None else _load_json(_CONFIG_PATH)
    if not isinstance(raw, dict):
        raw = {}

    board_path = raw.get("board_path")
    cfg = SystemConfig(
        observer=_load_observer(raw.get("observer")),
        storage=_load_storage(raw.get("storage")),
        discord=_load_discord(raw.get("discord")),
        board_reload=_load_board_reload(raw.get("board_reload")),
        board_path=str(board_path) if board_path else None,
    )
    return apply_env_overrides(cfg) if env else cfg
