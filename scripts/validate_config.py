"""
======================================================================
 TileRace Runtime, Version v0.3.0 (Build 2026.10)
======================================================================

Configuration validation script.

Validates shared/config/system.json and the board hazard file without
starting the runtime.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)
- Forward-compatible: unknown fields are ignored
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.race.errors import RaceError
from shared.config.board import default_board_path, parse_board


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "shared" / "config"


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"{path.name}: invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: root JSON value must be an object")
    return data


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

_SYSTEM_TYPES = {
    "observer": {
        "enabled": bool,
        "host": str,
        "port": int,
        "allow_origins": list,
        "max_pending": int,
    },
    "storage": {
        "state_dir": str,
        "journal_path": (str, type(None)),
        "export_enabled": bool,
    },
    "discord": {
        "enabled": bool,
        "token_env": str,
        "sync_guild_id": (int, type(None)),
        "logs_char_limit": int,
    },
    "board_reload": {
        "enabled": bool,
        "interval_seconds": (int, float),
    },
}


def system_config_errors(data: Dict[str, Any]) -> List[str]:
    """
    Type errors in a decoded system.json. Missing keys are allowed.
    """
    errors: List[str] = []

    for section, fields in _SYSTEM_TYPES.items():
        block = data.get(section)
        if block is None:
            continue
        if not isinstance(block, dict):
            errors.append(f"system.json: '{section}' must be an object")
            continue
        for key, expected in fields.items():
            if key not in block:
                continue
            value = block[key]
            if isinstance(value, bool) and expected is int:
                errors.append(f"system.json: '{section}.{key}' must be an integer")
            elif not isinstance(value, expected):
                errors.append(f"system.json: '{section}.{key}' has invalid type")

    port = (data.get("observer") or {}).get("port")
    if isinstance(port, int) and not isinstance(port, bool) and not 0 < port < 65536:
        errors.append("system.json: 'observer.port' must be between 1 and 65535")

    board_path = data.get("board_path")
    if board_path is not None and not isinstance(board_path, str):
        errors.append("system.json: 'board_path' must be a string")

    return errors


def validate_system_config(path: Optional[Path] = None) -> bool:
    path = path or CONFIG_DIR / "system.json"
    try:
        data = _load_json(path)
    except ValueError as e:
        _error(str(e))
        return False

    errors = system_config_errors(data)
    for msg in errors:
        _error(msg)
    return not errors


def validate_board_config(path: Optional[Path] = None) -> bool:
    path = path or default_board_path()
    try:
        data = _load_json(path)
        parse_board(data)
    except (ValueError, RaceError) as e:
        _error(f"{path.name}: {e}")
        return False
    return True


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate TileRace configuration")
    parser.add_argument("--system", type=Path, default=None, help="Path to system.json")
    parser.add_argument("--board", type=Path, default=None, help="Path to board.json")
    args = parser.parse_args(argv)

    ok = True

    if not validate_system_config(args.system):
        ok = False

    if not validate_board_config(args.board):
        ok = False

    if not ok:
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
