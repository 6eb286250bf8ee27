"""
Board hazard configuration loader.

The settings surface (dashboard) edits stops, chutes and ladders and saves
them as JSON. Unlike the rest of the runtime config, an invalid board is not
papered over with defaults: overlapping or out-of-range hazards would make
roll resolution ambiguous, so loading fails loudly.

Expected shape (same lists the dashboard settings dialog edits):
{
    "stops": [12, 40],
    "chutes": [{"position": 50, "distance": 10}],
    "ladders": [{"position": 8, "distance": 20}]
}
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from core.race.board import BoardHazards, hazards_from_lists
from core.race.errors import InvalidHazardConfig
from shared.logging.logger import get_logger

log = get_logger("shared.config.board")

_CONFIG_PATH = Path(__file__).parent / "board.json"
ENV_KEY = "TILERACE_BOARD_PATH"


def default_board_path() -> Path:
    override = os.getenv(ENV_KEY)
    return Path(override) if override else _CONFIG_PATH


def _pairs(kind: str, raw: Any) -> List[Tuple[int, int]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidHazardConfig(f"{kind} must be a list, got {type(raw).__name__}")

    pairs: List[Tuple[int, int]] = []
    for entry in raw:
        if isinstance(entry, dict):
            position = entry.get("position")
            distance = entry.get("distance")
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            position, distance = entry
        else:
            raise InvalidHazardConfig(f"Invalid {kind} entry: {entry!r}")
        pairs.append((position, distance))
    return pairs


def parse_board(raw: Optional[Dict[str, Any]]) -> BoardHazards:
    """
    Build BoardHazards from a decoded board document.

    Raises InvalidHazardConfig / OutOfRange on bad input.
    """
    if not raw:
        return BoardHazards.empty()
    if not isinstance(raw, dict):
        raise InvalidHazardConfig("Board config root must be an object")

    stops = raw.get("stops") or []
    if not isinstance(stops, list):
        raise InvalidHazardConfig(f"stops must be a list, got {type(stops).__name__}")

    return hazards_from_lists(
        stops=stops,
        chutes=_pairs("chutes", raw.get("chutes")),
        ladders=_pairs("ladders", raw.get("ladders")),
    )


def load_board(path: Path | str | None = None) -> BoardHazards:
    """
    Load hazards from disk. A missing file means an empty board.
    """
    path = Path(path) if path else default_board_path()

    if not path.exists():
        log.warning(f"board.json not found at {path}; using an empty board")
        return BoardHazards.empty()

    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidHazardConfig(f"{path}: invalid JSON ({e})") from e

    hazards = parse_board(raw)
    log.info(
        f"Loaded board from {path}: stops={len(hazards.stops)} "
        f"chutes={len(hazards.chutes)} ladders={len(hazards.ladders)}"
    )
    return hazards


def save_board(hazards: BoardHazards, path: Path | str | None = None) -> Path:
    path = Path(path) if path else default_board_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(hazards.to_document(), indent=2), encoding="utf-8")
    return path
