"""
stepcoach/records.py
====================
Boundary helpers for the JSON payloads the engines consume.

Play records, catalog charts and goals arrive from outside (uploads, the
song database, the goal editor). The engines never raise on bad data, so
anything out of range is dropped to None here with a warning instead of
being passed downstream.

Also hosts ``validate_goal``, the goal-creation check that the progress
engine deliberately does not perform itself.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from stepcoach.hierarchy import GRADE_ORDER, LAMP_ORDER, normalize_grade, normalize_lamp
from stepcoach.thresholds import MAX_FLARE, MAX_LEVEL, MAX_SCORE, MIN_LEVEL, MIN_SCORE

LOGGER = logging.getLogger(__name__)

TARGET_TYPES = ("lamp", "grade", "flare", "score")
GOAL_MODES = ("all", "count")
MATCH_MODES = ("all", "any")
SCORE_MODES = ("target", "average")

PATTERN_METRICS = ("crossovers", "footswitches", "jacks", "notes", "bpm")


def _to_int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _bounded(name: str, value: Any, low: int, high: int) -> int | None:
    number = _to_int(value)
    if number is None:
        if value not in (None, ""):
            LOGGER.warning("Unparseable %s %r; treating as missing.", name, value)
        return None
    if number < low or number > high:
        LOGGER.warning("%s %s outside %s-%s; treating as missing.", name, number, low, high)
        return None
    return number


def parse_flare(value: Any) -> int | None:
    """Flare level 0-10; 'EX' means 10."""
    if isinstance(value, str) and value.strip().lower() == "ex":
        return MAX_FLARE
    return _bounded("flare", value, 0, MAX_FLARE)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def song_key(row: dict) -> tuple | None:
    """(song id, upper-cased difficulty), or None without a song id."""
    if row.get("song_id") is None:
        return None
    return (row["song_id"], (row.get("difficulty") or "").upper())


def same_chart(left: dict, right: dict) -> bool:
    """
    Whether two rows describe the same chart.

    Chart ids decide when both rows carry one; (song id, difficulty) is only
    consulted when a side has no chart id, since single and double charts can
    share a song and difficulty name.
    """
    if left.get("chart_id") is not None and right.get("chart_id") is not None:
        return left["chart_id"] == right["chart_id"]
    key = song_key(left)
    return key is not None and key == song_key(right)


class ChartIndex:
    """Values filed by chart, looked up with the same rules as ``same_chart``."""

    def __init__(self):
        self._by_chart: dict[Any, list] = {}
        self._by_song: dict[tuple, list] = {}
        self._by_song_without_chart: dict[tuple, list] = {}

    def add(self, row: dict, value: Any) -> None:
        key = song_key(row)
        if row.get("chart_id") is not None:
            self._by_chart.setdefault(row["chart_id"], []).append(value)
        elif key is not None:
            self._by_song_without_chart.setdefault(key, []).append(value)
        if key is not None:
            self._by_song.setdefault(key, []).append(value)

    def find(self, row: dict) -> list:
        """Every value filed under a chart that ``same_chart`` would pair with ``row``."""
        key = song_key(row)
        if row.get("chart_id") is None:
            return list(self._by_song.get(key, [])) if key is not None else []
        found = list(self._by_chart.get(row["chart_id"], []))
        if key is not None:
            found.extend(self._by_song_without_chart.get(key, []))
        return found

    def __contains__(self, row: dict) -> bool:
        return bool(self.find(row))


def normalize_play_record(raw: dict) -> dict:
    """Coerce one raw play record into the canonical shape."""
    lamp = normalize_lamp(_text(raw.get("lamp", raw.get("halo"))))
    if lamp is not None and lamp not in LAMP_ORDER:
        LOGGER.warning("Unknown lamp %r; keeping as-is.", lamp)
    grade = normalize_grade(_text(raw.get("grade", raw.get("rank"))))
    if grade is not None and grade not in GRADE_ORDER:
        LOGGER.warning("Unknown grade %r; keeping as-is.", grade)

    difficulty = _text(raw.get("difficulty", raw.get("difficulty_name")))
    return {
        "id": raw.get("id"),
        "score": _bounded("score", raw.get("score"), MIN_SCORE, MAX_SCORE),
        "grade": grade,
        "lamp": lamp,
        "flare": parse_flare(raw.get("flare")),
        "song_id": raw.get("song_id"),
        "chart_id": raw.get("chart_id"),
        "title": _text(raw.get("title", raw.get("name"))),
        "artist": _text(raw.get("artist")),
        "difficulty": difficulty.upper() if difficulty else None,
        "level": _bounded("level", raw.get("level", raw.get("difficulty_level")), MIN_LEVEL, MAX_LEVEL),
        "era": _to_int(raw.get("era")),
    }


def normalize_catalog_chart(raw: dict) -> dict:
    """Coerce one raw catalog row (optionally joined with pattern metrics)."""
    difficulty = _text(raw.get("difficulty", raw.get("difficulty_name")))
    chart = {
        "song_id": raw.get("song_id"),
        "chart_id": raw.get("chart_id", raw.get("id")),
        "title": _text(raw.get("title", raw.get("name"))),
        "artist": _text(raw.get("artist")),
        "difficulty": difficulty.upper() if difficulty else None,
        "level": _bounded("level", raw.get("level", raw.get("difficulty_level")), MIN_LEVEL, MAX_LEVEL),
        "era": _to_int(raw.get("era")),
    }
    for metric in PATTERN_METRICS:
        chart[metric] = _to_int(raw.get(metric))
    return chart


def validate_goal(goal: dict) -> dict:
    """
    Check a goal at the creation boundary and return a normalized copy.

    Raises:
        ValueError: unknown target type/modes, a non-numeric score or flare
            target, or a non-positive count in count mode.
    """
    target_type = str(goal.get("target_type") or "").lower()
    if target_type not in TARGET_TYPES:
        raise ValueError(f"Unknown goal target type: {goal.get('target_type')!r}")

    target_value = goal.get("target_value")
    if target_value is None or str(target_value).strip() == "":
        raise ValueError("Goal target value is required")
    if target_type == "score" and _to_int(target_value) is None:
        raise ValueError(f"Score target must be numeric: {target_value!r}")
    if target_type == "flare" and parse_flare(target_value) is None:
        raise ValueError(f"Flare target must be 0-10 or EX: {target_value!r}")

    goal_mode = str(goal.get("goal_mode") or "all").lower()
    if goal_mode not in GOAL_MODES:
        raise ValueError(f"Unknown goal mode: {goal.get('goal_mode')!r}")
    goal_count = _to_int(goal.get("goal_count"))
    if goal_mode == "count" and (goal_count is None or goal_count <= 0):
        raise ValueError("Count goals need a positive goal_count")

    match_mode = str(goal.get("criteria_match_mode") or "all").lower()
    if match_mode not in MATCH_MODES:
        raise ValueError(f"Unknown criteria match mode: {goal.get('criteria_match_mode')!r}")

    score_mode = str(goal.get("score_mode") or "target").lower()
    if score_mode not in SCORE_MODES:
        raise ValueError(f"Unknown score mode: {goal.get('score_mode')!r}")

    rules = goal.get("criteria_rules") or []
    if not isinstance(rules, list):
        raise ValueError("criteria_rules must be a list")

    return {
        **goal,
        "target_type": target_type,
        "target_value": str(target_value).strip(),
        "criteria_rules": rules,
        "criteria_match_mode": match_mode,
        "goal_mode": goal_mode,
        "goal_count": goal_count,
        "score_mode": score_mode,
    }


def load_json_rows(path: str | Path) -> list[dict]:
    """Load a JSON array of objects (or ``{"rows": [...]}``) from disk."""
    with Path(path).open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)
    if isinstance(data, dict):
        data = data.get("rows", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of objects")
    return [row for row in data if isinstance(row, dict)]


def load_play_records(path: str | Path) -> list[dict]:
    return [normalize_play_record(row) for row in load_json_rows(path)]


def load_catalog(path: str | Path) -> list[dict]:
    return [normalize_catalog_chart(row) for row in load_json_rows(path)]
