from fastapi import FastAPI, HTTPException, Request
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stepcoach import __version__
from stepcoach.coaching import CoachingInsightAnalyzer
from stepcoach.filter_matcher import (
    CATALOG_FIELDS,
    DEFAULT_VALUES,
    FILTER_TYPE_LABELS,
    OPERATOR_LABELS,
    OPERATORS_BY_TYPE,
    PLAY_RECORD_FIELDS,
    filter_records,
    generate_filter_name,
)
from stepcoach.goal_progress import GoalProgressCalculator
from stepcoach.hierarchy import DISPLAY_MODE_LAMP_MAP, GRADE_ORDER, LAMP_ORDER, reverse_transform_for
from stepcoach.mastery import PlayerMasteryAnalyzer
from stepcoach.records import normalize_catalog_chart, normalize_play_record, validate_goal

app = FastAPI(title="StepCoach", version=__version__)

goal_calculator = GoalProgressCalculator()
mastery_analyzer = PlayerMasteryAnalyzer()
coach = CoachingInsightAnalyzer()

FILTER_PREVIEW_LIMIT = 50


async def _read_payload(request: Request) -> dict:
    try:
        payload = await request.json()
    except Exception:
        payload = {}
    return payload if isinstance(payload, dict) else {}


def _rows(payload: dict, key: str) -> list:
    rows = payload.get(key) or []
    if not isinstance(rows, list):
        raise ValueError(f"{key} must be a list")
    return [row for row in rows if isinstance(row, dict)]


def _records(payload: dict) -> list[dict]:
    return [normalize_play_record(row) for row in _rows(payload, "records")]


def _catalog(payload: dict) -> list[dict]:
    return [normalize_catalog_chart(row) for row in _rows(payload, "catalog")]


@app.get("/api/hierarchies")
async def hierarchies() -> dict:
    return {
        "lamps": list(LAMP_ORDER),
        "grades": list(GRADE_ORDER),
        "display_mode_lamps": DISPLAY_MODE_LAMP_MAP,
        "filter_types": FILTER_TYPE_LABELS,
        "operators": OPERATOR_LABELS,
        "operators_by_type": {field: list(ops) for field, ops in OPERATORS_BY_TYPE.items()},
        "default_values": DEFAULT_VALUES,
    }


@app.post("/api/goal-progress")
async def goal_progress(request: Request) -> dict:
    payload = await _read_payload(request)
    if not isinstance(payload.get("goal"), dict):
        raise HTTPException(status_code=400, detail="goal is required")
    try:
        goal = validate_goal(payload["goal"])
        reverse = reverse_transform_for(bool(payload.get("display_mode")))
        progress = goal_calculator.evaluate(goal, _records(payload), _catalog(payload), reverse)
        return {"goal": goal, "progress": progress}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to evaluate goal: {str(e)}")


@app.post("/api/goal-progress/batch")
async def goal_progress_batch(request: Request) -> dict:
    payload = await _read_payload(request)
    goals = payload.get("goals")
    if not isinstance(goals, list) or not goals:
        raise HTTPException(status_code=400, detail="goals must be a non-empty list")
    try:
        validated = [validate_goal(goal) for goal in goals if isinstance(goal, dict)]
        reverse = reverse_transform_for(bool(payload.get("display_mode")))
        results = goal_calculator.evaluate_many(validated, _records(payload), _catalog(payload), reverse)
        return {"count": len(results), "results": {str(key): value for key, value in results.items()}}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to evaluate goals: {str(e)}")


@app.post("/api/mastery-profile")
async def mastery_profile(request: Request) -> dict:
    payload = await _read_payload(request)
    try:
        profile = mastery_analyzer.analyze(_records(payload), _catalog(payload))
        return {
            "profile": profile,
            "insights": coach.generate_insights(profile),
            "context": coach.build_profile_context(profile),
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to build mastery profile: {str(e)}")


@app.post("/api/filter-preview")
async def filter_preview(request: Request) -> dict:
    payload = await _read_payload(request)
    rules = payload.get("rules") or []
    if not isinstance(rules, list):
        raise HTTPException(status_code=400, detail="rules must be a list")
    kind = str(payload.get("kind") or "records").strip().lower()
    if kind not in ("records", "catalog"):
        raise HTTPException(status_code=400, detail="kind must be records or catalog")
    try:
        if kind == "catalog":
            rows, fields = _catalog(payload), CATALOG_FIELDS
        else:
            rows, fields = _records(payload), PLAY_RECORD_FIELDS
        matched = filter_records(rows, rules, payload.get("match_mode", "all"), fields)
        return {
            "name": generate_filter_name(rules),
            "kind": kind,
            "count": len(matched),
            "total": len(rows),
            "matches": matched[:FILTER_PREVIEW_LIMIT],
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to preview filter: {str(e)}")


if __name__ == "__main__":
    import uvicorn

    print("Starting StepCoach Web Server...")
    print("Open http://localhost:5000/docs in your browser")
    uvicorn.run(app, host="127.0.0.1", port=5000)
