# tests/helpers.py

from typing import Any, Dict, List, Optional


def make_record(chart_id: Any, /, score: Optional[int] = 950000, lamp: Optional[str] = 'clear',
                grade: Optional[str] = 'AA', level: Optional[int] = 16, flare: Optional[int] = None,
                difficulty: str = 'EXPERT', title: Optional[str] = None, **extra) -> Dict[str, Any]:
    """Build a canonical play record for chart ``chart_id``."""
    record = {
        'id': f'rec-{chart_id}',
        'score': score,
        'grade': grade,
        'lamp': lamp,
        'flare': flare,
        'song_id': f'song-{chart_id}',
        'chart_id': chart_id,
        'title': title or f'Song {chart_id}',
        'artist': 'Test Artist',
        'difficulty': difficulty,
        'level': level,
        'era': None,
    }
    record.update(extra)
    return record


def make_chart(chart_id: Any, level: int = 16, difficulty: str = 'EXPERT', **metrics) -> Dict[str, Any]:
    """Build a catalog chart; pattern metrics default to None."""
    chart = {
        'song_id': f'song-{chart_id}',
        'chart_id': chart_id,
        'title': f'Song {chart_id}',
        'artist': 'Test Artist',
        'difficulty': difficulty,
        'level': level,
        'era': None,
        'crossovers': None,
        'footswitches': None,
        'jacks': None,
        'notes': None,
        'bpm': None,
    }
    chart.update(metrics)
    return chart


def make_goal(target_type: str = 'lamp', target_value: Any = 'pfc',
              rules: Optional[List[Dict[str, Any]]] = None, match_mode: str = 'all',
              goal_mode: str = 'all', goal_count: Optional[int] = None,
              score_mode: str = 'target', goal_id: str = 'goal-1') -> Dict[str, Any]:
    return {
        'id': goal_id,
        'name': f'{target_type} {target_value}',
        'target_type': target_type,
        'target_value': target_value,
        'criteria_rules': rules or [],
        'criteria_match_mode': match_mode,
        'goal_mode': goal_mode,
        'goal_count': goal_count,
        'score_mode': score_mode,
    }


def level_records(level: int, lamps: List[str], scores: List[int],
                  grades: Optional[List[str]] = None, prefix: str = '') -> List[Dict[str, Any]]:
    """One record per lamp at ``level``; chart ids are unique per call prefix."""
    grades = grades or ['AA'] * len(lamps)
    return [
        make_record(f'{prefix}{level}-{i}', score=score, lamp=lamp, grade=grade, level=level)
        for i, (lamp, score, grade) in enumerate(zip(lamps, scores, grades))
    ]
