# stepcoach/goal_progress.py

from typing import Any, Dict, Iterable, List, Optional
import logging
import math

from stepcoach.filter_matcher import (
    CATALOG_FIELDS,
    OUTCOME_FIELDS,
    PLAY_RECORD_FIELDS,
    filter_records,
)
from stepcoach.hierarchy import (
    GRADE_ORDER,
    LAMP_ORDER,
    ReverseTransform,
    grade_distance_label,
    grade_index,
    grade_meets,
    lamp_distance_label,
    lamp_index,
    lamp_meets,
)
from stepcoach.records import ChartIndex, parse_flare
from stepcoach.thresholds import AVERAGE_ROUNDING_STEP, SUGGESTION_LIMIT

LOGGER = logging.getLogger(__name__)


class GoalProgressCalculator:
    """Measure a goal against a player's records and the chart catalog."""

    @staticmethod
    def _safe_div(numerator: float, denominator: float) -> float:
        """Safely divide and return 0.0 on zero denominator."""
        return numerator / denominator if denominator > 0 else 0.0

    @staticmethod
    def _to_int(value: Any, default: int = 0) -> int:
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _round_half_up(value: float, step: int = 1) -> int:
        return int(math.floor(value / step + 0.5)) * step

    @staticmethod
    def is_unplayed(record: Dict[str, Any]) -> bool:
        return bool(record.get('unplayed')) or record.get('score') is None

    def _target_flare(self, target_value: Any) -> int:
        flare = parse_flare(target_value)
        return flare if flare is not None else 0

    @staticmethod
    def _effective_lamp_target(target_value: str, reverse_transform: Optional[ReverseTransform]) -> str:
        if reverse_transform is None:
            return target_value
        return reverse_transform(target_value) or target_value

    def meets_target(self, record: Dict[str, Any], target_type: str, target_value: Any,
                     reverse_transform: Optional[ReverseTransform] = None) -> bool:
        """
        Whether one record achieves the target.

        Args:
            record: Play record dict.
            target_type: lamp | grade | flare | score.
            target_value: Target as the player chose it.
            reverse_transform: Maps a displayed lamp back to its stored lamp when
                the player has display mode on; None otherwise.
        """
        if self.is_unplayed(record):
            return False

        if target_type == 'lamp':
            if not record.get('lamp'):
                return False
            return lamp_meets(record['lamp'], self._effective_lamp_target(str(target_value), reverse_transform))
        if target_type == 'grade':
            if not record.get('grade'):
                return False
            return grade_meets(record['grade'], str(target_value))
        if target_type == 'flare':
            if record.get('flare') is None:
                return False
            return record['flare'] >= self._target_flare(target_value)
        if target_type == 'score':
            return record['score'] >= self._to_int(target_value)
        return False

    def proximity_score(self, record: Dict[str, Any], target_type: str, target_value: Any,
                        reverse_transform: Optional[ReverseTransform] = None) -> float:
        """0-100 closeness to the target; 100 when achieved, 0 when unplayed."""
        if self.is_unplayed(record):
            return 0.0
        if self.meets_target(record, target_type, target_value, reverse_transform):
            return 100.0

        if target_type in ('lamp', 'grade'):
            if target_type == 'lamp':
                actual = record.get('lamp')
                order_len = len(LAMP_ORDER)
                actual_idx = lamp_index(actual)
                target_idx = lamp_index(self._effective_lamp_target(str(target_value), reverse_transform))
            else:
                actual = record.get('grade')
                order_len = len(GRADE_ORDER)
                actual_idx = grade_index(actual)
                target_idx = grade_index(target_value)
            if not actual:
                return 5.0
            if actual_idx == -1 or target_idx == -1:
                return 0.0
            steps = actual_idx - target_idx
            return max(0.0, 100.0 - self._safe_div(steps, order_len - 1) * 100.0)

        if target_type == 'flare':
            if record.get('flare') is None:
                return 5.0
            return self._safe_div(record['flare'], self._target_flare(target_value)) * 100.0
        if target_type == 'score':
            return self._safe_div(record['score'], self._to_int(target_value)) * 100.0
        return 0.0

    def proximity_label(self, record: Dict[str, Any], target_type: str, target_value: Any,
                        reverse_transform: Optional[ReverseTransform] = None) -> Optional[str]:
        """Short "how far" label; None once the target is reached."""
        if self.is_unplayed(record):
            return 'Not yet played'

        if target_type == 'lamp':
            if not record.get('lamp'):
                return 'Needs clear'
            shown = str(target_value)
            return lamp_distance_label(record['lamp'], self._effective_lamp_target(shown, reverse_transform), shown)
        if target_type == 'grade':
            if not record.get('grade'):
                return 'Needs grade'
            return grade_distance_label(record['grade'], str(target_value))
        if target_type == 'flare':
            if record.get('flare') is None:
                return 'Needs flare'
            diff = self._target_flare(target_value) - record['flare']
            if diff <= 0:
                return None
            return '1 flare level away' if diff == 1 else f'{diff} flare levels away'
        if target_type == 'score':
            diff = self._to_int(target_value) - record['score']
            if diff <= 0:
                return None
            return f'{diff:,} points away'
        return None

    def _closeness_key(self, target_type: str):
        """Sort key for unachieved records: closest to the target first, unplayed last."""
        def key(entry: Dict[str, Any]):
            if entry.get('unplayed'):
                return (1, 1, 0)
            if target_type in ('score', 'flare'):
                raw = entry.get(target_type)
                return (0, raw is None, -(raw or 0))
            idx = lamp_index(entry.get('lamp')) if target_type == 'lamp' else grade_index(entry.get('grade'))
            return (0, idx == -1, idx)
        return key

    def _decorate(self, record: Dict[str, Any], target_type: str, target_value: Any,
                  reverse_transform: Optional[ReverseTransform]) -> Dict[str, Any]:
        entry = dict(record)
        entry['unplayed'] = self.is_unplayed(record)
        entry['proximity'] = round(self.proximity_score(record, target_type, target_value, reverse_transform), 1)
        entry['proximity_label'] = self.proximity_label(record, target_type, target_value, reverse_transform)
        return entry

    @staticmethod
    def _eligibility_rules(rules: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # Outcome rules are vacuous for catalog charts; drop them so they
        # cannot widen an ANY rule set to the whole catalog.
        chart_rules = [r for r in rules if str(r.get('type') or '').lower() not in OUTCOME_FIELDS]
        return chart_rules or rules

    def synthesize_unplayed(self, goal: Dict[str, Any], records: Iterable[Dict[str, Any]],
                            catalog: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Eligible catalog charts the player has no record for, as unplayed entries."""
        played = ChartIndex()
        for record in records:
            played.add(record, record)

        rules = self._eligibility_rules(goal.get('criteria_rules') or [])
        eligible = filter_records(catalog, rules, goal.get('criteria_match_mode', 'all'), CATALOG_FIELDS)

        unplayed = []
        for chart in eligible:
            if chart in played:
                continue
            unplayed.append({
                'song_id': chart.get('song_id'),
                'chart_id': chart.get('chart_id'),
                'title': chart.get('title'),
                'artist': chart.get('artist'),
                'difficulty': chart.get('difficulty'),
                'level': chart.get('level'),
                'era': chart.get('era'),
                'score': None,
                'grade': None,
                'lamp': None,
                'flare': None,
                'unplayed': True,
                'proximity': 0.0,
                'proximity_label': 'Not yet played',
            })
        return unplayed

    def _empty_result(self, goal: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'goal_id': goal.get('id'),
            'current': 0,
            'total': 0,
            'achieved': [],
            'remaining': [],
            'suggested': [],
            'unplayed_count': 0,
        }

    def _evaluate_average(self, goal: Dict[str, Any], matching: List[Dict[str, Any]]) -> Dict[str, Any]:
        target = self._to_int(goal.get('target_value'))
        played = [r for r in matching if not self.is_unplayed(r)]

        average = self._safe_div(sum(r['score'] for r in played), len(played))
        current = self._round_half_up(average, AVERAGE_ROUNDING_STEP) if played else 0

        by_score = sorted(played, key=lambda r: r['score'], reverse=True)
        result = self._empty_result(goal)
        result.update({
            'score_mode': 'average',
            'current': current,
            'total': target,
            'played_count': len(played),
            'above_target': [dict(r) for r in by_score if r['score'] >= target],
            'below_target': [dict(r) for r in by_score if r['score'] < target],
        })
        return result

    def evaluate(self, goal: Dict[str, Any], records: List[Dict[str, Any]],
                 catalog: Optional[List[Dict[str, Any]]] = None,
                 reverse_transform: Optional[ReverseTransform] = None) -> Dict[str, Any]:
        """
        Progress of one goal.

        Args:
            goal: Goal dict (target_type, target_value, criteria_rules,
                criteria_match_mode, goal_mode, goal_count, score_mode).
            records: The player's complete play history.
            catalog: Chart catalog snapshot; eligible charts without a record
                are added to ``remaining`` as unplayed.
            reverse_transform: Display-mode inverse for lamp targets, or None.

        Returns:
            Dict with current, total, achieved, remaining and suggested lists.
            Average-score goals return above_target/below_target instead of an
            achieved/remaining partition.
        """
        records = records or []
        target_type = str(goal.get('target_type') or '').lower()
        target_value = goal.get('target_value')
        rules = goal.get('criteria_rules') or []
        match_mode = goal.get('criteria_match_mode', 'all')

        matching = filter_records(records, rules, match_mode, PLAY_RECORD_FIELDS)

        if target_type == 'score' and str(goal.get('score_mode') or '').lower() == 'average':
            return self._evaluate_average(goal, matching)

        achieved = []
        unachieved = []
        for record in matching:
            entry = self._decorate(record, target_type, target_value, reverse_transform)
            if self.meets_target(record, target_type, target_value, reverse_transform):
                achieved.append(entry)
            else:
                unachieved.append(entry)
        unachieved.sort(key=self._closeness_key(target_type))

        synthesized = self.synthesize_unplayed(goal, records, catalog) if catalog else []
        remaining = unachieved + synthesized

        goal_mode = str(goal.get('goal_mode') or 'all').lower()
        if goal_mode == 'count':
            total = max(self._to_int(goal.get('goal_count')), 0)
            current = min(len(achieved), total) if total > 0 else 0
            suggested = remaining[:SUGGESTION_LIMIT]
        else:
            total = len(matching) + len(synthesized)
            current = len(achieved)
            suggested = []

        LOGGER.debug(
            "Goal %s: %s/%s (%s matching records, %s unplayed charts)",
            goal.get('id'), current, total, len(matching), len(synthesized),
        )

        result = self._empty_result(goal)
        result.update({
            'score_mode': 'target',
            'goal_mode': goal_mode,
            'current': current,
            'total': total,
            'achieved': achieved,
            'remaining': remaining,
            'suggested': suggested,
            'unplayed_count': sum(1 for entry in remaining if entry['unplayed']),
        })
        return result

    def evaluate_many(self, goals: List[Dict[str, Any]], records: List[Dict[str, Any]],
                      catalog: Optional[List[Dict[str, Any]]] = None,
                      reverse_transform: Optional[ReverseTransform] = None) -> Dict[Any, Dict[str, Any]]:
        """Evaluate several goals over the same history, keyed by goal id."""
        results = {}
        for index, goal in enumerate(goals):
            goal_id = goal.get('id', index)
            results[goal_id] = self.evaluate(goal, records, catalog, reverse_transform)
        return results
