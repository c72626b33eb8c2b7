# stepcoach/mastery.py

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import math
import statistics

from stepcoach.hierarchy import FC_OR_BETTER, NOT_CLEARED, normalize_grade, normalize_lamp
from stepcoach.records import ChartIndex
from stepcoach.thresholds import (
    ADVANCED_FC_CEILING,
    ADVANCED_PFC_CEILING,
    CEILING_FLOOR,
    CLEAR_CEILING_MIN_PLAYS,
    CLEAR_CEILING_RATE,
    CRUSHING_AAA_RATE,
    CRUSHING_MAX_STDDEV,
    CRUSHING_PFC_RATE,
    ELITE_LV17_PFC_CEILING,
    ELITE_LV17_PFC_RATE,
    ELITE_PFC_CEILING,
    FC_CEILING_MIN_COUNT,
    INTERMEDIATE_CLEAR_CEILING,
    INTERMEDIATE_PFC_CEILING,
    MASTERY_MIN_LEVEL,
    MAX_LEVEL,
    MAX_SCORE,
    MIN_LEVEL,
    MIN_SCORE,
    PFC_CEILING_MIN_COUNT,
    PROFICIENCY_CONSISTENCY_SCALE,
    PROFICIENCY_DEFAULT_THRESHOLD,
    PROFICIENCY_LEVEL_WINDOW,
    PROFICIENCY_METRIC_THRESHOLDS,
    PROFICIENCY_NEUTRAL,
    PROFICIENCY_SKILL_SCALE,
    PUSHING_AAA_RATE,
    PUSHING_FC_RATE,
    SOLID_AAA_RATE,
    SOLID_PFC_RATE,
    SPEED_FAST_BPM,
    SPEED_SLOW_BPM,
    SURVIVAL_CLEAR_RATE,
)

LOGGER = logging.getLogger(__name__)

MASTERY_TIERS = ('crushing', 'solid', 'pushing', 'survival', 'untouched')
PLAYER_STAGES = ('elite', 'advanced', 'intermediate', 'developing')

Rule = Tuple[Callable[[Dict[str, Any]], bool], str]

# Ordered (predicate, outcome) tables; the first matching row wins.
MASTERY_TIER_RULES: Sequence[Rule] = (
    (lambda lm: (lm['pfc_rate'] >= CRUSHING_PFC_RATE
                 and lm['aaa_rate'] >= CRUSHING_AAA_RATE
                 and lm['score_stddev'] < CRUSHING_MAX_STDDEV), 'crushing'),
    (lambda lm: lm['pfc_rate'] >= SOLID_PFC_RATE or lm['aaa_rate'] >= SOLID_AAA_RATE, 'solid'),
    (lambda lm: lm['fc_rate'] >= PUSHING_FC_RATE and lm['aaa_rate'] >= PUSHING_AAA_RATE, 'pushing'),
    (lambda lm: lm['clear_rate'] >= SURVIVAL_CLEAR_RATE, 'survival'),
)

PLAYER_STAGE_RULES: Sequence[Rule] = (
    (lambda c: c['pfc_ceiling'] >= ELITE_PFC_CEILING, 'elite'),
    (lambda c: c['lv17_pfc_rate'] > ELITE_LV17_PFC_RATE and c['pfc_ceiling'] >= ELITE_LV17_PFC_CEILING, 'elite'),
    (lambda c: c['pfc_ceiling'] >= ADVANCED_PFC_CEILING or c['fc_ceiling'] >= ADVANCED_FC_CEILING, 'advanced'),
    (lambda c: (c['pfc_ceiling'] >= INTERMEDIATE_PFC_CEILING
                or c['clear_ceiling'] >= INTERMEDIATE_CLEAR_CEILING), 'intermediate'),
)

# name -> catalog metric feeding it; speed is bucketed on bpm separately
PROFICIENCY_METRICS = (
    ('crossovers', 'crossovers'),
    ('footswitches', 'footswitches'),
    ('stamina', 'notes'),
    ('jacks', 'jacks'),
)


def first_match(rules: Sequence[Rule], subject: Dict[str, Any], default: str) -> str:
    """Outcome of the first rule whose predicate holds for ``subject``."""
    for predicate, outcome in rules:
        if predicate(subject):
            return outcome
    return default


class PlayerMasteryAnalyzer:
    """Derive a PlayerMasteryProfile from a complete play history."""

    @staticmethod
    def _safe_div(numerator: float, denominator: float) -> float:
        """Safely divide and return 0.0 on zero denominator."""
        return numerator / denominator if denominator > 0 else 0.0

    @staticmethod
    def _round_half_up(value: float) -> int:
        return int(math.floor(value + 0.5))

    @staticmethod
    def _clamp(value: int, low: int = 1, high: int = 10) -> int:
        return max(low, min(high, value))

    @staticmethod
    def _stddev(values: List[float]) -> float:
        """Population standard deviation; 0 below two samples."""
        if len(values) < 2:
            return 0.0
        return statistics.pstdev(values)

    @staticmethod
    def _level_of(row: Dict[str, Any]) -> Optional[int]:
        level = row.get('level')
        if isinstance(level, bool) or not isinstance(level, int):
            return None
        if level < MIN_LEVEL or level > MAX_LEVEL:
            return None
        return level

    @staticmethod
    def _score_of(record: Dict[str, Any]) -> Optional[int]:
        score = record.get('score')
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None
        if score < MIN_SCORE or score > MAX_SCORE:
            LOGGER.warning("Ignoring out-of-range score %s.", score)
            return None
        return int(score)

    def _played(self, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [r for r in records if self._score_of(r) is not None]

    # Per-level aggregation
    def calculate_level_mastery(self, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Aggregate played records at level >= 12 into per-level stats, ascending."""
        by_level: Dict[int, Dict[str, Any]] = {}
        for record in self._played(records):
            level = self._level_of(record)
            if level is None or level < MASTERY_MIN_LEVEL:
                continue

            bucket = by_level.setdefault(level, {
                'scores': [], 'clears': 0, 'fc': 0, 'gfc': 0, 'pfc': 0, 'mfc': 0, 'aaa': 0,
            })
            bucket['scores'].append(self._score_of(record))

            lamp = normalize_lamp(record.get('lamp')) or ''
            if lamp not in NOT_CLEARED:
                bucket['clears'] += 1
            if lamp in FC_OR_BETTER:
                bucket[lamp] += 1
            if normalize_grade(record.get('grade')) == 'AAA':
                bucket['aaa'] += 1

        mastery = []
        for level in sorted(by_level):
            bucket = by_level[level]
            played = len(bucket['scores'])
            pfc_or_better = bucket['pfc'] + bucket['mfc']
            fc_or_better = bucket['fc'] + bucket['gfc'] + pfc_or_better

            level_stats = {
                'level': level,
                'played': played,
                'avg_score': self._round_half_up(self._safe_div(sum(bucket['scores']), played)),
                'score_stddev': self._round_half_up(self._stddev(bucket['scores'])),
                'clear_rate': self._safe_div(bucket['clears'], played),
                'fc_rate': self._safe_div(fc_or_better, played),
                'pfc_rate': self._safe_div(pfc_or_better, played),
                'aaa_rate': self._safe_div(bucket['aaa'], played),
                'clear_count': bucket['clears'],
                'fc_count': bucket['fc'],
                'gfc_count': bucket['gfc'],
                'pfc_count': bucket['pfc'],
                'mfc_count': bucket['mfc'],
                'fc_or_better': fc_or_better,
                'pfc_or_better': pfc_or_better,
                'aaa_count': bucket['aaa'],
            }
            level_stats['mastery_tier'] = self.mastery_tier(level_stats)
            mastery.append(level_stats)
        return mastery

    def mastery_tier(self, level_stats: Dict[str, Any]) -> str:
        return first_match(MASTERY_TIER_RULES, level_stats, 'untouched')

    # Ceilings / stage
    def calculate_ceilings(self, level_mastery: List[Dict[str, Any]]) -> Dict[str, int]:
        """Highest level clearing each sample threshold; never below the floor."""
        clear_levels = [
            lm['level'] for lm in level_mastery
            if lm['clear_rate'] > CLEAR_CEILING_RATE and lm['played'] >= CLEAR_CEILING_MIN_PLAYS
        ]
        fc_levels = [lm['level'] for lm in level_mastery if lm['fc_or_better'] >= FC_CEILING_MIN_COUNT]
        pfc_levels = [lm['level'] for lm in level_mastery if lm['pfc_or_better'] >= PFC_CEILING_MIN_COUNT]
        return {
            'clear_ceiling': max(clear_levels, default=CEILING_FLOOR),
            'fc_ceiling': max(fc_levels, default=CEILING_FLOOR),
            'pfc_ceiling': max(pfc_levels, default=CEILING_FLOOR),
        }

    def detect_player_stage(self, ceilings: Dict[str, int], level_mastery: List[Dict[str, Any]]) -> str:
        lv17 = next((lm for lm in level_mastery if lm['level'] == 17), None)
        context = dict(ceilings, lv17_pfc_rate=lv17['pfc_rate'] if lv17 else 0.0)
        return first_match(PLAYER_STAGE_RULES, context, 'developing')

    def calculate_comfort_ceiling(self, level_mastery: List[Dict[str, Any]]) -> int:
        """Highest level where the player is solid or crushing."""
        comfortable = [lm['level'] for lm in level_mastery if lm['mastery_tier'] in ('crushing', 'solid')]
        return max(comfortable, default=CEILING_FLOOR)

    # Proficiency
    def best_scores(self, records: Iterable[Dict[str, Any]]) -> ChartIndex:
        """Every in-range score filed by chart; lookups take the max."""
        best = ChartIndex()
        for record in self._played(records):
            best.add(record, self._score_of(record))
        return best

    @staticmethod
    def _scores_for(charts: List[Dict[str, Any]], best: ChartIndex) -> List[int]:
        scores = []
        for chart in charts:
            found = best.find(chart)
            if found:
                scores.append(max(found))
        return scores

    def _charts_near(self, catalog: Iterable[Dict[str, Any]], pfc_ceiling: int) -> List[Dict[str, Any]]:
        window = PROFICIENCY_LEVEL_WINDOW
        return [
            chart for chart in catalog
            if self._level_of(chart) is not None
            and pfc_ceiling - window <= chart['level'] <= pfc_ceiling + window
        ]

    def _bucket_proficiency(self, high_charts: List[Dict[str, Any]], low_charts: List[Dict[str, Any]],
                            best: ChartIndex) -> Dict[str, int]:
        neutral = {'score': PROFICIENCY_NEUTRAL, 'consistency': PROFICIENCY_NEUTRAL}
        if not high_charts or not low_charts:
            return neutral

        high_scores = self._scores_for(high_charts, best)
        low_scores = self._scores_for(low_charts, best)
        if not high_scores or not low_scores:
            return neutral

        mean_high = sum(high_scores) / len(high_scores)
        mean_low = sum(low_scores) / len(low_scores)
        skill = self._round_half_up(PROFICIENCY_NEUTRAL + (mean_high - mean_low) / PROFICIENCY_SKILL_SCALE)
        consistency = self._round_half_up(10 - self._stddev(high_scores) / PROFICIENCY_CONSISTENCY_SCALE)
        return {'score': self._clamp(skill), 'consistency': self._clamp(consistency)}

    def calculate_proficiency(self, best: ChartIndex, catalog: Iterable[Dict[str, Any]],
                              pfc_ceiling: int, metric: str) -> Dict[str, int]:
        """
        Skill and consistency (1-10) on charts heavy in ``metric``.

        Compares best scores on high-demand charts against low-demand charts
        within one level of the PFC ceiling. Either bucket empty gives (5, 5).
        """
        high_min, low_max = PROFICIENCY_METRIC_THRESHOLDS.get(metric, PROFICIENCY_DEFAULT_THRESHOLD)
        nearby = self._charts_near(catalog, pfc_ceiling)
        high = [c for c in nearby if c.get(metric) is not None and c[metric] >= high_min]
        low = [c for c in nearby if c.get(metric) is not None and c[metric] < low_max]
        return self._bucket_proficiency(high, low, best)

    def calculate_speed_proficiency(self, best: ChartIndex, catalog: Iterable[Dict[str, Any]],
                                    pfc_ceiling: int) -> Dict[str, int]:
        nearby = self._charts_near(catalog, pfc_ceiling)
        fast = [c for c in nearby if c.get('bpm') is not None and c['bpm'] >= SPEED_FAST_BPM]
        slow = [c for c in nearby if c.get('bpm') is not None and c['bpm'] < SPEED_SLOW_BPM]
        return self._bucket_proficiency(fast, slow, best)

    # Totals
    def calculate_total_stats(self, records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
        """Lamp and AAA totals across every level."""
        totals = {
            'total_played': 0, 'total_mfcs': 0, 'total_pfcs': 0, 'total_gfcs': 0,
            'total_fcs': 0, 'total_life4s': 0, 'total_clears': 0, 'total_aaas': 0,
        }
        for record in self._played(records):
            lamp = normalize_lamp(record.get('lamp')) or ''
            totals['total_played'] += 1
            if lamp in ('mfc', 'pfc', 'gfc', 'fc', 'life4'):
                totals[f'total_{lamp}s'] += 1
            if lamp not in NOT_CLEARED:
                totals['total_clears'] += 1
            if normalize_grade(record.get('grade')) == 'AAA':
                totals['total_aaas'] += 1
        return totals

    def calculate_catalog_counts(self, catalog: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        by_level: Dict[int, int] = {}
        total = 0
        for chart in catalog:
            total += 1
            level = self._level_of(chart)
            if level is not None:
                by_level[level] = by_level.get(level, 0) + 1
        return {'by_level': dict(sorted(by_level.items())), 'total': total}

    def analyze(self, records: List[Dict[str, Any]],
                catalog: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Build the PlayerMasteryProfile.

        Args:
            records: Complete play history (not a page of it).
            catalog: Catalog charts joined with pattern metrics
                (crossovers, footswitches, jacks, notes, bpm).

        Returns:
            Profile dict: player_stage, ceilings, comfort_ceiling, play counts,
            level_mastery, proficiencies, total_stats and catalog_counts.
        """
        records = records or []
        catalog = catalog or []

        level_mastery = self.calculate_level_mastery(records)
        ceilings = self.calculate_ceilings(level_mastery)
        stage = self.detect_player_stage(ceilings, level_mastery)

        best = self.best_scores(records)
        pfc_ceiling = ceilings['pfc_ceiling']
        proficiencies = {
            name: self.calculate_proficiency(best, catalog, pfc_ceiling, metric)
            for name, metric in PROFICIENCY_METRICS
        }
        proficiencies['speed'] = self.calculate_speed_proficiency(best, catalog, pfc_ceiling)

        played = self._played(records)
        level12_plus = [r for r in played if (self._level_of(r) or 0) >= MASTERY_MIN_LEVEL]

        return {
            'player_stage': stage,
            'clear_ceiling': ceilings['clear_ceiling'],
            'fc_ceiling': ceilings['fc_ceiling'],
            'pfc_ceiling': pfc_ceiling,
            'comfort_ceiling': self.calculate_comfort_ceiling(level_mastery),
            'total_plays': len(played),
            'level12_plus_plays': len(level12_plus),
            'level_mastery': level_mastery,
            'proficiencies': proficiencies,
            'total_stats': self.calculate_total_stats(records),
            'catalog_counts': self.calculate_catalog_counts(catalog),
        }
