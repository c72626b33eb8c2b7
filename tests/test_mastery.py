import pytest

from stepcoach.mastery import (
    MASTERY_TIER_RULES,
    PLAYER_STAGE_RULES,
    PlayerMasteryAnalyzer,
    first_match,
)
from stepcoach.records import ChartIndex
from tests.helpers import level_records, make_chart, make_record


def _level_stats(**overrides):
    stats = {
        'level': 15, 'played': 10, 'pfc_rate': 0.0, 'aaa_rate': 0.0,
        'fc_rate': 0.0, 'clear_rate': 0.0, 'score_stddev': 0,
    }
    stats.update(overrides)
    return stats


class TestMasteryTier:
    @pytest.fixture
    def analyzer(self):
        return PlayerMasteryAnalyzer()

    def test_crushing_example(self, analyzer):
        # 5 plays, 2 PFCs, 4 AAAs, scores with a population stddev of 80,000
        records = level_records(
            15,
            lamps=['pfc', 'pfc', 'fc', 'clear', 'clear'],
            scores=[1000000, 1000000, 1000000, 800000, 1000000],
            grades=['AAA', 'AAA', 'AAA', 'A', 'AAA'],
        )
        [lm] = analyzer.calculate_level_mastery(records)
        assert lm['played'] == 5
        assert lm['pfc_rate'] == pytest.approx(0.4)
        assert lm['aaa_rate'] == pytest.approx(0.8)
        assert lm['score_stddev'] == 80000
        assert lm['mastery_tier'] == 'crushing'

    def test_crushing_blocked_by_stddev(self, analyzer):
        stats = _level_stats(pfc_rate=0.5, aaa_rate=0.9, score_stddev=150000)
        assert analyzer.mastery_tier(stats) == 'solid'

    def test_cascade_order(self, analyzer):
        assert analyzer.mastery_tier(_level_stats(aaa_rate=0.5)) == 'solid'
        assert analyzer.mastery_tier(_level_stats(pfc_rate=0.1)) == 'solid'
        assert analyzer.mastery_tier(_level_stats(fc_rate=0.1, aaa_rate=0.2)) == 'pushing'
        assert analyzer.mastery_tier(_level_stats(fc_rate=0.1, aaa_rate=0.1, clear_rate=0.3)) == 'survival'
        assert analyzer.mastery_tier(_level_stats(clear_rate=0.29)) == 'untouched'

    def test_first_match_default(self):
        assert first_match((), {}, 'fallback') == 'fallback'
        assert first_match(MASTERY_TIER_RULES, _level_stats(), 'untouched') == 'untouched'


class TestLevelMastery:
    @pytest.fixture
    def analyzer(self):
        return PlayerMasteryAnalyzer()

    def test_levels_below_twelve_ignored(self, analyzer):
        records = level_records(11, ['pfc'] * 3, [990000] * 3) + level_records(12, ['clear'], [800000])
        mastery = analyzer.calculate_level_mastery(records)
        assert [lm['level'] for lm in mastery] == [12]

    def test_unscored_records_ignored(self, analyzer):
        records = level_records(14, ['clear', 'fail'], [900000, 500000])
        records.append(make_record('unplayed', score=None, lamp=None, level=14))
        records.append(make_record('broken', score=2000000, level=14))
        [lm] = analyzer.calculate_level_mastery(records)
        assert lm['played'] == 2
        assert lm['clear_rate'] == pytest.approx(0.5)
        assert lm['avg_score'] == 700000

    def test_lamp_counts(self, analyzer):
        records = level_records(16, ['mfc', 'pfc', 'gfc', 'fc', 'life4', 'fail'], [990000] * 6)
        [lm] = analyzer.calculate_level_mastery(records)
        assert lm['fc_or_better'] == 4
        assert lm['pfc_or_better'] == 2
        assert lm['clear_count'] == 5
        assert lm['mfc_count'] == 1
        assert lm['gfc_count'] == 1

    def test_single_play_has_zero_stddev(self, analyzer):
        [lm] = analyzer.calculate_level_mastery(level_records(13, ['clear'], [912345]))
        assert lm['score_stddev'] == 0


class TestCeilingsAndStage:
    @pytest.fixture
    def analyzer(self):
        return PlayerMasteryAnalyzer()

    def test_floor_without_qualifying_levels(self, analyzer):
        ceilings = analyzer.calculate_ceilings([])
        assert ceilings == {'clear_ceiling': 12, 'fc_ceiling': 12, 'pfc_ceiling': 12}

    def test_ceilings_take_highest_qualifying_level(self, analyzer):
        records = (
            level_records(14, ['pfc'] * 3, [995000] * 3)
            + level_records(15, ['fc'] * 3, [960000] * 3)
            + level_records(16, ['clear', 'clear', 'fail'], [850000, 840000, 600000])
            + level_records(17, ['fail', 'fail', 'fail', 'clear'], [500000] * 4)
        )
        mastery = analyzer.calculate_level_mastery(records)
        ceilings = analyzer.calculate_ceilings(mastery)
        assert ceilings['pfc_ceiling'] == 14
        assert ceilings['fc_ceiling'] == 15
        assert ceilings['clear_ceiling'] == 16

    def test_ceiling_needs_minimum_sample(self, analyzer):
        records = level_records(18, ['clear', 'clear'], [900000, 900000])
        mastery = analyzer.calculate_level_mastery(records)
        assert analyzer.calculate_ceilings(mastery)['clear_ceiling'] == 12

    def test_ceiling_is_monotonic_maximum(self, analyzer):
        records = level_records(17, ['pfc'] * 3, [990000] * 3) + level_records(18, ['clear'] * 3, [800000] * 3)
        mastery = analyzer.calculate_level_mastery(records)
        assert analyzer.calculate_ceilings(mastery)['pfc_ceiling'] == 17

    @pytest.mark.parametrize('ceilings, lv17_rate, expected', [
        ({'pfc_ceiling': 18, 'fc_ceiling': 18, 'clear_ceiling': 19}, 0.0, 'elite'),
        ({'pfc_ceiling': 17, 'fc_ceiling': 18, 'clear_ceiling': 18}, 0.31, 'elite'),
        ({'pfc_ceiling': 17, 'fc_ceiling': 18, 'clear_ceiling': 18}, 0.30, 'advanced'),
        ({'pfc_ceiling': 12, 'fc_ceiling': 17, 'clear_ceiling': 17}, 0.0, 'advanced'),
        ({'pfc_ceiling': 14, 'fc_ceiling': 15, 'clear_ceiling': 15}, 0.0, 'intermediate'),
        ({'pfc_ceiling': 12, 'fc_ceiling': 12, 'clear_ceiling': 16}, 0.0, 'intermediate'),
        ({'pfc_ceiling': 13, 'fc_ceiling': 14, 'clear_ceiling': 15}, 0.0, 'developing'),
    ])
    def test_stage_cascade(self, ceilings, lv17_rate, expected):
        context = dict(ceilings, lv17_pfc_rate=lv17_rate)
        assert first_match(PLAYER_STAGE_RULES, context, 'developing') == expected

    def test_detect_stage_reads_level_17_rate(self, analyzer):
        mastery = [{'level': 17, 'pfc_rate': 0.5}]
        ceilings = {'pfc_ceiling': 17, 'fc_ceiling': 17, 'clear_ceiling': 17}
        assert analyzer.detect_player_stage(ceilings, mastery) == 'elite'
        assert analyzer.detect_player_stage(ceilings, []) == 'advanced'

    def test_comfort_ceiling(self, analyzer):
        mastery = [
            {'level': 13, 'mastery_tier': 'crushing'},
            {'level': 14, 'mastery_tier': 'solid'},
            {'level': 15, 'mastery_tier': 'pushing'},
        ]
        assert analyzer.calculate_comfort_ceiling(mastery) == 14
        assert analyzer.calculate_comfort_ceiling([]) == 12


class TestProficiency:
    @pytest.fixture
    def analyzer(self):
        return PlayerMasteryAnalyzer()

    def test_neutral_without_catalog(self, analyzer):
        assert analyzer.calculate_proficiency(ChartIndex(), [], 15, 'crossovers') == {'score': 5, 'consistency': 5}

    def test_neutral_when_bucket_unplayed(self, analyzer):
        catalog = [make_chart('hi', level=15, crossovers=30), make_chart('lo', level=15, crossovers=0)]
        best = analyzer.best_scores([make_record('hi', score=950000, level=15)])
        assert analyzer.calculate_proficiency(best, catalog, 15, 'crossovers') == {'score': 5, 'consistency': 5}

    def test_skill_from_bucket_means(self, analyzer):
        catalog = [
            make_chart('hi1', level=15, crossovers=20),
            make_chart('hi2', level=16, crossovers=25),
            make_chart('lo1', level=14, crossovers=2),
            make_chart('mid', level=15, crossovers=10),
            make_chart('far', level=18, crossovers=40),
        ]
        records = [
            make_record('hi1', score=900000, level=15),
            make_record('hi1', score=910000, level=15),
            make_record('hi2', score=910000, level=16),
            make_record('lo1', score=960000, level=14),
            make_record('far', score=100000, level=18),
        ]
        best = analyzer.best_scores(records)
        prof = analyzer.calculate_proficiency(best, catalog, 15, 'crossovers')
        # mean high 910000 vs low 960000 -> 5 - 5 = 0, clamped to 1
        assert prof['score'] == 1
        assert prof['consistency'] == 10

    def test_speed_buckets(self, analyzer):
        catalog = [
            make_chart('fast', level=16, bpm=200),
            make_chart('slow', level=16, bpm=150),
            make_chart('mid', level=16, bpm=170),
        ]
        records = [
            make_record('fast', score=990000, level=16),
            make_record('slow', score=950000, level=16),
            make_record('mid', score=100000, level=16),
        ]
        prof = analyzer.calculate_speed_proficiency(analyzer.best_scores(records), catalog, 16)
        assert prof == {'score': 9, 'consistency': 10}

    def test_best_score_not_shared_across_charts_of_one_song(self, analyzer):
        single = make_chart('sp', level=16, song_id='S', crossovers=20)
        double = make_chart('dp', level=16, song_id='S', crossovers=20)
        best = analyzer.best_scores([make_record('sp', score=950000, level=16, song_id='S')])
        assert best.find(single) == [950000]
        assert best.find(double) == []

    def test_record_without_chart_id_links_by_song(self, analyzer):
        chart = make_chart('c1', level=16)
        record = make_record('c1', score=930000, level=16, chart_id=None)
        assert analyzer.best_scores([record]).find(chart) == [930000]


class TestAnalyze:
    @pytest.fixture
    def analyzer(self):
        return PlayerMasteryAnalyzer()

    def test_empty_history(self, analyzer):
        profile = analyzer.analyze([], [])
        assert profile['player_stage'] == 'developing'
        assert profile['pfc_ceiling'] == 12
        assert profile['total_plays'] == 0
        assert profile['level_mastery'] == []
        assert set(profile['proficiencies']) == {'crossovers', 'footswitches', 'stamina', 'jacks', 'speed'}
        assert all(p == {'score': 5, 'consistency': 5} for p in profile['proficiencies'].values())

    def test_full_profile(self, analyzer):
        records = (
            level_records(10, ['pfc'] * 4, [999000] * 4)
            + level_records(16, ['pfc'] * 3 + ['fc'], [995000, 994000, 993000, 960000], ['AAA'] * 4)
            + level_records(17, ['fc'] * 3 + ['clear'], [950000] * 4)
        )
        profile = analyzer.analyze(records, [make_chart('x', level=16, notes=500)])
        assert profile['pfc_ceiling'] == 16
        assert profile['fc_ceiling'] == 17
        assert profile['player_stage'] == 'advanced'
        assert profile['total_plays'] == 12
        assert profile['level12_plus_plays'] == 8
        assert profile['comfort_ceiling'] == 16
        assert profile['total_stats']['total_pfcs'] == 7
        assert profile['total_stats']['total_aaas'] == 4

    def test_total_stats_and_catalog_counts(self, analyzer):
        records = [
            make_record('a', lamp='mfc', grade='AAA'),
            make_record('b', lamp='life4'),
            make_record('c', lamp='fail'),
            make_record('d', score=None, lamp=None),
        ]
        totals = analyzer.calculate_total_stats(records)
        assert totals['total_played'] == 3
        assert totals['total_mfcs'] == 1
        assert totals['total_life4s'] == 1
        assert totals['total_clears'] == 2
        assert totals['total_aaas'] == 1

        counts = analyzer.calculate_catalog_counts([make_chart(1, level=15), make_chart(2, level=15), make_chart(3, level=17)])
        assert counts == {'by_level': {15: 2, 17: 1}, 'total': 3}

    def test_profile_carries_catalog_counts(self, analyzer):
        catalog = [make_chart(1, level=14), make_chart(2, level=16), make_chart(3, level=16)]
        profile = analyzer.analyze([], catalog)
        assert profile['catalog_counts'] == {'by_level': {14: 1, 16: 2}, 'total': 3}
        assert analyzer.analyze([])['catalog_counts'] == {'by_level': {}, 'total': 0}
