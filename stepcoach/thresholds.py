# stepcoach/thresholds.py

"""Tunable constants shared by the goal, mastery and coaching engines."""

# Score / level bounds for sanitized records
MIN_SCORE = 0
MAX_SCORE = 1_000_000
MIN_LEVEL = 1
MAX_LEVEL = 19
MAX_FLARE = 10

# Goal progress
SUGGESTION_LIMIT = 20
AVERAGE_ROUNDING_STEP = 10

# Per-level aggregation only looks at charts at or above this level
MASTERY_MIN_LEVEL = 12
CEILING_FLOOR = 12

# Mastery tier cascade
CRUSHING_PFC_RATE = 0.20
CRUSHING_AAA_RATE = 0.60
CRUSHING_MAX_STDDEV = 150_000
SOLID_PFC_RATE = 0.10
SOLID_AAA_RATE = 0.50
PUSHING_FC_RATE = 0.10
PUSHING_AAA_RATE = 0.20
SURVIVAL_CLEAR_RATE = 0.30

# Ceiling sample minimums
CLEAR_CEILING_RATE = 0.30
CLEAR_CEILING_MIN_PLAYS = 3
FC_CEILING_MIN_COUNT = 3
PFC_CEILING_MIN_COUNT = 3

# Player stage cascade
ELITE_PFC_CEILING = 18
ELITE_LV17_PFC_RATE = 0.30
ELITE_LV17_PFC_CEILING = 17
ADVANCED_PFC_CEILING = 16
ADVANCED_FC_CEILING = 17
INTERMEDIATE_PFC_CEILING = 14
INTERMEDIATE_CLEAR_CEILING = 16

# Proficiency buckets: (high-demand minimum, low-demand upper bound)
PROFICIENCY_METRIC_THRESHOLDS = {
    "crossovers": (15, 5),
    "footswitches": (10, 3),
    "jacks": (20, 5),
    "notes": (400, 200),
}
PROFICIENCY_DEFAULT_THRESHOLD = (10, 3)
SPEED_FAST_BPM = 180
SPEED_SLOW_BPM = 160
PROFICIENCY_LEVEL_WINDOW = 1
PROFICIENCY_NEUTRAL = 5
PROFICIENCY_SKILL_SCALE = 10_000
PROFICIENCY_CONSISTENCY_SCALE = 5_000

# Coaching insights
SMALL_SAMPLE_PLAYS = 30
WEAK_PROFICIENCY_SCORE = 3
STRONG_PROFICIENCY_SCORE = 8
LOW_CONSISTENCY_SCORE = 3
FC_TO_PFC_CEILING_GAP = 2
CLEAR_TO_COMFORT_CEILING_GAP = 3
HIGH_STDDEV_BAND = 120_000
MASTERY_CONTEXT_MIN_LEVEL = 14
