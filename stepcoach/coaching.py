from typing import Dict, Any, List

from stepcoach.thresholds import (
    SMALL_SAMPLE_PLAYS,
    WEAK_PROFICIENCY_SCORE,
    STRONG_PROFICIENCY_SCORE,
    LOW_CONSISTENCY_SCORE,
    FC_TO_PFC_CEILING_GAP,
    CLEAR_TO_COMFORT_CEILING_GAP,
    HIGH_STDDEV_BAND,
    MASTERY_CONTEXT_MIN_LEVEL,
)

MASTERY_TIER_LABELS = {
    "crushing": "CRUSHING",
    "solid": "SOLID",
    "pushing": "PUSHING",
    "survival": "SURVIVAL",
    "untouched": "BARELY TOUCHED",
}

STAGE_DESCRIPTIONS = {
    "developing": "DEVELOPING (primary metric: clears and FCs)",
    "intermediate": "INTERMEDIATE (primary metric: FCs and early PFCs)",
    "advanced": "ADVANCED (primary metric: PFCs and AAA rate)",
    "elite": "ELITE (primary metric: MFCs and score optimization)",
}

STAGE_RULES = {
    "developing": (
        "This is a DEVELOPING player. Celebrate clears. Getting through a song at a new level "
        "is an achievement. Focus on pattern recognition and basic technique."
    ),
    "intermediate": (
        "This is an INTERMEDIATE player. Celebrate FCs and early PFCs. They are past survival "
        "mode but still building consistency."
    ),
    "advanced": (
        "This is an ADVANCED player. Clears do not impress them; PFCs and scores do. "
        "Be direct about weaknesses."
    ),
    "elite": (
        "This is an ELITE player. Focus on MFCs, EX scores and marvelous rates. "
        "Be technical and specific."
    ),
}

PROFICIENCY_LABELS = {
    "crossovers": "Crossovers",
    "footswitches": "Footswitches",
    "stamina": "Stamina",
    "speed": "Speed",
    "jacks": "Jacks",
}


def mastery_tier_label(tier: str) -> str:
    return MASTERY_TIER_LABELS.get(tier, str(tier).upper())


def stage_description(stage: str) -> str:
    return STAGE_DESCRIPTIONS.get(stage, str(stage).upper())


def stage_rules(stage: str) -> str:
    return STAGE_RULES.get(stage, "")


class CoachingInsightAnalyzer:
    """Generate deterministic, rule-based coaching insights from a mastery profile."""

    SEVERITY_ORDER = {
        "high": 0,
        "medium": 1,
        "low": 2,
        "info": 3,
    }

    @staticmethod
    def _safe_get(container: Dict[str, Any], key: str, default: Any = 0) -> Any:
        value = container.get(key, default)
        return value if value is not None else default

    def _insight(
        self,
        severity: str,
        category: str,
        message: str,
        evidence: str,
        action: str,
    ) -> Dict[str, str]:
        return {
            "severity": severity,
            "category": category,
            "message": message,
            "evidence": evidence,
            "action": action,
        }

    def generate_insights(self, profile: Dict[str, Any]) -> List[Dict[str, str]]:
        """
        Return ordered, deterministic insights.

        Insight schema:
        - severity: high|medium|low|info
        - category: domain bucket
        - message: short summary
        - evidence: concrete profile evidence
        - action: practical next step
        """
        insights: List[Dict[str, str]] = []

        stage = str(self._safe_get(profile, "player_stage", "developing"))
        level12_plus_plays = int(self._safe_get(profile, "level12_plus_plays", 0))
        clear_ceiling = int(self._safe_get(profile, "clear_ceiling", 0))
        fc_ceiling = int(self._safe_get(profile, "fc_ceiling", 0))
        pfc_ceiling = int(self._safe_get(profile, "pfc_ceiling", 0))
        comfort_ceiling = int(self._safe_get(profile, "comfort_ceiling", 0))
        proficiencies = self._safe_get(profile, "proficiencies", {})
        level_mastery = self._safe_get(profile, "level_mastery", [])

        if level12_plus_plays < SMALL_SAMPLE_PLAYS:
            insights.append(
                self._insight(
                    severity="info",
                    category="sample_size",
                    message="Small sample of level 12+ plays; tiers and ceilings may shift quickly.",
                    evidence=f"Level 12+ plays: {level12_plus_plays}",
                    action="Upload more results before reading much into the profile.",
                )
            )

        if fc_ceiling - pfc_ceiling >= FC_TO_PFC_CEILING_GAP:
            insights.append(
                self._insight(
                    severity="medium",
                    category="ceiling_gap",
                    message="Full combos are running well ahead of perfect full combos.",
                    evidence=f"FC ceiling Lv{fc_ceiling}, PFC ceiling Lv{pfc_ceiling}",
                    action=f"Spend sessions converting Lv{pfc_ceiling + 1} FCs into PFCs before pushing higher.",
                )
            )

        if clear_ceiling - comfort_ceiling >= CLEAR_TO_COMFORT_CEILING_GAP:
            insights.append(
                self._insight(
                    severity="medium",
                    category="overreach",
                    message="Clearing charts far above the comfort zone.",
                    evidence=f"Clear ceiling Lv{clear_ceiling}, comfort ceiling Lv{comfort_ceiling}",
                    action=f"Mix in Lv{comfort_ceiling + 1} score attacks to consolidate fundamentals.",
                )
            )

        for name, label in PROFICIENCY_LABELS.items():
            prof = proficiencies.get(name) or {}
            skill = int(self._safe_get(prof, "score", 5))
            consistency = int(self._safe_get(prof, "consistency", 5))
            evidence = f"{label}: {skill}/10 skill, {consistency}/10 consistency"

            if skill <= WEAK_PROFICIENCY_SCORE:
                insights.append(
                    self._insight(
                        severity="medium",
                        category="technique",
                        message=f"{label} is a weak spot near your PFC ceiling.",
                        evidence=evidence,
                        action=f"Pick {label.lower()}-heavy charts around Lv{pfc_ceiling} for focused practice.",
                    )
                )
            elif skill >= STRONG_PROFICIENCY_SCORE:
                insights.append(
                    self._insight(
                        severity="info",
                        category="technique",
                        message=f"{label} is a strength.",
                        evidence=evidence,
                        action=f"Use {label.lower()}-heavy charts to push new PFCs.",
                    )
                )

            if consistency <= LOW_CONSISTENCY_SCORE:
                insights.append(
                    self._insight(
                        severity="low",
                        category="consistency",
                        message=f"{label} scores swing widely from chart to chart.",
                        evidence=evidence,
                        action="Replay the same few charts until the scores settle.",
                    )
                )

        volatile = [
            lm for lm in level_mastery
            if int(self._safe_get(lm, "score_stddev", 0)) >= HIGH_STDDEV_BAND and int(self._safe_get(lm, "played", 0)) >= 3
        ]
        for lm in volatile:
            insights.append(
                self._insight(
                    severity="low",
                    category="volatility",
                    message=f"Scores at Lv{lm['level']} are inconsistent.",
                    evidence=f"Std dev {round(lm['score_stddev'] / 1000)}k over {lm['played']} plays",
                    action=f"Revisit your weakest Lv{lm['level']} charts instead of new ones.",
                )
            )

        insights.append(
            self._insight(
                severity="info",
                category="stage",
                message=stage_description(stage),
                evidence=f"PFC ceiling Lv{pfc_ceiling}, FC ceiling Lv{fc_ceiling}, clear ceiling Lv{clear_ceiling}",
                action=stage_rules(stage),
            )
        )

        insights.sort(key=lambda insight: self.SEVERITY_ORDER.get(insight["severity"], 99))
        return insights

    def build_profile_context(self, profile: Dict[str, Any]) -> str:
        """Plain-text profile block handed to the downstream coaching text generator."""
        stage = str(self._safe_get(profile, "player_stage", "developing"))
        proficiencies = self._safe_get(profile, "proficiencies", {})

        prof_lines = []
        for name, label in PROFICIENCY_LABELS.items():
            prof = proficiencies.get(name) or {}
            prof_lines.append(
                f"{label}: {self._safe_get(prof, 'score', 5)}/10 skill, "
                f"{self._safe_get(prof, 'consistency', 5)}/10 consistency"
            )

        mastery_lines = []
        for lm in self._safe_get(profile, "level_mastery", []):
            if lm["level"] < MASTERY_CONTEXT_MIN_LEVEL:
                continue
            mastery_lines.append(
                f"Lv{lm['level']}: {mastery_tier_label(lm['mastery_tier'])} - "
                f"{lm['pfc_or_better']} PFCs ({round(lm['pfc_rate'] * 100)}%), "
                f"{lm['aaa_count']} AAAs ({round(lm['aaa_rate'] * 100)}%), "
                f"{round(lm['score_stddev'] / 1000)}k spread"
            )

        sections = [
            "PLAYER PROFILE",
            "",
            "COACHING APPROACH:",
            stage_rules(stage),
            "",
            f"PLAYER STAGE: {stage_description(stage)}",
            "",
            "CEILINGS:",
            f"- PFC Ceiling: Level {profile.get('pfc_ceiling')} (highest level with 3+ PFCs)",
            f"- FC Ceiling: Level {profile.get('fc_ceiling')} (highest level with 3+ FCs)",
            f"- Clear Ceiling: Level {profile.get('clear_ceiling')} (highest level with 30%+ clear rate)",
            f"- Comfort Ceiling: Level {profile.get('comfort_ceiling')} (highest level at SOLID or CRUSHING)",
            "",
            "SKILL PROFICIENCIES:",
            *prof_lines,
            "",
            f"LEVEL MASTERY (Lv{MASTERY_CONTEXT_MIN_LEVEL}+):",
            *(mastery_lines or ["No qualifying plays yet."]),
        ]

        catalog_counts = self._safe_get(profile, "catalog_counts", {})
        if self._safe_get(catalog_counts, "total", 0):
            sections.extend([
                "",
                "CATALOG COUNTS BY LEVEL:",
                *self.format_catalog_counts(catalog_counts),
                f"Total: {catalog_counts['total']} charts",
            ])
        return "\n".join(sections)

    @staticmethod
    def format_catalog_counts(catalog_counts: Dict[str, Any]) -> List[str]:
        by_level = catalog_counts.get("by_level") or {}
        return [f"Level {level}: {count} charts" for level, count in sorted(by_level.items())]
