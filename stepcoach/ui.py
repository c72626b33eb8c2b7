# stepcoach/ui.py

from typing import List, Dict, Any

from stepcoach.coaching import mastery_tier_label, stage_description
from stepcoach.hierarchy import display_transform


class TerminalUI:
    """Simple terminal output for goal progress and mastery profiles."""

    def __init__(self, display_mode: bool = False):
        self.display_mode = display_mode

    @staticmethod
    def _format_metric(value: Any, decimals: int = 2, suppressed: bool = False) -> str:
        if suppressed or value is None:
            return 'N/A'
        if isinstance(value, float):
            return f'{value:.{decimals}f}'
        return str(value)

    @staticmethod
    def _format_percent(rate: Any) -> str:
        if rate is None:
            return 'N/A'
        return f'{rate * 100:.0f}%'

    def _lamp(self, lamp: Any) -> str:
        shown = display_transform(lamp, self.display_mode)
        return str(shown).upper() if shown else '-'

    def _chart_line(self, entry: Dict[str, Any]) -> str:
        title = entry.get('title') or entry.get('chart_id') or entry.get('song_id') or '?'
        difficulty = entry.get('difficulty') or '?'
        level = self._format_metric(entry.get('level'))
        if entry.get('unplayed'):
            return f"{title} [{difficulty} {level}] - not yet played"
        score = entry.get('score')
        score_text = f"{score:,}" if isinstance(score, int) else 'N/A'
        line = (
            f"{title} [{difficulty} {level}] {score_text} "
            f"{entry.get('grade') or '-'} {self._lamp(entry.get('lamp'))}"
        )
        if entry.get('proximity_label'):
            line += f" ({entry['proximity_label']})"
        return line

    def show_goal_progress(self, goal: Dict[str, Any], progress: Dict[str, Any], limit: int = 10):
        """Display one goal's progress and its closest remaining charts."""
        print("\n" + "="*50)
        print(f"GOAL: {goal.get('name') or goal.get('id') or 'Untitled goal'}")
        print("="*50)
        print(f"Target: {goal.get('target_type')} {goal.get('target_value')}")

        if progress.get('score_mode') == 'average':
            print(f"Average score: {progress['current']:,} / {progress['total']:,}")
            print(f"Charts played: {progress.get('played_count', 0)}")
            below = progress.get('below_target', [])
            if below:
                print("\nBelow target:")
                for entry in below[:limit]:
                    print(f"  - {self._chart_line(entry)}")
            print("="*50)
            return

        print(f"Progress: {progress['current']} / {progress['total']}")
        if progress.get('unplayed_count'):
            print(f"Unplayed eligible charts: {progress['unplayed_count']}")

        upcoming = progress.get('suggested') or progress.get('remaining', [])
        if upcoming:
            print("\nClosest remaining:")
            for entry in upcoming[:limit]:
                print(f"  - {self._chart_line(entry)}")
        print("="*50)

    def show_profile(self, profile: Dict[str, Any]):
        """Display a player mastery profile."""
        print("\n" + "="*50)
        print("PLAYER MASTERY PROFILE")
        print("="*50)
        print(f"Stage: {stage_description(profile['player_stage'])}")
        print(f"Plays: {profile['total_plays']} (Lv12+: {profile['level12_plus_plays']})")

        print("\nCeilings:")
        print(f"  Clear:   Lv{profile['clear_ceiling']}")
        print(f"  FC:      Lv{profile['fc_ceiling']}")
        print(f"  PFC:     Lv{profile['pfc_ceiling']}")
        print(f"  Comfort: Lv{profile['comfort_ceiling']}")

        print("\nLevel Mastery:")
        if not profile['level_mastery']:
            print("  No level 12+ plays yet.")
        for lm in profile['level_mastery']:
            print(
                f"  Lv{lm['level']:<3} {mastery_tier_label(lm['mastery_tier']):<15} "
                f"played {lm['played']:<4} avg {lm['avg_score']:,}  "
                f"clear {self._format_percent(lm['clear_rate'])}  "
                f"FC {self._format_percent(lm['fc_rate'])}  "
                f"PFC {self._format_percent(lm['pfc_rate'])}  "
                f"AAA {self._format_percent(lm['aaa_rate'])}"
            )

        print("\nProficiencies:")
        for name, prof in profile['proficiencies'].items():
            print(f"  {name.capitalize():<13} skill {prof['score']}/10  consistency {prof['consistency']}/10")

        totals = profile.get('total_stats', {})
        if totals:
            print("\nTotals:")
            print(
                f"  Played {totals['total_played']}  MFC {totals['total_mfcs']}  "
                f"PFC {totals['total_pfcs']}  GFC {totals['total_gfcs']}  FC {totals['total_fcs']}  "
                f"Clears {totals['total_clears']}  AAA {totals['total_aaas']}"
            )
        print("="*50)

    def show_insights(self, insights: List[Dict[str, str]]):
        print("\nCoaching Insights:")
        if not insights:
            print("1. [INFO] No coaching flags for this profile.")
            return
        for idx, insight in enumerate(insights, 1):
            print(f"{idx}. [{insight.get('severity', 'info').upper()}] {insight.get('message', '')}")
            print(f"   Evidence: {insight.get('evidence', '')}")
            print(f"   Action:   {insight.get('action', '')}")

    def show_filter_preview(self, name: str, matched: List[Dict[str, Any]], total: int, limit: int = 10):
        print("\n" + "="*50)
        print(f"FILTER: {name}")
        print("="*50)
        print(f"Matches: {len(matched)} of {total}")
        for entry in matched[:limit]:
            print(f"  - {self._chart_line(entry)}")
        if len(matched) > limit:
            print(f"  ... {len(matched) - limit} more")
        print("="*50)

    def show_error(self, message: str):
        """Display error message."""
        print(f"\nERROR: {message}\n")
