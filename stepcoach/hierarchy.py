# stepcoach/hierarchy.py

"""
Ordinal tables for lamps and grades, distance labels, and the display-mode
lamp relabeling.

Both tables run best-to-worst, so a lower index is a better result and
"meets target" is ``index(actual) <= index(target)``.
"""

from typing import Callable, Optional, Sequence

LAMP_ORDER = ('mfc', 'pfc', 'gfc', 'fc', 'life4', 'clear', 'fail', 'none')
GRADE_ORDER = (
    'AAA', 'AA+', 'AA', 'AA-', 'A+', 'A', 'A-',
    'B+', 'B', 'B-', 'C+', 'C', 'C-', 'D+', 'D', 'D-', 'E',
)

# Lamps that count as a full combo or better
FC_OR_BETTER = frozenset({'mfc', 'pfc', 'gfc', 'fc'})
NOT_CLEARED = frozenset({'fail', 'none', ''})

# Display mode shifts fc -> gfc -> pfc -> fc for presentation only.
DISPLAY_MODE_LAMP_MAP = {
    'fc': 'gfc',
    'gfc': 'pfc',
    'pfc': 'fc',
}
DISPLAY_MODE_LAMP_INVERSE = {shown: stored for stored, shown in DISPLAY_MODE_LAMP_MAP.items()}

ReverseTransform = Callable[[Optional[str]], Optional[str]]


def normalize_lamp(lamp: Optional[str]) -> Optional[str]:
    if lamp is None:
        return None
    return str(lamp).strip().lower()


def normalize_grade(grade: Optional[str]) -> Optional[str]:
    if grade is None:
        return None
    return str(grade).strip().upper()


def _index(order: Sequence[str], value: Optional[str]) -> int:
    if value is None:
        return -1
    try:
        return order.index(value)
    except ValueError:
        return -1


def lamp_index(lamp: Optional[str]) -> int:
    """Rank of a lamp in LAMP_ORDER, or -1 when unknown."""
    return _index(LAMP_ORDER, normalize_lamp(lamp))


def grade_index(grade: Optional[str]) -> int:
    """Rank of a grade in GRADE_ORDER, or -1 when unknown."""
    return _index(GRADE_ORDER, normalize_grade(grade))


def lamp_meets(actual: Optional[str], target: Optional[str]) -> bool:
    actual_idx = lamp_index(actual)
    target_idx = lamp_index(target)
    return actual_idx != -1 and target_idx != -1 and actual_idx <= target_idx


def grade_meets(actual: Optional[str], target: Optional[str]) -> bool:
    actual_idx = grade_index(actual)
    target_idx = grade_index(target)
    return actual_idx != -1 and target_idx != -1 and actual_idx <= target_idx


def lamp_distance(actual: Optional[str], target: Optional[str]) -> Optional[int]:
    """Steps between actual and target lamp; <= 0 means already achieved."""
    actual_idx = lamp_index(actual)
    target_idx = lamp_index(target)
    if actual_idx == -1 or target_idx == -1:
        return None
    return actual_idx - target_idx


def grade_distance(actual: Optional[str], target: Optional[str]) -> Optional[int]:
    """Grades between actual and target; <= 0 means already achieved."""
    actual_idx = grade_index(actual)
    target_idx = grade_index(target)
    if actual_idx == -1 or target_idx == -1:
        return None
    return actual_idx - target_idx


def lamp_distance_label(actual: Optional[str], target: str, shown_target: Optional[str] = None) -> Optional[str]:
    """
    Human label such as "1 step from PFC".

    Args:
        actual: Stored lamp of the record.
        target: Stored-space target to measure against.
        shown_target: Target as the player sees it; defaults to ``target``.

    Returns:
        The label, or None when already achieved or either lamp is unknown.
    """
    steps = lamp_distance(actual, target)
    if steps is None or steps <= 0:
        return None
    name = (shown_target or target).upper()
    if steps == 1:
        return f"1 step from {name}"
    return f"{steps} steps from {name}"


def grade_distance_label(actual: Optional[str], target: str) -> Optional[str]:
    steps = grade_distance(actual, target)
    if steps is None or steps <= 0:
        return None
    name = normalize_grade(target)
    if steps == 1:
        return f"1 grade from {name}"
    return f"{steps} grades from {name}"


def display_transform(lamp: Optional[str], active: bool = True) -> Optional[str]:
    """Relabel a stored lamp for presentation when display mode is on."""
    if not lamp or not active:
        return lamp
    normalized = normalize_lamp(lamp)
    return DISPLAY_MODE_LAMP_MAP.get(normalized, normalized)


def reverse_display_transform(lamp: Optional[str]) -> Optional[str]:
    """Map a lamp the player sees back to the stored lamp it stands for."""
    if not lamp:
        return lamp
    normalized = normalize_lamp(lamp)
    return DISPLAY_MODE_LAMP_INVERSE.get(normalized, normalized)


def reverse_transform_for(display_mode: bool) -> Optional[ReverseTransform]:
    """Reverse transform to hand the goal engine, or None when display mode is off."""
    return reverse_display_transform if display_mode else None
