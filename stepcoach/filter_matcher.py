# stepcoach/filter_matcher.py

"""
Single filter-rule evaluator shared by play records and catalog charts.

A rule is a dict ``{"type": ..., "operator": ..., "value": ...}``. The same
matcher serves both record kinds; the only difference between them lives in
a ``FieldAccessor`` that knows how to read each field type off a record and
whether the record carries a play outcome at all.

Fail-open rules:
- an empty/absent value, an unknown field type or an operator that is not
  legal for the field type makes the rule vacuously true;
- a missing field on the record makes the rule false, except for the flare
  "no flare" sentinel (0), which matches a missing flare under ``is``.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging

LOGGER = logging.getLogger(__name__)

FILTER_TYPE_LABELS = {
    'score': 'Score',
    'level': 'Level',
    'grade': 'Grade',
    'lamp': 'Lamp',
    'difficulty': 'Difficulty',
    'title': 'Title',
    'flare': 'Flare',
    'version': 'Version',
    'era': 'Era',
}

OPERATOR_LABELS = {
    'is': 'Is',
    'is_not': 'Is not',
    'less_than': 'Less than',
    'greater_than': 'Greater than',
    'is_between': 'Is between',
    'contains': 'Contains',
}

OPERATOR_ALIASES = {
    'equals': 'is',
    'eq': 'is',
    'not_equals': 'is_not',
    'ne': 'is_not',
    'lt': 'less_than',
    'gt': 'greater_than',
    'between': 'is_between',
}

_NUMERIC_OPERATORS = ('is', 'is_not', 'less_than', 'greater_than', 'is_between')

OPERATORS_BY_TYPE = {
    'score': _NUMERIC_OPERATORS,
    'level': _NUMERIC_OPERATORS,
    'flare': _NUMERIC_OPERATORS,
    'grade': ('is', 'is_not'),
    'lamp': ('is', 'is_not'),
    'difficulty': ('is', 'is_not'),
    'title': ('is', 'is_not', 'contains'),
    'version': ('is', 'is_not'),
    'era': ('is', 'is_not'),
}

DEFAULT_VALUES = {
    'score': 900000,
    'level': 15,
    'flare': 5,
    'grade': 'AAA',
    'lamp': 'pfc',
    'difficulty': 'EXPERT',
    'title': '',
    'version': '',
    'era': '',
}

FLARE_LABELS = {
    10: 'EX', 9: 'IX', 8: 'VIII', 7: 'VII', 6: 'VI',
    5: 'V', 4: 'IV', 3: 'III', 2: 'II', 1: 'I', 0: 'NONE',
}

# Fields that describe a play outcome rather than the chart itself
OUTCOME_FIELDS = frozenset({'score', 'lamp', 'grade', 'flare'})
NUMERIC_FIELDS = frozenset({'score', 'level', 'flare', 'era'})

NO_FLARE = 0

_COLLECTION_TYPES = (list, tuple, set, frozenset)


class FieldAccessor:
    """Reads rule fields off one kind of record."""

    def __init__(self, kind: str, getters: Dict[str, Callable[[Dict[str, Any]], Any]],
                 carries_outcome: bool):
        self.kind = kind
        self.getters = getters
        self.carries_outcome = carries_outcome

    def get(self, record: Dict[str, Any], field_type: str) -> Any:
        getter = self.getters.get(field_type)
        if getter is None:
            return None
        return getter(record)

    def __repr__(self) -> str:
        return f"FieldAccessor({self.kind!r})"


def _key(name: str) -> Callable[[Dict[str, Any]], Any]:
    return lambda record: record.get(name)


_CHART_GETTERS = {
    'level': _key('level'),
    'difficulty': _key('difficulty'),
    'title': _key('title'),
    'era': _key('era'),
}

PLAY_RECORD_FIELDS = FieldAccessor(
    'play_record',
    dict(_CHART_GETTERS, score=_key('score'), grade=_key('grade'), lamp=_key('lamp'), flare=_key('flare')),
    carries_outcome=True,
)

CATALOG_FIELDS = FieldAccessor('catalog_chart', dict(_CHART_GETTERS), carries_outcome=False)


def normalize_operator(operator: Any) -> str:
    op = str(operator or '').strip().lower()
    return OPERATOR_ALIASES.get(op, op)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, _COLLECTION_TYPES):
        return len(value) == 0
    return False


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        return int(text) if text.lstrip('-').isdigit() else float(text)
    except (TypeError, ValueError):
        return None


def _range_bounds(value: Any) -> Optional[Tuple[float, float]]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    a, b = _to_number(value[0]), _to_number(value[1])
    if a is None or b is None:
        return None
    return min(a, b), max(a, b)


def _match_numeric(actual: Any, operator: str, value: Any, zero_means_missing: bool) -> bool:
    actual_num = _to_number(actual)

    if operator == 'is_between':
        bounds = _range_bounds(value)
        if bounds is None:
            LOGGER.debug("Malformed range %r; treating rule as vacuous.", value)
            return True
        if actual_num is None:
            return False
        low, high = bounds
        return low <= actual_num <= high

    if operator in ('is', 'is_not'):
        raw_targets = value if isinstance(value, _COLLECTION_TYPES) else [value]
        targets = [t for t in (_to_number(v) for v in raw_targets) if t is not None]
        if not targets:
            return True
        if actual_num is None:
            if zero_means_missing and NO_FLARE in targets:
                return operator == 'is'
            return False
        matched = actual_num in targets
        return matched if operator == 'is' else not matched

    single = value[0] if isinstance(value, (list, tuple)) and value else value
    target = _to_number(single)
    if target is None:
        return True
    if actual_num is None:
        return False
    if operator == 'less_than':
        return actual_num < target
    return actual_num > target


def _match_string(actual: Any, operator: str, value: Any) -> bool:
    if actual is None:
        return False
    actual_text = str(actual).strip().lower()

    if isinstance(value, _COLLECTION_TYPES):
        targets = [str(t).strip().lower() for t in value if t is not None and str(t).strip()]
        if not targets:
            return True
        if operator == 'contains':
            return any(t in actual_text for t in targets)
        matched = actual_text in targets
        return matched if operator == 'is' else not matched

    target = str(value).strip().lower()
    if operator == 'is':
        return actual_text == target
    if operator == 'is_not':
        return actual_text != target
    return target in actual_text


def matches_rule(record: Dict[str, Any], rule: Dict[str, Any],
                 fields: FieldAccessor = PLAY_RECORD_FIELDS) -> bool:
    """Return True when ``record`` satisfies ``rule``."""
    field_type = str(rule.get('type') or '').strip().lower()
    operator = normalize_operator(rule.get('operator'))
    value = rule.get('value')

    if _is_empty(value):
        return True

    legal = OPERATORS_BY_TYPE.get(field_type)
    if legal is None or operator not in legal:
        LOGGER.debug("Ignoring rule with type=%r operator=%r.", field_type, operator)
        return True

    if field_type == 'version':
        return True

    if field_type in OUTCOME_FIELDS and not fields.carries_outcome:
        return True

    actual = fields.get(record, field_type)
    if field_type in NUMERIC_FIELDS:
        return _match_numeric(actual, operator, value, zero_means_missing=(field_type == 'flare'))
    return _match_string(actual, operator, value)


def matches_all(record: Dict[str, Any], rules: Iterable[Dict[str, Any]],
                fields: FieldAccessor = PLAY_RECORD_FIELDS) -> bool:
    return all(matches_rule(record, rule, fields) for rule in rules)


def matches_any(record: Dict[str, Any], rules: Iterable[Dict[str, Any]],
                fields: FieldAccessor = PLAY_RECORD_FIELDS) -> bool:
    rules = list(rules)
    if not rules:
        return True
    return any(matches_rule(record, rule, fields) for rule in rules)


def matches_rules(record: Dict[str, Any], rules: Optional[List[Dict[str, Any]]],
                  match_mode: str = 'all', fields: FieldAccessor = PLAY_RECORD_FIELDS) -> bool:
    """Compose ``rules`` per ``match_mode`` ('all' or 'any'; anything else means 'all')."""
    if not rules:
        return True
    if str(match_mode or '').strip().lower() == 'any':
        return matches_any(record, rules, fields)
    return matches_all(record, rules, fields)


def filter_records(records: Iterable[Dict[str, Any]], rules: Optional[List[Dict[str, Any]]],
                   match_mode: str = 'all', fields: FieldAccessor = PLAY_RECORD_FIELDS) -> List[Dict[str, Any]]:
    """Records matching the rule set; an empty rule set keeps everything."""
    return [record for record in records if matches_rules(record, rules, match_mode, fields)]


def default_operator(field_type: str) -> str:
    return OPERATORS_BY_TYPE.get(field_type, ('is',))[0]


def default_value(field_type: str) -> Any:
    return DEFAULT_VALUES.get(field_type, '')


def _value_label(rule: Dict[str, Any]) -> str:
    field_type = rule.get('type')
    value = rule.get('value')
    if field_type == 'flare' and not isinstance(value, _COLLECTION_TYPES):
        number = _to_number(value)
        if number in FLARE_LABELS:
            return FLARE_LABELS[int(number)]
    if isinstance(value, _COLLECTION_TYPES):
        items = list(value)
        if normalize_operator(rule.get('operator')) == 'is_between' and len(items) == 2:
            return f"{items[0]}-{items[1]}"
        return ", ".join(str(item) for item in items)
    return str(value)


def generate_filter_name(rules: List[Dict[str, Any]]) -> str:
    """Readable name for a rule set, e.g. "Level Is 16 + 1 more"."""
    if not rules:
        return "New Filter"

    first = rules[0]
    field_type = str(first.get('type') or '')
    operator = normalize_operator(first.get('operator'))
    type_label = FILTER_TYPE_LABELS.get(field_type, field_type)
    operator_label = OPERATOR_LABELS.get(operator, operator)
    base = f"{type_label} {operator_label} {_value_label(first)}"

    if len(rules) > 1:
        return f"{base} + {len(rules) - 1} more"
    return base
