"""Raw statistic records -> canonical statistic rows.

Statistics arrive from admin JSON, provider scorecards and hand-typed OCR
transcriptions, so the player name can sit under any of several keys.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .points import STAT_FIELDS, as_flag, as_number

NAME_FIELDS = (
    'playerName',
    'player_name',
    'player',
    'name',
    'fullName',
    'full_name',
    'batsman',
    'bowler',
)

FIELD_ALIASES = {
    'fours': ('fours', '4s'),
    'sixes': ('sixes', '6s'),
}


def name_key(name: Any) -> str:
    """Lookup key for a player name: trimmed and uppercased."""
    return str(name or '').strip().upper()


def _clean_name(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def resolve_player_name(record: Mapping[str, Any]) -> Optional[str]:
    for field in NAME_FIELDS:
        name = _clean_name(record.get(field))
        if name:
            return name
    # Fall back to any key that looks like a name column
    for key, value in record.items():
        if 'name' in str(key).lower():
            name = _clean_name(value)
            if name:
                return name
    return None


def _number(value: Any):
    number = as_number(value)
    return int(number) if number.is_integer() else number


def normalize_statistic(record: Any) -> Optional[Dict[str, Any]]:
    """Canonical statistic for one raw record, or None when unusable."""
    if not isinstance(record, Mapping):
        return None
    name = resolve_player_name(record)
    if not name:
        return None
    stat: Dict[str, Any] = {'player_name': name}
    for field in STAT_FIELDS:
        value = None
        for alias in FIELD_ALIASES.get(field, (field,)):
            if record.get(alias) is not None:
                value = record.get(alias)
                break
        stat[field] = _number(value)
    stat['mvp'] = as_flag(record.get('mvp'))
    return stat


def normalize_statistics(records: Iterable[Any]) -> Tuple[List[Dict[str, Any]], int]:
    """Normalize a batch; returns (statistics, dropped_count)."""
    stats = []
    dropped = 0
    for record in records:
        stat = normalize_statistic(record)
        if stat is None:
            dropped += 1
            continue
        stats.append(stat)
    return stats, dropped


def build_lookup(stats: Iterable[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    """NAME -> statistic. A later row for the same player replaces an earlier one."""
    lookup = {}
    for stat in stats or []:
        if not isinstance(stat, Mapping):
            continue
        key = name_key(resolve_player_name(stat))
        if key:
            lookup[key] = stat
    return lookup
