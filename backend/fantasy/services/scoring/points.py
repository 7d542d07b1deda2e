import math
from typing import Any, Mapping, Optional

RUN = 1
FOUR = 1
SIX = 2
WICKET = 25
THREE_WICKET_BONUS = 10
MAIDEN = 10
CATCH = 8
MVP_BONUS = 15

CAPTAIN_MULTIPLIER = 2
VICE_MULTIPLIER = 1.5

STAT_FIELDS = ('runs', 'balls', 'fours', 'sixes', 'wickets', 'maidens', 'catches')


def as_number(value: Any) -> float:
    """Coerce a statistic field to a finite number; anything else is 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', 'y', '1')
    if isinstance(value, bool):
        return value
    return as_number(value) != 0


def round_half_up(value: float) -> int:
    if not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


def compute_points(stat: Optional[Mapping[str, Any]], is_captain: bool = False, is_vice: bool = False) -> int:
    """Fantasy points for one player's statistic line.

    A missing statistic means the player did not feature and scores 0. The
    captain doubles; the vice-captain gets x1.5 (rounded) only when not also
    captain. A total that overflows to infinity scores 0.
    """
    if not stat:
        return 0
    wickets = as_number(stat.get('wickets'))
    pts = as_number(stat.get('runs')) * RUN
    pts += as_number(stat.get('fours')) * FOUR
    pts += as_number(stat.get('sixes')) * SIX
    pts += wickets * WICKET
    if wickets >= 3:
        pts += THREE_WICKET_BONUS
    pts += as_number(stat.get('maidens')) * MAIDEN
    pts += as_number(stat.get('catches')) * CATCH
    if as_flag(stat.get('mvp')):
        pts += MVP_BONUS
    if is_captain:
        pts *= CAPTAIN_MULTIPLIER
    elif is_vice:
        pts = round_half_up(pts * VICE_MULTIPLIER)
    return round_half_up(pts)
