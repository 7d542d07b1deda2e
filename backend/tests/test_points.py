import pytest

from fantasy.services.scoring.points import as_flag, as_number, compute_points, round_half_up


LINE = {'runs': 45, 'fours': 4, 'sixes': 1, 'wickets': 0, 'maidens': 0, 'catches': 1, 'mvp': False}


def test_missing_statistic_scores_zero():
    assert compute_points(None) == 0
    assert compute_points({}) == 0
    assert compute_points(None, is_captain=True) == 0


def test_batting_line():
    # 45 runs + 4 fours + 1 six (2) + 1 catch (8)
    assert compute_points(LINE) == 59


def test_captain_doubles():
    assert compute_points(LINE, is_captain=True) == 118


def test_vice_captain_rounds_half_up():
    assert compute_points(LINE, is_vice=True) == 89
    # 3 * 1.5 = 4.5 rounds up, not to even
    assert compute_points({'runs': 3}, is_vice=True) == 5


def test_captain_wins_when_both_flags_set():
    assert compute_points(LINE, is_captain=True, is_vice=True) == 118


def test_three_wicket_bonus():
    assert compute_points({'wickets': 3}) == 85
    assert compute_points({'wickets': 2}) == 50
    assert compute_points({'wickets': 5}) == 135


def test_maidens_catches_and_mvp():
    assert compute_points({'maidens': 2, 'catches': 1, 'mvp': True}) == 20 + 8 + 15


@pytest.mark.parametrize('raw', ['12', 12, 12.0, ' 12 '])
def test_numeric_strings_are_coerced(raw):
    assert compute_points({'runs': raw}) == 12


@pytest.mark.parametrize('raw', ['abc', None, '', float('nan'), float('inf'), [1]])
def test_unusable_numbers_count_as_zero(raw):
    assert as_number(raw) == 0
    assert compute_points({'runs': raw, 'catches': 1}) == 8


@pytest.mark.parametrize('raw,expected', [
    (True, True), (False, False), ('true', True), ('Yes', True), ('1', True),
    ('no', False), ('', False), (1, True), (0, False), (None, False),
])
def test_mvp_flag_coercion(raw, expected):
    assert as_flag(raw) is expected


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4) == 2
    assert round_half_up(88.5) == 89


@pytest.mark.parametrize('stat,is_captain', [
    ({'runs': 10 ** 400}, True),
    ({'runs': 1e308, 'sixes': 1e308}, False),
    ({'runs': 1e308, 'catches': 1}, True),
    ({'runs': 1e308}, False),
])
def test_oversized_numbers_never_raise(stat, is_captain):
    assert as_number(10 ** 400) == 0
    assert compute_points(stat, is_captain=is_captain) in (0, round_half_up(1e308))
    assert compute_points(stat, is_vice=True) >= 0


def test_overflowing_total_scores_zero():
    assert compute_points({'runs': 1e308, 'catches': 1}, is_captain=True) == 0
    assert compute_points({'runs': 1e308, 'sixes': 1e308}) == 0
    assert round_half_up(float('inf')) == 0
