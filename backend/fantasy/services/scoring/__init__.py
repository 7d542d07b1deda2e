"""Scoring domain services: fantasy points, statistic normalization and
leaderboard recomputation.

HTTP routes, CLI commands and the contest sweeper import from here; none of
these modules know about request or socket transport.
"""

from .points import compute_points
from .recompute import (
    RecomputeResult,
    compute_contest_leaderboard,
    compute_leaderboard,
    compute_season_leaderboard,
    recompute_match,
)

__all__ = [
    'RecomputeResult',
    'compute_contest_leaderboard',
    'compute_leaderboard',
    'compute_points',
    'compute_season_leaderboard',
    'recompute_match',
]
