"""Contest services: race-safe joining and deadline sweeping."""

from .join import join_contest
from .scheduler import close_expired_contests, start_contest_sweeper

__all__ = ['close_expired_contests', 'join_contest', 'start_contest_sweeper']
