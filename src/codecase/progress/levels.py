"""Level and detective-rank computation.

Level is a pure function of total points and is recomputed every time
points change; it is never adjusted on its own.
"""

from __future__ import annotations

POINTS_PER_LEVEL = 1000

DETECTIVE_RANKS: list[dict] = [
    {"rank": 1, "title": "Rookie Detective", "min_level": 1, "max_level": 2},
    {"rank": 2, "title": "Detective", "min_level": 3, "max_level": 5},
    {"rank": 3, "title": "Senior Detective", "min_level": 6, "max_level": 8},
    {"rank": 4, "title": "Detective Inspector", "min_level": 9, "max_level": 12},
    {"rank": 5, "title": "Chief Detective", "min_level": 13, "max_level": 16},
    {"rank": 6, "title": "Detective Captain", "min_level": 17, "max_level": 20},
    {"rank": 7, "title": "Legendary Detective", "min_level": 21, "max_level": 999},
]


def compute_level(total_points: int) -> int:
    """``floor(total_points / 1000) + 1``; negative totals clamp to level 1."""
    return max(total_points, 0) // POINTS_PER_LEVEL + 1


def get_rank(level: int) -> dict:
    """Detective rank for a level (first rank when out of range)."""
    for rank in DETECTIVE_RANKS:
        if rank["min_level"] <= level <= rank["max_level"]:
            return rank
    return DETECTIVE_RANKS[0]


def level_progress(total_points: int) -> dict:
    """Level info for profile views."""
    level = compute_level(total_points)
    rank = get_rank(level)
    return {
        "level": level,
        "rank_title": rank["title"],
        "points_into_level": max(total_points, 0) % POINTS_PER_LEVEL,
        "points_for_level": POINTS_PER_LEVEL,
        "next_level": level + 1,
    }
