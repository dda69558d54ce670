"""Achievement catalogue and derivation.

Most achievements are a pure function of the progress record. A few
(``predicate is None``) cannot be derived and exist only once stored
through ``unlock_achievement`` or a daily streak reward.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from codecase.progress.snapshot import ProgressSnapshot

LEGEND_ID = "legend"
LEGEND_EXEMPTION_COUNT = 3

Predicate = Callable[[ProgressSnapshot], bool]


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    category: str
    rarity: str
    points: int
    predicate: Predicate | None = None

    @property
    def derivable(self) -> bool:
        return self.predicate is not None


def _completed(case_id: str) -> Predicate:
    return lambda p: case_id in p.completed_cases


def _cases_at_least(n: int) -> Predicate:
    return lambda p: len(p.completed_cases) >= n


def _referrals_at_least(n: int) -> Predicate:
    return lambda p: p.successful_referrals >= n


ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    # Getting started
    AchievementDefinition(
        "first-detective", "First Detective", "Started your first case",
        "Getting Started", "common", 50, _cases_at_least(1),
    ),
    AchievementDefinition(
        "tutorial-master", "Tutorial Master", "Completed the tutorial case",
        "Getting Started", "common", 100, _completed("case-vanishing-blogger"),
    ),
    # Cases
    AchievementDefinition(
        "vanishing-blogger-solved", "Vanishing Blogger Detective", "Solved the Vanishing Blogger case",
        "Cases", "common", 200, _completed("case-vanishing-blogger"),
    ),
    AchievementDefinition(
        "social-media-investigator", "Social Media Investigator", "Solved the Social Media Stalker case",
        "Cases", "uncommon", 300, _completed("case-social-media-stalker"),
    ),
    AchievementDefinition(
        "corporate-sleuth", "Corporate Sleuth", "Solved the Corporate Sabotage case",
        "Cases", "uncommon", 400, _completed("case-corporate-sabotage"),
    ),
    AchievementDefinition(
        "dating-app-detective", "Dating App Detective", "Solved the Dating App Disaster case",
        "Cases", "rare", 500, _completed("case-dating-app-disaster"),
    ),
    AchievementDefinition(
        "e-commerce-expert", "E-Commerce Expert", "Solved the E-Commerce Fraud case",
        "Cases", "rare", 600, _completed("case-ecommerce-fraud"),
    ),
    AchievementDefinition(
        "gaming-guru", "Gaming Guru", "Solved the Gaming Platform Hack case",
        "Cases", "epic", 750, _completed("case-gaming-platform-hack"),
    ),
    # Milestones
    AchievementDefinition(
        "detective-expert", "Detective Expert", "Completed 3 cases",
        "Milestones", "rare", 500, _cases_at_least(3),
    ),
    AchievementDefinition(
        "case-closer", "Case Closer", "Completed 5 cases",
        "Milestones", "rare", 1000, _cases_at_least(5),
    ),
    AchievementDefinition(
        "master-detective", "Master Detective", "Solved all available cases",
        "Milestones", "legendary", 2000, _cases_at_least(6),
    ),
    # Skills
    AchievementDefinition(
        "hint-master", "Hint Master", "Earned 10 hints",
        "Skills", "uncommon", 200, lambda p: p.hints >= 10,
    ),
    AchievementDefinition(
        "evidence-collector", "Evidence Collector", "Collected 10 pieces of evidence",
        "Skills", "rare", 750, lambda p: len(p.evidence) >= 10,
    ),
    AchievementDefinition(
        "streak-master", "Streak Master", "Completed 3 cases in a row",
        "Skills", "rare", 800, lambda p: p.completion_streak >= 3,
    ),
    # Progression
    AchievementDefinition(
        "code-buster-pro", "CodeCase Pro", "Reached level 5",
        "Progression", "epic", 1000, lambda p: p.level >= 5,
    ),
    AchievementDefinition(
        "elite-investigator", "Elite Investigator", "Reached level 10",
        "Progression", "legendary", 2500, lambda p: p.level >= 10,
    ),
    AchievementDefinition(
        "point-collector", "Point Collector", "Earned 5000 total points",
        "Progression", "rare", 500, lambda p: p.total_points >= 5000,
    ),
    AchievementDefinition(
        "veteran-detective", "Veteran Detective", "Earned 10000 total points",
        "Progression", "epic", 1000, lambda p: p.total_points >= 10000,
    ),
    # Referrals
    AchievementDefinition(
        "first-referral", "First Referral", "Successfully refer your first detective",
        "Referrals", "uncommon", 200, _referrals_at_least(1),
    ),
    AchievementDefinition(
        "team-builder", "Team Builder", "Successfully refer 5 detectives",
        "Referrals", "rare", 500, _referrals_at_least(5),
    ),
    AchievementDefinition(
        "recruitment-expert", "Recruitment Expert", "Successfully refer 10 detectives",
        "Referrals", "epic", 1000, _referrals_at_least(10),
    ),
    AchievementDefinition(
        "master-recruiter", "Master Recruiter", "Successfully refer 25 detectives",
        "Referrals", "legendary", 2500, _referrals_at_least(25),
    ),
    # Special: only ever stored, never derived
    AchievementDefinition(
        "speed-demon", "Speed Demon", "Completed a case in under 10 minutes",
        "Special", "epic", 1500,
    ),
    AchievementDefinition(
        "no-hints-hero", "Perfectionist", "Completed a case without using hints",
        "Special", "legendary", 750,
    ),
    AchievementDefinition(
        "perfect-score", "Perfect Score", "Solved a case without a single wrong answer",
        "Special", "epic", 1000,
    ),
    AchievementDefinition(
        "month-master", "Month Master", "Claimed the daily reward 30 days in a row",
        "Special", "legendary", 1000,
    ),
)

LEGEND = AchievementDefinition(
    LEGEND_ID, "CodeCase Legend", "Unlock all other achievements",
    "Ultimate", "legendary", 2000,
)

ACHIEVEMENTS_BY_ID: dict[str, AchievementDefinition] = {a.id: a for a in (*ACHIEVEMENTS, LEGEND)}
DERIVABLE_IDS = frozenset(a.id for a in ACHIEVEMENTS if a.derivable) | {LEGEND_ID}
NON_DERIVABLE_IDS = frozenset(a.id for a in ACHIEVEMENTS if not a.derivable)


def is_derivable(achievement_id: str) -> bool:
    return achievement_id in DERIVABLE_IDS


def derive_achievements(
    progress: ProgressSnapshot,
    exemption_count: int = LEGEND_EXEMPTION_COUNT,
) -> frozenset[str]:
    """Unlocked achievement ids for a progress snapshot.

    Derivable achievements are decided by their predicate alone, so a stored
    id never overrides it. Stored ids count only for achievements that
    cannot be derived. ``legend`` unlocks when at most ``exemption_count``
    of the other achievements are still locked.
    """
    unlocked = {a.id for a in ACHIEVEMENTS if a.predicate is not None and a.predicate(progress)}
    unlocked |= progress.achievements & NON_DERIVABLE_IDS

    if len(unlocked) >= len(ACHIEVEMENTS) - max(exemption_count, 0):
        unlocked.add(LEGEND_ID)
    return frozenset(unlocked)
