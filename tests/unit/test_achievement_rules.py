"""Achievement derivation: predicates, stored ids and the legend threshold."""

from codecase.progress.achievements import (
    ACHIEVEMENTS,
    ACHIEVEMENTS_BY_ID,
    DERIVABLE_IDS,
    LEGEND_ID,
    NON_DERIVABLE_IDS,
    derive_achievements,
)
from codecase.progress.snapshot import EvidenceSnapshot, ProgressSnapshot

ALL_CASES = frozenset({
    "case-vanishing-blogger",
    "visual-vanishing-blogger",
    "case-social-media-stalker",
    "case-corporate-sabotage",
    "case-dating-app-disaster",
    "case-ecommerce-fraud",
    "case-gaming-platform-hack",
})


def _evidence(n: int) -> tuple[EvidenceSnapshot, ...]:
    return tuple(
        EvidenceSnapshot(case_id="case-x", title=f"E{i}", description="", evidence_type="clue",
                         content="...", importance="high")
        for i in range(n)
    )


def _maxed(achievements: frozenset[str] = frozenset()) -> ProgressSnapshot:
    """A record satisfying every derivable predicate."""
    return ProgressSnapshot(
        user_id="u1",
        total_points=12_000,
        hints=12,
        level=13,
        completed_cases=ALL_CASES,
        evidence=_evidence(12),
        achievements=achievements,
        successful_referrals=25,
        completion_streak=7,
    )


class TestCatalogue:
    def test_ids_are_unique(self):
        ids = [a.id for a in ACHIEVEMENTS]
        assert len(ids) == len(set(ids))

    def test_non_derivable_set(self):
        assert NON_DERIVABLE_IDS == {"speed-demon", "no-hints-hero", "perfect-score", "month-master"}

    def test_legend_is_derived(self):
        assert LEGEND_ID in DERIVABLE_IDS
        assert LEGEND_ID in ACHIEVEMENTS_BY_ID


class TestDerive:
    def test_new_user_has_nothing(self):
        assert derive_achievements(ProgressSnapshot(user_id="u1")) == frozenset()

    def test_first_case(self):
        unlocked = derive_achievements(ProgressSnapshot(user_id="u1", completed_cases=frozenset({"case-vanishing-blogger"})))
        assert {"first-detective", "tutorial-master", "vanishing-blogger-solved"} <= unlocked
        assert "detective-expert" not in unlocked

    def test_thresholds(self):
        progress = ProgressSnapshot(user_id="u1", total_points=5000, level=6, hints=10, successful_referrals=5)
        unlocked = derive_achievements(progress)
        assert {"point-collector", "code-buster-pro", "hint-master", "first-referral", "team-builder"} <= unlocked
        assert "veteran-detective" not in unlocked
        assert "recruitment-expert" not in unlocked

    def test_stored_derivable_id_is_ignored(self):
        """A stored id cannot unlock something the progress record contradicts."""
        progress = ProgressSnapshot(user_id="u1", achievements=frozenset({"gaming-guru", "case-closer"}))
        assert derive_achievements(progress) == frozenset()

    def test_stored_non_derivable_id_counts(self):
        progress = ProgressSnapshot(user_id="u1", achievements=frozenset({"speed-demon"}))
        assert derive_achievements(progress) == frozenset({"speed-demon"})

    def test_pure(self):
        progress = _maxed(frozenset({"month-master"}))
        assert derive_achievements(progress) == derive_achievements(progress)


class TestLegend:
    def test_all_derivable_alone_is_not_enough(self):
        """Four special achievements are locked, one more than the exemption allows."""
        unlocked = derive_achievements(_maxed())
        assert DERIVABLE_IDS - {LEGEND_ID} <= unlocked
        assert LEGEND_ID not in unlocked

    def test_one_special_unlocks_legend(self):
        unlocked = derive_achievements(_maxed(frozenset({"month-master"})))
        assert LEGEND_ID in unlocked

    def test_exemption_count_is_configurable(self):
        assert LEGEND_ID in derive_achievements(_maxed(), exemption_count=4)
        assert LEGEND_ID not in derive_achievements(_maxed(frozenset({"month-master"})), exemption_count=0)

    def test_zero_exemptions_requires_everything(self):
        progress = _maxed(NON_DERIVABLE_IDS)
        assert LEGEND_ID in derive_achievements(progress, exemption_count=0)
