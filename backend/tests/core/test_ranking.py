"""
Tests for the ranking engine.
"""
from datetime import datetime, timedelta, timezone

import pytest

from dailytest.core.ranking import (
    CohortEntry,
    build_combined_cohort,
    calculate_percentile,
    compute_rank,
    find_standing,
    rank_cohort,
    rank_combined,
)
from dailytest.core.scoring import calculate_net_score

T0 = datetime(2025, 3, 14, 4, 0, tzinfo=timezone.utc)


def entry(submission_id, user_id, score, minutes):
    return CohortEntry(
        submission_id=submission_id,
        user_id=user_id,
        net_score=score,
        submitted_at=T0 + timedelta(minutes=minutes),
    )


class TestRankCohort:
    """Phase ranking is a strict total order."""

    def test_tied_scores_broken_by_submission_time(self):
        cohort = [
            entry(1, "a", 10.0, 1),
            entry(2, "b", 8.0, 2),
            entry(3, "c", 8.0, 3),
            entry(4, "d", 5.0, 4),
        ]

        standings = rank_cohort(cohort)

        assert [(s.user_id, s.rank) for s in standings] == [
            ("a", 1),
            ("b", 2),
            ("c", 3),
            ("d", 4),
        ]

    def test_input_order_is_irrelevant(self):
        cohort = [
            entry(4, "d", 5.0, 4),
            entry(3, "c", 8.0, 3),
            entry(1, "a", 10.0, 1),
            entry(2, "b", 8.0, 2),
        ]

        assert [s.user_id for s in rank_cohort(cohort)] == ["a", "b", "c", "d"]

    def test_identical_score_and_time_falls_back_to_id(self):
        cohort = [entry(7, "late-id", 6.0, 5), entry(3, "early-id", 6.0, 5)]

        standings = rank_cohort(cohort)

        assert [s.user_id for s in standings] == ["early-id", "late-id"]

    def test_ranks_are_unique(self):
        cohort = [entry(i, f"u{i}", float(i % 3), i % 2) for i in range(1, 21)]

        ranks = [s.rank for s in rank_cohort(cohort)]

        assert sorted(ranks) == list(range(1, 21))

    def test_percentile_and_total(self):
        standings = rank_cohort(
            [entry(1, "a", 10.0, 1), entry(2, "b", 8.0, 2), entry(3, "c", 5.0, 3)]
        )

        assert [s.percentile for s in standings] == [67, 33, 0]
        assert all(s.total_participants == 3 for s in standings)

    def test_negative_scores_rank_below_zero(self):
        standings = rank_cohort([entry(1, "neg", -2.0, 0), entry(2, "zero", 0.0, 5)])

        assert standings[0].user_id == "zero"

    def test_empty_cohort(self):
        assert rank_cohort([]) == []


class TestComputeRank:
    """compute_rank counts the submissions that beat the given one."""

    def test_matches_rank_cohort(self):
        cohort = [
            entry(1, "a", 10.0, 1),
            entry(2, "b", 8.0, 2),
            entry(3, "c", 8.0, 3),
            entry(4, "d", 5.0, 4),
        ]

        assert [compute_rank(e, cohort) for e in cohort] == [1, 2, 3, 4]

    def test_entry_outside_cohort(self):
        cohort = [entry(1, "a", 10.0, 1)]

        assert compute_rank(entry(2, "b", 12.0, 5), cohort) == 1
        assert compute_rank(entry(3, "c", 10.0, 5), cohort) == 2


class TestCalculatePercentile:
    """Tests for calculate_percentile."""

    @pytest.mark.parametrize(
        "rank,total,expected",
        [
            (1, 1, 0),
            (1, 2, 50),
            (1, 4, 75),
            (2, 8, 75),
            (1, 3, 67),
            (3, 8, 63),  # 62.5 rounds half-up
            (8, 8, 0),
        ],
    )
    def test_values(self, rank, total, expected):
        assert calculate_percentile(rank, total) == expected

    def test_empty_cohort_rejected(self):
        with pytest.raises(ValueError):
            calculate_percentile(1, 0)

    def test_rank_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            calculate_percentile(5, 4)


class TestCombinedRanking:
    """Combined rank sums phase scores for users present in every phase."""

    def test_user_missing_a_phase_is_excluded(self):
        combined = build_combined_cohort(
            {
                "GS": [entry(1, "both", 10.0, 1), entry(2, "gs-only", 20.0, 2)],
                "CSAT": [entry(3, "both", 4.0, 30)],
            },
            ["GS", "CSAT"],
        )

        assert [c.user_id for c in combined] == ["both"]
        assert combined[0].combined_score == 14.0
        assert combined[0].phase_scores == {"GS": 10.0, "CSAT": 4.0}

    def test_completion_time_is_later_phase(self):
        combined = build_combined_cohort(
            {
                "GS": [entry(1, "u", 1.0, 50)],
                "CSAT": [entry(2, "u", 1.0, 10)],
            },
            ["GS", "CSAT"],
        )

        assert combined[0].completed_at == T0 + timedelta(minutes=50)

    def test_ties_broken_by_earlier_completion(self):
        combined = build_combined_cohort(
            {
                "GS": [entry(1, "slow", 10.0, 1), entry(2, "fast", 12.0, 2)],
                "CSAT": [entry(3, "slow", 6.0, 90), entry(4, "fast", 4.0, 40)],
            },
            ["GS", "CSAT"],
        )

        standings = rank_combined(combined)

        assert [(s.user_id, s.rank) for s in standings] == [("fast", 1), ("slow", 2)]

    def test_equal_totals_from_different_phase_scores_tie_exactly(self):
        # 4 + 4/3 and 2 + 10/3 are both 16/3, but their float sums differ
        combined = build_combined_cohort(
            {
                "GS": [
                    entry(1, "early", calculate_net_score(2, 0), 1),
                    entry(2, "late", calculate_net_score(1, 0), 2),
                ],
                "CSAT": [
                    entry(3, "early", calculate_net_score(1, 1), 5),
                    entry(4, "late", calculate_net_score(2, 1), 15),
                ],
            },
            ["GS", "CSAT"],
        )

        standings = rank_combined(combined)

        assert [(s.user_id, s.rank) for s in standings] == [("early", 1), ("late", 2)]
        assert standings[0].score == standings[1].score == 16 / 3

    def test_full_ties_broken_by_user_id(self):
        combined = build_combined_cohort(
            {
                "GS": [entry(1, "zed", 2.0, 1), entry(2, "amy", 2.0, 1)],
                "CSAT": [entry(3, "zed", 2.0, 5), entry(4, "amy", 2.0, 5)],
            },
            ["GS", "CSAT"],
        )

        assert [s.user_id for s in rank_combined(combined)] == ["amy", "zed"]

    def test_find_standing(self):
        standings = rank_combined(
            build_combined_cohort(
                {"GS": [entry(1, "a", 1.0, 1)], "CSAT": [entry(2, "a", 1.0, 2)]},
                ["GS", "CSAT"],
            )
        )

        assert find_standing(standings, "a").rank == 1
        assert find_standing(standings, "missing") is None
