"""
Tests for GET /v1/submissions/me.
"""
from datetime import timedelta

import pytest

from dailytest.models import Phase

from conftest import WINDOW_END, auth

URL = "/v1/submissions/me"


@pytest.fixture
def history(paid_test, submit, frozen_clock):
    """Alice: GS at 10:00, CSAT at 11:00, late GS after the window."""
    submit(paid_test, phase=Phase.GS, correct=2)
    frozen_clock.advance(hours=1)
    submit(paid_test, phase=Phase.CSAT, correct=1, incorrect=1)
    frozen_clock.set(WINDOW_END + timedelta(minutes=30))
    submit(paid_test, phase=Phase.GS, correct=5)
    # Someone else's work never shows up
    submit(paid_test, token="bob-token", phase=Phase.GS, correct=3)
    return paid_test


class TestSubmissionHistory:
    def test_newest_first_including_late(self, client, history):
        data = client.get(URL, headers=auth("alice-token")).json()

        assert data["total_count"] == 3
        assert data["has_more"] is False
        assert [(r["phase"], r["is_late"]) for r in data["results"]] == [
            ("GS", True),
            ("CSAT", False),
            ("GS", False),
        ]

    def test_entries_carry_title_and_score(self, client, history):
        newest = client.get(URL, headers=auth("alice-token")).json()["results"][0]

        assert newest["test_id"] == history.id
        assert newest["test_title"] == "Prelims Mock 14 March"
        assert newest["net_score"] == 10.0
        assert newest["correct_count"] == 5
        assert newest["submitted_at"] == "2025-03-14T18:30:00+05:30"

    def test_scores_are_rounded(self, client, history):
        results = client.get(URL, headers=auth("alice-token")).json()["results"]

        assert results[1]["net_score"] == 1.33

    def test_pagination(self, client, history):
        first = client.get(URL, params={"limit": 2}, headers=auth("alice-token")).json()
        second = client.get(
            URL, params={"limit": 2, "offset": 2}, headers=auth("alice-token")
        ).json()

        assert len(first["results"]) == 2
        assert first["has_more"] is True
        assert first["limit"] == 2
        assert len(second["results"]) == 1
        assert second["has_more"] is False
        assert second["offset"] == 2

    def test_empty_history(self, client):
        data = client.get(URL, headers=auth("dave-token")).json()

        assert data["results"] == []
        assert data["total_count"] == 0

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"offset": -1}])
    def test_invalid_paging(self, client, params):
        response = client.get(URL, params=params, headers=auth("alice-token"))

        assert response.status_code == 422

    def test_requires_authentication(self, client):
        assert client.get(URL).status_code == 401
