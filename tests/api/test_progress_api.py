"""Progress endpoints over HTTP."""

import pytest

from codecase.errors import StorageError
from codecase.progress.service import ProgressService


async def _register(client, headers, **body):
    response = await client.post("/api/v1/progress/register", json=body, headers=headers)
    assert response.status_code == 200
    return response.json()


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/progress/me")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get("/api/v1/progress/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unregistered_user_gets_404(self, client, auth_headers):
        response = await client.get("/api/v1/progress/me", headers=auth_headers("nobody"))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_and_read_back(self, client, auth_headers):
        headers = auth_headers("alice")

        body = await _register(client, headers, display_name="Alice")

        assert body["created"] is True
        assert body["progress"]["total_points"] == 500
        assert body["progress"]["hints"] == 2
        assert body["progress"]["email"] == "alice@example.com"

        me = (await client.get("/api/v1/progress/me", headers=headers)).json()
        assert me["user_id"] == "alice"
        assert me["display_name"] == "Alice"
        assert me["level"] == 1
        assert me["rank_title"]
        assert me["points_into_level"] == 500
        assert me["completed_cases"] == []
        assert me["referral_stats"]["successful_referrals"] == 0

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, client, auth_headers):
        headers = auth_headers("alice")
        await _register(client, headers)

        again = await _register(client, headers)

        assert again["created"] is False
        assert again["progress"]["total_points"] == 500

    @pytest.mark.asyncio
    async def test_register_with_referral(self, client, auth_headers):
        alice = await _register(client, auth_headers("alice"))
        code = alice["progress"]["referral_code"]

        bob = await _register(client, auth_headers("bob"), referral_code=code)

        assert bob["referral_applied"] is True
        assert bob["referrer_credited"] is True
        assert bob["progress"]["total_points"] == 700
        me = (await client.get("/api/v1/progress/me", headers=auth_headers("alice"))).json()
        assert me["total_points"] == 600
        assert me["referral_stats"]["history"][0]["referee_id"] == "bob"
        assert "first-referral" in me["achievements"]


class TestCases:
    @pytest.mark.asyncio
    async def test_complete_case(self, client, auth_headers):
        headers = auth_headers("alice")
        await _register(client, headers)

        response = await client.post(
            "/api/v1/progress/me/cases/case-vanishing-blogger/complete",
            json={"points": 150, "time_spent": 240},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["points_awarded"] == 150
        assert body["evidence_added"] > 0

        me = (await client.get("/api/v1/progress/me", headers=headers)).json()
        assert me["completed_cases"] == ["case-vanishing-blogger"]
        assert me["statistics"]["total_time_spent"] == 240
        assert "first-detective" in me["achievements"]

    @pytest.mark.asyncio
    async def test_negative_points_rejected(self, client, auth_headers):
        headers = auth_headers("alice")
        await _register(client, headers)

        response = await client.post(
            "/api/v1/progress/me/cases/case-x/complete",
            json={"points": -5, "time_spent": 10},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["error"] == "validation_error"


class TestStreak:
    @pytest.mark.asyncio
    async def test_claim_then_reject(self, client, auth_headers):
        headers = auth_headers("alice")
        await _register(client, headers)

        status = (await client.get("/api/v1/progress/me/streak", headers=headers)).json()
        assert status["can_claim"] is True
        assert status["next_reward"]["day"] == 1

        first = (await client.post("/api/v1/progress/me/streak/claim", headers=headers)).json()
        assert first["success"] is True
        assert first["streak"] == 1
        assert first["reward"]["amount"] == 100

        second = (await client.post("/api/v1/progress/me/streak/claim", headers=headers)).json()
        assert second["success"] is False
        assert second["error"] == "not_eligible"
        assert 23 < second["hours_remaining"] <= 24

        status = (await client.get("/api/v1/progress/me/streak", headers=headers)).json()
        assert status["can_claim"] is False
        assert status["next_claim_at"] is not None

    @pytest.mark.asyncio
    async def test_storage_failure_is_503(self, client, auth_headers, monkeypatch):
        headers = auth_headers("alice")
        await _register(client, headers)

        async def _fail(self, user_id):
            raise StorageError("Progress store unavailable, please retry")

        monkeypatch.setattr(ProgressService, "claim_daily_streak", _fail)
        response = await client.post("/api/v1/progress/me/streak/claim", headers=headers)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        assert response.json()["retryable"] is True


class TestReferrals:
    @pytest.mark.asyncio
    async def test_validate_and_apply(self, client, auth_headers):
        alice = await _register(client, auth_headers("alice"), display_name="Alice")
        code = alice["progress"]["referral_code"]
        carol = auth_headers("carol")
        await _register(client, carol)

        check = (await client.get(f"/api/v1/referrals/{code}/validate", headers=carol)).json()
        assert check["success"] is True
        assert check["referrer_name"] == "Alice"

        applied = (await client.post("/api/v1/progress/me/referral", json={"code": code}, headers=carol)).json()
        assert applied["success"] is True
        assert applied["points_awarded"] == 200

        repeat = (await client.post("/api/v1/progress/me/referral", json={"code": code}, headers=carol)).json()
        assert repeat["success"] is False
        assert repeat["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_unknown_code(self, client, auth_headers):
        headers = auth_headers("carol")
        await _register(client, headers)
        body = (await client.get("/api/v1/referrals/QQQQQ0/validate", headers=headers)).json()
        assert body["success"] is False
        assert body["error"] == "not_found"


class TestAchievements:
    @pytest.mark.asyncio
    async def test_catalogue_is_public(self, client):
        body = (await client.get("/api/v1/achievements")).json()

        ids = {a["id"] for a in body["achievements"]}
        assert len(ids) == 27
        assert "legend" in ids
        assert body["legend_exemption_count"] == 3
        speed = next(a for a in body["achievements"] if a["id"] == "speed-demon")
        assert speed["derivable"] is False

    @pytest.mark.asyncio
    async def test_reward_table_is_public(self, client):
        rewards = (await client.get("/api/v1/streak/rewards")).json()["rewards"]
        assert [r["day"] for r in rewards] == list(range(1, 31))
        assert rewards[-1]["achievement_id"] == "month-master"

    @pytest.mark.asyncio
    async def test_unlock_and_list(self, client, auth_headers):
        headers = auth_headers("alice")
        await _register(client, headers)

        unlock = await client.post("/api/v1/progress/me/achievements/speed-demon/unlock", headers=headers)
        assert unlock.json()["newly_unlocked"] is True

        mine = (await client.get("/api/v1/progress/me/achievements", headers=headers)).json()
        assert mine["unlocked"] == ["speed-demon"]
        assert mine["total_unlocked"] == 1
        assert mine["total_available"] == 27


class TestLedger:
    @pytest.mark.asyncio
    async def test_ledger_lists_grants_newest_first(self, client, auth_headers):
        headers = auth_headers("alice")
        await _register(client, headers)
        await client.post("/api/v1/progress/me/streak/claim", headers=headers)

        entries = (await client.get("/api/v1/progress/me/ledger", headers=headers)).json()["entries"]

        assert [e["source"] for e in entries] == ["daily_claim", "signup"]
        assert entries[1]["points"] == 500


class TestHints:
    @pytest.mark.asyncio
    async def test_spend_hints(self, client, auth_headers):
        alice = await _register(client, auth_headers("alice"))
        carol = auth_headers("carol")
        await _register(client, carol, referral_code=alice["progress"]["referral_code"])
        purchase = {"case_id": "case-vanishing-blogger", "hint_id": "hint-1"}

        bought = (await client.post("/api/v1/progress/me/hints/spend", json=purchase, headers=carol)).json()
        repeat = (await client.post("/api/v1/progress/me/hints/spend", json=purchase, headers=carol)).json()

        assert bought["success"] is True
        assert bought["charged"] is True
        assert bought["hints_remaining"] == 0
        assert repeat["success"] is True
        assert repeat["charged"] is False
        me = (await client.get("/api/v1/progress/me", headers=carol)).json()
        assert me["hints"] == 0
        assert me["total_points"] == 700

    @pytest.mark.asyncio
    async def test_insufficient_hints(self, client, auth_headers):
        headers = auth_headers("bob")
        await _register(client, headers)

        response = await client.post(
            "/api/v1/progress/me/hints/spend",
            json={"case_id": "case-vanishing-blogger", "hint_id": "hint-1"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["error"] == "insufficient_hints"

    @pytest.mark.asyncio
    async def test_missing_fields_are_422(self, client, auth_headers):
        headers = auth_headers("bob")
        await _register(client, headers)
        response = await client.post("/api/v1/progress/me/hints/spend", json={"case_id": ""}, headers=headers)
        assert response.status_code == 422
