"""Tournament API integration tests."""

from decimal import Decimal

import pytest

from tourney.config import Settings, get_settings


class TestClockEndpoint:
    """GET /tournaments/{id}/clock."""

    @pytest.mark.asyncio
    async def test_clock_during_break(self, client, seed_tournament):
        seeded = await seed_tournament([10000, 10000])

        response = await client.get(
            f"/tournaments/{seeded['tournament_id']}/clock",
            params={"now": "2026-01-10T19:25:00"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_break"] is True
        assert data["seconds_remaining"] == 300
        assert data["countdown"] == "05:00"
        assert data["level_number"] is None
        assert data["current_blinds"] == "100/200"
        assert data["next_blinds"] == "200/400"
        assert data["next_ante"] == "50"

    @pytest.mark.asyncio
    async def test_clock_without_structure(self, client, seed_tournament):
        seeded = await seed_tournament(
            [10000, 10000], structure_items=None, blind_level_minutes=15
        )

        response = await client.get(
            f"/tournaments/{seeded['tournament_id']}/clock",
            params={"now": "2026-01-10T19:35:00"},
        )

        data = response.json()
        assert data["current_index"] == 2
        assert data["seconds_remaining"] == 600
        assert data["next_blinds"] == "-/-"

    @pytest.mark.asyncio
    async def test_clock_not_started(self, client, seed_tournament):
        seeded = await seed_tournament([10000], start=None)

        response = await client.get(f"/tournaments/{seeded['tournament_id']}/clock")

        data = response.json()
        assert data["has_started"] is False
        assert data["seconds_remaining"] == 0

    @pytest.mark.asyncio
    async def test_unknown_tournament(self, client):
        response = await client.get("/tournaments/missing/clock")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TOURNAMENT_NOT_FOUND"


class TestChipBalanceEndpoint:
    @pytest.mark.asyncio
    async def test_reports_difference(self, client, seed_tournament):
        seeded = await seed_tournament([5000, 15000, 9000])

        response = await client.get(f"/tournaments/{seeded['tournament_id']}/chip-balance")

        assert response.status_code == 200
        assert response.json() == {
            "tournament_id": seeded["tournament_id"],
            "chips_issued": 30000,
            "chips_counted": 29000,
            "difference": 1000,
            "is_balanced": False,
        }


class TestPayoutPreviewEndpoint:
    @pytest.mark.asyncio
    async def test_preview(self, client, seed_tournament):
        seeded = await seed_tournament([5000, 15000, 10000])

        response = await client.get(f"/tournaments/{seeded['tournament_id']}/payouts/preview")

        assert response.status_code == 200
        results = response.json()["results"]
        assert [r["member_id"] for r in results] == ["member-2", "member-3", "member-1"]
        assert [Decimal(str(r["prize"])) for r in results] == [
            Decimal("150"),
            Decimal("90"),
            Decimal("60"),
        ]


class TestSettleEndpoint:
    """POST /tournaments/{id}/settle."""

    @pytest.mark.asyncio
    async def test_settle(self, client, seed_tournament):
        seeded = await seed_tournament([5000, 15000, 10000])

        response = await client.post(f"/tournaments/{seeded['tournament_id']}/settle")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(str(data["total_paid"])) == Decimal("300")
        assert data["ledger_entries_created"] == 3
        assert data["results"][0]["rank"] == 1
        assert data["results"][0]["member_id"] == "member-2"

    @pytest.mark.asyncio
    async def test_settle_twice_conflict(self, client, seed_tournament):
        seeded = await seed_tournament([5000, 15000, 10000])
        url = f"/tournaments/{seeded['tournament_id']}/settle"

        await client.post(url)
        response = await client.post(url)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_SETTLED"

    @pytest.mark.asyncio
    async def test_chip_imbalance_conflict(self, client, seed_tournament):
        seeded = await seed_tournament([5000, 15000, 9000])

        response = await client.post(f"/tournaments/{seeded['tournament_id']}/settle")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "CHIP_IMBALANCE"
        assert error["details"]["difference"] == 1000

    @pytest.mark.asyncio
    async def test_wrong_status_conflict(self, client, seed_tournament):
        from tourney.tournament.models import TournamentStatus

        seeded = await seed_tournament([10000], status=TournamentStatus.SCHEDULED)

        response = await client.post(f"/tournaments/{seeded['tournament_id']}/settle")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TOURNAMENT_STATUS"

    @pytest.mark.asyncio
    async def test_strict_payout_validation(self, client, test_app, test_settings, seed_tournament):
        seeded = await seed_tournament(
            [5000, 15000, 10000],
            allocations=[
                {
                    "name": "Main Pot",
                    "type": "CustomMatrix",
                    "percent": 100,
                    "rules": [{"min_players": 2, "max_players": 10, "percentages": [50, 30]}],
                }
            ],
        )
        strict = Settings(**{**test_settings.model_dump(), "strict_payout_validation": True})
        test_app.dependency_overrides[get_settings] = lambda: strict

        response = await client.post(f"/tournaments/{seeded['tournament_id']}/settle")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_PAYOUT_CONFIG"

    @pytest.mark.asyncio
    async def test_duplicate_member_conflict(self, client, seed_tournament):
        seeded = await seed_tournament(
            [5000, 15000, 10000],
            member_ids=["member-1", "member-2", "member-1"],
        )

        response = await client.post(f"/tournaments/{seeded['tournament_id']}/settle")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "DUPLICATE_REGISTRATION"
        assert error["details"]["member_ids"] == ["member-1"]
