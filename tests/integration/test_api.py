"""API tests through the ASGI app.

The database dependency is pointed at the per-test SQLite file and the price
feed at an in-memory fake. Balances are read through fresh sessions so the
test never holds a transaction open while the app writes.
"""

from datetime import date, datetime, timezone

import httpx
import pytest
import pytest_asyncio
from support import FakePriceFeed, balance_of

from app.api.auth import create_access_token
from app.api.dependencies import get_db, get_price_feed, get_redis
from app.main import app
from app.models.domain import Bet
from app.services.scheduling import record_job_run


class FakeRedis:
    async def ping(self):
        return True


@pytest_asyncio.fixture
async def client(session_factory):
    feed = FakePriceFeed()

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_price_feed] = lambda: feed
    app.dependency_overrides[get_redis] = FakeRedis
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def read_balance(session_factory):
    async def _read(user_id: int) -> int:
        async with session_factory() as session:
            return await balance_of(session, user_id)

    return _read


def auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


async def _add_pending_bet(session_factory, user_id: int, race_date: date) -> None:
    async with session_factory() as session:
        session.add(
            Bet(user_id=user_id, race_date=race_date, coin_id="eth", stake=25, payout=0)
        )
        await session.commit()


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_ready(self, client):
        body = (await client.get("/ready")).json()

        assert body["ready"] is True
        assert {name: c["status"] for name, c in body["checks"].items()} == {
            "db": "ok",
            "settlement": "ok",
            "redis": "ok",
        }

    async def test_overdue_race_is_a_warning(self, client, session_factory, make_user):
        user_id = await make_user()
        await _add_pending_bet(session_factory, user_id, date(2020, 1, 1))

        body = (await client.get("/ready")).json()

        assert body["ready"] is True
        assert body["checks"]["settlement"]["status"] == "warn"
        assert "2020-01-01" in body["checks"]["settlement"]["message"]


class TestRequestId:
    async def test_generated_when_missing(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Request-Id"]) == 36

    async def test_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-Id": "abc-123"})
        assert response.headers["X-Request-Id"] == "abc-123"


class TestAuth:
    async def test_missing_token(self, client):
        response = await client.post("/api/betting/bet", json={"coin_id": "btc", "stake": 1})
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/betting/balance", headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401

    async def test_expired_token(self, client, make_user):
        user_id = await make_user()
        token = create_access_token(user_id, expires_minutes=-1)
        response = await client.get(
            "/api/betting/balance", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401


class TestBettingApi:
    async def test_anonymous_data(self, client):
        response = await client.get("/api/betting/data")

        assert response.status_code == 200
        body = response.json()
        assert body["active_race"]["status"] == "racing"
        assert body["yesterday_race"]["status"] == "completed"
        assert body["betting_race"]["status"] == "upcoming"
        assert body["multiplier"] == 4
        assert body["max_bet"] == 1000
        assert body["balance"] == 0
        assert body["user_bet"] is None
        assert body["user_bet_history"] == []

    async def test_place_bet_flow(self, client, make_user, read_balance):
        user_id = await make_user(points=1000)

        response = await client.post(
            "/api/betting/bet", json={"coin_id": "btc", "stake": 200}, headers=auth(user_id)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Bet placed successfully"
        assert body["remaining_points"] == 800
        assert body["potential_payout"] == 800
        assert body["bet"]["coin_symbol"] == "BTC"
        assert body["bet"]["status"] == "pending"
        assert await read_balance(user_id) == 800

        data = (await client.get("/api/betting/data", headers=auth(user_id))).json()
        assert data["balance"] == 800
        assert data["user_bet"]["coin_id"] == "btc"

        balance = await client.get("/api/betting/balance", headers=auth(user_id))
        assert balance.json() == {"points": 800}

    async def test_integral_float_stake(self, client, make_user, read_balance):
        user_id = await make_user(points=500)

        response = await client.post(
            "/api/betting/bet", json={"coin_id": "sol", "stake": 100.0}, headers=auth(user_id)
        )

        assert response.status_code == 200
        assert response.json()["bet"]["stake"] == 100
        assert await read_balance(user_id) == 400

    async def test_duplicate_bet_rejected(self, client, make_user, read_balance):
        user_id = await make_user(points=1000)
        await client.post(
            "/api/betting/bet", json={"coin_id": "btc", "stake": 100}, headers=auth(user_id)
        )

        response = await client.post(
            "/api/betting/bet", json={"coin_id": "eth", "stake": 100}, headers=auth(user_id)
        )

        assert response.status_code == 400
        assert "already have a bet" in response.json()["detail"]
        assert await read_balance(user_id) == 900

    @pytest.mark.parametrize(
        "payload, detail",
        [
            ({"coin_id": "btc", "stake": 0}, "Invalid stake amount"),
            ({"coin_id": "btc", "stake": 2.5}, "Invalid stake amount"),
            ({"coin_id": "btc", "stake": "abc"}, "Invalid stake amount"),
            ({"coin_id": "btc", "stake": True}, "Invalid stake amount"),
            ({"coin_id": "btc", "stake": None}, "Invalid stake amount"),
            ({"coin_id": "btc", "stake": 1001}, "Maximum bet is 1000 points"),
            ({"coin_id": "xrp", "stake": 10}, "Invalid coin"),
            ({"coin_id": "btc", "stake": 600}, "Insufficient points"),
        ],
    )
    async def test_rejections(self, client, make_user, read_balance, payload, detail):
        user_id = await make_user(points=500)

        response = await client.post("/api/betting/bet", json=payload, headers=auth(user_id))

        assert response.status_code == 400
        assert response.json()["detail"] == detail
        assert await read_balance(user_id) == 500

    async def test_unknown_user_is_404(self, client):
        response = await client.post(
            "/api/betting/bet", json={"coin_id": "btc", "stake": 10}, headers=auth(4242)
        )
        assert response.status_code == 404

    async def test_leaderboard(self, client, make_user):
        first = await make_user(points=900)
        second = await make_user(points=100)

        response = await client.get("/api/betting/leaderboard", headers=auth(second))

        body = response.json()
        assert [e["user_id"] for e in body["leaderboard"]] == [first, second]
        assert body["leaderboard"][1]["is_current_user"] is True
        assert body["total_users"] == 2


class TestPlansApi:
    async def test_anonymous_reads_are_empty(self, client):
        assert (await client.get("/api/plans")).json() == []
        assert (await client.get("/api/plans/task-ids")).json() == []
        stats = (await client.get("/api/plans/stats")).json()
        assert stats["total_points"] == 0

    async def test_point_values(self, client):
        response = await client.get("/api/plans/point-values")
        assert response.json() == {"daily": 100, "weekly": 500, "one-time": 1000}

    async def test_complete_and_uncomplete(self, client, make_user, make_task, read_balance):
        user_id = await make_user()
        task_id = await make_task("weekly")
        headers = auth(user_id)

        added = await client.post("/api/plans", json={"task_id": task_id}, headers=headers)
        assert added.status_code == 201
        assert added.json()["completed"] is False

        done = await client.post(f"/api/plans/{task_id}/complete", json={}, headers=headers)
        assert done.json()["message"] == "Task completed! +500 points"
        assert await read_balance(user_id) == 500

        again = await client.post(f"/api/plans/{task_id}/complete", json={}, headers=headers)
        assert again.json()["message"] == "Task already completed"
        assert again.json()["points_awarded"] == 0
        assert await read_balance(user_id) == 500

        undone = await client.post(f"/api/plans/{task_id}/uncomplete", headers=headers)
        assert undone.status_code == 200
        assert undone.json()["plan"]["completed"] is False
        assert await read_balance(user_id) == 0

        missing = await client.post(f"/api/plans/{task_id}/uncomplete", headers=headers)
        assert missing.status_code == 404

    async def test_toggle_and_remove(self, client, make_user, make_task, read_balance):
        user_id = await make_user()
        task_id = await make_task("daily")
        headers = auth(user_id)
        await client.post("/api/plans", json={"task_id": task_id}, headers=headers)

        toggled = await client.patch(f"/api/plans/{task_id}/toggle", headers=headers)
        assert toggled.json()["completed"] is True
        assert await read_balance(user_id) == 100

        ids = await client.get("/api/plans/task-ids", headers=headers)
        assert ids.json() == [task_id]

        removed = await client.delete(f"/api/plans/{task_id}", headers=headers)
        assert removed.status_code == 200
        assert (await client.get("/api/plans", headers=headers)).json() == []
        assert await read_balance(user_id) == 100

    async def test_add_unknown_task(self, client, make_user):
        user_id = await make_user()
        response = await client.post("/api/plans", json={"task_id": 999}, headers=auth(user_id))
        assert response.status_code == 404
        assert response.json()["detail"] == "Task not found"


class TestArticlesApi:
    async def test_list_and_get(self, client, make_task):
        task_id = await make_task("daily", title="Provide liquidity")

        articles = (await client.get("/api/articles")).json()
        assert len(articles) == 1
        assert articles[0]["tasks"][0]["id"] == task_id

        article_id = articles[0]["id"]
        one = await client.get(f"/api/articles/{article_id}")
        assert one.json()["tasks"][0]["title"] == "Provide liquidity"

        missing = await client.get("/api/articles/999")
        assert missing.status_code == 404


class TestAdminApi:
    async def test_requires_admin(self, client, make_user):
        user_id = await make_user()
        response = await client.get("/api/admin/tasks", headers=auth(user_id))
        assert response.status_code == 403

    async def test_lists_tasks_for_admin(self, client, make_user):
        admin_id = await make_user(is_admin=True)
        response = await client.get("/api/admin/tasks", headers=auth(admin_id))
        assert response.status_code == 200
        assert set(response.json()) == {"check-bet-settlement", "check-task-reset"}

    async def test_unknown_task(self, client, make_user):
        admin_id = await make_user(is_admin=True)
        response = await client.post("/api/admin/trigger-task/nope", headers=auth(admin_id))
        assert response.status_code == 404

    async def test_job_runs(self, client, make_user, session_factory):
        admin_id = await make_user(is_admin=True)
        started = datetime(2026, 10, 18, 0, 0, tzinfo=timezone.utc)
        async with session_factory() as session:
            await record_job_run(
                session, "check_task_reset", started, "success", 4, metadata={"rows_reset": 4}
            )
            await record_job_run(
                session, "check_bet_settlement", started, "failed", error_message="boom"
            )

        response = await client.get(
            "/api/admin/job-runs",
            params={"job_name": "check_task_reset"},
            headers=auth(admin_id),
        )

        assert response.status_code == 200
        runs = response.json()
        assert len(runs) == 1
        assert runs[0]["status"] == "success"
        assert runs[0]["records_processed"] == 4
        assert runs[0]["metadata"] == {"rows_reset": 4}

    async def test_settlement_backlog(self, client, make_user, session_factory):
        admin_id = await make_user(is_admin=True)
        await _add_pending_bet(session_factory, admin_id, date(2020, 1, 1))

        response = await client.get("/api/admin/settlement-backlog", headers=auth(admin_id))

        assert response.json() == [
            {
                "race_date": "2020-01-01",
                "pending_bets": 1,
                "pending_stake": 25,
                "overdue": True,
            }
        ]
