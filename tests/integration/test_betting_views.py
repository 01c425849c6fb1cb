"""Integration tests for the betting overview and the leaderboard."""

from datetime import datetime, timezone

from support import NOW, TODAY, TOMORROW, YESTERDAY, FakePriceFeed, make_prices

from app.config.game import RaceStatus
from app.services.betting import (
    get_betting_overview,
    get_leaderboard,
    place_bet,
    settle_race,
)


class TestBettingOverview:
    async def test_anonymous_overview(self, session):
        feed = FakePriceFeed(
            day_prices={YESTERDAY: make_prices({"sol": "4", "doge": "4"})}
        )

        overview = await get_betting_overview(session, feed, now=NOW)

        assert overview.active_race.race_date == TODAY
        assert overview.active_race.status == RaceStatus.RACING
        assert overview.yesterday_race.status == RaceStatus.COMPLETED
        assert overview.betting_race.race_date == TOMORROW
        assert overview.betting_race.status == RaceStatus.UPCOMING
        # Tie between SOL and DOGE goes to the earlier coin.
        assert overview.yesterday_race.winner_coin_id == "sol"
        assert overview.yesterday_race.settled is False
        assert overview.multiplier == 4
        assert overview.max_bet == 1000
        assert overview.balance == 0
        assert overview.user_bet is None
        assert feed.day_calls == [YESTERDAY]

    async def test_live_leader_marked(self, session):
        overview = await get_betting_overview(session, FakePriceFeed(), now=NOW)

        leaders = [c.coin_id for c in overview.active_race.coins if c.is_winner]
        assert leaders == ["eth"]
        assert [c.coin_id for c in overview.betting_race.coins] == [
            "btc",
            "eth",
            "sol",
            "doge",
        ]

    async def test_yesterday_without_data_has_no_winner(self, session):
        overview = await get_betting_overview(session, FakePriceFeed(), now=NOW)

        assert overview.yesterday_race.winner_coin_id is None
        assert not any(c.available for c in overview.yesterday_race.coins)

    async def test_user_sections(self, session, make_user):
        user_id = await make_user(points=1000)
        await place_bet(session, user_id, "doge", 300, now=NOW)

        overview = await get_betting_overview(
            session, FakePriceFeed(), user_id=user_id, now=NOW
        )

        assert overview.balance == 700
        assert overview.user_bet.coin_id == "doge"
        assert overview.user_bet.coin_symbol == "DOGE"
        assert overview.user_bet.stake == 300
        assert [b.race_date for b in overview.user_bet_history] == [TOMORROW]

    async def test_settled_winner_is_used(self, session, make_user):
        """Once settled, the stored winner is shown for yesterday's race."""
        user_id = await make_user(points=1000)
        await place_bet(session, user_id, "btc", 100, now=NOW)
        feed = FakePriceFeed(day_prices={TOMORROW: make_prices({"btc": "7"})})
        day_after = datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)
        await settle_race(session, TOMORROW, feed, now=day_after)

        overview = await get_betting_overview(session, feed, user_id=user_id, now=day_after)

        assert overview.yesterday_race.race_date == TOMORROW
        assert overview.yesterday_race.settled is True
        assert overview.yesterday_race.winner_coin_id == "btc"
        assert overview.user_bet is None
        assert overview.user_bet_history[0].status == "won"
        assert overview.user_bet_history[0].payout == 400


class TestLeaderboard:
    async def test_ranking_and_stats(self, session, make_user):
        top = await make_user(points=5000)
        middle = await make_user(points=1000)
        await make_user(points=0)
        await place_bet(session, middle, "btc", 100, now=NOW)
        feed = FakePriceFeed(day_prices={TOMORROW: make_prices({"btc": "7"})})
        await settle_race(
            session, TOMORROW, feed, now=datetime(2026, 10, 20, 1, 0, tzinfo=timezone.utc)
        )

        board = await get_leaderboard(session, current_user_id=middle)

        assert [e.user_id for e in board.entries] == [top, middle]
        assert [e.rank for e in board.entries] == [1, 2]
        assert board.total_users == 2
        assert board.current_user_rank is None

        entry = board.entries[1]
        assert entry.is_current_user is True
        assert entry.total_points == 1300
        assert (entry.total_bets, entry.wins, entry.losses) == (1, 1, 0)
        assert entry.win_rate == 100
        assert entry.total_winnings == 400
        assert board.entries[0].total_bets == 0
        assert board.entries[0].win_rate == 0

    async def test_current_user_outside_page(self, session, make_user):
        await make_user(points=300)
        await make_user(points=200)
        last = await make_user(points=100)

        board = await get_leaderboard(session, limit=2, current_user_id=last)

        assert len(board.entries) == 2
        assert board.current_user_rank.user_id == last
        assert board.current_user_rank.rank == 3
        assert board.total_users == 3

    async def test_zero_balance_user_has_no_rank(self, session, make_user):
        await make_user(points=10)
        broke = await make_user(points=0)

        board = await get_leaderboard(session, current_user_id=broke)

        assert board.current_user_rank is None
        assert all(e.user_id != broke for e in board.entries)

    async def test_limit_is_clamped(self, session, make_user):
        for points in (5, 4, 3):
            await make_user(points=points)

        assert len((await get_leaderboard(session, limit=0)).entries) == 1
        assert len((await get_leaderboard(session, limit=500)).entries) == 3
