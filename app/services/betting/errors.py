"""Betting domain errors.

Raised synchronously by bet placement before any state is written (or after
the transaction has been rolled back), and translated to HTTP 400/404 by the
API layer.
"""


class BettingError(Exception):
    """Base class for rejected betting operations."""

    status_code = 400


class InvalidStakeError(BettingError):
    """Stake is not a positive integer within the allowed maximum."""


class InvalidCoinError(BettingError):
    """Coin is not one of the race coins."""


class InsufficientPointsError(BettingError):
    """Balance does not cover the stake."""


class DuplicateBetError(BettingError):
    """User already holds a bet for this race."""


class UserNotFoundError(BettingError):
    """No such user."""

    status_code = 404
