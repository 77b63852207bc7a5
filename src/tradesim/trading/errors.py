"""
Owner-action rejections.

Raised by the trading service when a request cannot be honoured. Each
carries a human-readable reason and the HTTP status the API returns.
"""


class ActionRejectedError(Exception):
    """Base class for rejected owner actions."""

    status_code = 400

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code


class UserExistsError(ActionRejectedError):
    def __init__(self) -> None:
        super().__init__("User already exists")


class InvalidCredentialsError(ActionRejectedError):
    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class UserNotFoundError(ActionRejectedError):
    status_code = 404

    def __init__(self) -> None:
        super().__init__("User not found")


class InsufficientBalanceError(ActionRejectedError):
    def __init__(self) -> None:
        super().__init__("Insufficient balance")


class InsufficientHoldingsError(ActionRejectedError):
    def __init__(self) -> None:
        super().__init__("Insufficient crypto holdings")


class UnknownStrategyError(ActionRejectedError):
    def __init__(self, strategy: str) -> None:
        super().__init__(f"Unknown strategy: {strategy}")
        self.strategy = strategy


class BelowMinimumInvestmentError(ActionRejectedError):
    def __init__(self, strategy: str, minimum: float) -> None:
        super().__init__(f"Minimum investment for {strategy} is ${minimum:,.0f}")
        self.minimum = minimum


class DuplicateActivePositionError(ActionRejectedError):
    """Owner already has an active position of this kind."""


class PositionNotFoundError(ActionRejectedError):
    status_code = 404


class PositionNotActiveError(ActionRejectedError):
    """Position was already stopped or completed."""
