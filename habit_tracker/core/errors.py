"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class HabitTrackerError(Exception):
    """Base error. ``retryable`` tells the caller whether re-invoking may succeed."""

    retryable = False
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# 日本語: 前提条件エラー(再試行しない) / English: Precondition failures, never retried
class PreconditionError(HabitTrackerError):
    pass


class NotAuthenticatedError(PreconditionError):
    status_code = 401

    def __init__(self, message: str = "No authenticated user"):
        super().__init__(message)


class StoreNotConfiguredError(PreconditionError):
    status_code = 503

    def __init__(self, message: str = "Document store is not configured."):
        super().__init__(message)


class MissingExcuseReasonError(PreconditionError):
    def __init__(self, message: str = "Please select a reason"):
        super().__init__(message)


class NotExcusableError(PreconditionError):
    status_code = 409


# 日本語: オフライン時は書き込み前に失敗させる / English: Raised before any write when offline
class ConnectivityError(HabitTrackerError):
    retryable = True
    status_code = 503

    READ_MESSAGE = "No internet connection. Please check your network and try again."
    WRITE_MESSAGE = "No internet connection. Changes will be saved when you reconnect."


class StoreError(HabitTrackerError):
    status_code = 500


class StoreUnavailableError(StoreError):
    retryable = True
    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable. Please try again in a moment."):
        super().__init__(message)


class PermissionDeniedError(StoreError):
    status_code = 403

    def __init__(self, message: str = "Access denied. Please sign in again."):
        super().__init__(message)


class NotFoundError(HabitTrackerError):
    status_code = 404


class LimitExceededError(HabitTrackerError):
    status_code = 409


class InvalidTransitionError(HabitTrackerError):
    """State machine contract violation, e.g. completing without a start time."""

    status_code = 409


__all__ = [
    "HabitTrackerError",
    "PreconditionError",
    "NotAuthenticatedError",
    "StoreNotConfiguredError",
    "MissingExcuseReasonError",
    "NotExcusableError",
    "ConnectivityError",
    "StoreError",
    "StoreUnavailableError",
    "PermissionDeniedError",
    "NotFoundError",
    "LimitExceededError",
    "InvalidTransitionError",
]
