"""Typed failures raised by the yard lifecycle core.

Every error derives from :class:`YardError` so callers can catch the family,
and carries the offending values as attributes rather than only a message.
"""
from __future__ import annotations


class YardError(Exception):
    """Base class for lifecycle, reconciliation and allocation failures."""


class InvalidIdentifier(YardError):
    def __init__(self, kind: str, raw: object) -> None:
        self.kind = kind
        self.raw = raw
        super().__init__(f"Invalid {kind} identifier: {raw!r}")


class MissingReason(YardError):
    def __init__(self, chassis: str, reason: object = None) -> None:
        self.chassis = chassis
        self.reason = reason
        if reason:
            message = f"Unknown reconciliation reason {reason!r} for {chassis}"
        else:
            message = f"A reconciliation reason is required for {chassis}"
        super().__init__(message)


class MissingCustomReason(YardError):
    def __init__(self, chassis: str) -> None:
        self.chassis = chassis
        super().__init__(f"Reason 'Other' requires a custom reason for {chassis}")


class ChassisNotFound(YardError):
    def __init__(self, dealer_slug: str, chassis: str, collection: str) -> None:
        self.dealer_slug = dealer_slug
        self.chassis = chassis
        self.collection = collection
        super().__init__(f"{chassis} is not in {collection} for dealer {dealer_slug}")


class InvalidTransition(YardError):
    def __init__(self, chassis: str, message: str) -> None:
        self.chassis = chassis
        super().__init__(f"{chassis}: {message}")


class InvalidTierConfig(YardError, ValueError):
    def __init__(self, tier: str, message: str) -> None:
        self.tier = tier
        super().__init__(f"Tier {tier}: {message}")


class StoreError(YardError):
    action = "Store operation"

    def __init__(self, path: str, cause: BaseException | None = None) -> None:
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{self.action} failed for {path}{detail}")


class StoreWriteFailed(StoreError):
    action = "Store write"


class StoreReadFailed(StoreError):
    action = "Store read"
