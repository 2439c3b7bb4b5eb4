"""Sale error taxonomy. Every error aborts the triggering operation."""

from __future__ import annotations


class SaleError(Exception):
    """Base class for all sale failures surfaced to callers."""


class InvalidAddress(SaleError):
    pass


class NotAuthorized(SaleError):
    pass


class UpdateNotRequested(SaleError):
    pass


class DelayNotElapsed(SaleError):
    pass


class LedgerNotConfigured(SaleError):
    pass


class DistributionStarted(SaleError):
    pass


class SoldOut(SaleError):
    pass


class TierCeilingReached(SaleError):
    pass


class ZeroPayment(SaleError):
    pass


class InsufficientPrefundedBalance(SaleError):
    pass


class NothingToSweep(SaleError):
    pass


class DownstreamTransferFailed(SaleError):
    pass


class DownstreamRefundFailed(SaleError):
    pass


class ReentrantCall(SaleError):
    pass


class InvariantViolation(SaleError):
    """A post-condition that should be unreachable failed."""
