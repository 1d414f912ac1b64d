"""Ledger failure taxonomy.

Every precondition violation surfaces as a distinct exception class with
an inspectable ``reason``. Engines raise; the service layer converts the
exception into a failed ServiceResult carrying the reason code.

A raised LedgerError always means the operation had no observable effect:
the ledger undoes its journaled changes before the exception leaves it.
"""

from __future__ import annotations

import enum


class FailureReason(str, enum.Enum):
    """Reason codes, one per failure class."""
    NOT_OPERATIONAL = "not_operational"
    NOT_OWNER = "not_owner"
    NOT_AUTHORIZED = "not_authorized"
    ALREADY_REGISTERED = "already_registered"
    SPONSOR_NOT_REGISTERED = "sponsor_not_registered"
    SPONSOR_NOT_FUNDED = "sponsor_not_funded"
    INSUFFICIENT_PAYMENT = "insufficient_payment"
    ALREADY_FUNDED = "already_funded"
    NOT_REGISTERED_AIRLINE = "not_registered_airline"
    INVALID_AMOUNT = "invalid_amount"
    NO_CREDITS = "no_credits"
    INVALID_IDENTITY = "invalid_identity"
    UNKNOWN_OPERATION = "unknown_operation"
    NON_PAYABLE_OPERATION = "non_payable_operation"
    MALFORMED_CALL = "malformed_call"
    TRANSFER_FAILED = "transfer_failed"


class LedgerError(Exception):
    """Base class for all ledger failures."""
    reason: FailureReason

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotOperational(LedgerError):
    reason = FailureReason.NOT_OPERATIONAL


class NotOwner(LedgerError):
    reason = FailureReason.NOT_OWNER


class NotAuthorized(LedgerError):
    reason = FailureReason.NOT_AUTHORIZED


class AlreadyRegistered(LedgerError):
    reason = FailureReason.ALREADY_REGISTERED


class SponsorNotRegistered(LedgerError):
    reason = FailureReason.SPONSOR_NOT_REGISTERED


class SponsorNotFunded(LedgerError):
    reason = FailureReason.SPONSOR_NOT_FUNDED


class InsufficientPayment(LedgerError):
    reason = FailureReason.INSUFFICIENT_PAYMENT


class AlreadyFunded(LedgerError):
    reason = FailureReason.ALREADY_FUNDED


class NotRegisteredAirline(LedgerError):
    reason = FailureReason.NOT_REGISTERED_AIRLINE


class InvalidAmount(LedgerError):
    reason = FailureReason.INVALID_AMOUNT


class NoCredits(LedgerError):
    reason = FailureReason.NO_CREDITS


class InvalidIdentity(LedgerError):
    reason = FailureReason.INVALID_IDENTITY


class UnknownOperation(LedgerError):
    reason = FailureReason.UNKNOWN_OPERATION


class NonPayableOperation(LedgerError):
    reason = FailureReason.NON_PAYABLE_OPERATION


class MalformedCall(LedgerError):
    reason = FailureReason.MALFORMED_CALL


class TransferFailed(LedgerError):
    reason = FailureReason.TRANSFER_FAILED
