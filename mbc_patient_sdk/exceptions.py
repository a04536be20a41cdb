"""
Exceptions for the MBC Patient SDK.
"""
from typing import Optional


class MbcPatientError(Exception):
    """Base exception for all SDK errors."""
    pass


class InvalidInput(MbcPatientError):
    """Raised when a request is malformed. Nothing has been sent to a chain."""
    pass


class InvalidAmount(InvalidInput):
    """Raised when a token amount is negative, non-finite or not numeric."""
    pass


class InvalidAddress(InvalidInput):
    """Raised when an address is not 40 hex digits with an optional 0x prefix."""
    pass


class TransactionError(MbcPatientError):
    """
    Raised when a transaction cannot be built, signed or sent.

    ``tx_hash`` is set when the signed transaction may have reached the
    network despite the error, e.g. when a retried send is rejected.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class TransactionReverted(TransactionError):
    """Raised when the network reports a mined transaction as failed."""
    pass


class ApprovalFailed(TransactionReverted):
    """The allowance approval transaction reverted."""
    pass


class BurnFailed(TransactionReverted):
    """The depositForBurn transaction reverted."""
    pass


class MintFailed(TransactionReverted):
    """The receiveMessage transaction reverted on the destination chain."""
    pass


class NetworkUnavailable(MbcPatientError):
    """
    Raised when a chain endpoint stays unreachable after the adapter's retries.

    When a broadcast was interrupted, ``tx_hash`` is the hash of the signed
    transaction, which the node may or may not have accepted.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class AttestationTimeout(MbcPatientError):
    """
    Raised when an attestation wait is cancelled or passes its deadline.

    The burn identified by ``burn_tx`` has already been included, so the
    transfer outcome is unknown rather than failed.
    """

    def __init__(self, message: str, burn_tx: Optional[str] = None):
        self.burn_tx = burn_tx
        super().__init__(message)


class PassportError(MbcPatientError):
    """Raised when minting or reading a medical passport fails."""
    pass


class PaymentRequestNotFound(MbcPatientError):
    """Raised when a payment request id is not in the ledger."""
    pass


class PaymentNotPayable(MbcPatientError):
    """
    Raised when a payment request cannot be paid in its current status.

    Completed requests are never paid again. A failed request is only
    finished through its recorded burn, never with a new one.
    """
    pass


class PharmacyNotFound(MbcPatientError):
    """Raised when a pharmacy id does not exist."""
    pass
