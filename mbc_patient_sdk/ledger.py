"""
Payment request ledger.

Tracks the lifecycle of payment requests (pending -> completed | failed)
independently of how the money moves. Durability is delegated to an injected
``PaymentRequestStore``.
"""
import logging
import random
import string
import threading
import time
from typing import List, Optional, Union

from .exceptions import InvalidInput
from .models import PaymentRequest, PaymentStatus
from .storage import InMemoryPaymentRequestStore, PaymentRequestStore

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_request_id() -> str:
    """``<epoch ms>-<9 base36 chars>``, unique enough for one patient's device."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


class PaymentLedger:
    """
    Ledger of payment requests owned by patient addresses.

    Status updates are serialized, so concurrent transfers for different
    requests can report their outcomes safely.
    """

    def __init__(self, store: Optional[PaymentRequestStore] = None, logger: Optional[logging.Logger] = None):
        self.store = store or InMemoryPaymentRequestStore()
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

    def list(self, patient_address: str) -> List[PaymentRequest]:
        """
        Get the requests addressed to a patient.

        Args:
            patient_address: Patient wallet address (compared case-insensitively)

        Returns:
            Matching requests in the order they were created
        """
        wanted = (patient_address or "").lower()
        return [request for request in self.store.list() if request.patient_address.lower() == wanted]

    def get(self, request_id: str) -> Optional[PaymentRequest]:
        for request in self.store.list():
            if request.id == request_id:
                return request
        return None

    def create(self, request: PaymentRequest) -> PaymentRequest:
        """
        Store a new request, assigning an id if it has none.

        Returns:
            The stored request
        """
        stored = request if request.id else request.model_copy(update={"id": generate_request_id()})
        with self._lock:
            self.store.create(stored)
        self.logger.info(f"Stored payment request {stored.id} for token {stored.token_id}")
        return stored

    def set_status(
        self,
        request_id: str,
        status: Union[PaymentStatus, str],
        burn_tx: Optional[str] = None
    ) -> bool:
        """
        Set a request's status, optionally recording the burn that paid it.

        Unknown ids are ignored rather than reported, so callers can update
        status unconditionally after a transfer. A completed request never
        changes again, and a failed one can only become completed.

        Returns:
            True if the request was updated

        Raises:
            InvalidInput: If ``status`` is not a valid payment status
        """
        try:
            status = PaymentStatus(status)
        except ValueError as e:
            raise InvalidInput(f"Invalid payment status: {status!r}") from e

        with self._lock:
            current = self.get(request_id)
            if current is None:
                self.logger.debug(f"Ignoring status update for unknown payment request {request_id}")
                return False
            if not current.status.can_transition_to(status):
                self.logger.warning(
                    f"Refusing to move payment request {request_id} from {current.status.value} to {status.value}"
                )
                return False
            updated = self.store.update_status(request_id, status, burn_tx=burn_tx)

        if updated:
            self.logger.info(f"Payment request {request_id} is now {status.value}")
        else:
            self.logger.warning(f"Payment request {request_id} changed concurrently; {status.value} not recorded")
        return updated


# Process-wide ledger shared by every screen of one running app
_default_ledger: Optional[PaymentLedger] = None
_default_ledger_lock = threading.RLock()


def get_default_ledger() -> PaymentLedger:
    """Get or create the process-wide ledger."""
    global _default_ledger
    with _default_ledger_lock:
        if _default_ledger is None:
            _default_ledger = PaymentLedger()
        return _default_ledger


def set_default_ledger(ledger: Optional[PaymentLedger]) -> None:
    """Replace the process-wide ledger, e.g. with one backed by a file store."""
    global _default_ledger
    with _default_ledger_lock:
        _default_ledger = ledger
