"""
PaymentService - pays pharmacist payment requests with cross-chain USDC.

Ties the ledger to the transfer orchestrator: only a pending request is paid,
it becomes completed on success and failed otherwise. A request that failed
after its burn was sent keeps that burn hash and can only be finished with
``resume``, never paid a second time.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set

from .exceptions import InvalidInput, PaymentNotPayable, PaymentRequestNotFound
from .ledger import PaymentLedger, get_default_ledger
from .models import PaymentRequest, PaymentStatus, TransferRequest, TransferResult, TransferState
from .transfer import CrossChainTransfer
from .utils import to_subunits

logger = logging.getLogger(__name__)


class PaymentService:
    """Pays the payment requests recorded in a ledger."""

    def __init__(self, ledger: Optional[PaymentLedger], transfer: CrossChainTransfer):
        """
        Args:
            ledger: Ledger holding the requests (the process-wide one when None)
            transfer: Orchestrator configured for the patient's bridge route
        """
        self.ledger = ledger or get_default_ledger()
        self.transfer = transfer
        self._in_flight: Set[str] = set()
        self._in_flight_lock = threading.Lock()

    def outstanding(self, patient_address: str) -> List[PaymentRequest]:
        """Requests for a patient that still await payment."""
        return [r for r in self.ledger.list(patient_address) if r.status == PaymentStatus.PENDING]

    def pay(
        self,
        request_id: str,
        private_key: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> TransferResult:
        """
        Pay a pending request by transferring its amount to the pharmacist.

        Args:
            request_id: Ledger id of the request
            private_key: Patient key holding the USDC
            cancel_event: Set to abandon the attestation wait
            deadline: Absolute deadline for the attestation wait

        Returns:
            The transfer result; the ledger status already reflects it

        Raises:
            PaymentRequestNotFound: If the id is not in the ledger
            PaymentNotPayable: If the request is not pending or is already being paid
        """
        with self._claim(request_id):
            request = self._require(request_id)
            if request.status != PaymentStatus.PENDING:
                hint = f"; resume it from burn {request.burn_tx}" if request.burn_tx else ""
                raise PaymentNotPayable(f"Payment request {request_id} is {request.status.value}{hint}")

            try:
                transfer_request = TransferRequest(
                    destination_address=request.pharmacist_address,
                    amount=to_subunits(request.amount),
                )
            except InvalidInput as e:
                logger.error(f"Payment request {request_id} has an invalid amount: {e}")
                self.ledger.set_status(request_id, PaymentStatus.FAILED)
                return TransferResult(
                    success=False, error=str(e), state=TransferState.FAILED, failed_at=TransferState.IDLE
                )

            logger.info(f"Paying request {request_id}: {request.amount} USDC to {request.pharmacist_address}")
            result = self.transfer.transfer(transfer_request, private_key, cancel_event=cancel_event, deadline=deadline)
            self._record(request_id, result)
            return result

    def resume(
        self,
        request_id: str,
        burn_tx: Optional[str],
        private_key: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> TransferResult:
        """
        Finish paying a request whose burn already happened.

        Args:
            request_id: Ledger id of the request
            burn_tx: Burn hash to finish; None uses the one the ledger recorded
            private_key: Key that pays gas for the mint

        Raises:
            PaymentRequestNotFound: If the id is not in the ledger
            PaymentNotPayable: If the request is completed or is already being paid
            InvalidInput: If no burn hash was given or recorded
        """
        with self._claim(request_id):
            request = self._require(request_id)
            if request.status == PaymentStatus.COMPLETED:
                raise PaymentNotPayable(f"Payment request {request_id} is already completed")
            burn_tx = burn_tx or request.burn_tx
            if not burn_tx:
                raise InvalidInput(f"Payment request {request_id} has no burn to resume")

            logger.info(f"Resuming request {request_id} from burn {burn_tx}")
            result = self.transfer.resume_from_burn(
                burn_tx,
                request.pharmacist_address,
                private_key,
                cancel_event=cancel_event,
                deadline=deadline,
            )
            self._record(request_id, result)
            return result

    @contextmanager
    def _claim(self, request_id: str) -> Iterator[None]:
        with self._in_flight_lock:
            if request_id in self._in_flight:
                raise PaymentNotPayable(f"Payment request {request_id} is already being paid")
            self._in_flight.add(request_id)
        try:
            yield
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(request_id)

    def _require(self, request_id: str) -> PaymentRequest:
        request = self.ledger.get(request_id)
        if request is None:
            raise PaymentRequestNotFound(f"Payment request {request_id} not found")
        return request

    def _record(self, request_id: str, result: TransferResult) -> None:
        if result.success:
            self.ledger.set_status(request_id, PaymentStatus.COMPLETED, burn_tx=result.burn_tx or None)
            return
        self.ledger.set_status(request_id, PaymentStatus.FAILED, burn_tx=result.burn_tx or None)
        if result.resumable:
            logger.warning(
                f"Payment request {request_id} failed after burn {result.burn_tx}; "
                f"funds left the source chain and the transfer can be resumed"
            )
