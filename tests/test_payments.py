"""
Tests for the PaymentService.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from mbc_patient_sdk.exceptions import InvalidInput, PaymentNotPayable, PaymentRequestNotFound
from mbc_patient_sdk.ledger import PaymentLedger
from mbc_patient_sdk.models import PaymentRequest, PaymentStatus, TransferResult, TransferState
from mbc_patient_sdk.payments import PaymentService
from mbc_patient_sdk.transfer import CrossChainTransfer
from conftest import TEST_BURN_TX, TEST_PATIENT, TEST_PHARMACIST, TEST_PRIV_KEY

SUCCESS = TransferResult(success=True, burn_tx=TEST_BURN_TX, mint_tx="0x" + "cc" * 32, state=TransferState.COMPLETED)
TIMED_OUT = TransferResult(
    success=False,
    burn_tx=TEST_BURN_TX,
    error="timed out",
    state=TransferState.FAILED,
    failed_at=TransferState.WAITING_ATTESTATION,
)


@pytest.fixture
def ledger():
    return PaymentLedger()


@pytest.fixture
def transfer():
    transfer = MagicMock(spec=CrossChainTransfer)
    transfer.transfer.return_value = SUCCESS
    transfer.resume_from_burn.return_value = SUCCESS
    return transfer


@pytest.fixture
def service(ledger, transfer):
    return PaymentService(ledger, transfer)


def _create(ledger, amount="12.5", status=PaymentStatus.PENDING) -> PaymentRequest:
    return ledger.create(PaymentRequest(
        token_id=7,
        patient_address=TEST_PATIENT,
        pharmacist_address=TEST_PHARMACIST,
        amount=Decimal(amount),
        status=status,
    ))


def test_outstanding_only_pending(service, ledger):
    pending = _create(ledger)
    _create(ledger, status=PaymentStatus.COMPLETED)
    _create(ledger, status=PaymentStatus.FAILED)

    assert [r.id for r in service.outstanding(TEST_PATIENT)] == [pending.id]


def test_pay_success(service, ledger, transfer):
    request = _create(ledger)

    result = service.pay(request.id, TEST_PRIV_KEY)

    assert result.success
    sent = transfer.transfer.call_args[0][0]
    assert sent.destination_address == TEST_PHARMACIST
    assert sent.amount == 12_500_000
    assert transfer.transfer.call_args[0][1] == TEST_PRIV_KEY
    assert ledger.get(request.id).status == PaymentStatus.COMPLETED


def test_pay_failure_marks_failed(service, ledger, transfer):
    transfer.transfer.return_value = TIMED_OUT
    request = _create(ledger)

    result = service.pay(request.id, TEST_PRIV_KEY)

    assert not result.success
    assert result.resumable
    assert ledger.get(request.id).status == PaymentStatus.FAILED


def test_pay_completed_request_is_refused(service, ledger, transfer):
    request = _create(ledger)
    service.pay(request.id, TEST_PRIV_KEY)

    with pytest.raises(PaymentNotPayable):
        service.pay(request.id, TEST_PRIV_KEY)

    assert transfer.transfer.call_count == 1
    assert ledger.get(request.id).status == PaymentStatus.COMPLETED


def test_pay_failed_after_burn_is_refused(service, ledger, transfer):
    transfer.transfer.return_value = TIMED_OUT
    request = _create(ledger)
    service.pay(request.id, TEST_PRIV_KEY)
    assert ledger.get(request.id).burn_tx == TEST_BURN_TX

    with pytest.raises(PaymentNotPayable, match="resume"):
        service.pay(request.id, TEST_PRIV_KEY)

    assert transfer.transfer.call_count == 1
    assert ledger.get(request.id).status == PaymentStatus.FAILED


def test_pay_failed_request_is_refused(service, ledger, transfer):
    request = _create(ledger, status=PaymentStatus.FAILED)
    with pytest.raises(PaymentNotPayable):
        service.pay(request.id, TEST_PRIV_KEY)
    transfer.transfer.assert_not_called()


def test_pay_refuses_request_already_in_flight(service, ledger, transfer):
    request = _create(ledger)

    def pay_again(*args, **kwargs):
        with pytest.raises(PaymentNotPayable, match="already being paid"):
            service.pay(request.id, TEST_PRIV_KEY)
        return SUCCESS

    transfer.transfer.side_effect = pay_again
    result = service.pay(request.id, TEST_PRIV_KEY)

    assert result.success
    assert transfer.transfer.call_count == 1


def test_pay_unknown_request(service, transfer):
    with pytest.raises(PaymentRequestNotFound):
        service.pay("missing", TEST_PRIV_KEY)
    transfer.transfer.assert_not_called()


def test_pay_invalid_amount(service, ledger, transfer):
    request = _create(ledger, amount="-1")

    result = service.pay(request.id, TEST_PRIV_KEY)

    assert not result.success
    assert result.failed_at == TransferState.IDLE
    assert ledger.get(request.id).status == PaymentStatus.FAILED
    transfer.transfer.assert_not_called()


def test_pay_passes_cancellation(service, ledger, transfer):
    request = _create(ledger)
    cancel = MagicMock()
    service.pay(request.id, TEST_PRIV_KEY, cancel_event=cancel, deadline=5.0)
    assert transfer.transfer.call_args[1] == {"cancel_event": cancel, "deadline": 5.0}


def test_resume(service, ledger, transfer):
    request = _create(ledger, status=PaymentStatus.FAILED)

    result = service.resume(request.id, TEST_BURN_TX, TEST_PRIV_KEY)

    assert result.success
    transfer.resume_from_burn.assert_called_once_with(
        TEST_BURN_TX, TEST_PHARMACIST, TEST_PRIV_KEY, cancel_event=None, deadline=None
    )
    assert ledger.get(request.id).status == PaymentStatus.COMPLETED


def test_resume_unknown_request(service):
    with pytest.raises(PaymentRequestNotFound):
        service.resume("missing", TEST_BURN_TX, TEST_PRIV_KEY)


def test_resume_uses_recorded_burn(service, ledger, transfer):
    transfer.transfer.return_value = TIMED_OUT
    request = _create(ledger)
    service.pay(request.id, TEST_PRIV_KEY)

    result = service.resume(request.id, None, TEST_PRIV_KEY)

    assert result.success
    assert transfer.resume_from_burn.call_args[0][0] == TEST_BURN_TX
    stored = ledger.get(request.id)
    assert stored.status == PaymentStatus.COMPLETED
    assert stored.burn_tx == TEST_BURN_TX


def test_resume_without_burn(service, ledger, transfer):
    request = _create(ledger, status=PaymentStatus.FAILED)
    with pytest.raises(InvalidInput):
        service.resume(request.id, None, TEST_PRIV_KEY)
    transfer.resume_from_burn.assert_not_called()


def test_resume_completed_request_is_refused(service, ledger, transfer):
    request = _create(ledger, status=PaymentStatus.COMPLETED)
    with pytest.raises(PaymentNotPayable):
        service.resume(request.id, TEST_BURN_TX, TEST_PRIV_KEY)
    transfer.resume_from_burn.assert_not_called()


def test_failed_resume_keeps_request_failed(service, ledger, transfer):
    transfer.resume_from_burn.return_value = TIMED_OUT
    request = _create(ledger, status=PaymentStatus.FAILED)

    result = service.resume(request.id, TEST_BURN_TX, TEST_PRIV_KEY)

    assert not result.success
    stored = ledger.get(request.id)
    assert stored.status == PaymentStatus.FAILED
    assert stored.burn_tx == TEST_BURN_TX
