"""
MBC Patient SDK - cross-chain USDC payments, pharmacies and medical records for patients.
"""
from .version import __version__
from .attestation import AttestationPoller
from .chain import ChainClient
from .config import NetworkConfig
from .exceptions import (
    MbcPatientError,
    InvalidInput,
    InvalidAmount,
    InvalidAddress,
    TransactionError,
    TransactionReverted,
    ApprovalFailed,
    BurnFailed,
    MintFailed,
    NetworkUnavailable,
    AttestationTimeout,
    PassportError,
    PaymentNotPayable,
    PaymentRequestNotFound,
    PharmacyNotFound,
)
from .ledger import PaymentLedger, get_default_ledger, set_default_ledger
from .models import (
    Attestation,
    MedicalPassportInput,
    MintPassportResult,
    PassportInfo,
    PaymentRequest,
    PaymentStatus,
    Pharmacy,
    PharmacyDraft,
    PrescriptionToken,
    TransferRequest,
    TransferResult,
    TransferState,
    TxReceipt,
)
from .passports import MedicalPassportClient
from .payments import PaymentService
from .pharmacies import PharmacyRegistry
from .prescriptions import PrescriptionReader
from .storage import (
    InMemoryKeyValueStore,
    InMemoryPaymentRequestStore,
    JsonFileKeyValueStore,
    JsonFilePaymentRequestStore,
    KeyValueStore,
    PaymentRequestStore,
)
from .transfer import BridgeConfig, CrossChainTransfer, execute_usdc_transfer
from .utils import from_subunits, is_valid_ethereum_address, to_padded_address, to_subunits

__all__ = [
    "__version__",
    "AttestationPoller",
    "ChainClient",
    "NetworkConfig",
    "MbcPatientError",
    "InvalidInput",
    "InvalidAmount",
    "InvalidAddress",
    "TransactionError",
    "TransactionReverted",
    "ApprovalFailed",
    "BurnFailed",
    "MintFailed",
    "NetworkUnavailable",
    "AttestationTimeout",
    "PassportError",
    "PaymentNotPayable",
    "PaymentRequestNotFound",
    "PharmacyNotFound",
    "PaymentLedger",
    "get_default_ledger",
    "set_default_ledger",
    "Attestation",
    "MedicalPassportInput",
    "MintPassportResult",
    "PassportInfo",
    "PaymentRequest",
    "PaymentStatus",
    "Pharmacy",
    "PharmacyDraft",
    "PrescriptionToken",
    "TransferRequest",
    "TransferResult",
    "TransferState",
    "TxReceipt",
    "MedicalPassportClient",
    "PaymentService",
    "PharmacyRegistry",
    "PrescriptionReader",
    "InMemoryKeyValueStore",
    "InMemoryPaymentRequestStore",
    "JsonFileKeyValueStore",
    "JsonFilePaymentRequestStore",
    "KeyValueStore",
    "PaymentRequestStore",
    "BridgeConfig",
    "CrossChainTransfer",
    "execute_usdc_transfer",
    "from_subunits",
    "is_valid_ethereum_address",
    "to_padded_address",
    "to_subunits",
]
