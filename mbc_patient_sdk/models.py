"""
Data models for the MBC Patient SDK.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Any, Optional, List, Tuple

from pydantic import BaseModel, Field

# Fast Transfer defaults for CCTP v2 burns
DEFAULT_MAX_FEE = 500  # 0.0005 USDC
DEFAULT_MIN_FINALITY_THRESHOLD = 1000


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class TransferState(str, Enum):
    """States of a single cross-chain transfer."""
    IDLE = "idle"
    APPROVING = "approving"
    AWAITING_APPROVAL = "awaiting_approval"
    BURNING = "burning"
    AWAITING_BURN = "awaiting_burn"
    WAITING_ATTESTATION = "waiting_attestation"
    MINTING = "minting"
    AWAITING_MINT = "awaiting_mint"
    COMPLETED = "completed"
    FAILED = "failed"


class TransferRequest(BaseModel):
    """
    An intended USDC transfer.

    Amounts are integer subunits (10^-6 USDC). Values are checked by the
    orchestrator before any chain interaction, not at construction.
    """
    destination_address: str = Field(..., alias="destinationAddress")
    amount: int
    max_fee: int = Field(DEFAULT_MAX_FEE, alias="maxFee")
    min_finality_threshold: int = Field(DEFAULT_MIN_FINALITY_THRESHOLD, alias="minFinalityThreshold")

    class Config:
        populate_by_name = True
        frozen = True


class Attestation(BaseModel):
    """A completed attestation for one burn, as returned by the attestation service."""
    message: str
    attestation: str
    status: str
    source_domain: int = Field(..., alias="sourceDomain")
    transaction_hash: str = Field(..., alias="transactionHash")
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        frozen = True


class TransferResult(BaseModel):
    """
    Outcome of a transfer run.

    A successful result carries every transaction id and the attestation. A
    failed result carries ``error`` and the last known ``burn_tx`` (``""`` if
    no burn was sent). A non-empty ``burn_tx`` on its own never means success.
    """
    success: bool
    approval_tx: Optional[str] = Field(None, alias="approvalTx")
    burn_tx: str = Field("", alias="burnTx")
    attestation: Optional[Attestation] = None
    mint_tx: Optional[str] = Field(None, alias="mintTx")
    error: Optional[str] = None
    state: TransferState = TransferState.IDLE
    failed_at: Optional[TransferState] = Field(None, alias="failedAt")

    class Config:
        populate_by_name = True

    @property
    def resumable(self) -> bool:
        """True when funds were burned but the mint was never confirmed."""
        return not self.success and bool(self.burn_tx)


class PaymentStatus(str, Enum):
    """
    Lifecycle of a payment request: pending -> completed | failed.

    Completed is final. Failed only moves on to completed, when a transfer
    whose burn was included is resumed.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, status: "PaymentStatus") -> bool:
        if self is status or self is PaymentStatus.PENDING:
            return True
        return self is PaymentStatus.FAILED and status is PaymentStatus.COMPLETED


class PaymentRequest(BaseModel):
    """
    A pharmacist's request for payment against a prescription token.

    ``burn_tx`` records the last burn sent for the request, so a failed
    payment whose funds already left the source chain can be resumed.
    """
    id: Optional[str] = None
    token_id: int = Field(..., alias="tokenId")
    patient_address: str = Field(..., alias="patientAddress")
    pharmacist_address: str = Field(..., alias="pharmacistAddress")
    amount: Decimal
    amount_in_subunits: Optional[str] = Field(None, alias="amountInSubunits")
    status: PaymentStatus = PaymentStatus.PENDING
    burn_tx: Optional[str] = Field(None, alias="burnTx")
    created_at: str = Field(default_factory=_utc_now_iso, alias="createdAt")

    class Config:
        populate_by_name = True


class PharmacyDraft(BaseModel):
    """A pharmacy that has not been saved yet."""
    name: str
    ethereum_address: str = Field(..., alias="ethereumAddress")

    class Config:
        populate_by_name = True


class Pharmacy(PharmacyDraft):
    id: str
    created_at: int = Field(..., alias="createdAt")


# Contract field order of MedicalPassportOnChain.MedicalPassportInput
PASSPORT_FIELDS = (
    "name",
    "contact_info",
    "date_of_birth",
    "social_security_number",
    "medical_history",
    "past_diagnoses",
    "family_history",
    "allergies",
    "current_medications",
    "treatment_regimens",
    "vital_signs",
)


class MedicalPassportInput(BaseModel):
    """Medical record fields. Every field is optional and defaults to an empty string on-chain."""
    name: Optional[str] = None
    contact_info: Optional[str] = Field(None, alias="contactInfo")
    date_of_birth: Optional[str] = Field(None, alias="dateOfBirth")
    social_security_number: Optional[str] = Field(None, alias="socialSecurityNumber")
    medical_history: Optional[str] = Field(None, alias="medicalHistory")
    past_diagnoses: Optional[str] = Field(None, alias="pastDiagnoses")
    family_history: Optional[str] = Field(None, alias="familyHistory")
    allergies: Optional[str] = None
    current_medications: Optional[str] = Field(None, alias="currentMedications")
    treatment_regimens: Optional[str] = Field(None, alias="treatmentRegimens")
    vital_signs: Optional[str] = Field(None, alias="vitalSigns")

    class Config:
        populate_by_name = True

    def to_contract_tuple(self) -> Tuple[str, ...]:
        values = []
        for field in PASSPORT_FIELDS:
            value = getattr(self, field)
            values.append(str(value) if value is not None else "")
        return tuple(values)

    def is_empty(self) -> bool:
        return not any(value.strip() for value in self.to_contract_tuple())


class MintPassportResult(BaseModel):
    transaction_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    token_id: str = Field(..., alias="tokenId")
    recipient: str
    contract_address: str = Field(..., alias="contractAddress")
    passport_data: MedicalPassportInput = Field(..., alias="passportData")

    class Config:
        populate_by_name = True


class PassportInfo(BaseModel):
    token_id: str = Field(..., alias="tokenId")
    token_uri: str = Field(..., alias="tokenURI")
    owner: str

    class Config:
        populate_by_name = True


class PrescriptionToken(BaseModel):
    """A prescription NFT as read from the prescription contract."""
    token_id: int = Field(..., alias="tokenId")
    owner: str
    medication: str
    dosage: str
    instructions: str
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True
