"""
CrossChainTransfer - moves USDC between two chains with Circle CCTP v2.

A transfer is an explicit state machine::

    IDLE -> APPROVING -> AWAITING_APPROVAL -> BURNING -> AWAITING_BURN
         -> WAITING_ATTESTATION -> MINTING -> AWAITING_MINT -> COMPLETED

with FAILED reachable from every active state. Each active state has exactly
one step method that performs the state's action and returns the next state.
Resuming after a burn is a context that leaves IDLE straight for
WAITING_ATTESTATION with the known burn hash.

Nothing is retried across the approve/burn/mint boundary. A second burn is a
second real transfer of funds.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from eth_account import Account

from .attestation import AttestationPoller
from .chain import abi
from .chain.client import ChainClient
from .config import NetworkConfig
from .exceptions import (
    ApprovalFailed, AttestationTimeout, BurnFailed, InvalidInput, MintFailed,
    NetworkUnavailable, TransactionError, TransactionReverted
)
from .models import Attestation, TransferRequest, TransferResult, TransferState
from .utils import normalize_private_key, normalize_tx_hash, to_padded_address

logger = logging.getLogger(__name__)

# Allowance granted to the TokenMessenger: 10,000 USDC, reused by later transfers
APPROVAL_CEILING = 10_000_000_000


@dataclass(frozen=True)
class BridgeConfig:
    """Contract addresses and CCTP domain ids for one source/destination pair."""
    usdc_address: str
    token_messenger: str
    message_transmitter: str
    source_domain: int
    destination_domain: int
    approval_amount: int = APPROVAL_CEILING

    @classmethod
    def from_networks(cls, source_network: str, destination_network: str) -> "BridgeConfig":
        source = NetworkConfig.get_network(source_network)
        destination = NetworkConfig.get_network(destination_network)
        return cls(
            usdc_address=source["usdc"],
            token_messenger=source["tokenMessenger"],
            message_transmitter=destination["messageTransmitter"],
            source_domain=source["cctpDomain"],
            destination_domain=destination["cctpDomain"],
        )


@dataclass
class TransferContext:
    """Everything one transfer run has been given and has produced so far."""
    destination_address: str
    request: Optional[TransferRequest] = None
    credential: Optional[str] = field(default=None, repr=False)
    signer: Any = field(default=None, repr=False)
    state: TransferState = TransferState.IDLE
    approval_tx: Optional[str] = None
    burn_tx: str = ""
    attestation: Optional[Attestation] = None
    mint_tx: Optional[str] = None
    cancel_event: Optional[threading.Event] = None
    deadline: Optional[float] = None


class CrossChainTransfer:
    """
    Orchestrates approve, burn, attestation wait and mint.

    Both entry points always return a ``TransferResult``; failures never
    propagate as exceptions.
    """

    def __init__(
        self,
        source: ChainClient,
        destination: ChainClient,
        poller: AttestationPoller,
        bridge: BridgeConfig,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the orchestrator

        Args:
            source: Client for the chain USDC is burned on
            destination: Client for the chain USDC is minted on
            poller: Attestation poller for the source domain
            bridge: Contract addresses and domain ids
            logger: Optional logger instance
        """
        self.source = source
        self.destination = destination
        self.poller = poller
        self.bridge = bridge
        self.logger = logger or logging.getLogger(__name__)
        self._steps: Dict[TransferState, Callable[[TransferContext], TransferState]] = {
            TransferState.IDLE: self._validate,
            TransferState.APPROVING: self._approve,
            TransferState.AWAITING_APPROVAL: self._await_approval,
            TransferState.BURNING: self._burn,
            TransferState.AWAITING_BURN: self._await_burn,
            TransferState.WAITING_ATTESTATION: self._wait_attestation,
            TransferState.MINTING: self._mint,
            TransferState.AWAITING_MINT: self._await_mint,
        }

    @classmethod
    def from_networks(
        cls,
        source_network: str = "ethereum-sepolia",
        destination_network: str = "avalanche-fuji",
        poller: Optional[AttestationPoller] = None,
        logger: Optional[logging.Logger] = None,
        **client_kwargs
    ) -> "CrossChainTransfer":
        """
        Build an orchestrator from the bundled network configuration.

        Args:
            source_network: Network USDC is burned on
            destination_network: Network USDC is minted on
            poller: Optional attestation poller (a default one is created otherwise)
            logger: Optional logger instance
            **client_kwargs: Passed to both ChainClients
        """
        return cls(
            source=ChainClient.from_network(source_network, **client_kwargs),
            destination=ChainClient.from_network(destination_network, **client_kwargs),
            poller=poller or AttestationPoller(logger=logger),
            bridge=BridgeConfig.from_networks(source_network, destination_network),
            logger=logger,
        )

    def transfer(
        self,
        request: TransferRequest,
        private_key: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> TransferResult:
        """
        Run a complete transfer.

        Args:
            request: What to send and to whom
            private_key: Key that owns the USDC and pays gas on both chains
            cancel_event: Set to abandon the attestation wait
            deadline: Absolute deadline (poller clock) for the attestation wait

        Returns:
            A successful result with every transaction id, or a failed one
            with ``error`` and the last known ``burn_tx``
        """
        context = TransferContext(
            destination_address=getattr(request, "destination_address", "") or "",
            request=request,
            credential=private_key,
            cancel_event=cancel_event,
            deadline=deadline,
        )
        return self._run(context)

    def resume_from_burn(
        self,
        burn_tx: str,
        destination_address: str,
        private_key: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> TransferResult:
        """
        Finish a transfer whose burn is already on-chain.

        Starts at WAITING_ATTESTATION; nothing is approved or burned again.

        Args:
            burn_tx: Hash of the included depositForBurn transaction
            destination_address: Recipient the burn was made out to
            private_key: Key that pays gas for the mint
            cancel_event: Set to abandon the attestation wait
            deadline: Absolute deadline (poller clock) for the attestation wait
        """
        context = TransferContext(
            destination_address=destination_address or "",
            credential=private_key,
            burn_tx=burn_tx or "",
            cancel_event=cancel_event,
            deadline=deadline,
        )
        return self._run(context)

    def _run(self, context: TransferContext) -> TransferResult:
        try:
            while context.state is not TransferState.COMPLETED:
                step = self._steps[context.state]
                next_state = step(context)
                self.logger.debug(f"Transfer state {context.state.value} -> {next_state.value}")
                context.state = next_state
        except Exception as e:
            failed_at = context.state
            error = self._describe_failure(e, context)
            self.logger.error(f"USDC transfer failed during {failed_at.value}: {error}")
            context.state = TransferState.FAILED
            return TransferResult(
                success=False,
                error=error,
                approval_tx=context.approval_tx,
                burn_tx=context.burn_tx,
                state=TransferState.FAILED,
                failed_at=failed_at,
            )
        finally:
            context.credential = None

        self.logger.info(f"USDC transfer completed: burn {context.burn_tx}, mint {context.mint_tx}")
        return TransferResult(
            success=True,
            approval_tx=context.approval_tx,
            burn_tx=context.burn_tx,
            attestation=context.attestation,
            mint_tx=context.mint_tx,
            state=TransferState.COMPLETED,
        )

    def _describe_failure(self, error: Exception, context: TransferContext) -> str:
        message = str(error) or type(error).__name__
        if isinstance(error, AttestationTimeout):
            return (
                f"{message}. The burn {context.burn_tx} succeeded and the outcome is unknown; "
                f"resume from the burn transaction instead of sending a new transfer"
            )
        if context.state is TransferState.BURNING and context.burn_tx:
            return (
                f"{message}. The burn {context.burn_tx} may have been broadcast; "
                f"resume from it once it is included instead of sending a new transfer"
            )
        return message

    # -- steps ---------------------------------------------------------------

    def _validate(self, context: TransferContext) -> TransferState:
        """IDLE: check inputs and derive the signer. No chain calls."""
        if not context.destination_address:
            raise InvalidInput("Destination address is required")
        to_padded_address(context.destination_address)

        if context.burn_tx:
            context.burn_tx = normalize_tx_hash(context.burn_tx)
        else:
            request = context.request
            if request is None:
                raise InvalidInput("Transfer request is required")
            if not isinstance(request.amount, int) or request.amount <= 0:
                raise InvalidInput("Amount must be greater than 0")
            if request.max_fee < 0:
                raise InvalidInput("Max fee must not be negative")
            if request.min_finality_threshold < 0:
                raise InvalidInput("Minimum finality threshold must not be negative")

        context.signer = Account.from_key(normalize_private_key(context.credential))
        context.credential = None

        if context.burn_tx:
            self.logger.info(f"Resuming transfer from burn {context.burn_tx}")
            return TransferState.WAITING_ATTESTATION
        return TransferState.APPROVING

    def _approve(self, context: TransferContext) -> TransferState:
        # Never approve less than the transfer itself or the burn is bound to revert
        allowance = max(self.bridge.approval_amount, context.request.amount)
        self.logger.info(f"Approving USDC allowance of {allowance} for the TokenMessenger")
        context.approval_tx = self.source.submit_call(
            self.bridge.usdc_address,
            abi.encode_approve(self.bridge.token_messenger, allowance),
            context.signer,
        )
        return TransferState.AWAITING_APPROVAL

    def _await_approval(self, context: TransferContext) -> TransferState:
        try:
            self.source.await_inclusion(context.approval_tx)
        except TransactionReverted as e:
            raise ApprovalFailed(f"Approval transaction {context.approval_tx} reverted", tx_hash=e.tx_hash) from e
        return TransferState.BURNING

    def _burn(self, context: TransferContext) -> TransferState:
        request = context.request
        self.logger.info(
            f"Burning {request.amount} USDC subunits on domain {self.bridge.source_domain} "
            f"for {request.destination_address} on domain {self.bridge.destination_domain}"
        )
        call_data = abi.encode_deposit_for_burn(
            amount=request.amount,
            destination_domain=self.bridge.destination_domain,
            mint_recipient=to_padded_address(request.destination_address),
            burn_token=self.bridge.usdc_address,
            destination_caller=abi.ZERO_BYTES32,
            max_fee=request.max_fee,
            min_finality_threshold=request.min_finality_threshold,
        )
        try:
            context.burn_tx = self.source.submit_call(self.bridge.token_messenger, call_data, context.signer)
        except (TransactionError, NetworkUnavailable) as e:
            # The signed burn may already be in the node's pool
            if e.tx_hash:
                context.burn_tx = normalize_tx_hash(e.tx_hash)
            raise
        return TransferState.AWAITING_BURN

    def _await_burn(self, context: TransferContext) -> TransferState:
        try:
            self.source.await_inclusion(context.burn_tx)
        except TransactionReverted as e:
            reverted = context.burn_tx
            # A reverted burn moved no funds, so there is nothing to resume
            context.burn_tx = ""
            raise BurnFailed(f"Burn transaction {reverted} reverted", tx_hash=e.tx_hash) from e
        return TransferState.WAITING_ATTESTATION

    def _wait_attestation(self, context: TransferContext) -> TransferState:
        self.logger.info(f"Waiting for attestation of burn {context.burn_tx}")
        context.attestation = self.poller.await_attestation(
            self.bridge.source_domain,
            context.burn_tx,
            cancel_event=context.cancel_event,
            deadline=context.deadline,
        )
        return TransferState.MINTING

    def _mint(self, context: TransferContext) -> TransferState:
        attestation = context.attestation
        if (
            attestation is None
            or attestation.status != "complete"
            or attestation.transaction_hash != normalize_tx_hash(context.burn_tx)
        ):
            raise TransactionError(f"No complete attestation for burn {context.burn_tx}; refusing to mint")

        self.logger.info(f"Minting USDC on domain {self.bridge.destination_domain}")
        context.mint_tx = self.destination.submit_call(
            self.bridge.message_transmitter,
            abi.encode_receive_message(attestation.message, attestation.attestation),
            context.signer,
        )
        return TransferState.AWAITING_MINT

    def _await_mint(self, context: TransferContext) -> TransferState:
        try:
            self.destination.await_inclusion(context.mint_tx)
        except TransactionReverted as e:
            raise MintFailed(f"Mint transaction {context.mint_tx} reverted", tx_hash=e.tx_hash) from e
        return TransferState.COMPLETED


def execute_usdc_transfer(
    private_key: str,
    destination_address: str,
    amount: int,
    max_fee: Optional[int] = None,
    min_finality_threshold: Optional[int] = None,
    source_network: str = "ethereum-sepolia",
    destination_network: str = "avalanche-fuji",
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None
) -> TransferResult:
    """
    Transfer USDC from the key's wallet to ``destination_address``.

    Args:
        private_key: Key owning the USDC on the source network
        destination_address: Recipient on the destination network
        amount: Amount in subunits (1_000_000 = 1 USDC)
        max_fee: Max fee in subunits (default 500)
        min_finality_threshold: Finality threshold (default 1000, Fast Transfer)
        source_network: Network to burn on
        destination_network: Network to mint on
        cancel_event: Set to abandon the attestation wait
        deadline: Absolute ``time.monotonic()`` deadline for the attestation wait
    """
    options: Dict[str, Any] = {}
    if max_fee is not None:
        options["max_fee"] = max_fee
    if min_finality_threshold is not None:
        options["min_finality_threshold"] = min_finality_threshold

    try:
        request = TransferRequest(destination_address=destination_address, amount=amount, **options)
        orchestrator = CrossChainTransfer.from_networks(source_network, destination_network)
    except ValueError as e:
        # pydantic's ValidationError is a ValueError, as are unknown networks
        logger.error(f"USDC transfer rejected before any chain call: {e}")
        return TransferResult(success=False, error=str(e), state=TransferState.FAILED, failed_at=TransferState.IDLE)
    return orchestrator.transfer(request, private_key, cancel_event=cancel_event, deadline=deadline)
