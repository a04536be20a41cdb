"""
ChainClient - read/write access to one EVM network.

The adapter sends pre-encoded contract calls, waits for their inclusion and
runs read-only calls. It owns the retry policy for unreachable endpoints:
every RPC interaction gets a fixed number of attempts before
``NetworkUnavailable`` is raised.
"""
import logging
import time
import urllib.parse
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

import requests
from eth_utils import keccak, to_checksum_address
from web3 import Web3
from web3.exceptions import ProviderConnectionError, TimeExhausted

from ..config import NetworkConfig
from ..exceptions import NetworkUnavailable, TransactionError, TransactionReverted
from ..models import TxReceipt
from ..utils import to_hex

T = TypeVar('T')

# Errors that mean "could not reach the node", as opposed to "the node said no"
RETRYABLE_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    ProviderConnectionError,
    TimeExhausted,
)

# Node replies to a resend of a transaction that is already in its pool
_ALREADY_KNOWN_MARKERS = ("already known", "known transaction", "already imported")


def _is_already_known(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _ALREADY_KNOWN_MARKERS)


class Signer(Protocol):
    """Protocol for transaction signers (eth_account's LocalAccount satisfies it)"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object exposing ``raw_transaction``"""
        ...


def _hexify(value: Any) -> Any:
    """Recursively turn bytes/HexBytes inside web3 structures into 0x strings."""
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if isinstance(value, dict) or hasattr(value, "items"):
        return {key: _hexify(item) for key, item in dict(value).items()}
    if isinstance(value, (list, tuple)):
        return [_hexify(item) for item in value]
    return value


class ChainClient:
    """
    Client for a single EVM network.

    To use this client, you'll need:
    - An RPC endpoint (https unless it is localhost)
    - A signer for write calls, supplied per call
    """

    def __init__(
        self,
        rpc_url: str,
        chain_id: Optional[int] = None,
        name: Optional[str] = None,
        max_attempts: int = 3,
        backoff_factor: float = 0.5,
        receipt_timeout: int = 120,
        poll_interval: float = 0.1,
        default_gas: int = 300000,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the ChainClient

        Args:
            rpc_url: RPC endpoint URL (e.g., "https://sepolia.base.org")
            chain_id: Expected chain id (fetched from the node when omitted)
            name: Network name used in log and error messages
            max_attempts: Attempts per RPC interaction before NetworkUnavailable
            backoff_factor: Base delay for exponential backoff between attempts
            receipt_timeout: Seconds to wait for a receipt per attempt
            poll_interval: How often to poll for a receipt, in seconds
            default_gas: Gas limit used when estimation fails
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        parsed = urllib.parse.urlparse(rpc_url)
        host = parsed.hostname or ""
        is_local = host in ("localhost", "127.0.0.1", "::1")
        if parsed.scheme != "https" and not is_local:
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.rpc_url = rpc_url
        self.name = name or host
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.default_gas = default_gas
        self.logger = logger or logging.getLogger(__name__)
        self._chain_id = chain_id

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))

    @classmethod
    def from_network(cls, network: str, rpc_url: Optional[str] = None, **kwargs) -> "ChainClient":
        """
        Create a client from the bundled network configuration.

        Args:
            network: Network name (e.g., "ethereum-sepolia")
            rpc_url: Optional RPC override
            **kwargs: Passed to the constructor
        """
        config = NetworkConfig.get_network(network)
        return cls(
            rpc_url=NetworkConfig.get_rpc_url(network, rpc_url),
            chain_id=config["chainId"],
            name=network,
            **kwargs
        )

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._with_retries("fetch chain id", lambda: self.w3.eth.chain_id)
        return self._chain_id

    def _with_retries(self, description: str, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run an RPC interaction with the adapter's fixed retry policy."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn(*args, **kwargs)
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_attempts:
                    self.logger.error(f"{self.name}: {description} failed after {attempt} attempts: {e}")
                    raise NetworkUnavailable(
                        f"{self.name} unreachable while trying to {description} ({attempt} attempts): {e}"
                    ) from e
                wait_time = self.backoff_factor * (2 ** (attempt - 1))
                self.logger.warning(f"{self.name}: {description} failed ({e}); retrying in {wait_time}s")
                time.sleep(wait_time)

    def submit_call(self, contract_address: str, call_data: str, signer: Signer) -> str:
        """
        Sign and broadcast a contract call without waiting for it.

        Args:
            contract_address: Target contract
            call_data: 0x-prefixed ABI-encoded call
            signer: Account that signs and pays for the transaction

        Returns:
            0x-prefixed transaction hash

        Raises:
            TransactionError: If signing or broadcasting is rejected
            NetworkUnavailable: If the node cannot be reached
        """
        from_address = signer.address
        to_address = to_checksum_address(contract_address)
        nonce = self._with_retries("fetch nonce", self.w3.eth.get_transaction_count, from_address, "pending")

        tx: Dict[str, Any] = {
            "from": from_address,
            "to": to_address,
            "data": call_data,
            "value": 0,
            "nonce": nonce,
            "chainId": self.chain_id,
        }

        try:
            # Add 10% buffer to gas estimate
            tx["gas"] = int(self.w3.eth.estimate_gas(tx) * 1.1)
            self.logger.debug(f"{self.name}: estimated gas {tx['gas']}")
        except Exception as e:
            tx["gas"] = self.default_gas
            self.logger.warning(f"{self.name}: gas estimation failed, using default: {tx['gas']}. Error: {e}")

        tx["gasPrice"] = self._with_retries("fetch gas price", lambda: self.w3.eth.gas_price)

        try:
            signed_tx = signer.sign_transaction(tx)
        except Exception as e:
            self.logger.error(f"{self.name}: transaction signing failed: {e}")
            raise TransactionError(f"Failed to sign transaction: {e}") from e

        # The hash of a signed transaction is known before it is broadcast
        raw_tx = signed_tx.raw_transaction
        known_hash = to_hex(keccak(raw_tx)) if isinstance(raw_tx, (bytes, bytearray)) else None
        attempts = 0

        def send():
            nonlocal attempts
            attempts += 1
            return self.w3.eth.send_raw_transaction(raw_tx)

        try:
            tx_hash = self._with_retries("send transaction", send)
        except NetworkUnavailable as e:
            raise NetworkUnavailable(str(e), tx_hash=known_hash) from e.__cause__
        except Exception as e:
            if known_hash and _is_already_known(e):
                self.logger.warning(f"{self.name}: transaction {known_hash} was already accepted by the node")
                return known_hash
            self.logger.error(f"{self.name}: failed to send transaction: {e}")
            # A rejection after a timed-out attempt leaves the first broadcast unaccounted for
            raise TransactionError(
                f"Failed to send transaction: {e}",
                tx_hash=known_hash if attempts > 1 else None,
            ) from e

        tx_hash_hex = to_hex(tx_hash)
        self.logger.info(f"{self.name}: transaction sent: {tx_hash_hex}")
        return tx_hash_hex

    def await_inclusion(self, tx_hash: str) -> TxReceipt:
        """
        Block until a transaction is mined.

        Returns:
            The transaction receipt

        Raises:
            TransactionReverted: If the receipt reports failure
            NetworkUnavailable: If no receipt could be obtained
        """
        receipt = self._with_retries(
            f"wait for receipt of {tx_hash}",
            self.w3.eth.wait_for_transaction_receipt,
            tx_hash,
            timeout=self.receipt_timeout,
            poll_latency=self.poll_interval,
        )
        converted = self._convert_receipt(receipt)
        if converted.status != 1:
            self.logger.error(f"{self.name}: transaction {tx_hash} reverted in block {converted.block_number}")
            raise TransactionReverted(f"Transaction {tx_hash} reverted on {self.name}", tx_hash=tx_hash)
        self.logger.info(f"{self.name}: transaction {tx_hash} confirmed in block {converted.block_number}")
        return converted

    def call_view(self, contract_address: str, call_data: str) -> bytes:
        """Run a read-only call and return the raw ABI-encoded result."""
        result = self._with_retries(
            "call contract",
            self.w3.eth.call,
            {"to": to_checksum_address(contract_address), "data": call_data},
        )
        return bytes(result)

    def _convert_receipt(self, web3_receipt: Any) -> TxReceipt:
        """
        Convert Web3 receipt to our TxReceipt model

        Args:
            web3_receipt: The Web3 transaction receipt

        Returns:
            Our TxReceipt model
        """
        return TxReceipt.model_validate(_hexify(web3_receipt))
