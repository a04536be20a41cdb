"""
MedicalPassportClient - mints and reads medical passport NFTs.

The passport contract stores a patient's medical record fields on-chain and
emits ``PassportIssued(to, tokenId)`` on every mint.
"""
import logging
import os
from typing import Any, Dict, Optional, Union

from eth_account import Account

from .chain import abi
from .chain.client import ChainClient
from .config import NetworkConfig
from .exceptions import InvalidInput, MbcPatientError, PassportError, TransactionReverted
from .models import MedicalPassportInput, MintPassportResult, PassportInfo, PASSPORT_FIELDS
from .utils import is_valid_ethereum_address, normalize_private_key


class MedicalPassportClient:
    """
    Client for the medical passport contract.

    To use this client, you'll need:
    - A ChainClient for the network the contract lives on
    - A funded private key that pays for mints
    """

    def __init__(
        self,
        chain: ChainClient,
        private_key: str,
        contract_address: str,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the MedicalPassportClient

        Args:
            chain: Client for the passport contract's network
            private_key: Key of the minting wallet
            contract_address: Passport contract address
            logger: Optional logger instance

        Raises:
            InvalidInput: If the key or contract address is malformed
        """
        if not is_valid_ethereum_address(contract_address):
            raise InvalidInput(f"Invalid passport contract address: {contract_address!r}")
        self.chain = chain
        self._account = Account.from_key(normalize_private_key(private_key))
        self._contract_address = contract_address
        self.logger = logger or logging.getLogger(__name__)
        self.logger.info(
            f"Passport client ready: wallet {self._account.address}, contract {contract_address} on {chain.name}"
        )

    @classmethod
    def from_env(
        cls,
        network: str = "base-sepolia",
        private_key: Optional[str] = None,
        rpc_url: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ) -> "MedicalPassportClient":
        """
        Create a client from environment configuration.

        Reads ``PRIVATE_KEY`` (or ``EXPO_PUBLIC_PRIVATE_KEY``) and an optional
        ``MBC_PASSPORT_CONTRACT`` override of the bundled contract address.

        Raises:
            InvalidInput: If no private key is configured
        """
        key = NetworkConfig.get_private_key(private_key)
        if not key:
            raise InvalidInput("PRIVATE_KEY is required. Pass private_key or set the PRIVATE_KEY environment variable.")
        contract_address = os.environ.get("MBC_PASSPORT_CONTRACT") or NetworkConfig.get_contract(
            network, "medicalPassport"
        )
        chain = ChainClient.from_network(network, rpc_url=rpc_url, logger=logger)
        return cls(chain, key, contract_address, logger=logger)

    @property
    def wallet_address(self) -> str:
        return self._account.address

    @property
    def contract_address(self) -> str:
        return self._contract_address

    def health_status(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "contract_address": self.contract_address,
            "wallet_address": self.wallet_address,
            "network": self.chain.name,
        }

    def mint_medical_passport(
        self,
        passport: Union[MedicalPassportInput, Dict[str, Any]],
        recipient: Optional[str] = None
    ) -> MintPassportResult:
        """
        Mint a medical passport NFT.

        Args:
            passport: Record fields; missing fields are stored as empty strings
            recipient: Receiving wallet (defaults to the minting wallet)

        Returns:
            Transaction details and the new token id

        Raises:
            InvalidInput: If the recipient address is malformed
            PassportError: If the mint fails or the token id cannot be found
        """
        if isinstance(passport, dict):
            passport = MedicalPassportInput.model_validate(passport)
        recipient_address = recipient or self.wallet_address
        if not is_valid_ethereum_address(recipient_address):
            raise InvalidInput(f"Invalid recipient address: {recipient_address!r}")

        fields = passport.to_contract_tuple()
        normalized = MedicalPassportInput(**dict(zip(PASSPORT_FIELDS, fields)))
        if normalized.is_empty():
            self.logger.warning("All passport fields are empty. Proceeding with empty values.")
        filled = [name for name, value in zip(PASSPORT_FIELDS, fields) if value]
        self.logger.info(f"Minting passport for {recipient_address} with fields: {', '.join(filled) or 'none'}")

        try:
            tx_hash = self.chain.submit_call(
                self.contract_address,
                abi.encode_mint_medical_passport(recipient_address, fields),
                self._account,
            )
            receipt = self.chain.await_inclusion(tx_hash)
        except TransactionReverted as e:
            self.logger.error(f"Passport mint reverted: {e}")
            raise PassportError(f"Transaction failed: {e}") from e
        except MbcPatientError as e:
            self.logger.error(f"Error minting passport: {e}")
            if "insufficient funds" in str(e).lower():
                raise PassportError(f"Insufficient funds for transaction: {e}") from e
            raise PassportError(f"Failed to mint medical passport NFT: {e}") from e

        token_id = abi.token_id_from_logs(receipt.logs, self.contract_address)
        if token_id is None:
            self.logger.warning(f"No PassportIssued event in {tx_hash}; reading counter()")
            try:
                token_id = abi.decode_uint256(self.chain.call_view(self.contract_address, abi.encode_counter()))
            except Exception as e:
                self.logger.error(f"Could not retrieve token ID from counter: {e}")
                raise PassportError("Could not retrieve token ID after minting") from e

        self.logger.info(f"Minted passport token {token_id} in block {receipt.block_number}")
        return MintPassportResult(
            transaction_hash=tx_hash,
            block_number=receipt.block_number,
            token_id=str(token_id),
            recipient=recipient_address,
            contract_address=self.contract_address,
            passport_data=normalized,
        )

    def get_medical_passport(self, token_id: Union[int, str]) -> PassportInfo:
        """
        Read a passport's token URI and owner.

        Raises:
            InvalidInput: If the token id is not a positive integer
            PassportError: If the token cannot be read
        """
        token_id = _parse_token_id(token_id)
        try:
            uri = abi.decode_string(self.chain.call_view(self.contract_address, abi.encode_token_uri(token_id)))
            owner = abi.decode_address(self.chain.call_view(self.contract_address, abi.encode_owner_of(token_id)))
        except Exception as e:
            self.logger.error(f"Error fetching passport {token_id}: {e}")
            raise PassportError(f"Failed to fetch passport: {e}") from e
        return PassportInfo(token_id=str(token_id), token_uri=uri, owner=owner)


def _parse_token_id(token_id: Union[int, str]) -> int:
    if isinstance(token_id, bool):
        raise InvalidInput("Invalid token ID")
    try:
        parsed = int(str(token_id).strip())
    except ValueError as e:
        raise InvalidInput(f"Invalid token ID: {token_id!r}") from e
    if parsed <= 0:
        raise InvalidInput(f"Invalid token ID: {token_id!r}")
    return parsed
