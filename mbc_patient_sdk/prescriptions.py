"""
Read-only access to prescription NFTs.
"""
import json
import logging
import urllib.parse
from typing import Any, Dict, List, Optional

from .chain import abi
from .chain.client import ChainClient
from .models import PrescriptionToken

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:application/json,"
DEFAULT_MAX_TOKEN_ID = 10


def decode_token_uri(uri: str) -> Optional[Dict[str, Any]]:
    """Decode inline ``data:application/json,`` metadata; other URIs give None."""
    if not uri.startswith(DATA_URI_PREFIX):
        return None
    body = uri[len(DATA_URI_PREFIX):]
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        # Some minters percent-encode the JSON body
        return json.loads(urllib.parse.unquote(body))


class PrescriptionReader:
    """Reads prescriptions from one prescription contract."""

    def __init__(self, chain: ChainClient, contract_address: str):
        self.chain = chain
        self.contract_address = contract_address

    def read_prescription(self, token_id: int) -> Optional[PrescriptionToken]:
        """
        Read one prescription.

        Returns:
            The prescription, or None if the token does not exist or any read fails
        """
        try:
            owner = abi.decode_address(self.chain.call_view(self.contract_address, abi.encode_owner_of(token_id)))
            medication, dosage, instructions = abi.decode_prescription(
                self.chain.call_view(self.contract_address, abi.encode_prescriptions(token_id))
            )
            uri = abi.decode_string(self.chain.call_view(self.contract_address, abi.encode_token_uri(token_id)))
            metadata = decode_token_uri(uri)
        except Exception as e:
            logger.debug(f"Prescription {token_id} unavailable: {e}")
            return None

        return PrescriptionToken(
            token_id=token_id,
            owner=owner,
            medication=medication,
            dosage=dosage,
            instructions=instructions,
            metadata=metadata,
        )

    def read_all(self, max_token_id: int = DEFAULT_MAX_TOKEN_ID) -> List[PrescriptionToken]:
        """Read token ids 1..max_token_id, skipping ones that cannot be read."""
        results = []
        for token_id in range(1, max_token_id + 1):
            prescription = self.read_prescription(token_id)
            if prescription:
                results.append(prescription)
        logger.info(f"Read {len(results)} prescriptions from {self.contract_address}")
        return results

    def read_for_owner(self, owner_address: str, max_token_id: int = DEFAULT_MAX_TOKEN_ID) -> List[PrescriptionToken]:
        """Prescriptions owned by an address, compared case-insensitively."""
        owner = owner_address.lower()
        return [p for p in self.read_all(max_token_id) if p.owner.lower() == owner]
