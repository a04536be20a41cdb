"""
Call-data encoders and return-data decoders for the contracts the SDK talks to.

Calls are encoded directly from their canonical signatures so the chain
adapter only ever moves ``(contract address, call data)`` pairs.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from eth_abi import encode, decode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

# CCTP v2 source-chain calls
APPROVE = "approve(address,uint256)"
DEPOSIT_FOR_BURN = "depositForBurn(uint256,uint32,bytes32,address,bytes32,uint256,uint32)"
# CCTP v2 destination-chain call
RECEIVE_MESSAGE = "receiveMessage(bytes,bytes)"

# MedicalPassportOnChain
PASSPORT_INPUT_TYPE = "(" + ",".join(["string"] * 11) + ")"
MINT_MEDICAL_PASSPORT = f"mintMedicalPassport(address,{PASSPORT_INPUT_TYPE})"
COUNTER = "counter()"
PASSPORT_ISSUED_EVENT = "PassportIssued(address,uint256)"

# ERC-721 reads shared by the passport and prescription contracts
TOKEN_URI = "tokenURI(uint256)"
OWNER_OF = "ownerOf(uint256)"
PRESCRIPTIONS = "prescriptions(uint256)"

ZERO_BYTES32 = "0x" + "00" * 32
PASSPORT_ISSUED_TOPIC = "0x" + keccak(text=PASSPORT_ISSUED_EVENT).hex()


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)


def encode_call(signature: str, types: Sequence[str], args: Sequence[Any]) -> str:
    """Encode a call as 0x-prefixed selector + ABI-encoded arguments."""
    selector = function_signature_to_4byte_selector(signature)
    return "0x" + (selector + encode(list(types), list(args))).hex()


def encode_approve(spender: str, amount: int) -> str:
    return encode_call(APPROVE, ["address", "uint256"], [to_checksum_address(spender), amount])


def encode_deposit_for_burn(
    amount: int,
    destination_domain: int,
    mint_recipient: str,
    burn_token: str,
    destination_caller: str,
    max_fee: int,
    min_finality_threshold: int
) -> str:
    """
    Encode ``depositForBurn`` on the TokenMessenger.

    Args:
        amount: Amount to burn in subunits
        destination_domain: CCTP domain id of the destination chain
        mint_recipient: 32-byte padded recipient (0x + 64 hex digits)
        burn_token: Address of the token being burned
        destination_caller: 32-byte caller restriction, zero for any caller
        max_fee: Maximum fee in subunits
        min_finality_threshold: Minimum finality for the attestation
    """
    return encode_call(
        DEPOSIT_FOR_BURN,
        ["uint256", "uint32", "bytes32", "address", "bytes32", "uint256", "uint32"],
        [
            amount,
            destination_domain,
            _hex_to_bytes(mint_recipient),
            to_checksum_address(burn_token),
            _hex_to_bytes(destination_caller),
            max_fee,
            min_finality_threshold,
        ],
    )


def encode_receive_message(message: str, attestation: str) -> str:
    return encode_call(RECEIVE_MESSAGE, ["bytes", "bytes"], [_hex_to_bytes(message), _hex_to_bytes(attestation)])


def encode_mint_medical_passport(recipient: str, passport: Tuple[str, ...]) -> str:
    return encode_call(
        MINT_MEDICAL_PASSPORT,
        ["address", PASSPORT_INPUT_TYPE],
        [to_checksum_address(recipient), tuple(passport)],
    )


def encode_token_uri(token_id: int) -> str:
    return encode_call(TOKEN_URI, ["uint256"], [int(token_id)])


def encode_owner_of(token_id: int) -> str:
    return encode_call(OWNER_OF, ["uint256"], [int(token_id)])


def encode_counter() -> str:
    return encode_call(COUNTER, [], [])


def encode_prescriptions(token_id: int) -> str:
    return encode_call(PRESCRIPTIONS, ["uint256"], [int(token_id)])


def decode_string(data: bytes) -> str:
    return decode(["string"], data)[0]


def decode_address(data: bytes) -> str:
    return to_checksum_address(decode(["address"], data)[0])


def decode_uint256(data: bytes) -> int:
    return decode(["uint256"], data)[0]


def decode_prescription(data: bytes) -> Tuple[str, str, str]:
    """Decode ``prescriptions(uint256)`` into (medication, dosage, instructions)."""
    medication, dosage, instructions = decode(["string", "string", "string"], data)
    return medication, dosage, instructions


def token_id_from_logs(logs: Iterable[Dict[str, Any]], contract_address: Optional[str] = None) -> Optional[int]:
    """
    Find the token id in the first ``PassportIssued`` log.

    ``tokenId`` is the second indexed parameter, so it is ``topics[2]``.
    """
    wanted = contract_address.lower() if contract_address else None
    for log in logs:
        topics: List[str] = log.get("topics") or []
        if len(topics) < 3 or topics[0].lower() != PASSPORT_ISSUED_TOPIC:
            continue
        if wanted and str(log.get("address", "")).lower() != wanted:
            continue
        return int(topics[2], 16)
    return None
