"""
Pytest fixtures for the MBC Patient SDK tests.
"""
import time
from unittest.mock import MagicMock

import pytest
from eth_account import Account
from web3.providers.rpc import HTTPProvider

from mbc_patient_sdk._rate_limited_log import reset_rate_limited_log
from mbc_patient_sdk.chain.client import ChainClient
from mbc_patient_sdk.config import NetworkConfig
from mbc_patient_sdk.models import Attestation, TxReceipt

# Constants for testing
TEST_RPC_URL = "https://rpc.example.com"
TEST_ATTESTATION_URL = "https://iris.example.com/v2/messages"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
TEST_PHARMACIST = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
TEST_PATIENT = "0x1111111111111111111111111111111111111111"
TEST_CONTRACT = "0x1234567890123456789012345678901234567890"
TEST_BURN_TX = "0x" + "ab" * 32
TEST_MESSAGE = "0x" + "01" * 48
TEST_SIGNATURE = "0x" + "02" * 65


# Make time.sleep instantaneous so retries don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Works for all tests because it is autouse.
    """
    def _dummy(self, method, params=None, _=None):      # signature match
        if method in {"eth_chainId"}:
            return {"jsonrpc": "2.0", "id": 1, "result": "0xaa36a7"}    # sepolia
        if method in {"eth_gasPrice"}:
            return {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"}  # 1 gwei
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture(autouse=True)
def _reset_caches():
    NetworkConfig._networks_cache = None
    reset_rate_limited_log()
    yield
    NetworkConfig._networks_cache = None
    reset_rate_limited_log()


class FakeClock:
    """Monotonic clock that only advances when something sleeps on it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_account():
    """Create a deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


def make_receipt(tx_hash: str, status: int = 1, logs=None, block_number: int = 12345) -> TxReceipt:
    return TxReceipt(
        tx_hash=tx_hash,
        block_number=block_number,
        block_hash="0x" + "cd" * 32,
        status=status,
        gas_used=85000,
        logs=logs or [],
    )


def make_attestation(tx_hash: str = TEST_BURN_TX, source_domain: int = 0) -> Attestation:
    return Attestation(
        message=TEST_MESSAGE,
        attestation=TEST_SIGNATURE,
        status="complete",
        source_domain=source_domain,
        transaction_hash=tx_hash,
    )


@pytest.fixture
def mock_chain():
    """ChainClient double whose writes and reads are MagicMocks."""
    chain = MagicMock(spec=ChainClient)
    chain.name = "test-network"
    chain.submit_call.return_value = "0x" + "11" * 32
    chain.await_inclusion.side_effect = lambda tx_hash: make_receipt(tx_hash)
    return chain


@pytest.fixture
def mock_w3():
    """Web3 double with the eth methods ChainClient touches."""
    w3 = MagicMock()
    w3.eth.chain_id = 11155111
    w3.eth.gas_price = 1000000000  # 1 gwei
    w3.eth.get_transaction_count.return_value = 12
    w3.eth.estimate_gas.return_value = 100000
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
    w3.eth.wait_for_transaction_receipt.return_value = {
        "transactionHash": bytes.fromhex("ab" * 32),
        "blockNumber": 12345,
        "blockHash": bytes.fromhex("cd" * 32),
        "status": 1,
        "gasUsed": 85000,
        "from": TEST_RECIPIENT,
        "to": TEST_CONTRACT,
        "logs": [],
    }
    return w3


@pytest.fixture
def chain_client(mock_w3):
    client = ChainClient(TEST_RPC_URL, chain_id=11155111, name="test-network")
    client.w3 = mock_w3
    return client
