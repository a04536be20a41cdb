"""
Tests for the NetworkConfig module.
"""
from unittest.mock import patch

import pytest

from mbc_patient_sdk.config import IRIS_SANDBOX_URL, NetworkConfig

# Sample network configuration
MOCK_NETWORKS = {
    "test-network": {
        "chainId": 123,
        "rpc": "https://test.example.com",
        "cctpDomain": 9,
        "usdc": "0x1234567890123456789012345678901234567890",
    }
}


class TestNetworkConfig:
    """Test NetworkConfig class."""

    def test_bundled_networks(self):
        networks = NetworkConfig.load_networks()
        assert networks["ethereum-sepolia"]["chainId"] == 11155111
        assert networks["ethereum-sepolia"]["cctpDomain"] == 0
        assert networks["avalanche-fuji"]["chainId"] == 43113
        assert networks["avalanche-fuji"]["cctpDomain"] == 1
        assert networks["base-sepolia"]["rpc"] == "https://sepolia.base.org"

    def test_load_networks_cached(self):
        """Test that networks are cached after first load."""
        NetworkConfig._networks_cache = MOCK_NETWORKS

        with patch("importlib.resources.files") as mock_files:
            result = NetworkConfig.load_networks()
            mock_files.assert_not_called()

        assert result == MOCK_NETWORKS

    def test_get_network_not_found(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS

        with pytest.raises(ValueError) as exc_info:
            NetworkConfig.get_network("non-existent-network")

        # Verify error message includes available networks
        assert "test-network" in str(exc_info.value)

    def test_get_rpc_url_default(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        assert NetworkConfig.get_rpc_url("test-network") == "https://test.example.com"

    def test_get_rpc_url_from_env(self, monkeypatch):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        monkeypatch.setenv("MBC_RPC_TEST_NETWORK", "https://env.example.com")
        assert NetworkConfig.get_rpc_url("test-network") == "https://env.example.com"

    def test_get_rpc_url_override_wins(self, monkeypatch):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        monkeypatch.setenv("MBC_RPC_TEST_NETWORK", "https://env.example.com")
        assert NetworkConfig.get_rpc_url("test-network", "https://override.example.com") == "https://override.example.com"

    def test_get_contract(self):
        NetworkConfig._networks_cache = MOCK_NETWORKS
        assert NetworkConfig.get_contract("test-network", "usdc") == MOCK_NETWORKS["test-network"]["usdc"]
        with pytest.raises(ValueError, match="medicalPassport"):
            NetworkConfig.get_contract("test-network", "medicalPassport")

    def test_attestation_url(self, monkeypatch):
        monkeypatch.delenv("MBC_ATTESTATION_API_URL", raising=False)
        assert NetworkConfig.get_attestation_url() == IRIS_SANDBOX_URL
        monkeypatch.setenv("MBC_ATTESTATION_API_URL", "https://iris-api.circle.com/v2/messages/")
        assert NetworkConfig.get_attestation_url() == "https://iris-api.circle.com/v2/messages"

    def test_private_key_precedence(self, monkeypatch):
        monkeypatch.setenv("PRIVATE_KEY", "from-env")
        monkeypatch.setenv("EXPO_PUBLIC_PRIVATE_KEY", "from-expo")
        assert NetworkConfig.get_private_key("explicit") == "explicit"
        assert NetworkConfig.get_private_key() == "from-env"
        monkeypatch.delenv("PRIVATE_KEY")
        assert NetworkConfig.get_private_key() == "from-expo"
        monkeypatch.delenv("EXPO_PUBLIC_PRIVATE_KEY")
        assert NetworkConfig.get_private_key() is None
