"""
Network configuration for the MBC Patient SDK.

Chain ids, RPC endpoints, CCTP domain ids and contract addresses ship in the
packaged ``networks.json``. RPC endpoints, the attestation API and the signing
key can be overridden from the environment.
"""
import importlib.resources
import json
import logging
import os
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

IRIS_SANDBOX_URL = "https://iris-api-sandbox.circle.com/v2/messages"


class NetworkConfig:
    """Lookup of bundled network settings with environment overrides."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load all network configurations.

        Returns:
            Mapping of network name to its configuration dictionary
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        resource = importlib.resources.files(__package__).joinpath("networks.json")
        with resource.open("r", encoding="utf-8") as f:
            cls._networks_cache = json.load(f)
        logger.debug(f"Loaded {len(cls._networks_cache)} network configurations")
        return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Get the configuration for a single network.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if name not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{name}'. Available networks: {available}")
        return networks[name]

    @classmethod
    def get_rpc_url(cls, name: str, override: Optional[str] = None) -> str:
        """
        Resolve the RPC URL for a network.

        Order: explicit override, ``MBC_RPC_<NETWORK>`` environment variable
        (e.g. ``MBC_RPC_ETHEREUM_SEPOLIA``), then the bundled default.
        """
        if override:
            return override
        env_key = "MBC_RPC_" + name.upper().replace("-", "_")
        env_value = os.environ.get(env_key)
        if env_value:
            return env_value
        return cls.get_network(name)["rpc"]

    @classmethod
    def get_contract(cls, name: str, contract: str) -> str:
        """
        Get a contract address (``usdc``, ``tokenMessenger``, ...) on a network.

        Raises:
            ValueError: If the network has no such contract
        """
        network = cls.get_network(name)
        if contract not in network:
            raise ValueError(f"Network '{name}' has no '{contract}' contract configured")
        return network[contract]

    @staticmethod
    def get_attestation_url() -> str:
        return os.environ.get("MBC_ATTESTATION_API_URL", IRIS_SANDBOX_URL).rstrip("/")

    @staticmethod
    def get_private_key(explicit: Optional[str] = None) -> Optional[str]:
        """Signing key from the argument, ``PRIVATE_KEY`` or ``EXPO_PUBLIC_PRIVATE_KEY``."""
        return explicit or os.environ.get("PRIVATE_KEY") or os.environ.get("EXPO_PUBLIC_PRIVATE_KEY")
