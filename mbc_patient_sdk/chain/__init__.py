"""
Chain access for the MBC Patient SDK.

``ChainClient`` wraps one EVM network; ``abi`` encodes the contract calls the
SDK sends through it.
"""
from .client import ChainClient, Signer
from . import abi

__all__ = ['ChainClient', 'Signer', 'abi']
