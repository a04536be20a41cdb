"""
Pharmacy registry - the patient's saved pharmacies and the selected one.

Pharmacies are stored as one JSON document under ``@pharmacies`` in a
``KeyValueStore``; the selection is a pharmacy id under
``@selected_pharmacy_id``.
"""
import json
import logging
import random
import string
import threading
import time
from typing import List, Optional, Union

from pydantic import ValidationError

from .exceptions import InvalidAddress, InvalidInput, PharmacyNotFound
from .models import Pharmacy, PharmacyDraft
from .storage import InMemoryKeyValueStore, KeyValueStore
from .utils import is_valid_ethereum_address

logger = logging.getLogger(__name__)

PHARMACIES_STORAGE_KEY = "@pharmacies"
SELECTED_PHARMACY_KEY = "@selected_pharmacy_id"

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_pharmacy_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"pharmacy_{int(time.time() * 1000)}_{suffix}"


class PharmacyRegistry:
    """Saved pharmacies backed by a key-value store."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store or InMemoryKeyValueStore()
        self._lock = threading.RLock()

    def get_pharmacies(self) -> List[Pharmacy]:
        """
        Get all saved pharmacies.

        Returns:
            Pharmacies in the order they were added; empty if nothing is
            stored or the stored document cannot be read
        """
        data = self.store.get_item(PHARMACIES_STORAGE_KEY)
        if not data:
            return []
        try:
            return [Pharmacy.model_validate(item) for item in json.loads(data)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Error reading pharmacies, treating list as empty: {e}")
            return []

    def save_pharmacy(self, pharmacy: Union[PharmacyDraft, Pharmacy]) -> Pharmacy:
        """
        Add a new pharmacy or update an existing one.

        Args:
            pharmacy: A ``PharmacyDraft`` to add, or a ``Pharmacy`` whose id
                already exists to update its name and address

        Returns:
            The stored pharmacy

        Raises:
            InvalidInput: If the name is empty
            InvalidAddress: If the address is not 0x + 40 hex digits
            PharmacyNotFound: If an update names an unknown id
        """
        name = (pharmacy.name or "").strip()
        if not name:
            raise InvalidInput("Pharmacy name is required")
        if not is_valid_ethereum_address(pharmacy.ethereum_address):
            raise InvalidAddress(f"Invalid Ethereum address: {pharmacy.ethereum_address!r}")

        with self._lock:
            pharmacies = self.get_pharmacies()
            if isinstance(pharmacy, Pharmacy):
                for index, existing in enumerate(pharmacies):
                    if existing.id == pharmacy.id:
                        saved = Pharmacy(
                            id=existing.id,
                            name=name,
                            ethereum_address=pharmacy.ethereum_address,
                            created_at=existing.created_at,
                        )
                        pharmacies[index] = saved
                        break
                else:
                    raise PharmacyNotFound(f"Pharmacy {pharmacy.id} not found")
            else:
                saved = Pharmacy(
                    id=generate_pharmacy_id(),
                    name=name,
                    ethereum_address=pharmacy.ethereum_address,
                    created_at=int(time.time() * 1000),
                )
                pharmacies.append(saved)
            self._write(pharmacies)

        logger.info(f"Saved pharmacy {saved.id} ({saved.name})")
        return saved

    def delete_pharmacy(self, pharmacy_id: str) -> None:
        """Remove a pharmacy, clearing the selection if it pointed at it."""
        with self._lock:
            pharmacies = self.get_pharmacies()
            self._write([p for p in pharmacies if p.id != pharmacy_id])
            if self.get_selected_pharmacy_id() == pharmacy_id:
                self.store.remove_item(SELECTED_PHARMACY_KEY)
                logger.info(f"Cleared selection of deleted pharmacy {pharmacy_id}")

    def get_selected_pharmacy_id(self) -> Optional[str]:
        return self.store.get_item(SELECTED_PHARMACY_KEY)

    def set_selected_pharmacy_id(self, pharmacy_id: Optional[str]) -> None:
        """
        Select a pharmacy, or clear the selection with None.

        Raises:
            PharmacyNotFound: If the id is not a saved pharmacy
        """
        with self._lock:
            if not pharmacy_id:
                self.store.remove_item(SELECTED_PHARMACY_KEY)
                return
            if not any(p.id == pharmacy_id for p in self.get_pharmacies()):
                raise PharmacyNotFound(f"Pharmacy {pharmacy_id} not found")
            self.store.set_item(SELECTED_PHARMACY_KEY, pharmacy_id)

    def get_selected_pharmacy(self) -> Optional[Pharmacy]:
        """The selected pharmacy, or None when nothing valid is selected."""
        selected_id = self.get_selected_pharmacy_id()
        if not selected_id:
            return None
        for pharmacy in self.get_pharmacies():
            if pharmacy.id == selected_id:
                return pharmacy
        return None

    def _write(self, pharmacies: List[Pharmacy]) -> None:
        payload = [p.model_dump(mode="json", by_alias=True) for p in pharmacies]
        self.store.set_item(PHARMACIES_STORAGE_KEY, json.dumps(payload))
