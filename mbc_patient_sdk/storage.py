"""
Persistence capabilities for locally stored SDK state.

Two small interfaces cover what the SDK persists: an ordered store of payment
requests and an AsyncStorage-like key-value store. Each has an in-memory
implementation and a JSON file implementation that is thread-safe and
process-safe through ``portalocker``.
"""
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import portalocker

from .models import PaymentRequest, PaymentStatus

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.mbc_patient"


def _default_path(env_var: str, filename: str) -> Path:
    return Path(os.environ.get(env_var, os.path.join(os.path.expanduser(DEFAULT_DATA_DIR), filename)))


class _JsonFile:
    """A JSON document guarded by a sibling ``.lock`` file."""

    def __init__(self, path: Path, empty: Dict[str, Any]):
        self.path = path
        self.empty = empty
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            with self.locked():
                self.write_unlocked(empty)

    def locked(self) -> portalocker.Lock:
        return portalocker.Lock(str(self.path) + ".lock", timeout=10)

    def read_unlocked(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            # Return empty store if file is empty or not found
            logger.warning(f"Store {self.path} is missing or unreadable; starting empty")
            return json.loads(json.dumps(self.empty))

    def write_unlocked(self, data: Dict[str, Any]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


class PaymentRequestStore(ABC):
    """Ordered persistence for payment requests."""

    @abstractmethod
    def list(self) -> List[PaymentRequest]:
        """
        Get every stored request.

        Returns:
            Requests in insertion order
        """
        pass

    @abstractmethod
    def create(self, request: PaymentRequest) -> None:
        """Append a request. The request must already have an id."""
        pass

    @abstractmethod
    def update_status(self, request_id: str, status: PaymentStatus, burn_tx: Optional[str] = None) -> bool:
        """
        Move a stored request to a new status.

        The transition is checked against the request's current status in
        the same critical section as the write.

        Args:
            request_id: Id of the request
            status: New status
            burn_tx: Burn hash to record with the status, if any

        Returns:
            False if no request has that id or the transition is not allowed
        """
        pass


class InMemoryPaymentRequestStore(PaymentRequestStore):
    """Process-local store; state lives as long as the instance does."""

    def __init__(self):
        self._requests: List[PaymentRequest] = []
        self._lock = threading.RLock()

    def list(self) -> List[PaymentRequest]:
        with self._lock:
            return [request.model_copy() for request in self._requests]

    def create(self, request: PaymentRequest) -> None:
        with self._lock:
            self._requests.append(request.model_copy())

    def update_status(self, request_id: str, status: PaymentStatus, burn_tx: Optional[str] = None) -> bool:
        status = PaymentStatus(status)
        with self._lock:
            for index, request in enumerate(self._requests):
                if request.id == request_id:
                    if not request.status.can_transition_to(status):
                        return False
                    update: Dict[str, Any] = {"status": status}
                    if burn_tx:
                        update["burn_tx"] = burn_tx
                    self._requests[index] = request.model_copy(update=update)
                    return True
            return False


class JsonFilePaymentRequestStore(PaymentRequestStore):
    """
    Payment requests in a JSON file.

    The path defaults to ``MBC_PAYMENT_STORE_PATH`` or
    ``~/.mbc_patient/payment_requests.json``.
    """

    def __init__(self, store_path: Optional[str] = None):
        path = Path(store_path) if store_path else _default_path("MBC_PAYMENT_STORE_PATH", "payment_requests.json")
        self._file = _JsonFile(path, {"payment_requests": []})

    @property
    def store_path(self) -> Path:
        return self._file.path

    def list(self) -> List[PaymentRequest]:
        with self._file.locked():
            data = self._file.read_unlocked()
        return [PaymentRequest.model_validate(item) for item in data.get("payment_requests", [])]

    def create(self, request: PaymentRequest) -> None:
        with self._file.locked():
            data = self._file.read_unlocked()
            data.setdefault("payment_requests", []).append(request.model_dump(mode="json", by_alias=True))
            self._file.write_unlocked(data)

    def update_status(self, request_id: str, status: PaymentStatus, burn_tx: Optional[str] = None) -> bool:
        status = PaymentStatus(status)
        with self._file.locked():
            data = self._file.read_unlocked()
            for item in data.get("payment_requests", []):
                if item.get("id") == request_id:
                    current = PaymentStatus(item.get("status", PaymentStatus.PENDING.value))
                    if not current.can_transition_to(status):
                        return False
                    item["status"] = status.value
                    if burn_tx:
                        item["burnTx"] = burn_tx
                    self._file.write_unlocked(data)
                    return True
            return False


class KeyValueStore(ABC):
    """String key-value persistence in the style of React Native's AsyncStorage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):

    def __init__(self):
        self._items: Dict[str, str] = {}
        self._lock = threading.RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Key-value pairs in a JSON file.

    The path defaults to ``MBC_KV_STORE_PATH`` or ``~/.mbc_patient/storage.json``.
    """

    def __init__(self, store_path: Optional[str] = None):
        path = Path(store_path) if store_path else _default_path("MBC_KV_STORE_PATH", "storage.json")
        self._file = _JsonFile(path, {"items": {}})

    def get_item(self, key: str) -> Optional[str]:
        with self._file.locked():
            return self._file.read_unlocked().get("items", {}).get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._file.locked():
            data = self._file.read_unlocked()
            data.setdefault("items", {})[key] = value
            self._file.write_unlocked(data)

    def remove_item(self, key: str) -> None:
        with self._file.locked():
            data = self._file.read_unlocked()
            if key in data.get("items", {}):
                del data["items"][key]
                self._file.write_unlocked(data)
