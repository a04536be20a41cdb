"""
AttestationPoller - waits for Circle's attestation of a CCTP burn.

The poller has no retry ceiling of its own. Callers bound it with a
``threading.Event`` and/or an absolute deadline; when either trips,
``AttestationTimeout`` is raised and the burn is known to have happened.
"""
import logging
import threading
import time
import urllib.parse
from typing import Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import NetworkConfig
from .exceptions import AttestationTimeout
from .models import Attestation
from .utils import normalize_tx_hash
from ._rate_limited_log import rate_limited_log

POLL_INTERVAL = 5.0
RATE_LIMIT_BACKOFF = 300.0  # 5 minutes


class AttestationPoller:
    """
    Polls ``GET {base_url}/{sourceDomain}?transactionHash={hash}`` until the
    first message reports ``status == "complete"``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        poll_interval: float = POLL_INTERVAL,
        rate_limit_backoff: float = RATE_LIMIT_BACKOFF,
        timeout: int = 30,
        retry_count: int = 3,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the AttestationPoller

        Args:
            base_url: Attestation API base (defaults to MBC_ATTESTATION_API_URL or the IRIS sandbox)
            poll_interval: Seconds between queries while the attestation is pending
            rate_limit_backoff: Seconds to back off after HTTP 429
            timeout: Timeout for each HTTP request in seconds
            retry_count: Connection-level retries per request
            sleep: Wait function, e.g. a fake clock's sleep in tests
            clock: Monotonic clock used for deadlines
            session: Optional pre-configured requests session
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        base_url = (base_url or NetworkConfig.get_attestation_url()).rstrip("/")
        parsed = urllib.parse.urlparse(base_url)
        if parsed.scheme != "https" and parsed.hostname not in ("localhost", "127.0.0.1"):
            raise ValueError(f"base_url must use https:// for security (got: {parsed.scheme}://)")

        self.base_url = base_url
        self.poll_interval = poll_interval
        self.rate_limit_backoff = rate_limit_backoff
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._clock = clock or time.monotonic

        if session is None:
            session = requests.Session()
            # Connection-level retries only; status codes are handled by the poll loop
            retries = Retry(
                total=retry_count,
                connect=retry_count,
                read=retry_count,
                status=0,
                backoff_factor=0.5,
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def await_attestation(
        self,
        source_domain: int,
        burn_tx_hash: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> Attestation:
        """
        Wait until the attestation for a burn is complete.

        Args:
            source_domain: CCTP domain id of the chain the burn happened on
            burn_tx_hash: Hash of the included depositForBurn transaction
            cancel_event: Set to abandon the wait
            deadline: Absolute time on this poller's clock to give up at

        Returns:
            The completed attestation for exactly this burn

        Raises:
            AttestationTimeout: If cancelled or the deadline passes
        """
        tx_hash = normalize_tx_hash(burn_tx_hash)
        url = f"{self.base_url}/{source_domain}"
        queries = 0

        while True:
            self._check_cancelled(tx_hash, cancel_event, deadline)
            queries += 1
            delay = self.poll_interval
            try:
                response = self.session.get(url, params={"transactionHash": tx_hash}, timeout=self.timeout)

                if response.status_code == 429:
                    self.logger.warning(
                        f"Attestation API rate limit exceeded; waiting {self.rate_limit_backoff:.0f}s"
                    )
                    delay = self.rate_limit_backoff
                elif response.status_code == 404:
                    rate_limited_log(f"Waiting for attestation of {tx_hash}...", logger_instance=self.logger)
                else:
                    response.raise_for_status()
                    attestation = self._parse(response.json(), source_domain, tx_hash)
                    if attestation is not None:
                        self.logger.info(f"Attestation for {tx_hash} retrieved after {queries} queries")
                        return attestation
                    rate_limited_log(f"Waiting for attestation of {tx_hash}...", logger_instance=self.logger)

            except requests.RequestException as e:
                self.logger.warning(f"Error fetching attestation for {tx_hash}: {e}")
            except ValueError as e:
                self.logger.warning(f"Malformed attestation response for {tx_hash}: {e}")

            self._wait(delay, cancel_event, deadline)

    def _parse(self, payload: Any, source_domain: int, tx_hash: str) -> Optional[Attestation]:
        """
        Extract a completed attestation from a response body.

        Returns:
            The attestation, or None while it is not available or not complete

        Raises:
            ValueError: If the body is not shaped like an attestation response
        """
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        messages = payload.get("messages")
        if not messages:
            return None
        if not isinstance(messages, list) or not isinstance(messages[0], dict):
            raise ValueError("'messages' must be a list of objects")

        first: Dict[str, Any] = messages[0]
        status = first.get("status")
        if status != "complete":
            self.logger.debug(f"Attestation for {tx_hash} has status {status!r}")
            return None

        message = first.get("message")
        signature = first.get("attestation")
        if not isinstance(message, str) or not message.startswith("0x"):
            raise ValueError("complete attestation is missing its message")
        if not isinstance(signature, str) or not signature.startswith("0x"):
            raise ValueError("complete attestation is missing its signature")

        return Attestation(
            message=message,
            attestation=signature,
            status=status,
            source_domain=source_domain,
            transaction_hash=tx_hash,
            raw=first,
        )

    def _check_cancelled(
        self,
        tx_hash: str,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float]
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AttestationTimeout(f"Attestation wait for burn {tx_hash} was cancelled", burn_tx=tx_hash)
        if deadline is not None and self._clock() >= deadline:
            raise AttestationTimeout(f"Attestation for burn {tx_hash} not available before deadline", burn_tx=tx_hash)

    def _wait(
        self,
        delay: float,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float]
    ) -> None:
        if deadline is not None:
            delay = max(0.0, min(delay, deadline - self._clock()))
        if self._sleep is not None:
            self._sleep(delay)
        elif cancel_event is not None:
            cancel_event.wait(delay)
        else:
            time.sleep(delay)
