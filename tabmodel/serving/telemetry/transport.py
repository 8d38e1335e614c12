"""
Monitoring Transport
====================

Delivers encoded monitoring payloads to a collector.

- MonitoringTransport: protocol any sink implements (send(payload: bytes))
- HttpMonitoringTransport: POST <monitoring_url>/track with connection
  pooling and retry logic

Usage:
    from tabmodel.serving.telemetry.transport import HttpMonitoringTransport

    transport = HttpMonitoringTransport("https://monitoring.example.com")
    transport.send(payload)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from tabmodel.errors import TransportError
from tabmodel.settings import get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class MonitoringTransport(Protocol):
    """Sink for encoded monitoring payloads."""

    def send(self, payload: bytes) -> None:
        """
        Deliver one payload.

        Raises:
            TransportError: The payload was not accepted
        """
        ...


class HttpMonitoringTransport:
    """HTTP collector client with connection pooling and retry logic."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = get_settings()
        url = url or settings.monitoring_url
        if not url:
            raise ValueError("monitoring url is not configured (TABMODEL_MONITORING_URL)")
        self.url = url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.monitoring_timeout
        self.max_retries = max_retries if max_retries is not None else settings.monitoring_max_retries
        self.session = session or self._create_session()

    @property
    def track_url(self) -> str:
        return f"{self.url}/track"

    def _create_session(self) -> requests.Session:
        """Create session with connection pooling and retry strategy."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=0.3,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
        )

        adapter = HTTPAdapter(
            pool_connections=4,
            pool_maxsize=8,
            max_retries=retry_strategy,
        )

        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def send(self, payload: bytes) -> None:
        try:
            resp = self.session.post(
                self.track_url,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Monitoring collector not reachable: {e}")
            raise TransportError(f"Monitoring request failed: {e}", url=self.track_url) from e

        if resp.status_code >= 400:
            logger.warning(f"Monitoring collector error: {resp.status_code} - {resp.text[:100]}")
            raise TransportError(
                f"Monitoring collector returned {resp.status_code}",
                url=self.track_url,
                status_code=resp.status_code,
            )

        logger.debug(f"Sent {len(payload)} bytes to {self.track_url}")

    def close(self):
        self.session.close()
