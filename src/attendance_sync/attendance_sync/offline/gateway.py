"""How a scanning client reaches the verification service."""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

import requests

from ..attendance.model import AttendanceRecord
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import ErrorKind
from ..core.exceptions import PersistenceError, StoreUnreachableError
from ..geo.model import GeoPoint
from ..verification.result import VerificationResult
from ..verification.serialization import location_to_dict, record_from_dict, result_from_dict
from ..verification.service import VerificationService

logger = logging.getLogger(__name__)


class VerificationGateway(Protocol):
    def verify(
        self, token_id: str, user_id: str, location: Optional[GeoPoint], *, timeout: Optional[float] = None
    ) -> VerificationResult:
        raise NotImplementedError

    def history(self, user_id: str, limit: int, *, timeout: Optional[float] = None) -> Sequence[AttendanceRecord]:
        """Raises StoreUnreachableError when the service cannot be reached."""

        raise NotImplementedError


class LocalVerificationGateway(VerificationGateway):
    """In-process gateway, for kiosks that embed the service."""

    def __init__(self, service: VerificationService):
        self._service = service

    def verify(self, token_id, user_id, location, *, timeout=None) -> VerificationResult:
        return self._service.verify(token_id, user_id, location, timeout=timeout)

    def history(self, user_id, limit, *, timeout=None) -> Sequence[AttendanceRecord]:
        return self._service.history(user_id, limit)


class HttpVerificationGateway(VerificationGateway):
    """API client for the Flask verification endpoints."""

    def __init__(self, base_url: str, *, user_header: str = "X-User-Id", session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.user_header = user_header
        self.session = session or requests.Session()

    def verify(self, token_id, user_id, location, *, timeout=None) -> VerificationResult:
        payload = {"token": token_id, "location": location_to_dict(location)}
        try:
            response = self.session.post(
                f"{self.base_url}/api/attendance/verify",
                json=payload,
                headers={self.user_header: user_id},
                timeout=timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.info("Verification service unreachable: %s", e)
            return VerificationResult.failure(ErrorKind.UNREACHABLE)
        except requests.RequestException as e:
            logger.warning("Verification request failed: %s", e)
            return VerificationResult.failure(ErrorKind.UNREACHABLE)

        if response.status_code in (502, 503, 504):
            return VerificationResult.failure(ErrorKind.UNREACHABLE)
        try:
            return result_from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Unexpected verification response (HTTP %s): %s", response.status_code, e)
            if 400 <= response.status_code < 500:
                # The server refused this request as sent; a retry gets the same answer.
                return VerificationResult.failure(
                    ErrorKind.INVALID_TOKEN,
                    message=f"Scan rejected by the attendance service (HTTP {response.status_code}).",
                )
            return VerificationResult.failure(ErrorKind.PERSISTENCE_FAILURE)

    def history(self, user_id, limit=DEFAULT_HISTORY_LIMIT, *, timeout=None) -> Sequence[AttendanceRecord]:
        try:
            response = self.session.get(
                f"{self.base_url}/api/attendance/me",
                params={"limit": int(limit)},
                headers={self.user_header: user_id},
                timeout=timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise StoreUnreachableError(str(e)) from e
        try:
            return [record_from_dict(item) for item in response.json().get("data", [])]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Unexpected history response (HTTP %s): %s", response.status_code, e)
            raise PersistenceError(f"Unreadable history response: {e}") from e
