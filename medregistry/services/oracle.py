"""
Outbound client for the external verification oracle.

The registry submits a check job (customer id + hashed PIN) to the oracle
node and returns immediately. The oracle performs the real identity/PIN check
and later calls back `POST /api/v1/oracle/fulfill` with the boolean verdict.

    Registry ──job──▶ Oracle node ──check──▶ verification service
        ▲                                          │
        └──────────── fulfill(requestId, allowed) ◀┘
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

import httpx

from medregistry.config import settings
from medregistry.schemas.oracle import ORACLE_RUN_RESPONSE_SCHEMA
from medregistry.services.validation import validate_against_schema

logger = logging.getLogger(__name__)

RESULT_PATH = "result"


class OracleError(Exception):
    """The oracle node could not accept a job."""


def hash_pin(pin: str) -> str:
    """Hex SHA-256 of a PIN, the form the oracle expects."""
    return hashlib.sha256(pin.encode()).hexdigest()


def build_job_spec(request_id: str, customer_id: str, hashed_pin: str, callback_url: str) -> dict[str, Any]:
    return {
        "requestId": request_id,
        "customerId": customer_id,
        "hashedPin": hashed_pin,
        "path": RESULT_PATH,
        "callbackUrl": callback_url,
    }


class OracleClient:
    """HTTP client submitting check jobs to one configured oracle job."""

    def __init__(
        self,
        base_url: str,
        job_id: str,
        api_token: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.job_id = job_id
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def submit_check(self, job: dict[str, Any]) -> str:
        """Submit a check job and return the oracle's run id."""
        path = f"/v2/specs/{self.job_id}/runs"
        try:
            resp = self._client.post(path, json=job)
        except httpx.HTTPError as exc:
            raise OracleError(f"Oracle unreachable: {exc}") from exc

        if resp.status_code not in (200, 201, 202):
            raise OracleError(f"Oracle rejected job with HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise OracleError("Oracle returned a non-JSON acknowledgement") from exc

        errors = validate_against_schema(body, ORACLE_RUN_RESPONSE_SCHEMA)
        if errors:
            raise OracleError(f"Malformed oracle acknowledgement: {'; '.join(errors)}")

        run_id = body["data"]["id"]
        logger.info("Oracle accepted request %s as run %s", job["requestId"], run_id)
        return run_id

    def close(self) -> None:
        self._client.close()


# --- Module-level singleton ---

_client_instance: OracleClient | None = None


def get_oracle_client() -> OracleClient:
    """FastAPI dependency returning the configured oracle client."""
    global _client_instance
    if _client_instance is None:
        _client_instance = OracleClient(
            settings.ORACLE_URL,
            settings.ORACLE_JOB_ID,
            api_token=settings.ORACLE_API_TOKEN,
            timeout=settings.ORACLE_TIMEOUT_SECONDS,
        )
    return _client_instance


def reset_oracle_client() -> None:
    global _client_instance
    if _client_instance:
        _client_instance.close()
    _client_instance = None
