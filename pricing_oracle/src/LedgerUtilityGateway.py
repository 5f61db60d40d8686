"""LedgerUtilityGateway: Ledger utility going through an HTTP zome-call gateway."""

from __future__ import annotations

import base64
import json
import logging
import os
import time
from typing import Any

import httpx

from .ConversionTable import ConversionTable
from .HoloHash import action_hash_from_b64, action_hash_to_b64
from .LedgerUtility import LedgerUtility

logger = logging.getLogger(__name__)

# Retry configuration for gateway requests
MAX_RETRIES = 5
BACKOFF_BASE = 1.0
BACKOFF_MAX = 5.0

DEFAULT_GATEWAY_URL = "http://localhost:8090"
DEFAULT_COORDINATOR = "bridging-app"
DEFAULT_ZOME = "transactor"


def encode_payload(payload: Any) -> str:
    """Encode a zome call payload as unpadded URL-safe base64 JSON."""
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class LedgerUtilityGateway(LedgerUtility):
    """Ledger utility calling zome functions through an HTTP gateway.

    Each zome call is a GET on
    ``{url}/{dna_hash}/{coordinator}/{zome}/{fn}?payload=<base64url json>``.

    :ivar url: Gateway base URL.
    :ivar dna_hash: DNA hash of the ledger cell.
    :ivar coordinator: Coordinator (installed app) identifier.
    :ivar zome: Zome exposing the conversion table functions.
    :ivar transport: Optional httpx transport override.
    """

    def __init__(
        self,
        dna_hash: str,
        url: str = DEFAULT_GATEWAY_URL,
        coordinator: str = DEFAULT_COORDINATOR,
        zome: str = DEFAULT_ZOME,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the gateway utility.

        :param dna_hash: DNA hash of the ledger cell.
        :param url: Gateway base URL.
        :param coordinator: Coordinator identifier.
        :param zome: Zome name.
        :param transport: Optional httpx transport (tests use MockTransport).
        :raises ValueError: If dna_hash is empty.
        """
        if not dna_hash:
            raise ValueError("LEDGER_DNA_HASH is required for ledger submission")
        self.url = url.rstrip("/")
        self.dna_hash = dna_hash
        self.coordinator = coordinator
        self.zome = zome
        self.transport = transport

    @classmethod
    def from_env(cls) -> LedgerUtilityGateway:
        """Build a gateway utility from LEDGER_* environment variables."""
        return cls(
            dna_hash=os.environ.get("LEDGER_DNA_HASH", ""),
            url=os.environ.get("LEDGER_GATEWAY_URL") or DEFAULT_GATEWAY_URL,
            coordinator=os.environ.get("LEDGER_COORDINATOR") or DEFAULT_COORDINATOR,
            zome=os.environ.get("LEDGER_ZOME") or DEFAULT_ZOME,
        )

    def _zome_call(self, fn_name: str, payload: Any = None) -> Any:
        """Call a zome function with retry and backoff.

        :param fn_name: Zome function name.
        :param payload: JSON-serializable payload (None for unit payloads).
        :returns: Decoded JSON response.
        :raises RuntimeError: If max retries exceeded.
        """
        path = f"/{self.dna_hash}/{self.coordinator}/{self.zome}/{fn_name}"
        params = {"payload": encode_payload(payload)} if payload is not None else None

        with httpx.Client(transport=self.transport) as client:
            for attempt in range(MAX_RETRIES):
                try:
                    logger.debug("GET %s (attempt %d)", path, attempt + 1)
                    response = client.get(self.url + path, params=params, timeout=30.0)
                    logger.debug(
                        "Response: %s %s", response.status_code, response.reason_phrase
                    )
                    if response.is_success:
                        return response.json()
                    logger.warning(
                        "gateway GET %s failed: %s %s (attempt %d/%d)",
                        path,
                        response.status_code,
                        response.reason_phrase,
                        attempt + 1,
                        MAX_RETRIES,
                    )
                except httpx.RequestError as exc:
                    logger.warning(
                        "gateway GET %s error: %s (attempt %d/%d)",
                        path,
                        exc,
                        attempt + 1,
                        MAX_RETRIES,
                    )
                delay = min(BACKOFF_BASE * (1.5 ** attempt), BACKOFF_MAX)
                time.sleep(delay)

        raise RuntimeError(f"gateway GET {path} failed after {MAX_RETRIES} attempts")

    def fetch_global_definition(self) -> bytes:
        """Fetch the current global definition through the gateway.

        :returns: 39-byte raw action hash of the global definition.
        :raises ValueError: If the response carries no valid action hash.
        """
        logger.info(f"[gd] Calling {self.zome}/get_current_global_definition")
        result = self._zome_call("get_current_global_definition")
        encoded = result.get("id") if isinstance(result, dict) else result
        if not isinstance(encoded, str):
            raise ValueError(f"Unexpected global definition response: {str(result)[:200]}")

        action_hash = action_hash_from_b64(encoded)
        logger.info(f"[gd] Got GlobalDefinition: {encoded}")
        return action_hash

    def submit_table(self, table: ConversionTable) -> bytes:
        """Submit a conversion table through create_conversion_table.

        :param table: Table to submit.
        :returns: 39-byte raw action hash of the created entry.
        :raises ValueError: If the response is not an action hash.
        """
        logger.info(f"[submit] Calling {self.zome}/create_conversion_table")
        result = self._zome_call("create_conversion_table", table.to_dict())
        if not isinstance(result, str):
            raise ValueError(f"Unexpected create_conversion_table response: {str(result)[:200]}")

        action_hash = action_hash_from_b64(result)
        logger.info(f"[submit] Created ConversionTable: {action_hash_to_b64(action_hash)}")
        return action_hash
