"""
Freshdesk Channel — Helpdesk REST Client
=========================================
Thin authenticated wrapper around the Freshdesk v2 API, used by the
dashboard to list tickets and by operators to push updates back.

Calls:
  get_tickets(params)              GET  /tickets
  get_ticket(ticket_id)            GET  /tickets/{id}
  update_ticket(ticket_id, data)   PUT  /tickets/{id}
  create_note(ticket_id, body)     POST /tickets/{id}/notes

Setup:
  - FRESHDESK_DOMAIN:  account subdomain (``acme`` for acme.freshdesk.com)
  - FRESHDESK_API_KEY: agent API key (sent as basic auth ``key:X``)

Webhooks are accepted and logged only; ticket sync is pull-based.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger("channels.freshdesk")

# ── Configuration ────────────────────────────────────────────────────────

FRESHDESK_DOMAIN = os.environ.get("FRESHDESK_DOMAIN", "")
FRESHDESK_API_KEY = os.environ.get("FRESHDESK_API_KEY", "")
FRESHDESK_TIMEOUT_SECONDS = 30.0


class FreshdeskAPIError(Exception):
    def __init__(self, status_code: int, reason: str):
        super().__init__(f"Freshdesk API error: {status_code} {reason}")
        self.status_code = status_code
        self.reason = reason


class FreshdeskClient:
    def __init__(
        self,
        domain: str,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.domain = domain
        self.base_url = f"https://{domain}.freshdesk.com/api/v2"
        self._auth = httpx.BasicAuth(api_key, "X")
        self._transport = transport

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            auth=self._auth,
            timeout=FRESHDESK_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, endpoint, **kwargs)
            except httpx.HTTPError as e:
                logger.error(f"Freshdesk {method} {endpoint} unreachable: {e}")
                raise FreshdeskAPIError(502, f"request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"Freshdesk {method} {endpoint} failed: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise FreshdeskAPIError(response.status_code, response.reason_phrase)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Freshdesk {method} {endpoint} returned a non-JSON body")
            raise FreshdeskAPIError(502, "invalid JSON response") from e

    async def get_tickets(self, params: Optional[dict[str, str]] = None) -> list[dict]:
        return await self._request("GET", "/tickets", params=params or {})

    async def get_ticket(self, ticket_id: int) -> dict:
        return await self._request("GET", f"/tickets/{ticket_id}")

    async def update_ticket(self, ticket_id: int, updates: dict[str, Any]) -> dict:
        return await self._request("PUT", f"/tickets/{ticket_id}", json=updates)

    async def create_note(self, ticket_id: int, body: str, private: bool = False) -> dict:
        return await self._request(
            "POST", f"/tickets/{ticket_id}/notes", json={"body": body, "private": private}
        )


def get_freshdesk_client() -> Optional[FreshdeskClient]:
    """Client built from the environment, or None when not configured."""
    if not FRESHDESK_DOMAIN or not FRESHDESK_API_KEY:
        return None
    return FreshdeskClient(FRESHDESK_DOMAIN, FRESHDESK_API_KEY)


async def handle_freshdesk_webhook(payload: dict) -> dict:
    """Acknowledge a Freshdesk webhook. Ticket events are not acted on yet."""
    nested = payload.get("freshdesk_webhook")
    ticket_id = payload.get("ticket_id")
    if ticket_id is None and isinstance(nested, dict):
        ticket_id = nested.get("ticket_id")
    logger.info(f"Received Freshdesk webhook: ticket_id={ticket_id}, keys={sorted(payload)}")
    return {"success": True}
