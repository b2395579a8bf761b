"""
ExpoPushSender — PushSender backed by the Expo push HTTP API.

Sends are chunked (100 messages per request). A failing request marks every
message of its chunk as failed; it never raises. Receipt lookups are chunked
(300 IDs per request) and run with bounded concurrency. A failed lookup yields
no receipts for its chunk, so those tickets can be checked again.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from microflash.core.config import get_settings
from microflash.domain.ports.push_sender import PushMessage, PushResult, ReceiptResult
from microflash.models.value_objects import PushToken

logger = logging.getLogger(__name__)

SEND_CHUNK_SIZE = 100
RECEIPT_CHUNK_SIZE = 300
RECEIPT_CONCURRENCY = 5
INVALID_TOKEN_ERROR = "Invalid Expo push token"


def _chunks(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class ExpoPushSender:
    """Concrete PushSender talking to exp.host with httpx."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        push_url: Optional[str] = None,
        receipts_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self.access_token = access_token if access_token is not None else settings.expo_access_token
        self.push_url = push_url or settings.expo_push_url
        self.receipts_url = receipts_url or settings.expo_receipts_url
        self.timeout = timeout or settings.push_timeout_seconds
        self._client = client

    @staticmethod
    def is_valid_token(token: Optional[str]) -> bool:
        return PushToken.is_valid(token)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _post(self, url: str, payload: Any) -> Dict[str, Any]:
        if self._client is not None:
            response = await self._client.post(url, json=payload, headers=self._headers())
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _to_payload(message: PushMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "to": message.to,
            "title": message.title,
            "body": message.body,
            "data": message.data or {},
        }
        if message.sound:
            payload["sound"] = message.sound
        if message.category_id:
            payload["categoryId"] = message.category_id
        if message.badge is not None:
            payload["badge"] = message.badge
        return payload

    @staticmethod
    def _ticket_error(ticket: Dict[str, Any]) -> str:
        message = ticket.get("message") or "Unknown error"
        details = ticket.get("details") or {}
        code = details.get("error")
        return f"{code}: {message}" if code else message

    # --- Sending ---

    async def send_batch(self, messages: List[PushMessage]) -> List[PushResult]:
        """Send messages; results are index-aligned with the input."""
        results: List[Optional[PushResult]] = [None] * len(messages)

        valid_indexes: List[int] = []
        for index, message in enumerate(messages):
            if self.is_valid_token(message.to):
                valid_indexes.append(index)
            else:
                results[index] = PushResult(
                    success=False, push_token=message.to, error=INVALID_TOKEN_ERROR
                )

        for chunk in _chunks(valid_indexes, SEND_CHUNK_SIZE):
            payload = [self._to_payload(messages[i]) for i in chunk]
            try:
                body = await self._post(self.push_url, payload)
                tickets = body.get("data") or []
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Expo push request failed for {len(chunk)} message(s): {e}")
                for i in chunk:
                    results[i] = PushResult(success=False, push_token=messages[i].to, error=str(e))
                continue

            for position, i in enumerate(chunk):
                ticket = tickets[position] if position < len(tickets) else None
                if ticket is None:
                    results[i] = PushResult(
                        success=False, push_token=messages[i].to, error="Missing push ticket"
                    )
                elif ticket.get("status") == "ok":
                    results[i] = PushResult(
                        success=True, push_token=messages[i].to, ticket_id=ticket.get("id")
                    )
                else:
                    results[i] = PushResult(
                        success=False, push_token=messages[i].to, error=self._ticket_error(ticket)
                    )

        sent_ok = sum(1 for r in results if r is not None and r.success)
        logger.info("Expo push batch: %d/%d accepted", sent_ok, len(messages))
        return [r for r in results if r is not None]

    # --- Receipts ---

    async def check_receipts(self, ticket_ids: List[str]) -> List[ReceiptResult]:
        if not ticket_ids:
            return []

        semaphore = asyncio.Semaphore(RECEIPT_CONCURRENCY)

        async def process(chunk: List[str]) -> List[ReceiptResult]:
            async with semaphore:
                try:
                    body = await self._post(self.receipts_url, {"ids": chunk})
                except (httpx.HTTPError, ValueError) as e:
                    # No result means "ask again later", same as an unready receipt
                    logger.error(f"Expo receipt request failed for {len(chunk)} ticket(s): {e}")
                    return []

            receipts = body.get("data") or {}
            chunk_results = []
            for ticket_id in chunk:
                receipt = receipts.get(ticket_id)
                if receipt is None:
                    # Not ready yet; Expo keeps receipts for a day
                    continue
                if receipt.get("status") == "ok":
                    chunk_results.append(ReceiptResult(ticket_id=ticket_id, success=True))
                    continue
                details = receipt.get("details") or {}
                chunk_results.append(
                    ReceiptResult(
                        ticket_id=ticket_id,
                        success=False,
                        error=self._ticket_error(receipt),
                        should_remove_token=details.get("error") == "DeviceNotRegistered",
                    )
                )
            return chunk_results

        grouped = await asyncio.gather(
            *(process(chunk) for chunk in _chunks(ticket_ids, RECEIPT_CHUNK_SIZE))
        )
        return [result for chunk_results in grouped for result in chunk_results]
