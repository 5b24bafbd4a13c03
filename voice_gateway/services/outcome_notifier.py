"""
Delivery of end-of-call reports to an external webhook.

Reports are posted in background tasks so call teardown never waits on the
webhook. Delivery failures are logged and otherwise ignored; there is no retry.
"""

import asyncio
import logging
from typing import Optional, Set

import httpx

from voice_gateway.config.constants import LOGGER_NAME
from voice_gateway.models.call_report import CallReport

logger = logging.getLogger(LOGGER_NAME)


class OutcomeNotifier:
    """Posts CallReport payloads as JSON to the configured webhook URL."""

    def __init__(self, url: Optional[str], timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def submit(self, report: CallReport) -> Optional[asyncio.Task]:
        """
        Schedule delivery of a report without waiting for it.

        Returns:
            The delivery task, or None when no webhook is configured
        """
        if not self.enabled:
            logger.debug(f"No outcome webhook configured; skipping report for call {report.call_id}")
            return None
        task = asyncio.create_task(self.deliver(report))
        # Keep a reference until done so the task is not garbage collected mid-flight
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, report: CallReport) -> bool:
        """
        POST a report to the webhook.

        Returns:
            bool: True on a 2xx response, False on any failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=report.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Outcome POST failed for call {report.call_id}: {exc}")
            return False
        logger.info(f"Outcome reported for call {report.call_id} with status {report.status}")
        return True

    async def drain(self) -> None:
        """Wait for in-flight deliveries; used on application shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
