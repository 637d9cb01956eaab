"""
Notification transports. A channel either delivers the payload or raises;
turning failures into outcome records is the dispatcher's job.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from checkin_engine.core.errors import DispatchFailure
from checkin_engine.domain.checkin import EMAIL, IN_APP, PUSH

log = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationPayload:
    kind: str  # reminder | overdue | completion | summary
    subject: str
    body: str
    template: str
    data: dict[str, Any] = field(default_factory=dict)


class Channel(Protocol):
    name: str

    async def send(self, recipient: str, payload: NotificationPayload) -> None: ...


class EmailChannel:
    """
    Sends through a transactional email HTTP API. Rendering the template
    into HTML is left to the provider; we only ship template name and data.
    Without an API key the message is logged instead of sent.
    """

    name = EMAIL

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        sender: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._client = client

    async def send(self, recipient: str, payload: NotificationPayload) -> None:
        if not self.api_key:
            log.info("[DRY RUN] %s email to %s: %s", payload.kind, recipient, payload.subject)
            return

        body = {
            "from": self.sender,
            "to": [recipient],
            "subject": payload.subject,
            "text": payload.body,
            "template": payload.template,
            "data": payload.data,
        }
        try:
            await self._post(body)
        except httpx.HTTPStatusError as e:
            raise DispatchFailure(
                self.name, f"Email provider returned {e.response.status_code}", detail=e.response.text[:200]
            ) from e
        except httpx.HTTPError as e:
            raise DispatchFailure(self.name, f"Email provider unreachable: {e}") from e

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_fixed(1),
        reraise=True,
    )
    async def _post(self, body: dict[str, Any]) -> None:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self._client is not None:
            r = await self._client.post(self.api_url, json=body, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(self.api_url, json=body, headers=headers)
        r.raise_for_status()


class PushChannel:
    """Placeholder push transport; a provider integration replaces this."""

    name = PUSH

    async def send(self, recipient: str, payload: NotificationPayload) -> None:
        log.info("Push notification for user %s: %s | %s", recipient, payload.subject, payload.body)


class InAppChannel:
    """Placeholder in-app transport; the in-app inbox lives outside the engine."""

    name = IN_APP

    async def send(self, recipient: str, payload: NotificationPayload) -> None:
        log.info("In-app notification for user %s: %s", recipient, payload.subject)
