"""Webhook subscriber that POSTs order events as JSON."""

from typing import Any

import httpx

from orderflow.engine.events import Event


class WebhookSubscriber:
    """
    Deliver events to an HTTP endpoint.

    Any non-2xx response raises, so the notifier retries the delivery.

    Example:
        >>> notifier.subscribe(WebhookSubscriber("https://hooks.example.com/orders"))
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout
        self.name = f"webhook:{url}"
        self._client = client

    async def __call__(self, event: Event) -> None:
        payload: dict[str, Any] = event.to_dict()
        headers = {"X-Orderflow-Event": event.type.value, **self.headers}

        if self._client is not None:
            response = await self._client.post(
                self.url, json=payload, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
