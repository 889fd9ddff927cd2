"""Tests for the notifier and webhook subscriber."""

import json
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from orderflow.engine.events import (
    Event,
    EventType,
    create_order_confirmed_event,
    create_order_created_event,
)
from orderflow.notify.base import Notifier, RecordingSubscriber
from orderflow.notify.webhook import WebhookSubscriber
from orderflow.storage.schemas import Order, OrderStatus


def confirmed_order():
    ts = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    return Order(
        owner_id="U1",
        order_id="ord_1",
        status=OrderStatus.CONFIRMED,
        total=Decimal("199"),
        created_at=ts,
        updated_at=ts,
    )


class TestEvents:
    """Tests for event construction."""

    def test_confirmed_event(self):
        event = create_order_confirmed_event(confirmed_order())

        assert event.type == EventType.ORDER_CONFIRMED
        assert event.data["status"] == "CONFIRMED"
        assert event.data["total"] == "199"
        assert event.replay is False
        assert event.event_id.startswith("evt_")

    def test_created_event(self):
        order = confirmed_order()
        order.status = OrderStatus.PENDING

        event = create_order_created_event(order)

        assert event.type == EventType.ORDER_CREATED
        assert event.data["status"] == "PENDING"

    def test_replay_flag(self):
        event = create_order_confirmed_event(confirmed_order(), replay=True)

        assert event.replay is True
        assert event.to_dict()["replay"] is True

    def test_event_requires_order_key(self):
        with pytest.raises(ValueError):
            Event(owner_id="", order_id="ord_1")

    def test_event_type_must_be_enum(self):
        with pytest.raises(TypeError):
            Event(owner_id="U1", order_id="ord_1", type="order.confirmed")

    def test_to_dict_is_json_serializable(self):
        event = create_order_confirmed_event(confirmed_order())

        data = json.loads(json.dumps(event.to_dict()))

        assert data["type"] == "order.confirmed"
        assert data["owner_id"] == "U1"


class TestNotifier:
    """Tests for Notifier fan-out."""

    def test_subscribe_uses_name_attribute_or_function_name(self):
        notifier = Notifier()

        async def email(event):
            pass

        assert notifier.subscribe(RecordingSubscriber()) == "recorder"
        assert notifier.subscribe(email) == "email"
        assert notifier.subscribers == ["recorder", "email"]

    def test_duplicate_name_rejected(self):
        notifier = Notifier()
        notifier.subscribe(RecordingSubscriber())

        with pytest.raises(ValueError, match="already registered"):
            notifier.subscribe(RecordingSubscriber())

    def test_unsubscribe(self):
        notifier = Notifier()
        notifier.subscribe(RecordingSubscriber())

        assert notifier.unsubscribe("recorder") is True
        assert notifier.unsubscribe("recorder") is False

    @pytest.mark.asyncio
    async def test_publish_delivers_to_all(self):
        notifier = Notifier()
        recorder = RecordingSubscriber()
        other = AsyncMock()
        notifier.subscribe(recorder)
        notifier.subscribe(other, name="other")
        event = create_order_confirmed_event(confirmed_order())

        result = await notifier.publish(event)

        assert result.ok
        assert sorted(result.delivered) == ["other", "recorder"]
        assert recorder.events == [event]
        other.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        result = await Notifier().publish(create_order_confirmed_event(confirmed_order()))

        assert result.ok
        assert result.delivered == []

    @pytest.mark.asyncio
    async def test_failing_subscriber_retried_then_succeeds(self):
        """Test a subscriber that fails transiently gets the event."""
        sleep = AsyncMock()
        notifier = Notifier(max_retries=2, retry_delay="exponential", sleep=sleep)
        flaky = AsyncMock(side_effect=[RuntimeError("boom"), None])
        notifier.subscribe(flaky, name="flaky")

        result = await notifier.publish(create_order_confirmed_event(confirmed_order()))

        assert result.delivered == ["flaky"]
        assert flaky.await_count == 2
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_failing_subscriber_never_raises(self):
        """Test persistent failures are reported, not raised, and do not block others."""
        notifier = Notifier(max_retries=1, sleep=AsyncMock())
        broken = AsyncMock(side_effect=RuntimeError("down"))
        recorder = RecordingSubscriber()
        notifier.subscribe(broken, name="broken")
        notifier.subscribe(recorder)

        result = await notifier.publish(create_order_confirmed_event(confirmed_order()))

        assert not result.ok
        assert result.failed == {"broken": "RuntimeError: down"}
        assert result.delivered == ["recorder"]
        assert broken.await_count == 2
        assert len(recorder.events) == 1

    @pytest.mark.asyncio
    async def test_recorder_filters_by_order(self):
        recorder = RecordingSubscriber()
        event = create_order_confirmed_event(confirmed_order())
        await recorder(event)

        assert recorder.for_order("ord_1") == [event]
        assert recorder.for_order("ord_2") == []


class TestWebhookSubscriber:
    """Tests for WebhookSubscriber using httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_posts_event_json(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            hook = WebhookSubscriber(
                "https://hooks.example.com/orders",
                headers={"Authorization": "Bearer t"},
                client=client,
            )
            event = create_order_confirmed_event(confirmed_order())
            await hook(event)

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://hooks.example.com/orders"
        assert request.headers["X-Orderflow-Event"] == "order.confirmed"
        assert request.headers["Authorization"] == "Bearer t"
        assert json.loads(request.content)["order_id"] == "ord_1"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            hook = WebhookSubscriber("https://hooks.example.com/orders", client=client)

            with pytest.raises(httpx.HTTPStatusError):
                await hook(create_order_confirmed_event(confirmed_order()))

    def test_name_includes_url(self):
        hook = WebhookSubscriber("https://hooks.example.com/orders")

        assert hook.name == "webhook:https://hooks.example.com/orders"

    @pytest.mark.asyncio
    async def test_webhook_failure_retried_by_notifier(self):
        """Test a 503 followed by 200 ends up delivered."""
        statuses = iter([503, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(next(statuses))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = Notifier(max_retries=1, sleep=AsyncMock())
            notifier.subscribe(WebhookSubscriber("https://hooks.example.com/o", client=client))

            result = await notifier.publish(create_order_confirmed_event(confirmed_order()))

        assert result.ok
