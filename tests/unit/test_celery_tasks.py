"""
Tests for the Celery confirmation task and publisher.

Tasks are called directly (not through a broker). These tests are
synchronous because run_async() drives coroutines on the background
worker loop.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kombu.exceptions import OperationalError

import orderflow
from orderflow.celery import tasks as celery_tasks
from orderflow.celery.app import CONFIRMATION_QUEUE, create_celery_app
from orderflow.celery.loop import run_async
from orderflow.celery.tasks import confirm_order_task
from orderflow.core.exceptions import UnavailableError
from orderflow.notify.base import RecordingSubscriber
from orderflow.queue.celery import CeleryTaskPublisher
from orderflow.storage.memory import InMemoryOrderStore
from orderflow.storage.schemas import ConfirmationTask, Order, OrderStatus


@pytest.fixture
def configured_store():
    store = InMemoryOrderStore()
    orderflow.configure(store=store, retry_delay=0)
    return store


def put_pending(store, order_id="ord_1"):
    run_async(store.put(Order(owner_id="U1", order_id=order_id, total=Decimal("10"))))


def task_data(order_id="ord_1"):
    return ConfirmationTask(owner_id="U1", order_id=order_id).to_dict()


class TestCeleryApp:
    """Tests for the Celery application configuration."""

    def test_at_least_once_settings(self):
        app = create_celery_app(broker_url="memory://", result_backend="cache+memory://")

        assert app.conf.task_acks_late is True
        assert app.conf.task_reject_on_worker_lost is True
        assert app.conf.worker_prefetch_multiplier == 1
        assert app.conf.task_default_queue == CONFIRMATION_QUEUE
        assert app.conf.task_serializer == "json"

    def test_broker_from_config(self):
        orderflow.configure(celery_broker="redis://broker:6379/3")

        app = create_celery_app()

        assert app.conf.broker_url == "redis://broker:6379/3"

    def test_broker_from_environment(self, monkeypatch):
        monkeypatch.setenv("ORDERFLOW_CELERY_BROKER", "redis://env-broker:6379/0")

        app = create_celery_app()

        assert app.conf.broker_url == "redis://env-broker:6379/0"

    def test_visibility_timeout_follows_config(self):
        orderflow.configure(visibility_timeout=90.0)

        app = create_celery_app(broker_url="memory://")

        assert app.conf.broker_transport_options == {"visibility_timeout": 90.0}


class TestConfirmOrderTask:
    """Tests for confirm_order_task."""

    def test_confirms_pending_order(self, configured_store):
        put_pending(configured_store)

        result = confirm_order_task.run(task_data())

        assert result == "confirmed"
        order = run_async(configured_store.get("U1", "ord_1"))
        assert order.status == OrderStatus.CONFIRMED

    def test_redelivery_is_replayed(self, configured_store):
        """Test the same task delivered twice confirms once."""
        put_pending(configured_store)
        data = task_data()

        assert confirm_order_task.run(data) == "confirmed"
        assert confirm_order_task.run(data) == "replayed"

    def test_confirmed_event_published(self, configured_store):
        recorder = RecordingSubscriber()
        orderflow.get_notifier().subscribe(recorder)
        put_pending(configured_store)

        confirm_order_task.run(task_data())

        assert len(recorder.for_order("ord_1")) == 1

    def test_missing_order_is_dropped(self, configured_store):
        assert confirm_order_task.run(task_data("ord_missing")) == "dropped"

    def test_malformed_payload_is_dropped(self, configured_store):
        assert confirm_order_task.run({"owner_id": "U1"}) == "dropped"
        assert confirm_order_task.run({"owner_id": "U1", "order_id": "o", "enqueued_at": "x"}) == (
            "dropped"
        )

    def test_unavailable_store_is_retried(self, configured_store):
        """Test a RETRY outcome goes through self.retry."""
        put_pending(configured_store)

        async def unavailable(*args):
            raise UnavailableError("database restarting")

        configured_store.update_status = unavailable

        # Called directly, Task.retry re-raises the given exception
        with pytest.raises(UnavailableError, match="must be retried"):
            confirm_order_task.run(task_data())

    def test_store_config_builds_and_reuses_store(self):
        celery_tasks._stores.clear()
        config = {"type": "memory"}

        first = celery_tasks._get_store(config)
        second = celery_tasks._get_store(dict(config))

        assert isinstance(first, InMemoryOrderStore)
        assert first is second
        celery_tasks._stores.clear()

    def test_close_stores_disconnects_every_cached_store(self):
        """Test one failing disconnect does not keep the others open."""
        broken = MagicMock()
        broken.disconnect = AsyncMock(side_effect=OSError("socket closed"))
        healthy = MagicMock()
        healthy.disconnect = AsyncMock()
        celery_tasks._stores.update({"a": broken, "b": healthy})

        run_async(celery_tasks.close_stores())

        broken.disconnect.assert_awaited_once()
        healthy.disconnect.assert_awaited_once()
        assert celery_tasks._stores == {}

    def test_worker_shutdown_disconnects_task_stores(self, configured_store):
        from orderflow.celery.app import _shutdown_worker

        cached = MagicMock()
        cached.disconnect = AsyncMock()
        celery_tasks._stores["k"] = cached
        run_async(asyncio.sleep(0))

        with patch("orderflow.celery.loop.close_worker_loop") as mock_close_loop:
            _shutdown_worker()

        cached.disconnect.assert_awaited_once()
        mock_close_loop.assert_called_once()
        assert celery_tasks._stores == {}


class TestCeleryTaskPublisher:
    """Tests for publishing to Celery."""

    def test_enqueue_sends_task(self):
        publisher = CeleryTaskPublisher(store_config={"type": "memory"})
        task = ConfirmationTask(owner_id="U1", order_id="ord_1")

        with patch("orderflow.celery.tasks.confirm_order_task") as mock_task:
            mock_apply = mock_task.apply_async
            asyncio.run(publisher.enqueue(task))

        mock_apply.assert_called_once()
        kwargs = mock_apply.call_args.kwargs
        assert kwargs["args"] == [task.to_dict()]
        assert kwargs["kwargs"] == {"store_config": {"type": "memory"}}
        assert kwargs["task_id"] == task.task_id
        assert "queue" not in kwargs

    def test_enqueue_to_named_queue(self):
        publisher = CeleryTaskPublisher(queue="priority")

        with patch("orderflow.celery.tasks.confirm_order_task") as mock_task:
            mock_apply = mock_task.apply_async
            asyncio.run(publisher.enqueue(ConfirmationTask(owner_id="U1", order_id="o")))

        assert mock_apply.call_args.kwargs["queue"] == "priority"

    def test_broker_down_is_unavailable(self):
        publisher = CeleryTaskPublisher()
        mock_task = MagicMock()
        mock_task.apply_async.side_effect = OperationalError("connection refused")

        with patch("orderflow.celery.tasks.confirm_order_task", mock_task):
            with pytest.raises(UnavailableError, match="broker unavailable"):
                asyncio.run(publisher.enqueue(ConfirmationTask(owner_id="U1", order_id="o")))


class TestWorkerLoop:
    """Tests for the persistent worker event loop."""

    def test_run_async_reuses_one_loop(self):
        async def current_loop():
            return asyncio.get_running_loop()

        assert run_async(current_loop()) is run_async(current_loop())

    def test_run_async_from_threads(self):
        from concurrent.futures import ThreadPoolExecutor

        async def double(n):
            await asyncio.sleep(0)
            return n * 2

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda n: run_async(double(n)), range(8)))

        assert results == [n * 2 for n in range(8)]

    def test_close_then_restart(self):
        from orderflow.celery.loop import close_worker_loop, get_worker_loop, is_loop_running

        first = get_worker_loop()
        close_worker_loop()

        assert not is_loop_running()
        assert first.is_closed()
        assert run_async(asyncio.sleep(0, result="ok")) == "ok"
        assert get_worker_loop() is not first
