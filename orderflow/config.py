"""
orderflow configuration system.

Provides global configuration for the order store, confirmation queue,
notifier and worker policies, plus the process-wide shared handles built
from it.

Configuration is loaded in this priority order:
1. Values set via orderflow.configure() (highest priority)
2. Values from orderflow.config.yaml in current directory
3. Default values

The store, queue and notifier are process-wide handles: built lazily on
first use, shared by reference by every intake and worker in the process,
and never rebuilt per task. Call ``close_handles()`` on shutdown.

Usage:
    >>> import orderflow
    >>> orderflow.configure(
    ...     store=InMemoryOrderStore(),
    ...     renotify_on_replay=False,
    ...     max_retries=5,
    ... )
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import yaml
from loguru import logger

from orderflow.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from orderflow.notify.base import Notifier
    from orderflow.queue.base import TaskPublisher
    from orderflow.storage.base import OrderStore

CONFIG_FILENAME = "orderflow.config.yaml"


def _load_yaml_config(path: Path | None = None) -> Dict[str, Any]:
    """
    Load configuration from orderflow.config.yaml.

    Args:
        path: Explicit file path (defaults to ./orderflow.config.yaml)

    Returns:
        Configuration dictionary, empty dict if file not found

    Raises:
        ConfigurationError: If the file exists but is not valid YAML
    """
    config_path = path or Path.cwd() / CONFIG_FILENAME
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return config


@dataclass
class OrderflowConfig:
    """
    Global configuration for orderflow.

    Attributes:
        store: Order store instance (built from store_config when unset)
        store_config: Store settings dict, see storage.config.config_to_store
        queue: Task publisher / confirmation queue instance
        queue_backend: Queue to build when ``queue`` is unset ("memory" or "celery")
        notifier: Notifier instance
        webhooks: URLs subscribed to the default notifier
        renotify_on_replay: Re-publish the confirmed event on idempotent replay
        max_retries: Retries at store/queue boundaries for transient failures
        retry_delay: Backoff strategy ("exponential", seconds, or list of seconds)
        visibility_timeout: Seconds a delivered task stays hidden
        redelivery_delay: Seconds before a nacked task is visible again
        max_deliveries: Deliveries before a task is dead-lettered (None = unlimited)
        task_timeout: Seconds a worker may spend on one task (None = no limit)
        worker_concurrency: Workers started by a WorkerPool by default
        celery_broker: Celery broker URL (for celery queue backend)
        celery_result_backend: Celery result backend URL
    """

    # Infrastructure
    store: Optional["OrderStore"] = None
    store_config: Optional[Dict[str, Any]] = None
    queue: Optional["TaskPublisher"] = None
    queue_backend: str = "memory"
    notifier: Optional["Notifier"] = None
    webhooks: List[str] = field(default_factory=list)

    # Policies
    renotify_on_replay: bool = False
    max_retries: int = 3
    retry_delay: Union[str, int, float, List[float]] = "exponential"
    visibility_timeout: float = 30.0
    redelivery_delay: float = 1.0
    max_deliveries: Optional[int] = None
    task_timeout: Optional[float] = None
    worker_concurrency: int = 1

    # Celery
    celery_broker: Optional[str] = None
    celery_result_backend: Optional[str] = None


def _config_from_yaml(yaml_config: Dict[str, Any]) -> OrderflowConfig:
    """Create an OrderflowConfig from YAML file settings."""
    if not yaml_config:
        return OrderflowConfig()

    queue_config = yaml_config.get("queue", {})
    worker_config = yaml_config.get("worker", {})
    retry_config = yaml_config.get("retry", {})
    celery_config = yaml_config.get("celery", {})
    notify_config = yaml_config.get("notify", {})

    defaults = OrderflowConfig()
    return OrderflowConfig(
        store_config=yaml_config.get("store") or None,
        queue_backend=queue_config.get("backend", defaults.queue_backend),
        visibility_timeout=queue_config.get("visibility_timeout", defaults.visibility_timeout),
        redelivery_delay=queue_config.get("redelivery_delay", defaults.redelivery_delay),
        max_deliveries=queue_config.get("max_deliveries"),
        renotify_on_replay=worker_config.get("renotify_on_replay", False),
        task_timeout=worker_config.get("task_timeout"),
        worker_concurrency=worker_config.get("concurrency", defaults.worker_concurrency),
        max_retries=retry_config.get("max_retries", defaults.max_retries),
        retry_delay=retry_config.get("delay", defaults.retry_delay),
        celery_broker=celery_config.get("broker"),
        celery_result_backend=celery_config.get("result_backend"),
        webhooks=list(notify_config.get("webhooks", [])),
    )


# Global singleton
_config: Optional[OrderflowConfig] = None
_handles_lock = threading.RLock()


def configure(**kwargs: Any) -> None:
    """
    Configure orderflow defaults.

    Accepts any OrderflowConfig attribute as a keyword argument.

    Raises:
        ValueError: For an unknown option

    Example:
        >>> import orderflow
        >>> orderflow.configure(store=InMemoryOrderStore(), renotify_on_replay=True)
    """
    global _config
    if _config is None:
        _config = OrderflowConfig()

    for key, value in kwargs.items():
        if hasattr(_config, key):
            setattr(_config, key, value)
        else:
            valid_keys = [f for f in OrderflowConfig.__dataclass_fields__.keys()]
            raise ValueError(
                f"Unknown config option: {key}. Valid options: {', '.join(valid_keys)}"
            )


def load_config_file(path: str | Path) -> OrderflowConfig:
    """
    Replace the current configuration with one read from a YAML file.

    Args:
        path: Path to a YAML config file

    Returns:
        The new configuration
    """
    global _config
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")
    _config = _config_from_yaml(_load_yaml_config(config_path))
    return _config


def get_config() -> OrderflowConfig:
    """
    Get the current configuration.

    If not yet configured, loads from orderflow.config.yaml if present,
    otherwise creates default configuration.
    """
    global _config
    if _config is None:
        _config = _config_from_yaml(_load_yaml_config())
    return _config


def reset_config() -> None:
    """
    Reset configuration to defaults.

    Primarily used for testing. Does not close handles; call
    ``close_handles()`` first if they hold connections.
    """
    global _config
    _config = None


def get_store() -> "OrderStore":
    """
    Get the process-wide order store, building it on first use.

    The returned store is not connected; callers that own the process
    lifecycle call ``await store.connect()`` once at startup.
    """
    config = get_config()
    with _handles_lock:
        if config.store is None:
            from orderflow.storage.config import config_to_store

            config.store = config_to_store(config.store_config)
            logger.debug(f"Created order store: {config.store.__class__.__name__}")
        return config.store


def get_queue() -> "TaskPublisher":
    """Get the process-wide confirmation queue (or publisher), building it on first use."""
    config = get_config()
    with _handles_lock:
        if config.queue is None:
            config.queue = _create_queue(config)
            logger.debug(f"Created confirmation queue: {config.queue.__class__.__name__}")
        return config.queue


def _create_queue(config: OrderflowConfig) -> "TaskPublisher":
    if config.queue_backend == "memory":
        from orderflow.queue.memory import InMemoryConfirmationQueue

        return InMemoryConfirmationQueue(
            visibility_timeout=config.visibility_timeout,
            redelivery_delay=config.redelivery_delay,
            max_deliveries=config.max_deliveries,
        )
    elif config.queue_backend == "celery":
        from orderflow.queue.celery import CeleryTaskPublisher
        from orderflow.storage.config import store_to_config

        return CeleryTaskPublisher(store_config=store_to_config(get_store()))

    raise ConfigurationError(f"Unknown queue backend: {config.queue_backend}")


def get_notifier() -> "Notifier":
    """Get the process-wide notifier, building it (with configured webhooks) on first use."""
    config = get_config()
    with _handles_lock:
        if config.notifier is None:
            from orderflow.notify.base import Notifier
            from orderflow.notify.webhook import WebhookSubscriber

            notifier = Notifier(max_retries=config.max_retries, retry_delay=config.retry_delay)
            for url in config.webhooks:
                notifier.subscribe(WebhookSubscriber(url))
            config.notifier = notifier
        return config.notifier


async def close_handles() -> None:
    """Disconnect the shared store and close the shared queue, then forget them."""
    config = get_config()
    with _handles_lock:
        store, queue = config.store, config.queue
        config.store = None
        config.queue = None
        config.notifier = None

    if queue is not None:
        await queue.close()
    if store is not None:
        await store.disconnect()
