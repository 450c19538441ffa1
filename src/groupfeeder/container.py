#!/usr/bin/env python3
"""
Dependency Injection Container

Provides a centralized way to manage dependencies and avoid scattered
instantiation throughout the codebase. Supports singleton and factory patterns.

There is no process-wide container: the entry point builds one with
build_container() and hands it to the commands that need it.
"""

import logging
import threading
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Container:
    """Simple dependency injection container with lifecycle management."""

    def __init__(self):
        """Initialize empty container."""
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def register_singleton(self, service_name: str, factory: Callable[[], T]) -> None:
        """
        Register a service as singleton (created once, reused).

        Args:
            service_name: Unique name for the service
            factory: Function that creates the service instance
        """
        with self._lock:
            self._factories[service_name] = singleton(factory)
            # Remove any existing instance to force recreation
            self._singletons.pop(service_name, None)

    def register_factory(self, service_name: str, factory: Callable[[], T]) -> None:
        """
        Register a service as factory (new instance each time).

        Args:
            service_name: Unique name for the service
            factory: Function that creates service instances
        """
        with self._lock:
            self._factories[service_name] = factory

    def register_instance(self, service_name: str, instance: T) -> None:
        """
        Register an existing instance as singleton.

        Args:
            service_name: Unique name for the service
            instance: Pre-created service instance
        """
        with self._lock:
            self._singletons[service_name] = instance

    def get(self, service_name: str) -> Any:
        """
        Get service instance by name.

        Raises:
            KeyError: If service is not registered
        """
        if service_name in self._singletons:
            return self._singletons[service_name]

        if service_name not in self._factories:
            raise KeyError(f"Service '{service_name}' not registered")

        with self._lock:
            factory = self._factories[service_name]

            if getattr(factory, '_is_singleton', False):
                if service_name not in self._singletons:
                    self._singletons[service_name] = factory()
                    logger.debug(f"Created singleton instance for '{service_name}'")
                return self._singletons[service_name]

            instance = factory()
            logger.debug(f"Created new instance for '{service_name}'")
            return instance

    def has(self, service_name: str) -> bool:
        """Check if service is registered."""
        return service_name in self._factories or service_name in self._singletons

    def clear(self) -> None:
        """Clear all registered services and instances."""
        with self._lock:
            self._factories.clear()
            self._singletons.clear()


def singleton(factory_func: Callable[[], T]) -> Callable[[], T]:
    """
    Mark a factory function as singleton.

    Usage:
        @singleton
        def create_store():
            return FeedStore(config.database)
    """
    if getattr(factory_func, '_is_singleton', False):
        return factory_func

    @wraps(factory_func)
    def wrapper():
        return factory_func()

    wrapper._is_singleton = True
    return wrapper


def build_container(config_manager=None) -> Container:
    """
    Build a container with the feed pipeline services.

    Args:
        config_manager: ConfigManager to read settings from (a default one if omitted)

    Returns:
        Container with config, store, validator, hash function, fetcher,
        scheduler and registrar registered
    """
    from .config import ConfigManager

    container = Container()
    manager: ConfigManager = config_manager or ConfigManager()
    container.register_instance('config_manager', manager)

    def create_config():
        return manager.get_config()

    def create_store():
        from .database import FeedStore
        return FeedStore(container.get('config').database)

    def create_url_validator():
        from .security import FeedUrlValidator
        return FeedUrlValidator(allow_private_hosts=container.get('config').fetch.allow_private_hosts)

    def create_hash_function():
        from .content_hash import content_hasher
        return content_hasher(container.get('config').fetch.content_hash_length)

    def create_fetcher():
        from .fetcher import FeedFetcher
        return FeedFetcher(
            container.get('store'),
            fetch_config=container.get('config').fetch,
            hash_function=container.get('hash_function')
        )

    def create_scheduler():
        from .scheduler import BatchScheduler
        return BatchScheduler.from_config(
            container.get('store'),
            container.get('fetcher'),
            container.get('config').fetch
        )

    def create_registrar():
        from .registration import FeedRegistrar
        return FeedRegistrar(
            container.get('store'),
            fetch_config=container.get('config').fetch,
            validator=container.get('url_validator')
        )

    container.register_singleton('config', create_config)
    container.register_singleton('store', create_store)
    container.register_singleton('url_validator', create_url_validator)
    container.register_singleton('hash_function', create_hash_function)

    # Fetchers own an HTTP session for the duration of one command
    container.register_factory('fetcher', create_fetcher)
    container.register_factory('scheduler', create_scheduler)
    container.register_factory('registrar', create_registrar)

    logger.debug("Feed pipeline services registered in container")
    return container
