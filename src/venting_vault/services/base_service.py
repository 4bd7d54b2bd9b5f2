"""
Lifecycle base for long-lived conversation services.

Subclasses fill in the ``_do_*`` hooks; start and stop are serialized so a
service is initialized or shut down once even when callers overlap.
"""

import asyncio
import logging
from abc import ABC

logger = logging.getLogger(__name__)


class BaseService(ABC):
    """Start/stop/health lifecycle shared by the services."""

    def __init__(self) -> None:
        self._initialized = False
        self._lifecycle_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        async with self._lifecycle_lock:
            if self._initialized:
                return
            await self._do_initialize()
            self._initialized = True
        logger.info(f"{self.__class__.__name__} started")

    async def shutdown(self) -> None:
        async with self._lifecycle_lock:
            if not self._initialized:
                return
            try:
                await self._do_shutdown()
            finally:
                self._initialized = False
        logger.info(f"{self.__class__.__name__} stopped")

    async def health_check(self) -> bool:
        """False when not started or when the service reports a problem."""
        if not self._initialized:
            return False
        try:
            return await self._do_health_check()
        except Exception as e:
            logger.error(f"{self.__class__.__name__} health check raised: {e}")
            return False

    async def _do_initialize(self) -> None:
        pass

    async def _do_shutdown(self) -> None:
        pass

    async def _do_health_check(self) -> bool:
        return True
