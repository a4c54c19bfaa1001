"""Primary-then-fallback execution for catalog operations.

Every operation that has a graph implementation runs through
ProtocolResolver.execute. Only the listed trigger exceptions (by default
ProtocolUnsupportedError) switch to the REST implementation, and only when
fallback is enabled and the operation has one. Everything else, including
ApplicationError, propagates unchanged.
"""

import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from cloudlib.core.config import ALLOW_REST_FALLBACK

from .exceptions import CatalogError, ProtocolUnsupportedError

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TRIGGERS: Tuple[Type[CatalogError], ...] = (ProtocolUnsupportedError,)


class ProtocolResolver:
    """Runs the graph implementation of an operation, falling back to REST.

    Attributes:
        allow_fallback: Per-instance toggle. When False, a protocol failure
            propagates and the REST implementation is never called.
    """

    def __init__(self, allow_fallback: bool = ALLOW_REST_FALLBACK):
        self.allow_fallback = allow_fallback

    async def execute(
        self,
        operation: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Optional[Callable[[], Awaitable[T]]] = None,
        triggers: Tuple[Type[CatalogError], ...] = DEFAULT_TRIGGERS,
    ) -> T:
        """Run `primary`; on a trigger exception run `fallback` instead.

        Args:
            operation: Operation name, used for logging.
            primary: Zero-argument coroutine factory for the graph call.
            fallback: Zero-argument coroutine factory for the REST call,
                or None when the operation is graph-only.
            triggers: Exception types that switch to the fallback.

        Returns:
            Result of whichever implementation completed.
        """
        try:
            return await primary()
        except triggers as e:
            if fallback is None or not self.allow_fallback:
                raise
            log.warning(
                f"{operation}: graph call failed ({e.code}: {e.message}), falling back to REST",
                extra={"operation": operation, "protocol": "graphql"},
            )
        return await fallback()
