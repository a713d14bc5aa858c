"""Handler Dispatch Table.

Indexes externally supplied handler callables by (version, route). The
table never inspects or invokes handlers; the pipeline does.
"""

from __future__ import annotations

import logging
import re
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Tuple, Union

from src.core.versioning.errors import RegistryConflictError, RouteNotImplementedError
from src.core.versioning.version import VersionToken, normalize_token

logger = logging.getLogger(__name__)

# Handler type: receives the VersionedRequest, may be sync or async
Handler = Callable[..., Any]
TokenLike = Union[str, VersionToken]
DispatchKey = Tuple[VersionToken, str]


class HandlerDispatchTable:
    """Version + route -> handler index with copy-on-write reads."""

    def __init__(self, token_pattern: Optional[Union[str, Pattern[str]]] = None):
        self._write_lock = threading.Lock()
        self._token_re = re.compile(token_pattern) if token_pattern is not None else None
        self._handlers: Mapping[DispatchKey, Handler] = MappingProxyType({})

    def _key(self, version: TokenLike, route_id: str) -> DispatchKey:
        if not route_id or not route_id.strip():
            raise ValueError("route_id must not be empty")
        return normalize_token(version, self._token_re), route_id.strip()

    def register(
        self,
        version: TokenLike,
        route_id: str,
        handler: Handler,
        replace: bool = False,
    ) -> None:
        """Register a handler for a version and route.

        Raises:
            RegistryConflictError: If a handler exists and replace is False.
        """
        if not callable(handler):
            raise TypeError(f"Handler for {route_id} must be callable")
        key = self._key(version, route_id)

        with self._write_lock:
            if key in self._handlers and not replace:
                raise RegistryConflictError(
                    f"Handler for route '{key[1]}' in API version {key[0]} is already registered"
                )
            handlers = dict(self._handlers)
            handlers[key] = handler
            self._handlers = MappingProxyType(handlers)

        logger.info(
            f"Registered handler for route '{key[1]}' in API version {key[0]}",
            extra={"version": key[0].value, "route_id": key[1]},
        )

    def unregister(self, version: TokenLike, route_id: str) -> Handler:
        """Remove a handler and return it."""
        key = self._key(version, route_id)
        with self._write_lock:
            if key not in self._handlers:
                raise RegistryConflictError(
                    f"No handler for route '{key[1]}' in API version {key[0]}"
                )
            handlers = dict(self._handlers)
            handler = handlers.pop(key)
            self._handlers = MappingProxyType(handlers)

        logger.info(
            f"Unregistered handler for route '{key[1]}' in API version {key[0]}",
            extra={"version": key[0].value, "route_id": key[1]},
        )
        return handler

    def route(
        self,
        version: TokenLike,
        route_id: str,
        replace: bool = False,
    ) -> Callable[[Handler], Handler]:
        """Decorator to register a handler."""
        def decorator(handler: Handler) -> Handler:
            self.register(version, route_id, handler, replace=replace)
            return handler
        return decorator

    def resolve(self, version: TokenLike, route_id: str) -> Handler:
        """Get the handler for a version and route.

        Raises:
            RouteNotImplementedError: If no handler is registered for the pair.
        """
        key = self._key(version, route_id)
        handler = self._handlers.get(key)
        if handler is None:
            raise RouteNotImplementedError(
                key[0].value,
                key[1],
                available_in=self.versions_for(key[1]),
            )
        return handler

    def get(self, version: TokenLike, route_id: str) -> Optional[Handler]:
        try:
            return self.resolve(version, route_id)
        except RouteNotImplementedError:
            return None

    def routes_for(self, version: TokenLike) -> List[str]:
        token = normalize_token(version, self._token_re)
        return sorted(route for v, route in self._handlers if v == token)

    def versions_for(self, route_id: str) -> List[str]:
        tokens = sorted(v for v, route in self._handlers if route == route_id)
        return [t.value for t in tokens]

    def snapshot(self) -> Dict[str, List[str]]:
        """Routes grouped by version, for admin listings."""
        grouped: Dict[str, List[str]] = {}
        for token in sorted({v for v, _ in self._handlers}):
            grouped[token.value] = self.routes_for(token)
        return grouped

    def __len__(self) -> int:
        return len(self._handlers)


__all__ = ["Handler", "HandlerDispatchTable"]
