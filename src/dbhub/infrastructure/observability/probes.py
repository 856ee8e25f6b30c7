"""Domain probes for infrastructure observability.

Domain probes provide a high-level instrumentation API oriented around
domain semantics, keeping infrastructure code clean and testable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from dbhub.shared_kernel.observability_context import ObservationContext


class ConnectionProbe(Protocol):
    """Domain probe for database connection observability."""

    def connection_established(self, host: str, database: str) -> None:
        """Record that a database connection was successfully established."""
        ...

    def connection_failed(self, host: str, database: str, error: Exception) -> None:
        """Record that a database connection attempt failed."""
        ...

    def connection_closed(self) -> None:
        """Record that a database connection was closed."""
        ...

    def pool_initialized(self, min_conn: int, max_conn: int) -> None:
        """Record that connection pool was initialized."""
        ...

    def pool_initialization_failed(self, error: Exception) -> None:
        """Record that pool initialization failed."""
        ...

    def connection_acquired_from_pool(self) -> None:
        """Record that a connection was acquired from the pool."""
        ...

    def connection_returned_to_pool(self) -> None:
        """Record that a connection was returned to the pool."""
        ...

    def pool_exhausted(self) -> None:
        """Record that the connection pool was exhausted."""
        ...

    def connection_return_failed(self, error: Exception) -> None:
        """Record that returning connection to pool failed."""
        ...

    def pool_closed(self) -> None:
        """Record that the connection pool was closed."""
        ...

    def with_context(self, context: ObservationContext) -> ConnectionProbe:
        """Create a new probe with observation context bound."""
        ...


class _StructlogProbe:
    """Shared plumbing for structlog-backed probes."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext):
        """Create a new probe with observation context bound."""
        return type(self)(logger=self._logger, context=context)


class DefaultConnectionProbe(_StructlogProbe):
    """Default implementation of ConnectionProbe using structlog."""

    def connection_established(self, host: str, database: str) -> None:
        """Record that a database connection was successfully established."""
        self._logger.debug(
            "database_connection_established",
            host=host,
            database=database,
            **self._get_context_kwargs(),
        )

    def connection_failed(self, host: str, database: str, error: Exception) -> None:
        """Record that a database connection attempt failed."""
        self._logger.error(
            "database_connection_failed",
            host=host,
            database=database,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def connection_closed(self) -> None:
        """Record that a database connection was closed."""
        self._logger.debug(
            "database_connection_closed",
            **self._get_context_kwargs(),
        )

    def pool_initialized(self, min_conn: int, max_conn: int) -> None:
        """Record that connection pool was initialized."""
        self._logger.debug(
            "connection_pool_initialized",
            min_connections=min_conn,
            max_connections=max_conn,
            **self._get_context_kwargs(),
        )

    def pool_initialization_failed(self, error: Exception) -> None:
        """Record that pool initialization failed."""
        self._logger.error(
            "connection_pool_initialization_failed",
            error=str(error),
            **self._get_context_kwargs(),
        )

    def connection_acquired_from_pool(self) -> None:
        """Record that a connection was acquired from the pool."""
        self._logger.debug(
            "connection_acquired_from_pool",
            **self._get_context_kwargs(),
        )

    def connection_returned_to_pool(self) -> None:
        """Record that a connection was returned to the pool."""
        self._logger.debug(
            "connection_returned_to_pool",
            **self._get_context_kwargs(),
        )

    def pool_exhausted(self) -> None:
        """Record that the connection pool was exhausted."""
        self._logger.warning(
            "connection_pool_exhausted",
            **self._get_context_kwargs(),
        )

    def connection_return_failed(self, error: Exception) -> None:
        """Record that returning connection to pool failed."""
        self._logger.warning(
            "connection_return_failed",
            error=str(error),
            **self._get_context_kwargs(),
        )

    def pool_closed(self) -> None:
        """Record that the connection pool was closed."""
        self._logger.debug(
            "connection_pool_closed",
            **self._get_context_kwargs(),
        )


class RetryProbe(Protocol):
    """Domain probe for bounded retries of external calls."""

    def attempt_failed(
        self, operation: str, attempt: int, max_attempts: int, error: Exception
    ) -> None:
        """Record that one attempt of an external call failed."""
        ...

    def retries_exhausted(self, operation: str, attempts: int, error: Exception) -> None:
        """Record that all attempts of an external call failed."""
        ...


class DefaultRetryProbe(_StructlogProbe):
    """Default implementation of RetryProbe using structlog."""

    def attempt_failed(
        self, operation: str, attempt: int, max_attempts: int, error: Exception
    ) -> None:
        """Record that one attempt of an external call failed."""
        self._logger.warning(
            "external_call_attempt_failed",
            operation=operation,
            attempt=attempt,
            max_attempts=max_attempts,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def retries_exhausted(self, operation: str, attempts: int, error: Exception) -> None:
        """Record that all attempts of an external call failed."""
        self._logger.error(
            "external_call_retries_exhausted",
            operation=operation,
            attempts=attempts,
            error=str(error),
            **self._get_context_kwargs(),
        )


class ProcessControlProbe(Protocol):
    """Domain probe for pooler process control."""

    def command_succeeded(self, service: str, action: str) -> None:
        """Record that a service command succeeded."""
        ...

    def command_failed(self, service: str, action: str, error: str) -> None:
        """Record that a service command failed."""
        ...


class DefaultProcessControlProbe(_StructlogProbe):
    """Default implementation of ProcessControlProbe using structlog."""

    def command_succeeded(self, service: str, action: str) -> None:
        """Record that a service command succeeded."""
        self._logger.info(
            "service_command_succeeded",
            service=service,
            action=action,
            **self._get_context_kwargs(),
        )

    def command_failed(self, service: str, action: str, error: str) -> None:
        """Record that a service command failed."""
        self._logger.error(
            "service_command_failed",
            service=service,
            action=action,
            error=error,
            **self._get_context_kwargs(),
        )
