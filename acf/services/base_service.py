"""
Base service class.

Shared result container, bound logger, optional session handling and the
transaction / operation-logging decorators used by the ACF services.
"""

import functools
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from acf.utils.exceptions import PlacementError


T = TypeVar("T")


@dataclass
class ServiceResult:
    """
    Outcome of a service call.

    Failures carry the error_code of the PlacementError that caused them so
    callers can branch without catching exceptions.
    """
    success: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def from_error(cls, error: PlacementError) -> "ServiceResult":
        return cls(success=False, error=str(error), error_code=error.error_code)


class BaseService:
    """
    Base class for ACF services.

    Store-agnostic services (engine, aggregator, coordinator) run without a
    session; SQL-backed services pass their AsyncSession and own the
    transaction boundary.
    """

    def __init__(self, session: AsyncSession | None = None) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session, or None
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit the session, if any."""
        if self.session is not None:
            await self.session.commit()

    async def rollback(self) -> None:
        """Roll back the session, if any."""
        if self.session is not None:
            await self.session.rollback()

    async def finish(self, result: ServiceResult) -> ServiceResult:
        """
        Commit a successful result, roll back a failed one.

        Args:
            result: Outcome of the unit of work

        Returns:
            The same result
        """
        if result.success:
            await self.commit()
        else:
            await self.rollback()
            self.logger.debug(
                "Unit of work rolled back",
                extra={"error_code": result.error_code},
            )
        return result


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method as one unit of work.

    The session is committed when the method returns and rolled back when
    it raises; the exception is re-raised after logging.

    Args:
        func: Async service method

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"Rolled back {func.__name__}",
                extra={"function": func.__name__, "error": str(e)},
            )
            raise
        await self.commit()
        return result

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log start, outcome and duration of a service method.

    ServiceResult outcomes are logged with their success flag and
    error_code; raised exceptions are logged and re-raised.

    Args:
        func: Async service method

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        started = time.perf_counter()
        self.logger.debug(
            f"Starting {func.__name__}",
            extra={"function": func.__name__, "args": [str(a) for a in args]},
        )

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__}",
                extra={
                    "function": func.__name__,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    "error": str(e),
                },
            )
            raise

        self.logger.debug(
            f"Finished {func.__name__}",
            extra={
                "function": func.__name__,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                "success": getattr(result, "success", True),
                "error_code": getattr(result, "error_code", None),
            },
        )
        return result

    return wrapper
