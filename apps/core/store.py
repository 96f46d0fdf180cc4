"""
Injected store handle.

Every read the search core performs goes through ``StoreHandle``: the callable gets a
fresh session on a worker thread and the caller waits with an explicit deadline.
Connection pooling and health checks belong to the engine, not to this handle.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, TypeVar

from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from apps.core.errors import StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE for query_canceled (statement_timeout)
QUERY_CANCELED = "57014"


def _is_statement_timeout(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == QUERY_CANCELED


class StoreHandle:
    """Explicitly owned access to the relational store with per-call timeouts."""

    def __init__(
        self,
        session_factory: sessionmaker,
        default_timeout_s: float = 5.0,
        max_workers: int = 8,
    ):
        self._session_factory = session_factory
        self.default_timeout_s = default_timeout_s
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="store")

    def submit(self, fn: Callable[[Session], T], timeout_s: Optional[float] = None, label: str = "store") -> Future:
        """Schedule ``fn(session)`` on the worker pool and return its future."""
        timeout = timeout_s if timeout_s is not None else self.default_timeout_s
        return self._executor.submit(self._invoke, fn, timeout, label)

    def run(self, fn: Callable[[Session], T], timeout_s: Optional[float] = None, label: str = "store") -> T:
        """Run ``fn(session)`` and wait at most ``timeout_s`` seconds for the result."""
        timeout = timeout_s if timeout_s is not None else self.default_timeout_s
        future = self.submit(fn, timeout, label)
        return self.wait(future, timeout, label)

    def wait(self, future: Future, timeout_s: float, label: str = "store") -> T:
        """Collect a submitted call, translating the missed deadline into StoreTimeoutError."""
        try:
            return future.result(timeout=max(timeout_s, 0.0))
        except FutureTimeoutError:
            future.cancel()
            logger.error("Store call '%s' exceeded %.2fs", label, timeout_s)
            raise StoreTimeoutError(f"{label} timed out after {timeout_s:.2f}s") from None

    def ping(self, timeout_s: Optional[float] = None) -> bool:
        return self.run(lambda session: session.execute(text("SELECT 1")).scalar() == 1,
                        timeout_s=timeout_s, label="ping")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _invoke(self, fn: Callable[[Session], T], timeout_s: float, label: str) -> T:
        session = self._session_factory()
        try:
            self._apply_statement_timeout(session, timeout_s)
            return fn(session)
        except OperationalError as exc:
            if _is_statement_timeout(exc):
                logger.error("Store call '%s' cancelled by statement_timeout", label)
                raise StoreTimeoutError(f"{label} timed out after {timeout_s:.2f}s") from exc
            logger.error("Store call '%s' failed: %s", label, exc)
            raise StoreError(f"{label} failed: {exc}") from exc
        except SQLAlchemyError as exc:
            logger.error("Store call '%s' failed: %s", label, exc)
            raise StoreError(f"{label} failed: {exc}") from exc
        finally:
            # read-only: nothing to commit
            session.rollback()
            session.close()

    @staticmethod
    def _apply_statement_timeout(session: Session, timeout_s: float) -> None:
        if session.get_bind().dialect.name != "postgresql":
            return
        session.execute(
            select(func.set_config("statement_timeout", str(int(timeout_s * 1000)), True))
        )
