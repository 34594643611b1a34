# ABOUTME: Xero client management with caching and retry logic
# ABOUTME: Provides the shared session and the trial balance services built on it

import asyncio
import functools
import logging
from typing import Any, Callable, TypeVar

import httpx

from ledgerizer.comparison import PeriodComparator
from ledgerizer.consolidation import ConsolidationEngine
from ledgerizer.exceptions import APIError, AuthenticationError
from ledgerizer.trial_balance import TrialBalanceService
from ledgerizer.xero import XeroReportSource, XeroSession

logger = logging.getLogger(__name__)

# Module-level client cache with lock for thread safety
_session: XeroSession | None = None
_session_lock = asyncio.Lock()

F = TypeVar("F", bound=Callable[..., Any])


async def get_client() -> XeroSession:
    """
    Get or create the shared Xero session.

    Creates the session on first call and returns the cached one after
    that. Tokens are looked up per request, so there is no login step.

    Returns:
        XeroSession instance
    """
    global _session

    async with _session_lock:
        if _session is None:
            logger.info("Creating new Xero session")
            _session = XeroSession()
        return _session


async def invalidate_client() -> None:
    """Invalidate the cached session (e.g., on auth failure)."""
    global _session

    async with _session_lock:
        if _session:
            await _session.close()
            _session = None
        logger.info("Invalidated Xero session")


def trial_balance_service(session: XeroSession) -> TrialBalanceService:
    """Trial balance service wired to a Xero session."""
    return TrialBalanceService(XeroReportSource(session), session.token_store)


def consolidation_engine(session: XeroSession) -> ConsolidationEngine:
    return ConsolidationEngine(trial_balance_service(session))


def period_comparator(session: XeroSession) -> PeriodComparator:
    return PeriodComparator(trial_balance_service(session))


def _is_auth_error(exc: Exception) -> bool:
    """
    Check if an exception indicates an authentication failure.

    Args:
        exc: The exception to check

    Returns:
        True if this looks like an auth error
    """
    if isinstance(exc, AuthenticationError):
        return True
    if isinstance(exc, APIError):
        return exc.status_code in (401, 403)
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (401, 403)
    return False


def with_auth_retry(func: F) -> F:
    """
    Decorator that retries on authentication failures.

    If a function fails with an auth error, this will:
    1. Invalidate the current session
    2. Retry the function once with a fresh session

    Usage:
        @with_auth_retry
        async def my_tool_function(...):
            session = await get_client()
            # ... use session
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            if _is_auth_error(exc):
                logger.warning(f"Auth error in {func.__name__}, retrying with fresh session")
                await invalidate_client()
                return await func(*args, **kwargs)
            raise

    return wrapper  # type: ignore
