"""Fetch pipeline for executing provider fetch strategies."""

from __future__ import annotations

import asyncio
import logging
import time

from usagebar.errors.classify import classify_exception
from usagebar.models import Provider
from usagebar.strategies.base import FetchAttempt
from usagebar.strategies.base import FetchOutcome
from usagebar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)


async def execute_fetch_pipeline(
    provider: Provider,
    strategies: list[FetchStrategy],
    timeout: float,
) -> FetchOutcome:
    """Execute fetch strategies in priority order.

    Tries each strategy in sequence until one succeeds. Failures, timeouts and
    unexpected exceptions are recorded as attempts and never propagate, so a
    provider whose every stage fails simply yields an outcome without a
    snapshot.

    Args:
        provider: Provider being fetched
        strategies: Ordered list of fetch strategies to try
        timeout: Upper bound in seconds for each strategy

    Returns:
        FetchOutcome with the snapshot (if any) and all attempts
    """
    attempts: list[FetchAttempt] = []

    for strategy in strategies:
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(strategy.fetch(), timeout=timeout)
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            error = classify_exception(e, provider.value)
            logger.warning(
                "%s %s strategy raised: %s", provider.display_name, strategy.name, error
            )
            attempts.append(
                FetchAttempt(
                    strategy=strategy.name,
                    success=False,
                    error=str(error),
                    duration_ms=duration_ms,
                )
            )
            continue

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if result.success and result.snapshot is not None:
            attempts.append(
                FetchAttempt(strategy=strategy.name, success=True, duration_ms=duration_ms)
            )
            if len(attempts) > 1:
                logger.info(
                    "%s usage served by %s fallback", provider.display_name, strategy.name
                )
            return FetchOutcome(
                provider=provider,
                snapshot=result.snapshot,
                source=strategy.name,
                attempts=attempts,
            )

        logger.debug(
            "%s %s strategy failed: %s", provider.display_name, strategy.name, result.error
        )
        attempts.append(
            FetchAttempt(
                strategy=strategy.name,
                success=False,
                error=result.error,
                duration_ms=duration_ms,
            )
        )

    logger.info("%s: no usage data from any source", provider.display_name)
    return FetchOutcome(provider=provider, snapshot=None, source=None, attempts=attempts)
