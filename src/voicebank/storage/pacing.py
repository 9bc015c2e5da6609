"""Batch upload policies: serial pacing, parallel fan-out and opt-in retry."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..logging import get_logger
from .base import StorageFile, StorageProvider, StorageUploadResult

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff schedule for failed uploads.

    The default performs a single attempt, i.e. no retry.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.multiplier < 1:
            raise ValueError("base_delay must be >= 0 and multiplier >= 1")

    def delays(self) -> list[float]:
        """Wait before each retry, in order."""
        return [self.base_delay * self.multiplier**i for i in range(self.max_attempts - 1)]


NO_RETRY = RetryPolicy()


class UploadPacer:
    """Enforces a fixed pause between consecutive serial uploads."""

    def __init__(self, interval: float, sleep: Sleep | None = None):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._sleep = sleep or asyncio.sleep
        self._started = False

    async def wait(self) -> None:
        """Pause before the next item; the first call returns immediately."""
        if self._started and self.interval > 0:
            await self._sleep(self.interval)
        self._started = True

    def reset(self) -> None:
        self._started = False


async def upload_with_retry(
    provider: StorageProvider,
    file: StorageFile,
    key: str,
    policy: RetryPolicy = NO_RETRY,
    sleep: Sleep | None = None,
) -> StorageUploadResult:
    """Upload, re-attempting failed results according to ``policy``."""
    sleep = sleep or asyncio.sleep
    result = await provider.upload(file, key)

    for attempt, wait_time in enumerate(policy.delays(), start=2):
        if result.success:
            break
        logger.warning(
            "Upload failed, retrying",
            key=key,
            attempt=attempt,
            max_attempts=policy.max_attempts,
            wait_seconds=wait_time,
            error=result.error,
        )
        await sleep(wait_time)
        result = await provider.upload(file, key)

    return result


async def upload_serial(
    provider: StorageProvider,
    items: list[tuple[StorageFile, str]],
    pacer: UploadPacer,
    retry_policy: RetryPolicy = NO_RETRY,
) -> list[StorageUploadResult]:
    """Upload one item at a time, pausing between items. Results keep input order."""
    results: list[StorageUploadResult] = []
    pacer.reset()

    for index, (file, key) in enumerate(items):
        await pacer.wait()
        result = await upload_with_retry(provider, file, key, retry_policy)
        results.append(result)
        logger.debug(
            "Serial upload item finished",
            index=index + 1,
            total=len(items),
            key=key,
            success=result.success,
        )

    return results


async def upload_parallel(
    provider: StorageProvider,
    items: list[tuple[StorageFile, str]],
    max_concurrency: int | None = None,
    retry_policy: RetryPolicy = NO_RETRY,
) -> list[StorageUploadResult]:
    """Upload all items concurrently, optionally bounded by ``max_concurrency``."""
    if max_concurrency is not None and max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def _one(file: StorageFile, key: str) -> StorageUploadResult:
        if semaphore is None:
            return await upload_with_retry(provider, file, key, retry_policy)
        async with semaphore:
            return await upload_with_retry(provider, file, key, retry_policy)

    return list(await asyncio.gather(*(_one(file, key) for file, key in items)))
