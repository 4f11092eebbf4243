import asyncio
from typing import Set
from orcachat.chat.constants import logger

# relays outlive the request that started them (client disconnects); keep them referenced
_inflight_relays: Set[asyncio.Task] = set()


def track_relay(task: asyncio.Task) -> asyncio.Task:
    _inflight_relays.add(task)
    task.add_done_callback(_relay_done)
    return task


def _relay_done(task: asyncio.Task) -> None:
    _inflight_relays.discard(task)
    if task.cancelled():
        logger.warning("chat.stream.relay_cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("chat.stream.relay_failed", extra={"error_code": getattr(exc, "code", None)}, exc_info=exc)


async def drain_inflight_relays(timeout: float = 30.0) -> None:
    """Wait for running relays so their assistant turns are persisted before the engine goes away."""
    if not _inflight_relays:
        return
    pending = list(_inflight_relays)
    logger.info("chat.stream.draining", extra={"pending": len(pending)})
    done, still_running = await asyncio.wait(pending, timeout=timeout)
    if still_running:
        logger.warning("chat.stream.drain_timeout", extra={"cancelled": len(still_running)})
        for task in still_running:
            task.cancel()
        # cancelled relays still persist in their finally; let that finish before the engine is disposed
        await asyncio.gather(*still_running, return_exceptions=True)
