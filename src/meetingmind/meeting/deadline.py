"""
Bounded-time calls.
"""

import asyncio
from typing import Awaitable, TypeVar

from ..errors import DeadlineExceeded
from ..logger import log_warning

T = TypeVar("T")


async def race_with_deadline(awaitable: Awaitable[T], timeout: float, label: str = "Operation") -> T:
    """
    Run `awaitable` against a deadline of `timeout` seconds.

    The call and the deadline run as two tasks; whichever finishes first
    wins and the other is cancelled and awaited.

    Raises:
        DeadlineExceeded: If the deadline finished first
        Exception: Whatever the call raised, if it finished first
    """
    call = asyncio.ensure_future(awaitable)
    deadline = asyncio.create_task(asyncio.sleep(timeout))

    try:
        done, _ = await asyncio.wait({call, deadline}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Also runs when the caller itself is cancelled
        for task in (call, deadline):
            if not task.done():
                task.cancel()
        await asyncio.gather(call, deadline, return_exceptions=True)

    if call in done:
        return call.result()

    log_warning(f"[Deadline] {label} exceeded {timeout:g}s, cancelled")
    raise DeadlineExceeded(label, timeout)
