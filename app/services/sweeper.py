"""Background purge of expired pending logins and sessions.

Expiry is already enforced on every read, so this only keeps the stores
from growing.  Runs as one asyncio task inside the app lifespan.
"""

from __future__ import annotations

import asyncio
import logging

from app.services.login_flow import LoginFlow

logger = logging.getLogger(__name__)


async def run_sweeper(flow: LoginFlow, interval_sec: float) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        try:
            states, sessions = await flow.sweep()
        except Exception:
            # A store hiccup must not kill the loop; next tick retries.
            logger.warning("Sweep failed", exc_info=True)
            continue
        if states or sessions:
            logger.info("Swept %d pending login(s), %d session(s)", states, sessions)


def start_sweeper(flow: LoginFlow, interval_sec: float) -> asyncio.Task[None]:
    return asyncio.create_task(run_sweeper(flow, interval_sec), name="sweeper")


async def stop_sweeper(task: asyncio.Task[None]) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
