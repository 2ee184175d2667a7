import asyncio
from collections.abc import Awaitable, Callable, Mapping

import structlog

logger = structlog.get_logger()


class RateLimitCooldown:
    """Pause outbound calls when the provider's remaining quota runs low.

    One instance is shared by the callers of a single API; its counters are
    process-local and safe to throw away between runs.
    """

    def __init__(
        self,
        floor: int = 200,
        cooldown_seconds: float = 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        header: str = "X-RateLimit-Remaining",
    ):
        self.floor = floor
        self.cooldown_seconds = cooldown_seconds
        self.header = header
        self._sleep = sleep
        self.pauses = 0
        self.last_remaining: int | None = None

    async def observe(self, headers: Mapping[str, str]) -> bool:
        """Record the quota header from a response; sleep if it is under the floor.

        Returns True when a pause happened.
        """
        raw = headers.get(self.header)
        if raw is None:
            return False
        try:
            remaining = int(raw)
        except ValueError:
            return False

        self.last_remaining = remaining
        if remaining >= self.floor:
            return False

        self.pauses += 1
        logger.warning(
            "rate_limit_cooldown",
            remaining=remaining,
            floor=self.floor,
            seconds=self.cooldown_seconds,
        )
        await self._sleep(self.cooldown_seconds)
        return True
