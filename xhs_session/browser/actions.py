"""Paced waiting between browser actions.

All pauses between keyword searches go through ``random_sleep`` so the
batch never hits the site on a fixed rhythm.
"""

import asyncio
import logging
import random

logger = logging.getLogger(__name__)

# Lower bound for the pause between two keyword searches, whatever the config says.
KEYWORD_DELAY_FLOOR = 1.0


async def random_sleep(min_s: float, max_s: float) -> float:
    """Sleep for a random duration between min_s and max_s seconds.

    If max_s < min_s, max_s is raised to min_s. Negative values count as 0.

    Returns the actual sleep duration (useful for testing).
    """
    floor = max(min_s, 0.0)
    ceiling = max(max_s, floor)
    duration = random.uniform(floor, ceiling)
    await asyncio.sleep(duration)
    return duration


async def keyword_pause(min_s: float, max_s: float) -> float:
    """Pause between two keyword searches, never shorter than the floor."""
    floor = max(min_s, KEYWORD_DELAY_FLOOR)
    duration = await random_sleep(floor, max(max_s, floor))
    logger.debug("Paused %.1fs before next keyword", duration)
    return duration
