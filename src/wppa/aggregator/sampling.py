import random
from typing import Optional


def should_persist_sample(
    sampling_rate_percent: int, rng: Optional[random.Random] = None
) -> bool:
    """
    Draw once from [1, 100]; persist iff the draw is <= the rate.

    Rate 100 always persists. Rate 0 never does, since the draw starts at 1.
    """
    draw = (rng or random).randint(1, 100)
    return draw <= sampling_rate_percent
