# apca/stream/backoff.py
import random
from typing import Optional

from apca.config import ClientSettings


class ExponentialBackoff:
    """
    ``min(cap, initial * factor**n)`` scaled by a random factor in
    ``[1 - jitter, 1 + jitter]``. ``reset()`` starts the sequence over.
    """

    def __init__(self,
                 initial_s: float = 1.0,
                 cap_s: float = 30.0,
                 factor: float = 2.0,
                 jitter: float = 0.25,
                 rng: Optional[random.Random] = None):
        if initial_s < 0 or cap_s < 0:
            raise ValueError("backoff delays must be non-negative")
        if factor < 1:
            raise ValueError("backoff factor must be >= 1")
        if not 0 <= jitter < 1:
            raise ValueError("backoff jitter must be in [0, 1)")
        self.initial_s = float(initial_s)
        self.cap_s = float(cap_s)
        self.factor = float(factor)
        self.jitter = float(jitter)
        self._rng = rng or random.Random()
        self.attempt = 0

    @classmethod
    def from_settings(cls, settings: ClientSettings, rng: Optional[random.Random] = None) -> "ExponentialBackoff":
        return cls(settings.backoff_initial_s, settings.backoff_max_s,
                   settings.backoff_factor, settings.backoff_jitter, rng=rng)

    def next_delay(self) -> float:
        base = min(self.cap_s, self.initial_s * self.factor ** min(self.attempt, 32))
        self.attempt += 1
        if self.jitter:
            base *= self._rng.uniform(1.0 - self.jitter, 1.0 + self.jitter)
        return max(0.0, base)

    def reset(self) -> None:
        self.attempt = 0
