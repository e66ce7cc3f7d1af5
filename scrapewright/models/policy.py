"""Retry policy model."""

import random

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetryPolicy(BaseModel):
    """Bounded attempts with capped exponential backoff.

    Attributes:
        max_attempts: Total calls allowed, including the first one
        base_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound for any single delay
        jitter: Fraction of the exponential step added at random, in [0, 1)

    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    jitter: float = Field(default=0.5, ge=0, lt=1)

    @model_validator(mode='after')
    def check_bounds(self) -> 'RetryPolicy':
        if self.max_delay < self.base_delay:
            raise ValueError('max_delay must be >= base_delay')
        return self

    def backoff(self, attempt: int, rand: float | None = None) -> float:
        """Delay to sleep after ``attempt`` failed, before attempt + 1.

        Jitter stays below one exponential step, so delays never shrink
        from one attempt to the next.

        Args:
            attempt: 1-based number of the attempt that just failed
            rand: Random draw in [0, 1); drawn when omitted

        Returns:
            Seconds to wait.

        """
        if rand is None:
            rand = random.random()
        step = self.base_delay * (2 ** (max(attempt, 1) - 1))
        return min(self.max_delay, step * (1 + self.jitter * rand))
