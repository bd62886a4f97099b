"""Identifier generation for private and public clips."""

import logging
import random
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

ADJECTIVES = [
    "happy", "brave", "calm", "bright", "gentle", "swift", "wise", "kind", "bold", "clever",
    "quick", "quiet", "light", "soft", "warm", "cool", "fresh", "lucky", "strong", "sweet",
    "shiny", "fast", "smooth", "neat", "smart", "funny", "silly", "safe", "brisk", "clear",
    "fair", "cute", "faint", "firm", "fine", "gold", "green", "blue", "red", "pure",
    "calm", "loyal", "free", "fresh", "tiny", "young", "rich", "safe", "cool", "bright",
]

NOUNS = [
    "cat", "dog", "fox", "wolf", "bear", "lion", "owl", "hawk", "tiger", "deer",
    "fish", "frog", "duck", "bat", "ant", "bee", "cow", "pig", "hen", "rat",
    "tree", "leaf", "rock", "hill", "star", "moon", "sun", "cloud", "rain", "wave",
    "river", "pond", "lake", "sand", "wind", "fire", "ice", "snow", "path", "field",
    "boat", "car", "bike", "rope", "door", "key", "lamp", "ring", "book", "coin",
]

PUBLIC_PREFIX = "pub_"
BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
TOKEN_LENGTH = 6


class IdentifierSpaceExhausted(RuntimeError):
    """No free phrase identifier was found within the attempt budget."""


def now_ms(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


class IdentifierGenerator:
    """Phrase and public id factory.

    Both the random source and the clock are injectable so collision retries
    and public ids can be reproduced in tests.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        max_attempts: int = 1000,
    ):
        self.rng = rng or random.Random()
        self.clock = clock
        self.max_attempts = max_attempts

    def phrase(self) -> str:
        """Return a candidate ``adjective-noun-number`` id."""
        adj = self.rng.choice(ADJECTIVES)
        noun = self.rng.choice(NOUNS)
        num = self.rng.randrange(100)
        return f"{adj}-{noun}-{num}"

    def public(self) -> str:
        """Return a ``pub_<ms>_<token>`` id; uniqueness is not checked."""
        token = "".join(self.rng.choice(BASE36) for _ in range(TOKEN_LENGTH))
        return f"{PUBLIC_PREFIX}{now_ms(self.clock)}_{token}"

    async def unique_phrase(self, exists: Callable[[str], Awaitable[bool]]) -> str:
        """Generate phrases until ``exists`` reports a free one.

        Raises IdentifierSpaceExhausted after ``max_attempts`` collisions.
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.phrase()
            if not await exists(candidate):
                if attempt > 1:
                    logger.debug("Phrase id %s found after %d attempts", candidate, attempt)
                return candidate

        logger.warning("No free phrase id after %d attempts", self.max_attempts)
        raise IdentifierSpaceExhausted(
            f"No free phrase identifier after {self.max_attempts} attempts"
        )
