# homenet/quotes/numbers.py
"""Random 8-digit quote numbers.

The unique index on ``quote.quote_number`` is what actually guarantees
uniqueness; the lookup loop here only makes a collision at insert time
unlikely.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

MIN_NUMBER = 10000000
MAX_NUMBER = 99999999
MAX_ATTEMPTS = 10


@dataclass(frozen=True)
class QuoteNumberResult:
    number: Optional[str]
    attempts: int

    @property
    def ok(self) -> bool:
        return self.number is not None


def generate_quote_number(exists: Callable[[str], bool],
                          rng: random.Random | None = None,
                          max_attempts: int = MAX_ATTEMPTS) -> QuoteNumberResult:
    """Draw numbers until ``exists`` reports one as free, at most ``max_attempts`` times."""
    rng = rng or random.SystemRandom()
    for attempt in range(1, max_attempts + 1):
        candidate = str(rng.randint(MIN_NUMBER, MAX_NUMBER))
        if not exists(candidate):
            return QuoteNumberResult(number=candidate, attempts=attempt)
        logger.debug('quote number %s already taken (attempt %s)', candidate, attempt)
    logger.warning('quote number generation exhausted after %s attempts', max_attempts)
    return QuoteNumberResult(number=None, attempts=max_attempts)


def quote_number_taken(number: str) -> bool:
    from homenet.models import Quote
    return Quote.query.filter_by(quote_number=number).first() is not None


def request_number_taken(number: str) -> bool:
    from homenet.models import ConsultationRequest
    return ConsultationRequest.query.filter_by(request_number=number).first() is not None
