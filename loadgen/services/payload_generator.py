# loadgen/services/payload_generator.py
"""
Randomized card-transaction payloads.

Every draw goes through one random source. The default is
random.SystemRandom (OS entropy, no shared state), so one generator can be
used from several worker threads at once. Pass a seeded random.Random for
reproducible output in tests.
"""
from __future__ import annotations

import random
import string
from datetime import date
from typing import Callable, Optional

from loadgen.schemas import TransactionRequest

ALPHABET = string.ascii_uppercase
CURRENCY = "USD"
MERCHANT_CODE = "WELSHGOODS"
CARD_LENGTH = 16

# amount and reference-code bounds are half-open: [low, high)
AMOUNT_RANGE = (2, 1000)
MONTH_RANGE = (1, 13)
EXPIRY_YEARS = 8
REFERENCE_RANGE = (10000, 99999)


def compute_luhn_check_digit(digits: str) -> int:
    """
    Check digit that makes `digits + check` pass a Luhn check.

    Digits at even positions, counted from the left starting at 0, are
    doubled (values over 9 have 9 subtracted). For an odd-length input,
    e.g. the 15 digits in front of a 16-digit card's check digit, these are
    the same digits the right-to-left rule doubles.
    """
    total = 0
    for i, ch in enumerate(digits):
        d = int(ch)
        if i % 2 == 0:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return (10 - total % 10) % 10


def is_luhn_valid(number: str) -> bool:
    """Textbook validation: double every second digit from the rightmost."""
    if not number or not number.isdigit():
        return False
    total = 0
    for i, ch in enumerate(reversed(number)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


class PayloadGenerator:
    def __init__(self, rng: Optional[random.Random] = None, today: Optional[Callable[[], date]] = None):
        self.rng = rng if rng is not None else random.SystemRandom()
        self._today = today or date.today

    # ---- primitives ----

    def generate_random_integer(self, low: int, high: int) -> int:
        """Uniform integer in [low, high); `high` is never returned."""
        return self.rng.randrange(low, high)

    def generate_random_letters(self, count: int) -> str:
        return "".join(self.rng.choice(ALPHABET) for _ in range(count))

    def generate_bin_visa(self) -> str:
        # leading 4 means VISA; each following digit is drawn from [0, 9)
        return "4" + "".join(str(self.generate_random_integer(0, 9)) for _ in range(5))

    def generate_card_number(self, bin: str, total_length: int) -> str:
        if total_length <= len(bin):
            raise ValueError(f"total_length={total_length} must exceed the BIN length ({len(bin)})")

        # random body between the BIN and the trailing check digit
        body_len = total_length - len(bin) - 1
        partial = bin + "".join(str(self.rng.randrange(10)) for _ in range(body_len))
        return partial + str(compute_luhn_check_digit(partial))

    # ---- transaction ----

    def generate_transaction_request(self) -> TransactionRequest:
        next_year = self._today().year + 1
        return TransactionRequest(
            amount=self.generate_random_integer(*AMOUNT_RANGE),
            currency=CURRENCY,
            card_number=self.generate_card_number(self.generate_bin_visa(), CARD_LENGTH),
            card_expiration_month=self.generate_random_integer(*MONTH_RANGE),
            card_expiration_year=self.generate_random_integer(next_year, next_year + EXPIRY_YEARS),
            card_holder_name=f"{self.generate_random_letters(5)} {self.generate_random_letters(10)}",
            merchant_code=MERCHANT_CODE,
            merchant_reference_code=(
                f"{self.generate_random_integer(*REFERENCE_RANGE)}-{self.generate_random_letters(5)}"
            ),
        )


_default = PayloadGenerator()


def generate_transaction_request() -> TransactionRequest:
    return _default.generate_transaction_request()


def generate_card_number(bin: str, total_length: int) -> str:
    return _default.generate_card_number(bin, total_length)


def generate_bin_visa() -> str:
    return _default.generate_bin_visa()


def generate_random_letters(count: int) -> str:
    return _default.generate_random_letters(count)


def generate_random_integer(low: int, high: int) -> int:
    return _default.generate_random_integer(low, high)
