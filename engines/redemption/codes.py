"""
Salon Redemption — Code Formats and Generation
===============================================

    Voucher           BF + 4 of [A-Z0-9]    e.g. BF7K2Q
    Gift certificate  GC + 4 of [A-Z0-9]    e.g. GC0A9Z

Codes are compared uppercase. Generation draws from an injected
random source and retries against an existence check a bounded
number of times.
"""

from __future__ import annotations

import re
import secrets
import string
from random import Random
from typing import Callable, Optional

VOUCHER_PREFIX = "BF"
GIFT_CERTIFICATE_PREFIX = "GC"
CODE_BODY_LENGTH = 4
CODE_ALPHABET = string.ascii_uppercase + string.digits

CODE_PATTERNS = {
    VOUCHER_PREFIX: re.compile(r"^BF[A-Z0-9]{4}$"),
    GIFT_CERTIFICATE_PREFIX: re.compile(r"^GC[A-Z0-9]{4}$"),
}


class CodeGenerationError(RuntimeError):
    """No free code found within the attempt budget."""

    def __init__(self, prefix: str, attempts: int):
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique {prefix} code in {attempts} attempts."
        )


def normalize_code(raw: str) -> str:
    if not isinstance(raw, str):
        raise TypeError("code must be a string.")
    return raw.strip().upper()


def is_valid_code(code: str, prefix: str) -> bool:
    pattern = CODE_PATTERNS.get(prefix)
    if pattern is None:
        raise ValueError(f"Unknown code prefix '{prefix}'.")
    return bool(pattern.match(code))


def generate_code(
    prefix: str,
    exists: Callable[[str], bool],
    *,
    max_attempts: int = 10,
    rng: Optional[Random] = None,
) -> str:
    if prefix not in CODE_PATTERNS:
        raise ValueError(f"Unknown code prefix '{prefix}'.")
    source = rng or secrets.SystemRandom()
    for _ in range(max_attempts):
        body = "".join(source.choice(CODE_ALPHABET) for _ in range(CODE_BODY_LENGTH))
        code = f"{prefix}{body}"
        if not exists(code):
            return code
    raise CodeGenerationError(prefix, max_attempts)
