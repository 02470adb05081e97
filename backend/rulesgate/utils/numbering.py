"""Confirmation code generation.

Format: {prefix}XXXXXX, six characters drawn uniformly from [A-Z0-9],
e.g. "DKP-7Q2M0Z".  Codes are random per call; collisions are possible
and are caught by the store's unique constraint, not avoided here.
"""

import random
import string

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
DEFAULT_PREFIX = "DKP-"

_rng = random.SystemRandom()


def generate_confirmation_code(
    prefix: str = DEFAULT_PREFIX,
    rng: random.Random | None = None,
) -> str:
    chooser = rng or _rng
    return prefix + "".join(chooser.choices(CODE_ALPHABET, k=CODE_LENGTH))


def is_confirmation_code(value: str, prefix: str = DEFAULT_PREFIX) -> bool:
    if not value.startswith(prefix):
        return False
    body = value[len(prefix):]
    return len(body) == CODE_LENGTH and all(c in CODE_ALPHABET for c in body)
