from __future__ import annotations

import secrets
import string


MNEMO_LENGTH = 10
ALPHANUMERIC = string.ascii_uppercase + string.ascii_lowercase + string.digits


def generate(length: int = MNEMO_LENGTH, alphabet: str = ALPHANUMERIC) -> str:
    """Return a random mnemo of `length` characters drawn from `alphabet`.

    Uniqueness is not guaranteed here; the store enforces it with a
    conditional set when the mnemo is used as a key.
    """
    if length <= 0:
        raise ValueError("length must be > 0")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def is_mnemo(value: str, length: int = MNEMO_LENGTH, alphabet: str = ALPHANUMERIC) -> bool:
    """Return True if `value` has the shape of a generated mnemo."""
    return isinstance(value, str) and len(value) == length and all(c in alphabet for c in value)
