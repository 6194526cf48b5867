import secrets
import string
from typing import Callable

# Any callable taking a prefix ("table", "col", "rel") and returning a fresh id
IdFactory = Callable[[str], str]

_ALPHABET = string.ascii_lowercase + string.digits


def random_id(prefix: str) -> str:
    """Opaque id with a random suffix, e.g. table_k3v9x0a1q"""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}_{suffix}"


class SequentialIds:
    """Deterministic ids: <prefix>_1, <prefix>_2, ... from one shared counter."""

    def __init__(self, start: int = 1):
        self._next = start

    def __call__(self, prefix: str) -> str:
        value = self._next
        self._next += 1
        return f"{prefix}_{value}"
