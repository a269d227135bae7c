from __future__ import annotations

import re

# 标签：4 位大写 36 进制，0000 ~ ZZZZ
LABEL_WIDTH = 4
LABEL_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
MAX_LABEL_VALUE = 36 ** LABEL_WIDTH - 1  # 1,679,615

_LABEL_RE = re.compile(r"^[0-9A-Z]{4}$")


def is_label(code: str | None) -> bool:
    return bool(code) and _LABEL_RE.match(code) is not None


def encode_label(n: int) -> str:
    if n < 0 or n > MAX_LABEL_VALUE:
        raise ValueError(f"label value out of range: {n}")
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(LABEL_ALPHABET[rem])
    return "".join(reversed(digits)).rjust(LABEL_WIDTH, "0")


def decode_label(code: str) -> int:
    if not is_label(code):
        raise ValueError(f"not a label code: {code!r}")
    return int(code, 36)


def label_range(first: int, quantity: int) -> list[str]:
    """Codes for first .. first+quantity-1, in order."""
    return [encode_label(n) for n in range(first, first + quantity)]
