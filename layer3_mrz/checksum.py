"""
Layer 3 — MRZ Extraction
Component: Check digits
Responsibility: ICAO 9303 weighted mod-10 check digit
"""
from typing import Sequence

WEIGHTS = (7, 3, 1)
FILLER = '<'


def character_value(character: str) -> int:
    """
    Numeric value of an MRZ character.

    Filler counts 0, digits their face value and A-Z 10-35.

    Raises:
        ValueError: For any other character
    """
    if character == FILLER:
        return 0
    if '0' <= character <= '9':
        return ord(character) - ord('0')
    if 'A' <= character <= 'Z':
        return ord(character) - ord('A') + 10
    raise ValueError(f"Unrecognized character {character!r} in MRZ")


def compute_check_digit(field: str, weights: Sequence[int] = WEIGHTS) -> int:
    """Weighted sum of ``field`` modulo 10."""
    total = sum(
        character_value(character) * weights[index % len(weights)]
        for index, character in enumerate(field)
    )
    return total % 10


def check_digit_char(field: str) -> str:
    return str(compute_check_digit(field))
