"""
Layer 3 — MRZ Extraction
Component: Character-class correction
Responsibility: Undo OCR confusions between look-alike digits and letters

Each MRZ position expects either a digit or a letter; a character of the
wrong class is rewritten through a fixed lookup table. The tables are
read-only and shared by every decoder instance.
"""
from types import MappingProxyType
from typing import Optional

from .checksum import FILLER

# Letter read where a digit belongs
DIGIT_CORRECTIONS = MappingProxyType({
    'D': '0',
    'O': '0',
    'Q': '0',
    'I': '1',
    'L': '1',
    'Z': '2',
    'A': '4',
    'S': '5',
    'G': '6',
    'T': '7',
    'B': '8',
})

# Digit read where a letter belongs
LETTER_CORRECTIONS = MappingProxyType({
    '0': 'O',
    '1': 'I',
    '2': 'Z',
    '4': 'A',
    '5': 'S',
    '6': 'G',
    '7': 'T',
    '8': 'B',
})


def as_digit(character: str) -> Optional[str]:
    """Digit for ``character`` (filler kept verbatim) or None when no correction applies."""
    if character == FILLER or '0' <= character <= '9':
        return character
    return DIGIT_CORRECTIONS.get(character)


def as_letter(character: str) -> Optional[str]:
    """Letter for ``character`` or None when no correction applies."""
    if 'A' <= character <= 'Z':
        return character
    return LETTER_CORRECTIONS.get(character)


def as_name_character(character: str) -> Optional[str]:
    """Letter or filler; the filler is kept verbatim."""
    if character == FILLER:
        return character
    return as_letter(character)
