"""
Layer 3 — MRZ Extraction
Component: Document fields
Responsibility: Typed identity record and the formatting rules shared by the MRZ and PDF417 parsers
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

_NON_DIGITS = re.compile(r"\D")
_WORD_BREAKS = (".", "'")


@dataclass(frozen=True)
class DocumentFields:
    """Identity data read from a document; only built once every check has passed."""
    first_name: str
    last_name: str
    document_number: int
    gender: str
    birth_date: date
    expiration_date: Optional[date] = None
    national_identification_number: Optional[int] = None
    raw: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to JSON-serializable dict (dates as ISO strings)."""
        return {
            'first_name': self.first_name,
            'last_name': self.last_name,
            'document_number': self.document_number,
            'gender': self.gender,
            'birth_date': self.birth_date.isoformat(),
            'expiration_date': self.expiration_date.isoformat() if self.expiration_date else None,
            'national_identification_number': self.national_identification_number,
        }


def format_name(text: str) -> str:
    """
    Title-case a name.

    The first letter of every run delimited by whitespace, '.' or an
    apostrophe is upper-cased; everything else is lower-cased.
    """
    result = []
    capitalize_next = True
    for character in text.lower():
        if capitalize_next and character.isalpha():
            result.append(character.upper())
            capitalize_next = False
            continue
        if character.isspace() or character in _WORD_BREAKS:
            capitalize_next = True
        result.append(character)
    return "".join(result).strip()


def format_number(text: str) -> Optional[int]:
    """Keep digits only; None when nothing is left."""
    digits = _NON_DIGITS.sub("", text)
    return int(digits) if digits else None


def decode_mrz_date(text: str, reference: date, accepts_future: bool = False) -> date:
    """
    Decode a YYMMDD field.

    A two-digit year greater than the reference year's is placed in the
    previous century unless ``accepts_future`` is set (expiration dates).

    Raises:
        ValueError: Malformed or impossible date
    """
    if len(text) != 6 or not text.isdigit():
        raise ValueError(f"Invalid date field {text!r}")
    year_value = int(text[:2])
    century = reference.year - reference.year % 100
    if not accepts_future and year_value > reference.year % 100:
        century -= 100
    return date(century + year_value, int(text[2:4]), int(text[4:6]))
