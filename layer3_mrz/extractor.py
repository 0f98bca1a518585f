"""
Layer 3 — MRZ Extraction
Component: MRZ decoder and extractor
Responsibility: Turn noisy OCR text of a 3x30 identity-card MRZ into verified document fields
"""
import re
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

import numpy as np

from error_handlers import (
    MRZChecksumError,
    MRZLayoutError,
    MRZNotFoundError,
    UnexpectedCharacterError,
)
from layer1_imaging import primitives
from .checksum import FILLER, check_digit_char, character_value
from .correction import as_digit, as_letter, as_name_character
from .fields import DocumentFields, decode_mrz_date, format_name, format_number

logger = logging.getLogger(__name__)

_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")
NAME_SEPARATOR = FILLER * 2


@dataclass
class MRZDecoderConfig:
    """Layout constants for the supported identity card MRZ."""
    prefix: str = "IDARG"
    line_length: int = 30
    min_text_length: int = 40
    prefix_misreads: Tuple[Tuple[str, str], ...] = (("1ID", "ID"), ("1D", "ID"))


class MRZDecoder:
    """
    Rebuilds and validates the three-line MRZ.

    Decoding runs in two stages: ``rebuild`` maps free-form OCR text onto
    the fixed 90-character layout with position-aware character
    correction, ``parse`` verifies the check digits and builds the fields.
    Both raise MRZError subclasses naming the failed condition.
    """

    def __init__(self, config: Optional[MRZDecoderConfig] = None,
                 reference_date: Optional[date] = None):
        """
        Initialize MRZ decoder

        Args:
            config: Layout constants (defaults if None)
            reference_date: Date used to resolve two-digit years (today if None)
        """
        self.config = config or MRZDecoderConfig()
        self.reference_date = reference_date
        logger.debug(f"MRZDecoder initialized (prefix {self.config.prefix})")

    @property
    def code_length(self) -> int:
        return self.config.line_length * 3

    def decode(self, text: str) -> DocumentFields:
        """
        Decode raw OCR text

        Args:
            text: OCR output, any line breaks and stray spaces allowed

        Returns:
            DocumentFields: Verified fields; ``raw`` holds the 90-character code

        Raises:
            MRZNotFoundError: Text too short or without a name separator
            MRZLayoutError: Text does not fit the expected layout
            UnexpectedCharacterError: Uncorrectable character at a position
            MRZChecksumError: A check digit does not match
        """
        code = self.rebuild(text)
        logger.debug(f"Rebuilt MRZ: {code}")
        return self.parse(code)

    # ------------------------------------------------------------------
    # Layout reconstruction
    # ------------------------------------------------------------------

    def rebuild(self, text: str) -> str:
        """Map OCR text onto the fixed 3-line layout."""
        cfg = self.config
        cleaned = _INLINE_WHITESPACE.sub("", (text or "").upper())
        compact = cleaned.replace("\n", "")

        if len(compact) < cfg.min_text_length:
            raise MRZNotFoundError(f"text too short ({len(compact)} characters)")
        if compact.find(NAME_SEPARATOR) <= 0:
            raise MRZNotFoundError("name separator not found")

        lines = [line for line in cleaned.split("\n") if line]
        lines[0] = self._normalize_prefix(lines[0])
        if not lines[0].startswith(cfg.prefix):
            raise MRZLayoutError(f"document prefix {cfg.prefix} not found")

        lines = self._split_lines(lines)

        code: List[str] = []
        self._rebuild_document_line(lines[0], code)
        self._rebuild_dates_line(lines[1], code)
        self._rebuild_names_line(lines[2], code)
        return "".join(code)

    def _normalize_prefix(self, line: str) -> str:
        for misread, replacement in self.config.prefix_misreads:
            if line.startswith(misread):
                logger.debug(f"Prefix misread {misread!r} corrected")
                return replacement + line[len(misread):]
        return line

    def _split_lines(self, lines: List[str]) -> List[str]:
        """Three logical lines from however many physical lines were read."""
        if len(lines) >= 3:
            return lines[:3]
        length = self.config.line_length
        joined = "".join(lines)
        if len(joined) < self.code_length:
            raise MRZLayoutError(f"expected 3 lines, got {len(lines)}")
        return [joined[:length], joined[length:2 * length], joined[2 * length:]]

    def _rebuild_document_line(self, line: str, code: List[str]):
        """Prefix, document number digits, filler, check digit."""
        prefix = self.config.prefix
        separator = line.find(FILLER, len(prefix))
        if separator < 0 or separator + 1 >= len(line):
            raise MRZLayoutError("document number separator not found")

        code.extend(prefix)
        for index in range(len(prefix), separator):
            code.append(self._digit(line[index], len(code)))
        code.append(FILLER)
        code.append(self._digit(line[separator + 1], len(code)))

        if len(code) > self.config.line_length:
            raise MRZLayoutError("document number too long")
        self._pad(code, self.config.line_length)

    def _rebuild_dates_line(self, line: str, code: List[str]):
        """Birth date, gender, expiration date, nationality, composite check."""
        length = self.config.line_length
        if len(line) < 16:
            raise MRZLayoutError("second line too short")

        base = len(code)
        for index in range(0, 7):
            code.append(self._digit(line[index], base + index))
        code.append(line[7])
        for index in range(8, 15):
            code.append(self._digit(line[index], base + index))

        end = line.find(FILLER, 15)
        if end < 0:
            end = len(line) - 1
        for index in range(15, end):
            code.append(self._letter(line[index], base + index))

        if len(code) > 2 * length - 1:
            raise MRZLayoutError("nationality field too long")
        self._pad(code, 2 * length - 1)
        # Composite check kept verbatim so an unreadable glyph can be healed
        code.append(line[-1])

    def _rebuild_names_line(self, line: str, code: List[str]):
        base = len(code)
        for index, character in enumerate(line[:self.config.line_length]):
            corrected = as_name_character(character)
            if corrected is None:
                raise UnexpectedCharacterError(base + index, character)
            code.append(corrected)
        self._pad(code, self.code_length)

    @staticmethod
    def _digit(character: str, position: int) -> str:
        corrected = as_digit(character)
        if corrected is None:
            raise UnexpectedCharacterError(position, character)
        return corrected

    @staticmethod
    def _letter(character: str, position: int) -> str:
        corrected = as_letter(character)
        if corrected is None:
            raise UnexpectedCharacterError(position, character)
        return corrected

    @staticmethod
    def _pad(code: List[str], length: int):
        code.extend(FILLER * (length - len(code)))

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def parse(self, code: str) -> DocumentFields:
        """
        Verify a 90-character code and build the document fields

        Args:
            code: Code in the fixed layout (as returned by ``rebuild``)

        Returns:
            DocumentFields: Verified fields
        """
        cfg = self.config
        length = cfg.line_length
        if len(code) != self.code_length or not code.startswith(cfg.prefix):
            raise MRZLayoutError("code does not match the 3x30 layout")

        gender_position = length + 7
        composite_position = 2 * length - 1
        self._validate_alphabet(code, skip=(gender_position, composite_position))

        first, second, third = code[:length], code[length:2 * length], code[2 * length:]

        separator = first.find(FILLER, len(cfg.prefix))
        if separator < 0:
            raise MRZLayoutError("document number separator not found")
        document_field = first[len(cfg.prefix):separator]
        document_check = first[separator + 1]
        self._verify("document", document_field, document_check)

        birth_field, birth_check = second[0:6], second[6]
        self._verify("birth_date", birth_field, birth_check)

        gender = second[7]

        expiration_field, expiration_check = second[8:14], second[14]
        self._verify("expiration_date", expiration_field, expiration_check)

        composite_field = (document_field + FILLER + document_check + birth_field + birth_check
                           + expiration_field + expiration_check)
        expected = check_digit_char(composite_field)
        composite = code[composite_position]
        if composite.isdigit():
            if composite != expected:
                logger.warning(f"Composite checksum mismatch: expected {expected}, found {composite}")
                raise MRZChecksumError("composite", expected, composite)
        else:
            logger.info(f"Composite check digit unreadable ({composite!r}), using computed {expected}")
            code = code[:composite_position] + expected + code[composite_position + 1:]

        last_name, first_name = self._split_names(third)

        document_number = format_number(document_field)
        if document_number is None:
            raise MRZLayoutError("document number has no digits")

        reference = self.reference_date or date.today()
        birth_date = self._date("birth_date", birth_field, reference, accepts_future=False)
        expiration_date = self._date("expiration_date", expiration_field, reference, accepts_future=True)

        fields = DocumentFields(
            first_name=format_name(first_name),
            last_name=format_name(last_name),
            document_number=document_number,
            gender=gender,
            birth_date=birth_date,
            expiration_date=expiration_date,
            raw=code,
        )
        logger.info("✓ MRZ decoded successfully")
        logger.debug(f"  Fields: {fields.to_dict()}")
        return fields

    @staticmethod
    def _validate_alphabet(code: str, skip: Tuple[int, ...]):
        for position, character in enumerate(code):
            if position in skip:
                continue
            try:
                character_value(character)
            except ValueError:
                raise UnexpectedCharacterError(position, character)

    @staticmethod
    def _verify(field: str, value: str, check: str):
        expected = check_digit_char(value)
        if check != expected:
            logger.warning(f"{field} checksum mismatch: expected {expected}, found {check}")
            raise MRZChecksumError(field, expected, check)

    @staticmethod
    def _split_names(section: str) -> Tuple[str, str]:
        parts = section.split(NAME_SEPARATOR)
        if len(parts) < 2 or not parts[0].strip(FILLER):
            raise MRZLayoutError("name separator not found")
        return parts[0].replace(FILLER, " "), parts[1].replace(FILLER, " ")

    @staticmethod
    def _date(field: str, value: str, reference: date, accepts_future: bool) -> date:
        try:
            return decode_mrz_date(value, reference, accepts_future=accepts_future)
        except ValueError:
            raise MRZLayoutError(f"invalid {field.replace('_', ' ')} {value!r}")


class MRZExtractor:
    """Handles MRZ extraction from document photos: locate, OCR, decode"""

    def __init__(self, ocr_engine, locator, decoder: Optional[MRZDecoder] = None):
        """
        Initialize MRZ extractor

        Args:
            ocr_engine: OCREngine turning an image into text
            locator: RegionLocator finding the MRZ strip
            decoder: MRZDecoder (defaults if None)
        """
        logger.info("Initializing MRZExtractor")
        self.ocr_engine = ocr_engine
        self.locator = locator
        self.decoder = decoder or MRZDecoder()
        logger.info("MRZExtractor initialized successfully")

    def read_text(self, photo: np.ndarray) -> str:
        """
        OCR the MRZ strip, or the whole photo when no strip is located

        Returns:
            str: Raw OCR text

        Raises:
            MRZNotFoundError: If OCR returned nothing
        """
        candidate = self.locator.locate_mrz(photo)
        if candidate is None:
            logger.warning("MRZ region not located, reading full photo")
            image = primitives.to_grayscale(photo)
        else:
            image = candidate.image

        text = self.ocr_engine.read_text(image)
        if not text or not text.strip():
            logger.warning("OCR returned no text")
            raise MRZNotFoundError("OCR returned no text")
        logger.debug(f"OCR text: {text!r}")
        return text

    def extract(self, photo: np.ndarray) -> DocumentFields:
        """
        Extract MRZ data from a photo

        Args:
            photo: numpy.ndarray document photo

        Returns:
            DocumentFields: Verified fields

        Raises:
            MRZError: If no valid MRZ could be read
        """
        logger.info("Starting MRZ extraction...")
        return self.decoder.decode(self.read_text(photo))
