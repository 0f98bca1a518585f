"""
Layer 3 — PDF417 Extraction
Component: PDF417 field parser and extractor
Responsibility: Classify '@'-delimited barcode payloads and extract typed document fields
"""
import re
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import numpy as np

from error_handlers import BarcodeFormatError, BarcodeNotFoundError, UnrecognizedSchemaError
from layer3_mrz.fields import DocumentFields, format_name, format_number

logger = logging.getLogger(__name__)

DELIMITER = "@"

NAME = r"(?:[a-zA-Z]|\s|`)+"
NUMBER = r"\d+"
GENDER = r"(?:M|F)"
DATE = r"\d\d/\d\d/\d{4}"
UPPER = r"[A-Z]"
DIGIT = r"\d"


@dataclass(frozen=True)
class BarcodeSchema:
    """Field layout of one payload variant (indices into the '@'-split payload)."""
    name: str
    pattern: re.Pattern
    national_id: int
    last_name: int
    first_name: int
    gender: int
    document_number: int
    birth_date: int


SCHEMA_A = BarcodeSchema(
    name="A",
    pattern=re.compile("^" + "@".join([NUMBER, NAME, NAME, GENDER, NUMBER, UPPER, DATE])),
    national_id=0,
    last_name=1,
    first_name=2,
    gender=3,
    document_number=4,
    birth_date=6,
)

SCHEMA_B = BarcodeSchema(
    name="B",
    pattern=re.compile(
        "^@" + NUMBER + r"\s*@" + "@".join([UPPER, DIGIT, NAME, NAME, NAME, DATE, GENDER]) + "@"
    ),
    national_id=10,
    last_name=4,
    first_name=5,
    gender=8,
    document_number=1,
    birth_date=7,
)

SCHEMAS = (SCHEMA_A, SCHEMA_B)


def classify(payload: str) -> Optional[BarcodeSchema]:
    """Schema whose pattern matches the start of ``payload``, or None."""
    for schema in SCHEMAS:
        if schema.pattern.match(payload):
            return schema
    return None


def decode_barcode_date(text: str) -> date:
    """dd/mm/yyyy"""
    return datetime.strptime(text, "%d/%m/%Y").date()


class PDF417Parser:
    """Parses raw PDF417 payloads from national identity cards"""

    def parse(self, payload: str) -> DocumentFields:
        """
        Parse a barcode payload

        Args:
            payload: Raw decoded text

        Returns:
            DocumentFields: Extracted fields (no expiration date in either schema)

        Raises:
            UnrecognizedSchemaError: If neither schema matches
            BarcodeFormatError: If a matched field cannot be converted
        """
        payload = (payload or "").strip()
        schema = classify(payload)
        if schema is None:
            logger.warning(f"PDF417 payload could not be classified ({len(payload)} chars)")
            raise UnrecognizedSchemaError(payload)

        logger.debug(f"PDF417 payload matched schema {schema.name}")
        fields = payload.split(DELIMITER)

        document_number = format_number(self._field(fields, schema.document_number, "document_number"))
        if document_number is None:
            raise BarcodeFormatError("document_number", fields[schema.document_number])

        national_id_text = self._field(fields, schema.national_id, "national_identification_number")
        national_id = format_number(national_id_text)
        if national_id is None:
            raise BarcodeFormatError("national_identification_number", national_id_text)

        birth_text = self._field(fields, schema.birth_date, "birth_date")
        try:
            birth_date = decode_barcode_date(birth_text)
        except ValueError:
            raise BarcodeFormatError("birth_date", birth_text)

        result = DocumentFields(
            first_name=format_name(fields[schema.first_name]),
            last_name=format_name(fields[schema.last_name]),
            document_number=document_number,
            gender=fields[schema.gender],
            birth_date=birth_date,
            national_identification_number=national_id,
            raw=payload,
        )
        logger.info(f"✓ PDF417 payload parsed (schema {schema.name})")
        return result

    @staticmethod
    def _field(fields, index: int, name: str) -> str:
        if index >= len(fields):
            raise BarcodeFormatError(name, None)
        return fields[index]


class PDF417Extractor:
    """Handles PDF417 extraction from document photos: locate, decode, parse"""

    def __init__(self, barcode_reader, locator, parser: Optional[PDF417Parser] = None):
        """
        Initialize PDF417 extractor

        Args:
            barcode_reader: BarcodeReader turning an image into a payload
            locator: RegionLocator finding barcode blobs
            parser: PDF417Parser (defaults if None)
        """
        self.barcode_reader = barcode_reader
        self.locator = locator
        self.parser = parser or PDF417Parser()
        logger.info("PDF417Extractor initialized")

    def extract(self, photo: np.ndarray) -> DocumentFields:
        """
        Decode and parse the first readable barcode in the photo

        Located candidates are tried largest first, then the full photo.

        Raises:
            BarcodeNotFoundError: If no image region decoded to a payload
            BarcodeError: If payloads were decoded but none parsed
        """
        logger.info("Starting PDF417 extraction...")
        images = [candidate.image for candidate in self.locator.locate_pdf417(photo)]
        images.append(photo)

        last_error = None
        for index, image in enumerate(images):
            payload = self.barcode_reader.read(image)
            if not payload:
                continue
            logger.debug(f"Payload decoded from image {index}")
            try:
                return self.parser.parse(payload)
            except (UnrecognizedSchemaError, BarcodeFormatError) as e:
                last_error = e

        if last_error is not None:
            raise last_error
        logger.warning("No PDF417 payload decoded")
        raise BarcodeNotFoundError()
