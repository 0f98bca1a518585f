"""
Tests for PDF417 payload classification, parsing and extraction.
"""
from datetime import date

import numpy as np
import pytest

from error_handlers import BarcodeFormatError, BarcodeNotFoundError, UnrecognizedSchemaError
from layer1_imaging import RegionCandidate, RotatedRectangle
from layer2_readjustment import RegionLocator
from layer3_pdf417 import PDF417Extractor, PDF417Parser, SCHEMA_A, SCHEMA_B, classify


@pytest.fixture
def parser():
    return PDF417Parser()


class TestClassify:
    """Test schema classification."""

    def test_schema_a(self, schema_a_payload):
        """Test a payload starting with the national id is schema A."""
        assert classify(schema_a_payload) is SCHEMA_A

    def test_schema_b(self, schema_b_payload):
        """Test a payload starting with the delimiter is schema B."""
        assert classify(schema_b_payload) is SCHEMA_B

    def test_schemas_are_exclusive(self, schema_a_payload, schema_b_payload):
        """Test no payload matches both patterns."""
        for payload in (schema_a_payload, schema_b_payload):
            matches = [schema for schema in (SCHEMA_A, SCHEMA_B) if schema.pattern.match(payload)]
            assert len(matches) == 1

    @pytest.mark.parametrize("payload", [
        "",
        "hello world",
        "123@PEREZ@JUAN@X@456@A@15/03/1985",
        "@123@A@1@PEREZ@JUAN@ARG@15/03/1985@M",
    ])
    def test_unknown(self, payload):
        """Test malformed payloads match no schema."""
        assert classify(payload) is None


class TestParser:
    """Test field extraction."""

    def test_schema_a_fields(self, parser, schema_a_payload):
        """Test every field of a schema A payload."""
        fields = parser.parse(schema_a_payload)
        assert fields.last_name == "Perez"
        assert fields.first_name == "Juan Carlos"
        assert fields.gender == "M"
        assert fields.document_number == 34567890
        assert fields.birth_date == date(1985, 3, 15)
        assert fields.national_identification_number == 123456789
        assert fields.expiration_date is None

    def test_schema_b_fields(self, parser, schema_b_payload):
        """Test every field of a schema B payload."""
        fields = parser.parse(schema_b_payload)
        assert fields.last_name == "Perez"
        assert fields.first_name == "Juan Carlos"
        assert fields.gender == "M"
        assert fields.document_number == 34567890
        assert fields.birth_date == date(1985, 3, 15)
        assert fields.national_identification_number == 123456789

    def test_surrounding_whitespace(self, parser, schema_a_payload):
        """Test leading and trailing whitespace is ignored."""
        fields = parser.parse("  " + schema_a_payload + "\r\n")
        assert fields.raw == schema_a_payload

    def test_unrecognized(self, parser):
        """Test an unknown payload raises UnrecognizedSchemaError."""
        with pytest.raises(UnrecognizedSchemaError) as excinfo:
            parser.parse("not a barcode")
        assert excinfo.value.error_code == "PDF417_UNRECOGNIZED_SCHEMA"
        assert excinfo.value.message == "Unrecognized pdf417 type"

    def test_impossible_birth_date(self, parser):
        """Test a date that matches the pattern but does not exist."""
        payload = "00123456789@PEREZ@JUAN@M@34567890@A@31/02/1985"
        with pytest.raises(BarcodeFormatError) as excinfo:
            parser.parse(payload)
        assert excinfo.value.details['field'] == "birth_date"

    def test_schema_b_missing_national_id(self, parser):
        """Test a truncated schema B payload is a format error."""
        payload = "@34567890 @A@1@PEREZ@JUAN@ARGENTINA@15/03/1985@M@"
        with pytest.raises(BarcodeFormatError) as excinfo:
            parser.parse(payload)
        assert excinfo.value.details['field'] == "national_identification_number"


class FakeLocator:
    def __init__(self, candidates=()):
        self.candidates = list(candidates)

    def locate_pdf417(self, photo):
        return self.candidates


class TestPDF417Extractor:
    """Test the locate, decode and parse pipeline."""

    def test_full_photo_fallback(self, fakes, schema_a_payload, blank_photo):
        """Test the whole photo is decoded when no blob is located."""
        reader = fakes.BarcodeReader(schema_a_payload)
        fields = PDF417Extractor(reader, FakeLocator()).extract(blank_photo)
        assert fields.document_number == 34567890
        assert reader.images[0] is blank_photo

    def test_candidates_before_photo(self, fakes, schema_b_payload, blank_photo):
        """Test located blobs are tried before the full photo."""
        photo = blank_photo.copy()
        photo[250:350, 250:550] = 0
        reader = fakes.BarcodeReader(None, schema_b_payload)
        fields = PDF417Extractor(reader, RegionLocator()).extract(photo)
        assert fields.national_identification_number == 123456789
        assert len(reader.images) == 2
        assert reader.images[0].shape != photo.shape
        assert reader.images[1] is photo

    def test_nothing_decoded(self, fakes, blank_photo):
        """Test BarcodeNotFoundError when no image decodes."""
        with pytest.raises(BarcodeNotFoundError):
            PDF417Extractor(fakes.BarcodeReader(None), FakeLocator()).extract(blank_photo)

    def test_decoded_but_unparseable(self, fakes, blank_photo):
        """Test the parse failure is reported when a payload was decoded."""
        extractor = PDF417Extractor(fakes.BarcodeReader("garbage"), FakeLocator())
        with pytest.raises(UnrecognizedSchemaError):
            extractor.extract(blank_photo)

    def test_later_image_can_succeed(self, fakes, schema_a_payload):
        """Test an unparseable candidate does not stop the search."""
        candidate = RegionCandidate(image=np.zeros((10, 40), dtype=np.uint8),
                                    rect=RotatedRectangle(20, 5, 40, 10, 0))
        reader = fakes.BarcodeReader("garbage", schema_a_payload)
        photo = np.zeros((50, 50, 3), dtype=np.uint8)
        fields = PDF417Extractor(reader, FakeLocator([candidate])).extract(photo)
        assert fields.raw == schema_a_payload
