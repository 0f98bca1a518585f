"""
Tests for MRZ check digits, character correction and decoding.
"""
from datetime import date

import numpy as np
import pytest

from error_handlers import (
    MRZChecksumError,
    MRZLayoutError,
    MRZNotFoundError,
    UnexpectedCharacterError,
)
from layer1_imaging import RegionCandidate, RotatedRectangle
from layer3_mrz import MRZDecoder, MRZExtractor, compute_check_digit, format_name, format_number
from layer3_mrz.checksum import character_value
from layer3_mrz.correction import as_digit, as_letter, as_name_character
from layer3_mrz.fields import decode_mrz_date


@pytest.fixture
def decoder(reference_date):
    return MRZDecoder(reference_date=reference_date)


def replace_line(lines, index, line):
    lines = list(lines)
    lines[index] = line
    return "\n".join(lines)


class TestCheckDigit:
    """Test the 7-3-1 weighted check digit."""

    @pytest.mark.parametrize("field,expected", [
        ("L898902C3", 6),
        ("740812", 2),
        ("120415", 9),
        ("34567890", 2),
        ("", 0),
    ])
    def test_known_values(self, field, expected):
        """Test published and hand-computed check digits."""
        assert compute_check_digit(field) == expected

    def test_filler_counts_zero(self):
        """Test filler characters do not change the sum."""
        assert compute_check_digit("12<<") == compute_check_digit("1200")

    def test_single_digit_substitution_detected(self):
        """Test every single-digit change of a numeric field changes the check digit."""
        field = "34567890"
        expected = compute_check_digit(field)
        for position, original in enumerate(field):
            for digit in "0123456789":
                if digit == original:
                    continue
                altered = field[:position] + digit + field[position + 1:]
                assert compute_check_digit(altered) != expected

    def test_rejects_foreign_character(self):
        """Test characters outside the MRZ alphabet raise ValueError."""
        with pytest.raises(ValueError):
            character_value("a")


class TestCorrection:
    """Test position-class character correction."""

    def test_letters_in_digit_slot(self):
        """Test look-alike letters become digits."""
        assert [as_digit(c) for c in "OIZSGB"] == list("012568")

    def test_digits_in_letter_slot(self):
        """Test look-alike digits become letters."""
        assert [as_letter(c) for c in "015"] == list("OIS")

    def test_uncorrectable(self):
        """Test characters without a look-alike are reported as None."""
        assert as_digit("X") is None
        assert as_letter("3") is None
        assert as_name_character("%") is None

    def test_filler_kept(self):
        """Test the filler survives digit and name correction."""
        assert as_name_character("<") == "<"
        assert as_digit("<") == "<"


class TestFormatting:
    """Test name, number and date formatting."""

    @pytest.mark.parametrize("raw,expected", [
        ("JUAN CARLOS", "Juan Carlos"),
        ("O'BRIEN", "O'Brien"),
        ("ST.JOHN", "St.John"),
        ("  PEREZ  ", "Perez"),
    ])
    def test_format_name(self, raw, expected):
        """Test title casing after whitespace, dots and apostrophes."""
        assert format_name(raw) == expected

    def test_format_number(self):
        """Test non-digits are dropped."""
        assert format_number("00123 456-78") == 12345678
        assert format_number("ABC") is None

    def test_birth_date_in_past_century(self):
        """Test a two-digit year after the reference year is last century."""
        assert decode_mrz_date("850315", date(2026, 1, 1)) == date(1985, 3, 15)
        assert decode_mrz_date("200101", date(2026, 1, 1)) == date(2020, 1, 1)

    def test_expiration_may_be_future(self):
        """Test expiration years stay in the reference century."""
        assert decode_mrz_date("990101", date(2026, 1, 1), accepts_future=True) == date(2099, 1, 1)

    def test_impossible_date(self):
        """Test month 13 raises ValueError."""
        with pytest.raises(ValueError):
            decode_mrz_date("851315", date(2026, 1, 1))


class TestDecoder:
    """Test OCR text to document fields."""

    def test_clean_text(self, decoder, mrz_text):
        """Test a clean three-line MRZ decodes to every field."""
        fields = decoder.decode(mrz_text)
        assert fields.last_name == "Perez"
        assert fields.first_name == "Juan Carlos"
        assert fields.document_number == 34567890
        assert fields.gender == "M"
        assert fields.birth_date == date(1985, 3, 15)
        assert fields.expiration_date == date(2031, 5, 20)
        assert fields.national_identification_number is None
        assert len(fields.raw) == 90

    def test_to_dict(self, decoder, mrz_text):
        """Test the serialized form uses ISO dates and hides the raw code."""
        data = decoder.decode(mrz_text).to_dict()
        assert data['birth_date'] == "1985-03-15"
        assert data['expiration_date'] == "2031-05-20"
        assert 'raw' not in data

    def test_inline_whitespace_ignored(self, decoder, mrz_lines):
        """Test stray spaces and lowercase OCR output are tolerated."""
        noisy = "\n".join(" ".join(line[i:i + 5] for i in range(0, 30, 5)) for line in mrz_lines)
        assert decoder.decode(noisy.lower()).document_number == 34567890

    def test_blank_lines_ignored(self, decoder, mrz_lines):
        """Test empty lines between MRZ lines are skipped."""
        text = "\n\n".join(mrz_lines) + "\n"
        assert decoder.decode(text).last_name == "Perez"

    def test_single_line(self, decoder, mrz_lines):
        """Test all 90 characters on one line are split into three."""
        assert decoder.decode("".join(mrz_lines)).first_name == "Juan Carlos"

    @pytest.mark.parametrize("misread", ["1ID", "1D"])
    def test_prefix_misread(self, decoder, mrz_lines, misread):
        """Test known misreads of the document prefix are repaired."""
        line = misread + mrz_lines[0][2:]
        assert decoder.decode(replace_line(mrz_lines, 0, line)).document_number == 34567890

    def test_letter_in_document_number(self, decoder, mrz_lines):
        """Test an O read in the document number counts as zero."""
        line = mrz_lines[0].replace("34567890", "3456789O")
        assert decoder.decode(replace_line(mrz_lines, 0, line)).document_number == 34567890

    def test_digit_in_name(self, decoder, mrz_lines):
        """Test a zero read in a name becomes the letter O."""
        line = "G0MEZ<<JUAN<CARLOS" + "<" * 12
        fields = decoder.decode(replace_line(mrz_lines, 2, line))
        assert fields.last_name == "Gomez"
        assert fields.raw[60:65] == "GOMEZ"

    def test_unreadable_composite_is_healed(self, decoder, mrz_lines):
        """Test a non-digit composite check is replaced by the computed one."""
        line = mrz_lines[1][:-1] + "X"
        fields = decoder.decode(replace_line(mrz_lines, 1, line))
        assert fields.raw[59] == "4"

    def test_wrong_composite(self, decoder, mrz_lines):
        """Test a wrong composite digit is rejected."""
        line = mrz_lines[1][:-1] + "5"
        with pytest.raises(MRZChecksumError) as excinfo:
            decoder.decode(replace_line(mrz_lines, 1, line))
        assert excinfo.value.error_code == "COMPOSITE_CHECKSUM_FAILED"
        assert excinfo.value.field == "composite"

    def test_wrong_document_check(self, decoder, mrz_lines):
        """Test a wrong document number check digit is rejected."""
        line = mrz_lines[0].replace("<2", "<3", 1)
        with pytest.raises(MRZChecksumError) as excinfo:
            decoder.decode(replace_line(mrz_lines, 0, line))
        assert excinfo.value.error_code == "DOCUMENT_CHECKSUM_FAILED"

    def test_wrong_birth_date_check(self, decoder, mrz_lines):
        """Test a wrong birth date check digit is rejected."""
        line = "8503151" + mrz_lines[1][7:]
        with pytest.raises(MRZChecksumError) as excinfo:
            decoder.decode(replace_line(mrz_lines, 1, line))
        assert excinfo.value.error_code == "BIRTH_DATE_CHECKSUM_FAILED"

    def test_wrong_expiration_check(self, decoder, mrz_lines):
        """Test a wrong expiration date check digit is rejected."""
        line = mrz_lines[1][:14] + "6" + mrz_lines[1][15:]
        with pytest.raises(MRZChecksumError) as excinfo:
            decoder.decode(replace_line(mrz_lines, 1, line))
        assert excinfo.value.error_code == "EXPIRATION_DATE_CHECKSUM_FAILED"

    def test_unexpected_character_position(self, decoder, mrz_lines):
        """Test an uncorrectable name character reports its code position."""
        line = "PER%Z<<JUAN<CARLOS" + "<" * 12
        with pytest.raises(UnexpectedCharacterError) as excinfo:
            decoder.decode(replace_line(mrz_lines, 2, line))
        assert excinfo.value.position == 63
        assert excinfo.value.character == "%"

    def test_unexpected_character_in_date(self, decoder, mrz_lines):
        """Test an uncorrectable date character is reported."""
        line = "85X3150" + mrz_lines[1][7:]
        with pytest.raises(UnexpectedCharacterError) as excinfo:
            decoder.decode(replace_line(mrz_lines, 1, line))
        assert excinfo.value.position == 32

    def test_filler_in_date(self, decoder, mrz_lines):
        """Test a filler survives in a date slot and fails date decoding."""
        line = "85<3150" + mrz_lines[1][7:]
        with pytest.raises(MRZLayoutError):
            decoder.decode(replace_line(mrz_lines, 1, line))

    def test_too_short(self, decoder):
        """Test short text is reported as no MRZ."""
        with pytest.raises(MRZNotFoundError):
            decoder.decode("IDARG123<<")

    def test_no_name_separator(self, decoder):
        """Test long text without a double filler is reported as no MRZ."""
        with pytest.raises(MRZNotFoundError):
            decoder.decode("A" * 60)

    def test_empty_text(self, decoder):
        """Test None and empty OCR output are reported as no MRZ."""
        with pytest.raises(MRZNotFoundError):
            decoder.decode(None)

    def test_wrong_prefix(self, decoder, mrz_lines):
        """Test a document of another type is rejected."""
        line = "PAUSA" + mrz_lines[0][5:]
        with pytest.raises(MRZLayoutError):
            decoder.decode(replace_line(mrz_lines, 0, line))

    def test_missing_line(self, decoder, mrz_lines):
        """Test two short lines do not make an MRZ."""
        with pytest.raises(MRZLayoutError):
            decoder.decode("\n".join(mrz_lines[:2]))

    def test_errors_share_base(self, decoder):
        """Test every decoder failure is a scanner error with a code."""
        with pytest.raises(MRZNotFoundError) as excinfo:
            decoder.decode("")
        assert excinfo.value.to_dict()['error_code'] == "MRZ_NOT_FOUND"


class FakeLocator:
    def __init__(self, candidate=None):
        self.candidate = candidate

    def locate_mrz(self, photo):
        return self.candidate


class TestMRZExtractor:
    """Test the locate, OCR and decode pipeline."""

    def test_falls_back_to_full_photo(self, fakes, mrz_text, reference_date):
        """Test OCR reads the grayscale photo when no strip is located."""
        ocr = fakes.OCR(mrz_text)
        extractor = MRZExtractor(ocr, FakeLocator(), MRZDecoder(reference_date=reference_date))
        photo = np.full((60, 80, 3), 200, dtype=np.uint8)
        fields = extractor.extract(photo)
        assert fields.document_number == 34567890
        assert len(ocr.images) == 1
        assert ocr.images[0].shape == (60, 80)

    def test_reads_located_strip(self, fakes, mrz_text, reference_date):
        """Test OCR reads the located strip image."""
        strip = np.zeros((20, 100), dtype=np.uint8)
        candidate = RegionCandidate(image=strip, rect=RotatedRectangle(50, 10, 100, 20, 0))
        ocr = fakes.OCR(mrz_text)
        extractor = MRZExtractor(ocr, FakeLocator(candidate), MRZDecoder(reference_date=reference_date))
        extractor.extract(np.zeros((60, 80, 3), dtype=np.uint8))
        assert ocr.images[0] is strip

    def test_empty_ocr(self, fakes):
        """Test blank OCR output is reported as no MRZ."""
        extractor = MRZExtractor(fakes.OCR("  \n"), FakeLocator())
        with pytest.raises(MRZNotFoundError):
            extractor.extract(np.zeros((60, 80, 3), dtype=np.uint8))
