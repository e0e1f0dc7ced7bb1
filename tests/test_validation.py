"""
Unit Tests for RecordValidator

Every rule is evaluated independently and reported with its row number.
"""

from examdesk.services.validation import RecordValidator, parse_exam_date

from conftest import make_record


class TestRecordValidator:
    """Tests for structural and domain validation of import records."""

    def setup_method(self):
        self.validator = RecordValidator()

    def test_validate_when_record_valid_then_no_errors(self):
        assert self.validator.validate(make_record(), 1) == []

    def test_validate_when_79_answers_then_reports_exact_count(self):
        errors = self.validator.validate(make_record(answers=["A"] * 79), 1)
        assert errors == ["Row 1: must have exactly 80 answers"]

    def test_validate_when_answers_not_list_then_reports_type(self):
        record = make_record()
        record["answers"] = "ABCDE"
        assert self.validator.validate(record, 2) == ["Row 2: answers must be a list"]

    def test_validate_when_answers_missing_then_reports_type(self):
        record = make_record()
        del record["answers"]
        assert self.validator.validate(record, 1) == ["Row 1: answers must be a list"]

    def test_validate_when_invalid_alternatives_then_each_reported_with_position(self):
        answers = ["A"] * 80
        answers[4] = "F"
        answers[79] = ""
        errors = self.validator.validate(make_record(answers=answers), 7)
        assert errors == [
            "Row 7, answer 5: must be A, B, C, D or E",
            "Row 7, answer 80: must be A, B, C, D or E",
        ]

    def test_validate_when_lowercase_alternative_then_rejected(self):
        answers = ["A"] * 80
        answers[0] = "a"
        assert len(self.validator.validate(make_record(answers=answers), 1)) == 1

    def test_validate_when_national_id_missing_then_required(self):
        errors = self.validator.validate(make_record(national_id=""), 3)
        assert "Row 3: candidate national ID is required" in errors

    def test_validate_when_national_id_malformed_then_pattern_error(self):
        for bad in ["1234567", "12345678901", "1234567A", "12345678\n"]:
            errors = self.validator.validate(
                make_record(national_id=bad, institutional_email="x@cepr.unsa.pe"), 1
            )
            assert errors == ["Row 1: national ID must have between 8 and 10 digits"], bad

    def test_validate_when_national_id_has_ten_digits_then_valid(self):
        record = make_record(national_id="1234567890")
        assert self.validator.validate(record, 1) == []

    def test_validate_when_names_blank_then_each_reported(self):
        record = make_record(last_names="   ", first_names="", program_of_application=None)
        errors = self.validator.validate(record, 4)
        assert errors == [
            "Row 4: candidate last names are required",
            "Row 4: candidate first names are required",
            "Row 4: program of application is required",
        ]

    def test_validate_when_email_other_domain_then_rejected(self):
        errors = self.validator.validate(make_record(institutional_email="rosa@gmail.com"), 1)
        assert errors == ["Row 1: email must end with @cepr.unsa.pe"]

    def test_validate_when_email_missing_then_required(self):
        errors = self.validator.validate(make_record(institutional_email=""), 1)
        assert errors == ["Row 1: institutional email is required"]

    def test_validate_when_exam_date_missing_then_required(self):
        record = make_record()
        record["exam_date"] = ""
        assert self.validator.validate(record, 1) == ["Row 1: exam date is required"]

    def test_validate_when_exam_date_invalid_then_rejected(self):
        record = make_record()
        record["exam_date"] = "2025-02-30"
        assert self.validator.validate(record, 1) == ["Row 1: exam date is not a valid date"]

    def test_validate_when_many_violations_then_all_reported(self):
        record = {
            "candidate": {"national_id": "12", "institutional_email": "x@y.com"},
            "answers": ["A"] * 10,
            "exam_date": "not a date",
        }
        errors = self.validator.validate(record, 9)
        assert len(errors) == 7
        assert all(e.startswith("Row 9") for e in errors)

    def test_validate_when_not_a_mapping_then_single_error(self):
        assert self.validator.validate(["A"] * 80, 5) == ["Row 5: record must be an object"]

    def test_validate_when_three_records_with_one_violation_each_then_three_errors(self):
        records = [
            make_record(national_id="123"),
            make_record(institutional_email="a@b.pe"),
            make_record(answers=["A"] * 81),
        ]
        errors = []
        for row, record in enumerate(records, start=1):
            errors.extend(self.validator.validate(record, row))
        assert len(errors) == 3
        assert [e.split(":")[0] for e in errors] == ["Row 1", "Row 2", "Row 3"]


class TestParseExamDate:
    def test_parse_when_date_only_then_midnight(self):
        parsed = parse_exam_date("2025-03-16")
        assert (parsed.year, parsed.month, parsed.day, parsed.hour) == (2025, 3, 16, 0)

    def test_parse_when_zulu_suffix_then_utc(self):
        parsed = parse_exam_date("2025-03-16T14:30:00Z")
        assert parsed.utcoffset().total_seconds() == 0

    def test_parse_when_not_string_then_none(self):
        assert parse_exam_date(20250316) is None

    def test_parse_when_minutes_only_then_accepted(self):
        parsed = parse_exam_date("2025-03-16T14:30")
        assert (parsed.hour, parsed.minute, parsed.second) == (14, 30, 0)

    def test_parse_when_space_separator_then_accepted(self):
        assert parse_exam_date("2025-03-16 14:30:15").second == 15

    def test_parse_when_any_fraction_length_then_padded_to_microseconds(self):
        assert parse_exam_date("2025-03-16T14:30:15.1").microsecond == 100000
        assert parse_exam_date("2025-03-16T14:30:15.12345").microsecond == 123450
        assert parse_exam_date("2025-03-16T14:30:15.123456Z").microsecond == 123456

    def test_parse_when_negative_offset_then_kept(self):
        parsed = parse_exam_date("2025-03-16T09:00:00-05:00")
        assert parsed.utcoffset().total_seconds() == -5 * 3600

    def test_parse_when_surrounding_spaces_then_ignored(self):
        assert parse_exam_date("  2025-03-16  ").day == 16

    def test_parse_when_outside_accepted_formats_then_none(self):
        for text in [
            "20250316",
            "2025-03-16T14",
            "16/03/2025",
            "2025-03-16T14:30:00.1234567",
            "2025-03-16T14:30.5",
            "2025-03-16Z",
            "2025-03-16T14:30:00+0500",
            "2025-13-01",
        ]:
            assert parse_exam_date(text) is None, text
