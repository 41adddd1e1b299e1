"""
Unit tests for the MIME normalizer: header access, address lists, date
validation and shallow subpart lookup.
"""

import pytest
from app.services.email_errors import InvalidDateError, ParsingError
from app.services.mime import (
    extract_addresses,
    find_subpart,
    last_address,
    parse_mime,
    rfc2822_timestamp,
    validate_rfc2822_date,
)


NESTED_MIME = (
    "MIME-Version: 1.0\n"
    "Date: Tue, 31 May 2022 15:23:12 -0400\n"
    "From: someone@example.org\n"
    "To: person1@example.org\n"
    "Content-Type: multipart/mixed; boundary=outer\n"
    "\n"
    "--outer\n"
    "Content-Type: multipart/alternative; boundary=inner\n"
    "\n"
    "--inner\n"
    "Content-Type: text/html\n"
    "\n"
    "<html><body>NESTED</body></html>\n"
    "--inner--\n"
    "--outer\n"
    "Content-Type: text/plain; charset=UTF-8\n"
    "\n"
    "TOP LEVEL\n"
    "--outer--\n"
)


# ---------------------------------------------------------------------------
# parse_mime
# ---------------------------------------------------------------------------

class TestParseMime:
    def test_empty_input(self):
        with pytest.raises(ParsingError) as exc_info:
            parse_mime("")
        assert exc_info.value.context == "Content"

    def test_input_without_headers(self):
        with pytest.raises(ParsingError) as exc_info:
            parse_mime("this is not an email")
        assert exc_info.value.context == "Content"

    def test_bytes_input(self):
        message = parse_mime(b"To: a@example.org\nContent-Type: text/plain\n\nhi\n")
        assert message.header("To") == "a@example.org"

    def test_header_lookup_is_case_insensitive_and_unfolded(self):
        message = parse_mime(
            "subject: a very long\n subject line\nTo: a@example.org\n\nbody\n"
        )
        assert message.header("Subject") == "a very long subject line"
        assert message.header("Cc") is None

    def test_subparts_start_with_the_message_itself(self):
        message = parse_mime(NESTED_MIME)
        parts = list(message.subparts())
        assert parts[0] is message
        assert len(parts) == 3

    def test_body_is_decoded(self):
        message = parse_mime(
            "To: a@example.org\n"
            "Content-Type: text/plain; charset=UTF-8\n"
            "Content-Transfer-Encoding: base64\n"
            "\n"
            "JDEyMC4wMA==\n"
        )
        assert message.body() == "$120.00"

    def test_8bit_text_body_keeps_non_ascii_characters(self):
        message = parse_mime(
            "To: a@example.org\n"
            "Content-Type: text/plain; charset=UTF-8\n"
            "Content-Transfer-Encoding: 8bit\n"
            "\n"
            "CAFÉ €URO\n"
        )
        assert message.body() == "CAFÉ €URO\n"

    def test_8bit_bytes_body_uses_declared_charset(self):
        message = parse_mime(
            b"To: a@example.org\n"
            b"Content-Type: text/plain; charset=ISO-8859-1\n"
            b"Content-Transfer-Encoding: 8bit\n"
            b"\n"
            b"CAF\xc9\n"
        )
        assert message.body() == "CAFÉ\n"

    def test_raw_utf8_header_is_readable(self):
        message = parse_mime("To: a@example.org\nSubject: Reçu de paiement\n\nbody\n")
        assert message.header("Subject") == "Reçu de paiement"


class TestFindSubpart:
    def test_matches_content_type_with_parameters(self):
        message = parse_mime(NESTED_MIME)
        part = find_subpart(message, "text/plain")
        assert part is not None
        assert part.body() == "TOP LEVEL"

    def test_grandchildren_are_not_searched(self):
        message = parse_mime(NESTED_MIME)
        assert find_subpart(message, "text/html") is None

    def test_single_part_message_matches_itself(self):
        message = parse_mime("To: a@example.org\nContent-Type: text/plain\n\nhi\n")
        assert find_subpart(message, "text/plain") is message

    def test_no_match(self):
        message = parse_mime("To: a@example.org\nContent-Type: text/plain\n\nhi\n")
        assert find_subpart(message, "image/png") is None


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

class TestExtractAddresses:
    def test_display_names_are_dropped_and_lowercased(self):
        assert extract_addresses("Some One<SOMEONE@example.org>") == ["someone@example.org"]

    def test_order_is_preserved(self):
        assert extract_addresses("A <a@x.org>, b@y.org") == ["a@x.org", "b@y.org"]

    def test_group_syntax_is_flattened(self):
        assert extract_addresses("team: a@x.org, b@x.org;") == ["a@x.org", "b@x.org"]

    def test_empty_header(self):
        with pytest.raises(ParsingError):
            extract_addresses("")


class TestLastAddress:
    def test_last_listed_address_wins(self):
        message = parse_mime("To: first@x.org, Second <SECOND@x.org>\n\nbody\n")
        assert last_address(message, "To") == "second@x.org"

    def test_missing_header_names_the_header(self):
        message = parse_mime("To: a@x.org\n\nbody\n")
        with pytest.raises(ParsingError) as exc_info:
            last_address(message, "From")
        assert exc_info.value.context == "From"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

class TestValidateRfc2822Date:
    def test_valid_date_is_unchanged(self):
        value = "Tue, 31 May 2022 15:23:12 -0400"
        assert validate_rfc2822_date(value) == value

    def test_obsolete_zone_comment_is_removed(self):
        assert (
            validate_rfc2822_date("Tue, 31 May 2022 15:23:12 -0400 (EST)")
            == "Tue, 31 May 2022 15:23:12 -0400"
        )

    def test_missing_zone_is_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("Tue, 31 May 2022 15:23:12")

    def test_unknown_offset_is_accepted(self):
        value = "Tue, 31 May 2022 19:23:12 -0000"
        assert validate_rfc2822_date(value) == value
        assert rfc2822_timestamp(value) == (1654024992, 0)

    def test_out_of_range_day_is_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("Tue, 32 May 2022 15:23:12 -0400")

    def test_out_of_range_zone_is_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("Tue, 31 May 2022 15:23:12 +9999")

    def test_zone_minutes_over_59_are_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("Tue, 31 May 2022 15:23:12 +0160")

    def test_trailing_text_is_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("31 May 2022 15:23:12 -0400 garbage")

    def test_weekday_must_match_the_date(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("Fri, 31 May 2022 15:23:12 -0400")

    def test_month_before_day_is_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("May 31 2022 15:23:12 -0400")

    def test_two_digit_year_is_rejected(self):
        with pytest.raises(InvalidDateError):
            validate_rfc2822_date("Tue, 31 May 22 15:23:12 -0400")

    def test_weekday_and_seconds_are_optional(self):
        value = "31 May 2022 15:23 -0400"
        assert validate_rfc2822_date(value) == value
        assert rfc2822_timestamp(value) == (1654024980, -14400)

    def test_obsolete_zone_name_is_accepted(self):
        assert rfc2822_timestamp("Tue, 31 May 2022 15:23:12 EDT") == (1654024992, -14400)
        assert rfc2822_timestamp("Tue, 31 May 2022 19:23:12 GMT") == (1654024992, 0)

    def test_garbage_is_rejected(self):
        with pytest.raises(InvalidDateError) as exc_info:
            validate_rfc2822_date("yesterday afternoon")
        assert exc_info.value.value == "yesterday afternoon"


class TestRfc2822Timestamp:
    def test_timestamp_and_offset(self):
        assert rfc2822_timestamp("Tue, 31 May 2022 15:23:12 -0400") == (1654024992, -14400)

    def test_positive_offset(self):
        assert rfc2822_timestamp("Tue, 31 May 2022 21:23:12 +0200") == (1654024992, 7200)
