import re

import pytest

from mailing_labels.address_parser import (
    MATCHERS,
    clean_address,
    parse_address,
    split_segments,
    split_suite,
)
from mailing_labels.models import ParsedAddress


class TestKnownAddresses:
    def test_suite_segment(self):
        assert parse_address("123 Main St, Suite 200, Irvine, CA 92618") == ParsedAddress(
            address1="123 Main St", address2="Suite 200", city="Irvine", state="CA", zip="92618"
        )

    def test_zip_plus_four(self):
        assert parse_address("456 Oak Ave, Austin, TX 78701-1234") == ParsedAddress(
            address1="456 Oak Ave", address2="", city="Austin", state="TX", zip="78701-1234"
        )

    def test_single_line(self):
        assert parse_address("789 Pine Rd") == ParsedAddress(address1="789 Pine Rd")

    @pytest.mark.parametrize("suffix", [", United States", ", USA", ", usa", ",  united states  "])
    def test_country_suffix_stripped(self, suffix):
        raw = "100 First St, Suite 5, Denver, CO 80202"
        assert parse_address(raw + suffix) == parse_address(raw)
        assert parse_address(raw + suffix).city == "Denver"

    def test_hash_suite_kept_literally(self):
        p = parse_address("55 Harbor Way #12, Miami, FL 33101")
        assert p.address1 == "55 Harbor Way"
        assert p.address2 == "#12"

    def test_lowercase_suite_word_is_capitalized(self):
        p = parse_address("9 Elm Blvd ste 4, Phoenix, AZ 85004")
        assert p.address1 == "9 Elm Blvd"
        assert p.address2 == "Ste 4"

    def test_only_first_suite_marker_splits(self):
        p = parse_address("1 Cedar Ln Building 3 Suite 10, Austin, TX 78701")
        assert p.address1 == "1 Cedar Ln"
        assert p.address2 == "Building 3 Suite 10"

    def test_marker_inside_word_is_not_a_suite(self):
        p = parse_address("12 Steeple Rd, Austin, TX 78701")
        assert p.address1 == "12 Steeple Rd"
        assert p.address2 == ""

    def test_city_state_only(self):
        assert parse_address("Irvine, CA 92618") == ParsedAddress(city="Irvine", state="CA", zip="92618")


class TestFallbacks:
    def test_state_zip_inside_last_segment(self):
        p = parse_address("55 Harbor Way, Miami FL 33101")
        assert p == ParsedAddress(address1="55 Harbor Way", city="Miami", state="FL", zip="33101")

    def test_state_zip_followed_by_extra_segment(self):
        p = parse_address("200 Elm St, Suite 3, Denver, CO 80202, Attn Front Desk")
        assert p.address1 == "200 Elm St"
        assert p.address2 == "Suite 3"
        assert p.city == "Denver"
        assert p.state == "CO"
        assert p.zip == "80202"

    def test_lowercase_state_not_recognized(self):
        raw = "456 Oak Ave, Austin, tx 78701"
        assert parse_address(raw) == ParsedAddress(address1=raw)

    def test_no_state_zip_anywhere(self):
        raw = "Building 5, North Campus"
        assert parse_address(raw) == ParsedAddress(address1=raw)

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_input(self, raw):
        assert parse_address(raw) == ParsedAddress()

    def test_six_digit_number_is_not_a_zip(self):
        p = parse_address("1 Main St, Springfield, IL 627011")
        assert p.zip == ""
        assert p.address1 == "1 Main St, Springfield, IL 627011"


@pytest.mark.parametrize("raw", [
    "123 Main St, Suite 200, Irvine, CA 92618",
    "PO Box 12, AB 1234, XY",
    ",,,",
    "CA 92618",
    "a, b, CA 92618-",
    "#, #, # 12345",
    "Suite, Unit, TX 78701-1234, USA",
    "\t\n",
    "12 Main, , , NY 10001",
])
def test_parse_is_deterministic_and_well_formed(raw):
    first = parse_address(raw)
    assert first == parse_address(raw)
    assert first.state == "" or re.fullmatch(r"[A-Z]{2}", first.state)
    assert first.zip == "" or re.fullmatch(r"\d{5}(-\d{4})?", first.zip)


def test_helpers():
    assert clean_address("  1 A St, X, CA 90001, USA ") == "1 A St, X, CA 90001"
    assert split_segments("a , b,c") == ["a", "b", "c"]
    assert split_suite("10 Oak Ave") == ("10 Oak Ave", "")
    assert split_suite("10 Oak Ave Apt 3B") == ("10 Oak Ave", "Apt 3B")


def test_last_matcher_always_matches():
    assert MATCHERS[-1]("anything", ["anything"]) == ParsedAddress(address1="anything")
