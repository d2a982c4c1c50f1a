"""
Tests identité pays (code ISO <-> nom)
"""

import pytest

from services.country_identity import CountryIdentity


countries = CountryIdentity()


class TestCountryIdentity:

    def test_code_and_name_match(self):
        assert countries.match("DE", "Germany") is True
        assert countries.match("Germany", "DE") is True

    def test_case_insensitive(self):
        assert countries.match("de", "GERMANY") is True

    def test_different_countries(self):
        assert countries.match("DE", "France") is False

    def test_empty_never_matches(self):
        assert countries.match("", "Germany") is False
        assert countries.match(None, "DE") is False

    def test_normalize(self):
        assert countries.normalize("FR") == "France"
        assert countries.normalize("Poland") == "Poland"
        assert countries.normalize("  ") == ""

    def test_non_string_refused(self):
        with pytest.raises(TypeError):
            countries.normalize(49)

    def test_unknown_code_passes_through(self):
        assert countries.normalize("ZZ") == "ZZ"
        assert countries.match("ZZ", "zz") is True

    def test_to_code(self):
        assert countries.to_code("Germany") == "DE"
        assert countries.to_code("de") == "DE"
