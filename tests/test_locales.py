"""
Tests for portfolio_content.locales module.

Tests locale chain construction and display ordering.
"""

from portfolio_content.locales import (
    LocaleChain,
    build_locale_chain,
    is_supported,
    normalize_locale,
    sort_locales,
)


class TestBuildLocaleChain:
    """Tests for build_locale_chain."""

    def test_requested_first_then_fallbacks(self):
        """Test that the requested locale precedes ko and en."""
        assert build_locale_chain("ja") == ["ja", "ko", "en"]

    def test_duplicates_removed(self):
        """Test that a requested locale already in the fallbacks is not repeated."""
        assert build_locale_chain("en") == ["en", "ko"]
        assert build_locale_chain("ko") == ["ko", "en"]

    def test_empty_request_uses_fallbacks(self):
        """Test that a missing locale yields only the fallbacks."""
        assert build_locale_chain(None) == ["ko", "en"]
        assert build_locale_chain("") == ["ko", "en"]

    def test_custom_fallbacks(self):
        """Test that fallbacks can be overridden."""
        assert build_locale_chain("ko", fallbacks=["en", "ja"]) == ["ko", "en", "ja"]

    def test_codes_normalized(self):
        """Test that codes are lower-cased and stripped."""
        assert build_locale_chain(" EN ") == ["en", "ko"]


class TestLocaleChain:
    """Tests for the LocaleChain value object."""

    def test_for_request(self):
        chain = LocaleChain.for_request("ja")

        assert chain.locales == ("ja", "ko", "en")
        assert chain.requested == "ja"
        assert len(chain) == 3
        assert "ko" in chain
        assert list(chain) == ["ja", "ko", "en"]

    def test_empty_chain_has_no_requested(self):
        chain = LocaleChain(())

        assert chain.requested is None
        assert len(chain) == 0


class TestLocaleHelpers:
    """Tests for normalize_locale, sort_locales and is_supported."""

    def test_normalize_none(self):
        assert normalize_locale(None) == ""

    def test_sort_locales_display_order(self):
        """Test that known locales follow ko, en, ja and unknown ones go last."""
        assert sort_locales(["ja", "fr", "en", "ko", "de"]) == ["ko", "en", "ja", "de", "fr"]

    def test_sort_locales_deduplicates(self):
        assert sort_locales(["en", "EN", "ko"]) == ["ko", "en"]

    def test_is_supported(self):
        assert is_supported("KO")
        assert not is_supported("fr")
        assert is_supported("fr", supported=("fr",))
