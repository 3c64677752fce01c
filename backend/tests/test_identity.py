"""Tests for deterministic avatar/color derivation and anonymous names."""
import random
import re

from burnchat.chat.identity import (
    AVATAR_COLORS,
    AVATAR_GLYPHS,
    anonymous_name,
    avatar_color,
    avatar_glyph,
    clean_display_name,
    initials,
    name_hash,
)


class TestNameHash:
    def test_empty_name_hashes_to_zero(self):
        assert name_hash("") == 0

    def test_single_character(self):
        assert name_hash("A") == 65

    def test_two_characters(self):
        # 'A' * 31 + 'b'
        assert name_hash("Ab") == 65 * 31 + 98

    def test_stays_within_signed_32_bits(self):
        h = name_hash("a fairly long display name that overflows" * 4)
        assert -(2 ** 31) <= h < 2 ** 31


class TestAvatarAttributes:
    def test_same_name_same_color_and_glyph(self):
        assert avatar_color("Alice") == avatar_color("Alice")
        assert avatar_glyph("Alice") == avatar_glyph("Alice")

    def test_color_is_from_palette(self):
        for name in ("Alice", "Bob", "Anonymous_42", "Ünïcödé"):
            assert avatar_color(name) in AVATAR_COLORS
            assert avatar_glyph(name) in AVATAR_GLYPHS

    def test_names_spread_over_palette(self):
        colors = {avatar_color(f"user-{i}") for i in range(200)}
        assert len(colors) > 1


class TestInitials:
    def test_two_words(self):
        assert initials("alice cooper") == "AC"

    def test_caps_at_two(self):
        assert initials("a b c d") == "AB"

    def test_single_word(self):
        assert initials("bob") == "B"

    def test_extra_whitespace(self):
        assert initials("  mary   jane ") == "MJ"


class TestAnonymousName:
    def test_format(self):
        assert re.fullmatch(r"Anonymous_\d{1,3}", anonymous_name())

    def test_seeded_rng_is_repeatable(self):
        assert anonymous_name(random.Random(7)) == anonymous_name(random.Random(7))

    def test_range(self):
        rng = random.Random(0)
        for _ in range(500):
            number = int(anonymous_name(rng).split("_")[1])
            assert 0 <= number <= 999


class TestCleanDisplayName:
    def test_none(self):
        assert clean_display_name(None, 32) == ""

    def test_strips(self):
        assert clean_display_name("  Alice  ", 32) == "Alice"

    def test_truncates(self):
        assert clean_display_name("x" * 50, 10) == "x" * 10

    def test_blank_is_empty(self):
        assert clean_display_name("   ", 32) == ""
