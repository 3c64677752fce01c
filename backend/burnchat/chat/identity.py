"""Deterministic display attributes derived from a display name.

Two participants with the same name look identical: there is no name
registry and collisions are accepted. Color and glyph are chosen by two
independent hashes so they do not move in lockstep.
"""
import hashlib
import random
from typing import Optional

# Avatar color palette, indexed by the 32-bit string hash below
AVATAR_COLORS = [
    "red", "blue", "green", "yellow", "purple", "pink", "indigo", "teal",
]

AVATAR_GLYPHS = [
    "🦊", "🐙", "🦉", "🐢", "🦋", "🐳", "🦔", "🐝",
    "🦜", "🐌", "🦀", "🐼", "🦩", "🐸", "🦥", "🐞",
]

ANONYMOUS_PREFIX = "Anonymous_"


def name_hash(name: str) -> int:
    """Classic ``h * 31 + c`` string hash, wrapped to a signed 32-bit int."""
    h = 0
    for ch in name:
        h = (ord(ch) + ((h << 5) - h)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def avatar_color(name: str) -> str:
    return AVATAR_COLORS[abs(name_hash(name)) % len(AVATAR_COLORS)]


def avatar_glyph(name: str) -> str:
    digest = hashlib.sha1(name.encode("utf-8")).digest()
    return AVATAR_GLYPHS[int.from_bytes(digest[:4], "big") % len(AVATAR_GLYPHS)]


def initials(name: str) -> str:
    """Up to two upper-cased initials, one per word."""
    return "".join(word[0] for word in name.split() if word)[:2].upper()


def anonymous_name(rng: Optional[random.Random] = None) -> str:
    """Synthesize ``Anonymous_<0..999>``; collisions are allowed."""
    rng = rng or random
    return f"{ANONYMOUS_PREFIX}{rng.randint(0, 999)}"


def clean_display_name(name: Optional[str], max_length: int) -> str:
    """Strip surrounding whitespace and clamp to *max_length* characters."""
    if not name:
        return ""
    return name.strip()[:max_length]
