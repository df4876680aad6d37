"""User-facing conversion settings and their clamping rules."""

import re
from dataclasses import dataclass

DEFAULT_COLOR_COUNT = 24
MIN_COLOR_COUNT = 24
MAX_COLOR_COUNT = 256

DEFAULT_MAX_SIZE = 80
MIN_MAX_SIZE = 20
MAX_MAX_SIZE = 200

BLOCK_SIZE = 12  # on-screen size of one logical pixel
SUPERSAMPLE = 4

MAX_INPUT_BYTES = 10 * 1024 * 1024


def clamp_value(value: int, lo: int, hi: int) -> int:
    """Clamp value to [lo, hi]."""
    return lo if value < lo else hi if value > hi else value


def parse_int(raw: str | int | None, default: int) -> int:
    """
    Parse a user-supplied integer the way a form field does.

    Leading whitespace and a sign are allowed, trailing junk is ignored
    ("32px" -> 32). Anything that yields no number, or yields 0, falls back
    to the default.
    """
    if raw is None:
        return default
    if isinstance(raw, int):
        return raw or default
    match = re.match(r"\s*([+-]?\d+)", str(raw))
    if not match:
        return default
    return int(match.group(1)) or default


@dataclass(frozen=True)
class ConvertSettings:
    """Parameters for one conversion, already validated."""

    color_count: int = DEFAULT_COLOR_COUNT
    max_size: int = DEFAULT_MAX_SIZE
    block_size: int = BLOCK_SIZE
    supersample: int = SUPERSAMPLE

    @classmethod
    def from_user(
        cls,
        color_count: str | int | None = None,
        max_size: str | int | None = None,
    ) -> "ConvertSettings":
        """Build settings from raw user input, clamping to the allowed ranges."""
        colors = parse_int(color_count, DEFAULT_COLOR_COUNT)
        size = parse_int(max_size, DEFAULT_MAX_SIZE)
        return cls(
            color_count=clamp_value(colors, MIN_COLOR_COUNT, MAX_COLOR_COUNT),
            max_size=clamp_value(size, MIN_MAX_SIZE, MAX_MAX_SIZE),
        )
