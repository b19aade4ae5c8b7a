from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_MATERIAL = "PLA"
DEFAULT_SIZE = "medium"
DEFAULT_COLOR = "black"

STOP_WORDS = frozenset(
    {
        "pla", "pla+", "petg", "small", "medium", "large", "full", "drawer",
        "tools", "tool", "and", "the", "i", "want", "would", "like", "please",
        "1", "2", "3", "material", "color", "size", "in", "a",
    }
)

_TOKEN_SPLIT = re.compile(r"[\s,./]+")


@dataclass(frozen=True)
class ParsedDetails:
    material: str
    color: str
    size: str
    # names of the fields that fell back to their default
    defaulted: tuple[str, ...] = ()

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.defaulted)


def _parse_material(lower: str) -> str | None:
    if "petg" in lower:
        return "PETG"
    if "pla+" in lower:
        return "PLA+"
    if "pla" in lower:
        return "PLA"
    return None


def _parse_size(lower: str) -> str | None:
    if "full" in lower or "drawer" in lower:
        return "full drawer"
    if "small" in lower:
        return "small"
    if "medium" in lower:
        return "medium"
    if "large" in lower:
        return "full drawer"
    return None


def _parse_color(text: str) -> str | None:
    words = [word for word in _TOKEN_SPLIT.split(text) if len(word) > 1]
    color_words = [word for word in words if word.lower() not in STOP_WORDS]
    return " ".join(color_words) or None


def parse_details(text: str) -> ParsedDetails:
    """Best-effort read of a free-text "material, color, size" reply.

    Never fails: anything it cannot recognise falls back to PLA / black /
    medium, and the fallbacks are listed in ``defaulted``.
    """
    text = text or ""
    lower = text.lower()
    defaulted: list[str] = []

    material = _parse_material(lower)
    if material is None:
        material = DEFAULT_MATERIAL
        defaulted.append("material")

    color = _parse_color(text)
    if color is None:
        color = DEFAULT_COLOR
        defaulted.append("color")

    size = _parse_size(lower)
    if size is None:
        size = DEFAULT_SIZE
        defaulted.append("size")

    return ParsedDetails(material=material, color=color, size=size, defaulted=tuple(defaulted))
