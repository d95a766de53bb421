from __future__ import annotations

from typing import Any

from translitua import UkrainianKMU, translit

from .values import normalize_value

"""Ukrainian -> Latin labels for manually entered records.

Uses the national 2010 romanization (``UkrainianKMU``), the one the source
workbook's English columns follow: ``Київська`` becomes ``Kyivska``.
"""

__all__ = [
    "english_category",
    "transliterate",
]

UKR_SUFFIX = "_ukr"
EN_SUFFIX = "_en"


def english_category(category: str) -> str | None:
    """``region_ukr`` -> ``region_en``; ``None`` for a non-Ukrainian category."""
    if not category.endswith(UKR_SUFFIX):
        return None
    return category[: -len(UKR_SUFFIX)] + EN_SUFFIX


def transliterate(label: Any) -> str:
    text = normalize_value(label)
    if not text:
        return ""
    return translit(text, UkrainianKMU)
