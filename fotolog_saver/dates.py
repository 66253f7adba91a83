"""Best-effort date extraction from a post's rendered caption."""
from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

CAPTION_DATE_RE = re.compile(
    r"[^\s]+\s+[^\s]+\s+[^\s]+\s+\d+\s+(?:Views|Vistas|Vues|Visualizações|Visualizzazioni)",
    re.IGNORECASE,
)

# Token order per language: "month" first for English captions, "day" first elsewhere.
DATE_TOKEN_ORDER = {
    "en": ("month", "day", "year"),
    "es": ("day", "month", "year"),
    "pt": ("day", "month", "year"),
    "it": ("day", "month", "year"),
    "fr": ("day", "month", "year"),
}

MONTH_NAMES = {
    "en": (
        "january", "february", "march", "april", "may", "june",
        "july", "august", "september", "october", "november", "december",
    ),
    "es": (
        "enero", "febrero", "marzo", "abril", "mayo", "junio",
        "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
    ),
    "pt": (
        "janeiro", "fevereiro", "março", "abril", "maio", "junho",
        "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
    ),
    "it": (
        "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
        "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
    ),
    "fr": (
        "janvier", "février", "mars", "avril", "mai", "juin",
        "juillet", "août", "septembre", "octobre", "novembre", "décembre",
    ),
}

DateParser = Callable[[str, str | None], date | None]


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_language(language: str | None) -> str:
    """Reduce an ``<html lang>`` value such as ``pt-BR`` to a supported key."""
    if not language:
        return DEFAULT_LANGUAGE
    code = language.strip().lower().replace("_", "-").split("-", 1)[0]
    return code if code in DATE_TOKEN_ORDER else DEFAULT_LANGUAGE


def _month_number(token: str, language: str) -> int | None:
    folded = _fold(token)
    for index, name in enumerate(MONTH_NAMES[language], start=1):
        if _fold(name) == folded:
            return index
    # Abbreviated month names ("Jan", "févr") are accepted when unambiguous.
    if len(folded) >= 3:
        matches = [
            index
            for index, name in enumerate(MONTH_NAMES[language], start=1)
            if _fold(name).startswith(folded)
        ]
        if len(matches) == 1:
            return matches[0]
    return None


def parse_date_tokens(tokens: list[str], language: str) -> date | None:
    order = DATE_TOKEN_ORDER[language]
    cleaned = [token.strip(",.;") for token in tokens]
    if len(cleaned) != len(order):
        return None
    parts = dict(zip(order, cleaned))
    month = _month_number(parts["month"], language)
    if month is None:
        return None
    try:
        return date(int(parts["year"]), month, int(parts["day"]))
    except ValueError:
        return None


def parse_caption_date(description: str, language: str | None = None) -> date | None:
    """Return the post date embedded in ``description`` or ``None``.

    The caption ends with a ``<day> <month> <year> <n> Views`` run (token order
    depends on the page language). Only the first three tokens of that run are
    read.
    """
    match = CAPTION_DATE_RE.search(description or "")
    if not match:
        return None
    lang = normalize_language(language)
    tokens = match.group(0).split()[:3]
    parsed = parse_date_tokens(tokens, lang)
    if parsed is None:
        logger.debug("Unrecognised caption date %r (lang=%s)", " ".join(tokens), lang)
    return parsed


__all__ = [
    "CAPTION_DATE_RE",
    "DEFAULT_LANGUAGE",
    "DateParser",
    "normalize_language",
    "parse_caption_date",
    "parse_date_tokens",
]
