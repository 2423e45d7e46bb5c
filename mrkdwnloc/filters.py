"""Decide whether an extracted run is worth sending to translators."""

from __future__ import annotations

import re

from .mrkdwn import WHOLE_TAG_PATTERN

ENTITY_PATTERN = re.compile(r"&[a-zA-Z]+;")
BARE_URL_PATTERN = re.compile(r"(?:https?|ftps?|github|mailto|file|data|irc)://\S+\Z")


def strip_placeholders(text: str) -> str:
    """Remove placeholder tags, HTML-like tags and named entities."""

    without_tags = WHOLE_TAG_PATTERN.sub("", text)
    return ENTITY_PATTERN.sub("", without_tags)


def contains_actual_text(text: str) -> bool:
    """True when the text has a letter, digit or ideograph in it."""

    return any(char.isalnum() for char in strip_placeholders(text))


def is_translatable(text: str, *, localize_links: bool = False) -> bool:
    """Return True if a placeholder-string holds something to translate.

    Punctuation, whitespace and bare URLs are not translatable. A bare URL
    is kept only when links are localized.
    """

    if not text or not text.strip():
        return False
    stripped = strip_placeholders(text).strip()
    if not stripped:
        return False
    if BARE_URL_PATTERN.match(stripped):
        return localize_links
    return contains_actual_text(stripped)
