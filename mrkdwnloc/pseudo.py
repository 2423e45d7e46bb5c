"""Pseudo-localization of placeholder-strings."""

from __future__ import annotations

import re
from typing import Optional

ACCENTS = str.maketrans(
    "AaBbCcDdEeFfGgHhIiJjKkLlMmNnOoPpRrSsTtUuWwYyZz",
    "ÀàßƀÇçÐďÈèƑƒĜĝĤĥÌìĴĵĶķĹĺḾḿÑñÕõÞþŔŕŠšŢţÜüŴŵŸÿŽž",
)

# placeholder tags, {params} and entities stay untouched
PROTECTED_PATTERN = re.compile(r"<[^>]*>|\{[^}]*\}|&[a-zA-Z#0-9]+;")


class PseudoLocalizer:
    """Replaces letters with accented look-alikes so untranslated text stands out."""

    def __init__(self, target_locale: str, source_locale: Optional[str] = None) -> None:
        self.target_locale = target_locale
        self.source_locale = source_locale

    def get_string(self, text: str) -> str:
        if not text:
            return text
        parts = []
        position = 0
        for match in PROTECTED_PATTERN.finditer(text):
            parts.append(text[position:match.start()].translate(ACCENTS))
            parts.append(match.group(0))
            position = match.end()
        parts.append(text[position:].translate(ACCENTS))
        return "".join(parts)

    def get_pseudo_source_locale(self) -> Optional[str]:
        """Locale whose translations feed this engine; ``None`` means the source."""

        return self.source_locale
