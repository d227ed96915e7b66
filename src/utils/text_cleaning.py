"""Text cleaning utilities for court portal markup.

Every value pulled out of upstream HTML passes through these functions
before it reaches a CaseSnapshot. Labelled values arrive as raw markup
fragments; table cells arrive as text already pulled out by BeautifulSoup.
"""

import html
import re
import unicodedata

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_ANY_WHITESPACE_RE = re.compile(r"\s+")
_ZERO_WIDTH_RE = re.compile(r"[\u200b\u200c\u200d\ufeff]")
_LABEL_PUNCTUATION_RE = re.compile(r"[.()\s]")
_TITLE_DATE_SUFFIX_RE = re.compile(
    r"\s+on\s+\d{1,2}\s+[A-Za-z]+,?\s+\d{4}\s*$",
)


def normalize_unicode(text: str) -> str:
    """Apply NFKC unicode normalization and strip zero-width characters."""
    text = unicodedata.normalize("NFKC", text)
    return _ZERO_WIDTH_RE.sub("", text)


def clean_text(text: str) -> str:
    """Normalize unicode and collapse every whitespace run to one space."""
    return _ANY_WHITESPACE_RE.sub(" ", normalize_unicode(text)).strip()


def strip_tags(fragment: str) -> str:
    """Reduce a markup fragment to a single line of plain text.

    Tags are removed (line breaks become spaces), entities decoded
    (``&nbsp;`` included) and every whitespace run collapsed to one space.
    """
    text = _BREAK_RE.sub(" ", fragment)
    text = _HTML_TAG_RE.sub("", text)
    return clean_text(html.unescape(text))


def compact_label(label: str) -> str:
    """Uppercase a label and drop dots, parentheses and whitespace.

    ``"W.P.(C)"`` and ``"wp c"`` both become ``"WPC"``.
    """
    return _LABEL_PUNCTUATION_RE.sub("", label.upper())


def clean_judgment_title(title: str) -> str:
    """Drop the trailing ``" on 12 March, 2023"`` a judgment title carries."""
    return _TITLE_DATE_SUFFIX_RE.sub("", title).strip()


_PARTY_SEPARATOR_RE = re.compile(r"\s+(?:vs\.?|v\.)\s+", re.IGNORECASE)


def split_parties(title: str) -> tuple[str, str]:
    """Split ``"A vs B"`` (or ``"A v. B"``) into petitioner and respondent.

    Extra separators stay on the respondent side. Returns two empty
    strings when the title names no opposing party.
    """
    parts = _PARTY_SEPARATOR_RE.split(title)
    if len(parts) < 2:
        return "", ""
    return parts[0].strip(), " vs ".join(p.strip() for p in parts[1:])
