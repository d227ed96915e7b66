"""Label/value and tabular extraction over raw court portal markup.

Portal pages are inconsistent and undocumented. Labelled fields are
found with permissive patterns, ordered by how often each shape shows
up on the real portals; the first one that yields text wins. A field
that matches nothing is an empty string, never an error. Tables are
walked with BeautifulSoup so nested layout tables keep their own rows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from src.utils.text_cleaning import clean_text, strip_tags

DEFAULT_HEADER_KEYWORDS: tuple[str, ...] = ("sl", "sr", "date", "judge", "hearing")

_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "caption", "legend"]
_PDF_LINK_RE = re.compile(r"""href=["']([^"']+\.pdf[^"']*)["']""", re.IGNORECASE)
_ANY_LINK_RE = re.compile(r"""href=["']([^"'#][^"']*)["']""", re.IGNORECASE)


@dataclass(frozen=True)
class TableRow:
    """One ``<tr>``: its stripped cell texts plus the original markup."""

    cells: list[str]
    markup: str


def _field_patterns(label: str) -> list[re.Pattern[str]]:
    lbl = re.escape(label)
    flags = re.IGNORECASE
    return [
        # <td>Label :</td><td>: Value</td>
        re.compile(
            rf"<t[dh][^>]*>\s*{lbl}\s*:?\s*</t[dh]>\s*<t[dh][^>]*>\s*:?\s*([\s\S]*?)</t[dh]>",
            flags,
        ),
        # <strong>Label</strong> : Value
        re.compile(rf"<strong[^>]*>\s*{lbl}\s*:?\s*</strong>\s*:?\s*([^<]+)", flags),
        # <label>Label</label><span>Value</span>
        re.compile(rf"<label[^>]*>\s*{lbl}\s*:?\s*</label>\s*<[^>]+>([^<]+)", flags),
        # <b>Label :</b> Value
        re.compile(rf"<b(?:\s[^>]*)?>\s*{lbl}\s*:?\s*</b>\s*:?\s*([^<]+)", flags),
        # <dt>Label</dt><dd>Value</dd>
        re.compile(rf"<dt[^>]*>\s*{lbl}\s*:?\s*</dt>\s*<dd[^>]*>([\s\S]*?)</dd>", flags),
        # Label : Value
        re.compile(rf"(?<![\w.]){lbl}\s*:\s*([^<\n]+)", flags),
    ]


def extract_field(markup: str, label: str) -> str:
    """Return the value printed next to ``label``, or ``""``.

    ``label`` is matched literally (case-insensitive). A pattern that
    matches but captures only whitespace does not count as a hit.
    """
    if not markup:
        return ""
    for pattern in _field_patterns(label):
        match = pattern.search(markup)
        if match:
            value = strip_tags(match.group(1)).lstrip(":").strip()
            if value:
                return value
    return ""


def first_field(markup: str, *labels: str) -> str:
    """First non-empty ``extract_field`` across label aliases, in order."""
    for label in labels:
        value = extract_field(markup, label)
        if value:
            return value
    return ""


def _soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


def _cell_text(cell: Tag) -> str:
    return clean_text(cell.get_text(" "))


def _own_rows(table: Tag) -> list[Tag]:
    """``<tr>`` elements of ``table`` itself, not of tables nested in it."""
    return [tr for tr in table.find_all("tr") if tr.find_parent("table") is table]


def _to_row(tr: Tag) -> TableRow:
    cells = [_cell_text(td) for td in tr.find_all("td", recursive=False)]
    return TableRow(cells=cells, markup=str(tr))


def iter_rows(markup: str) -> list[TableRow]:
    """Every ``<tr>`` in ``markup``, nested ones included, with its own ``<td>`` cells."""
    return [_to_row(tr) for tr in _soup(markup).find_all("tr")]


def is_header_row(cells: list[str], keywords: tuple[str, ...]) -> bool:
    if not cells:
        return True
    first = cells[0].lower()
    return any(first.startswith(keyword) for keyword in keywords)


def _table_after_heading(soup: BeautifulSoup, heading_pattern: str) -> Tag | None:
    pattern = re.compile(heading_pattern, re.IGNORECASE)
    for heading in soup.find_all(_HEADING_TAGS):
        if not pattern.search(heading.get_text(" ", strip=True)):
            continue
        if heading.name == "caption":
            return heading.find_parent("table")
        table = heading.find_next("table")
        if table is not None:
            return table
    return None


def extract_table_rows(
    markup: str,
    heading_pattern: str,
    *,
    skip_keywords: tuple[str, ...] = DEFAULT_HEADER_KEYWORDS,
    min_cells: int = 2,
) -> list[TableRow]:
    """Rows of the first table that follows a heading matching ``heading_pattern``.

    Only heading elements (``<h1>``..``<h6>``, ``<caption>``, ``<legend>``)
    are candidates, so a field label such as "Last Order Date" never
    selects a table. ``heading_pattern`` is a regex alternation such as
    ``"case\\s+history|hearing\\s+details"``. Rows with fewer than
    ``min_cells`` cells, or whose first cell starts with one of
    ``skip_keywords``, are header rows and are dropped.
    """
    if not markup:
        return []
    table = _table_after_heading(_soup(markup), heading_pattern)
    if table is None:
        return []
    rows = [_to_row(tr) for tr in _own_rows(table)]
    return [
        row
        for row in rows
        if len(row.cells) >= min_cells and not is_header_row(row.cells, skip_keywords)
    ]


def extract_all_cells(markup: str) -> list[str]:
    """Flat list of every leaf ``<td>`` text in document order.

    A cell that only wraps a nested table is layout, not data, and is skipped.
    """
    return [
        _cell_text(td)
        for td in _soup(markup).find_all("td")
        if td.find("table") is None
    ]


def cell_at(cells: list[str], index: int) -> str:
    """Positional fallback: the cell at ``index`` or ``""`` when the table is short."""
    return cells[index] if 0 <= index < len(cells) else ""


def find_document_link(
    row_markup: str,
    base_url: str | None = None,
    *,
    pdf_only: bool = True,
) -> str | None:
    """First document link in a row, made absolute against ``base_url`` when given."""
    match = _PDF_LINK_RE.search(row_markup)
    if match is None and not pdf_only:
        match = _ANY_LINK_RE.search(row_markup)
    if match is None:
        return None
    href = match.group(1).replace("&amp;", "&")
    return resolve_url(base_url, href) if base_url else href


def resolve_url(base_url: str, reference: str) -> str:
    """Resolve a possibly relative ``reference`` against a portal base URL.

    The base is treated as a directory, so ``"captcha.php"`` against
    ``https://host/app`` gives ``https://host/app/captcha.php`` while
    ``"/img/c.png"`` goes to the host root.
    """
    return urljoin(base_url.rstrip("/") + "/", reference.replace("&amp;", "&"))
