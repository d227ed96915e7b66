"""Recover a CAPTCHA answer from page markup without calling a solver.

Some portal deployments leak the arithmetic challenge (or its result)
into the page itself. Every pattern here is tried before an image is
downloaded, in the order listed in ``answer_from_markup``.
"""

from __future__ import annotations

import re

_EXPRESSION_RE = re.compile(r"^\s*(\d+)\s*([+\-])\s*(\d+)\s*$")

_DATA_ATTRIBUTE_RE = re.compile(r"""data-captcha=["'](\d+\s*[+\-]\s*\d+)["']""", re.IGNORECASE)
_ALT_AFTER_CLASS_RE = re.compile(
    r"""class=["'][^"']*captcha[^"']*["'][^>]*alt=["'](\d+\s*[+\-]\s*\d+)["']""",
    re.IGNORECASE,
)
_ALT_BEFORE_CLASS_RE = re.compile(
    r"""alt=["'](\d+\s*[+\-]\s*\d+)["'][^>]*class=["'][^"']*captcha""",
    re.IGNORECASE,
)
_HIDDEN_RESULT_RE = re.compile(
    r"""(?:name|id)=["']siwp_captcha_result["']\s+value=["'](\d+)["']""",
    re.IGNORECASE,
)
_TEXT_NODE_RE = re.compile(r">\s*(\d{1,2})\s*([+\-])\s*(\d{1,2})\s*<")


def evaluate_expression(expression: str) -> int | None:
    """Evaluate ``"a + b"`` or ``"a - b"``; ``None`` for anything else."""
    match = _EXPRESSION_RE.match(expression)
    if match is None:
        return None
    left, operator, right = int(match.group(1)), match.group(2), int(match.group(3))
    return left + right if operator == "+" else left - right


def _evaluated(expression: str) -> str | None:
    value = evaluate_expression(expression)
    return None if value is None else str(value)


def answer_from_markup(markup: str) -> str | None:
    """Return the CAPTCHA answer embedded in ``markup``, if any.

    Order: ``data-captcha`` attribute, captcha image alt text (either
    attribute order), hidden ``siwp_captcha_result`` input, then any
    ``>a ± b<`` text node.
    """
    match = _DATA_ATTRIBUTE_RE.search(markup)
    if match:
        return _evaluated(match.group(1))

    match = _ALT_AFTER_CLASS_RE.search(markup) or _ALT_BEFORE_CLASS_RE.search(markup)
    if match:
        return _evaluated(match.group(1))

    match = _HIDDEN_RESULT_RE.search(markup)
    if match:
        return match.group(1)

    match = _TEXT_NODE_RE.search(markup)
    if match:
        return _evaluated(f"{match.group(1)} {match.group(2)} {match.group(3)}")

    return None
