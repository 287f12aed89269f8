"""Declarative regex definitions for the statement PII rules.

This module contains pattern data only.  Gating and rule ordering live
in ``pii_detector.py``; keyword lists live in ``detection_config.py``.
"""

from __future__ import annotations

import re

_IC = re.IGNORECASE


# ═══════════════════════════════════════════════════════════════════════════
# Shared building blocks
# ═══════════════════════════════════════════════════════════════════════════

_MONTH = (
    r"(?:january|february|march|april|may|june|july|august|september|"
    r"october|november|december|jan|feb|mar|apr|jun|jul|aug|sept|sep|"
    r"oct|nov|dec)\.?(?![a-z])"
)

_NUMERIC_DATE = (
    r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"
    r"|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}"
)

_DATE = (
    rf"{_NUMERIC_DATE}"
    rf"|\d{{1,2}}(?:st|nd|rd|th)?[\s\-]{_MONTH}(?:[\s\-,]+\d{{2,4}})?"
    rf"|{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?"
)

# Any date-like token, used by the transaction-row gate.
DATE_TOKEN_RE = re.compile(rf"(?<![\w/])(?:{_DATE})(?![\w/])", _IC)

# Monetary amounts: 1200.00, 1,23,456.78, $ 12.50, Rs. 100.00
MONEY_RE = re.compile(
    r"(?<![\w.])(?:(?:rs\.?|inr|usd|cad|[₹$£€])\s?)?"
    r"\d{1,3}(?:,\d{2,3})*\.\d{2}(?![\d.])"
    r"|(?<![\w.,])\d+\.\d{2}(?![\d.])",
    _IC,
)


# ═══════════════════════════════════════════════════════════════════════════
# Rule 1: label/value pairs
# ═══════════════════════════════════════════════════════════════════════════

# The label alternation is injected from the vocabulary at compile time.
# The value runs until a double space, the next known label or end of line.
LABEL_VALUE_TEMPLATE = (
    r"(?:{labels})\s*[:#\-]\s*"
    r"(?P<value>[^\s:].*?)"
    r"(?=\s{{2,}}|\s+(?:{labels})\s*[:#\-]|\s*$)"
)


# ═══════════════════════════════════════════════════════════════════════════
# Rule 2: postal codes
# ═══════════════════════════════════════════════════════════════════════════

POSTAL_CODE_PATTERNS: list[re.Pattern] = [
    # Canada: A1A 1A1
    re.compile(r"\b[ABCEGHJ-NPRSTVXY]\d[ABCEGHJ-NPRSTV-Z][ \-]?\d[ABCEGHJ-NPRSTV-Z]\d\b"),
    # UK: SW1A 1AA, M1 1AE
    re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}\b"),
    # US ZIP / ZIP+4
    re.compile(r"(?<![\d\-/.,])\d{5}(?:-\d{4})?(?![\d\-/.,])"),
    # India PIN: 560001 or 560 001
    re.compile(r"(?<![\d\-/.,])[1-9]\d{2}\s?\d{3}(?![\d\-/.,])"),
]


# ═══════════════════════════════════════════════════════════════════════════
# Rules 3-4: card and account numbers
# ═══════════════════════════════════════════════════════════════════════════

# 13–19 digits with optional single space / hyphen separators.
CARD_FULL_RE = re.compile(r"(?<![\d])(?:\d[ \-]?){12,18}\d(?![\d])")

# Masked card: XXXX XXXX XXXX 1234, 4111 **** **** 1234, ************1234
CARD_MASKED_RE = re.compile(
    r"(?<![\w*•])(?:[\dXx*•]{4}[ \-]?){2,4}[\dXx*•]{1,4}(?![\w*•])"
)
MASK_CHARS = frozenset("Xx*•")

# "ending in 1234" / "ends with XX1234": only the digits are redacted.
CARD_ENDING_RE = re.compile(
    r"\b(?:ending|ends)\s+(?:in|with)\s*:?\s*[Xx*•]*(?P<digits>\d{4})\b",
    _IC,
)

ACCOUNT_DIGITS_RE = re.compile(r"(?<![\d])\d{9,18}(?![\d])")
ACCOUNT_MASKED_RE = re.compile(r"(?<![\w*•])[Xx*•]{2,}\d{3,6}(?![\d])")
IBAN_RE = re.compile(
    r"\b[A-Z]{2}\d{2}(?:\s?[A-Z0-9]{4}){2,7}(?:\s?[A-Z0-9]{1,3})?\b"
)


# ═══════════════════════════════════════════════════════════════════════════
# Rule 5: national identifiers (label-gated)
# ═══════════════════════════════════════════════════════════════════════════

NATIONAL_ID_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    ("sin", re.compile(r"\b\d{3}[ \-]\d{3}[ \-]\d{3}\b")),
    ("ein", re.compile(r"\b\d{2}-\d{7}\b")),
    ("pan", re.compile(r"\b[A-Z]{5}\d{4}[A-Z]\b")),
    ("aadhaar", re.compile(r"\b(?:\d{4}|[Xx]{4})\s?(?:\d{4}|[Xx]{4})\s?\d{4}\b")),
    ("nino", re.compile(r"\b[A-CEGHJ-PR-TW-Z]{2}\s?\d{2}\s?\d{2}\s?\d{2}\s?[A-D]\b")),
]


# ═══════════════════════════════════════════════════════════════════════════
# Rules 6-8: email, phone and date of birth
# ═══════════════════════════════════════════════════════════════════════════

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b")

PHONE_RE = re.compile(
    r"(?<![\w+/])"
    r"(?:\+\d{1,3}[\s.\-]?)?"
    r"(?:\(\d{2,5}\)[\s.\-]?|\d{2,5}[\s.\-])?"
    r"\d{3,5}[\s.\-]?\d{4,5}"
    r"(?![\w/])"
)
PHONE_MIN_DIGITS = 8
PHONE_MAX_DIGITS = 13

# "<label>[:-] <value>" where the label alternation is injected.
AFTER_LABEL_TEMPLATE = r"(?<![\w])(?:{labels})\s*(?:[:\-]\s*)?(?P<value>{value})"

EMAIL_VALUE = r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}"
DOB_VALUE = _DATE


# ═══════════════════════════════════════════════════════════════════════════
# Rules 9-10: names and address lines
# ═══════════════════════════════════════════════════════════════════════════

NAME_TOKEN_RE = re.compile(r"[A-Za-z][A-Za-z'.\-]*")

ALL_CAPS_NAME_RE = re.compile(
    r"^\s*(?:(?:MR|MRS|MS|MISS|DR|SHRI|SMT|MX)\.?\s+)?"
    r"[A-Z][A-Z'.\-]+(?:\s+[A-Z][A-Z'.\-]*){1,4}\s*$"
)

MIXED_CASE_NAME_RE = re.compile(
    r"^\s*(?:(?:Mr|Mrs|Ms|Miss|Dr|Shri|Smt|Mx)\.?\s+)?"
    r"[A-Z][a-z'\-]+(?:\s+[A-Z]\.?)?(?:\s+[A-Z][a-z'\-]+){1,3}\s*$"
)

LEADING_STREET_NUMBER_RE = re.compile(r"^\s*\d{1,6}[A-Za-z]?(?:[\-/]\d+)?,?\s+[A-Za-z]")

PO_BOX_RE = re.compile(r"\bP\.?\s?O\.?\s*Box\b", _IC)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def keyword_alternation(keywords: list[str]) -> str:
    """Build a regex alternation, longest keyword first.

    Word boundaries are only enforced on sides where the keyword itself
    starts or ends with an alphanumeric character, so ``".com"`` still
    matches inside ``"gmail.com"`` while ``"pan"`` never matches inside
    ``"company"``.
    """
    parts: list[str] = []
    for kw in sorted({k for k in keywords if k}, key=len, reverse=True):
        left = r"(?<![A-Za-z0-9])" if kw[0].isalnum() else ""
        right = r"(?![A-Za-z0-9])" if kw[-1].isalnum() else ""
        parts.append(f"{left}{re.escape(kw)}{right}")
    return "|".join(parts) if parts else r"(?!x)x"


def compile_keywords(keywords: list[str], flags: int = _IC) -> re.Pattern:
    return re.compile(keyword_alternation(keywords), flags)
