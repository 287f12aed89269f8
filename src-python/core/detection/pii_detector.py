"""Heuristic PII locator for bank-statement lines.

Each reconstructed line is classified by an ordered cascade of
independent rules.  A rule is a ``(name, applies, find)`` triple:
``applies`` reads the precomputed gates on :class:`LineContext`
(``top_region``, ``looks_like_txn``, ``has_card_label`` …) and ``find``
returns character ranges over the line text.

Rule order (``card_name`` reads the flag set by ``card_number``):

 1. label_value      ``Label: value`` pairs, anywhere on the page
 2. postal_code      top region only
 3. card_number      (top region or card/account label) and not a
                     transaction row; sets ``card_found``
 4. account_number   same gate as 3
 5. national_id      explicit ID label and not a transaction row
 6. email            top region, or right after an email label
 7. phone            phone label or top region
 8. date_of_birth    right after a DOB label
 9. card_name        capitalised word runs, only when ``card_found``
10. address_line     whole-line redaction in the top region; supersedes
                     the finer-grained ranges for that line

Overlapping ranges from different rules are all kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, NamedTuple

from core.config import config
from core.detection import pii_patterns as P
from core.detection.detection_config import DEFAULT_VOCABULARY, DetectionVocabulary

logger = logging.getLogger(__name__)


class RuleMatch(NamedTuple):
    rule: str
    start: int
    end: int


# ═══════════════════════════════════════════════════════════════════════════
# Vocabulary compilation
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CompiledVocabulary:
    """Regexes derived from a :class:`DetectionVocabulary`."""

    vocab: DetectionVocabulary
    label_value: re.Pattern
    card_account_label: re.Pattern
    national_id_label: re.Pattern
    email_after_label: re.Pattern
    phone_label: re.Pattern
    dob_after_label: re.Pattern
    table_header: re.Pattern
    transaction_keyword: re.Pattern
    bank_header: re.Pattern
    street_token: re.Pattern
    region_name: re.Pattern
    region_abbreviation: re.Pattern
    country_name: re.Pattern
    name_stoplist: frozenset[str]


def compile_vocabulary(vocab: DetectionVocabulary) -> CompiledVocabulary:
    value_labels = P.keyword_alternation(vocab.value_labels)
    return CompiledVocabulary(
        vocab=vocab,
        label_value=re.compile(
            P.LABEL_VALUE_TEMPLATE.format(labels=value_labels), re.IGNORECASE,
        ),
        card_account_label=P.compile_keywords(vocab.card_account_labels),
        national_id_label=P.compile_keywords(vocab.national_id_labels),
        email_after_label=re.compile(
            P.AFTER_LABEL_TEMPLATE.format(
                labels=P.keyword_alternation(vocab.email_labels), value=P.EMAIL_VALUE,
            ),
            re.IGNORECASE,
        ),
        phone_label=P.compile_keywords(vocab.phone_labels),
        dob_after_label=re.compile(
            P.AFTER_LABEL_TEMPLATE.format(
                labels=P.keyword_alternation(vocab.dob_labels), value=P.DOB_VALUE,
            ),
            re.IGNORECASE,
        ),
        table_header=P.compile_keywords(vocab.table_header_tokens),
        transaction_keyword=P.compile_keywords(vocab.transaction_keywords),
        bank_header=P.compile_keywords(vocab.bank_header_tokens),
        street_token=P.compile_keywords(vocab.street_tokens),
        region_name=P.compile_keywords(vocab.region_names),
        region_abbreviation=P.compile_keywords(vocab.region_abbreviations, flags=0),
        country_name=P.compile_keywords(vocab.country_names),
        name_stoplist=frozenset(w.lower() for w in vocab.name_stoplist),
    )


# Compiled default, plus a one-slot cache for the last custom vocabulary.
_DEFAULT_COMPILED = compile_vocabulary(DEFAULT_VOCABULARY)
_custom_cache: dict[int, CompiledVocabulary] = {}


def _compiled_for(vocab: DetectionVocabulary | None) -> CompiledVocabulary:
    if vocab is None or vocab is DEFAULT_VOCABULARY:
        return _DEFAULT_COMPILED
    cached = _custom_cache.get(id(vocab))
    if cached is not None and cached.vocab is vocab:
        return cached
    compiled = compile_vocabulary(vocab)
    _custom_cache.clear()
    _custom_cache[id(vocab)] = compiled
    return compiled


# ═══════════════════════════════════════════════════════════════════════════
# Line context and gates
# ═══════════════════════════════════════════════════════════════════════════

def looks_like_transaction(text: str, kw: CompiledVocabulary) -> bool:
    """A date token plus a table header, transaction keyword or amount."""
    if not P.DATE_TOKEN_RE.search(text):
        return False
    return bool(
        kw.table_header.search(text)
        or kw.transaction_keyword.search(text)
        or P.MONEY_RE.search(text)
    )


@dataclass
class LineContext:
    """One line of text plus the boolean gates the rules consult."""

    text: str
    top_region: bool
    kw: CompiledVocabulary
    looks_like_txn: bool = False
    has_card_label: bool = False
    has_id_label: bool = False
    is_bank_header: bool = False
    card_found: bool = False

    @classmethod
    def build(cls, text: str, top_region: bool, kw: CompiledVocabulary) -> "LineContext":
        return cls(
            text=text,
            top_region=top_region,
            kw=kw,
            looks_like_txn=looks_like_transaction(text, kw),
            has_card_label=bool(kw.card_account_label.search(text)),
            has_id_label=bool(kw.national_id_label.search(text)),
            is_bank_header=bool(kw.bank_header.search(text)),
        )


Span = tuple[int, int]


@dataclass(frozen=True)
class DetectionRule:
    name: str
    applies: Callable[[LineContext], bool]
    find: Callable[[LineContext], list[Span]]
    on_match: Callable[[LineContext], None] | None = None


# ═══════════════════════════════════════════════════════════════════════════
# Matchers
# ═══════════════════════════════════════════════════════════════════════════

def _spans(pattern: re.Pattern, text: str, group: int | str = 0) -> list[Span]:
    return [m.span(group) for m in pattern.finditer(text) if m.end(group) > m.start(group)]


def _digit_count(s: str) -> int:
    return sum(ch.isdigit() for ch in s)


def find_label_values(ctx: LineContext) -> list[Span]:
    out: list[Span] = []
    for m in ctx.kw.label_value.finditer(ctx.text):
        start, end = m.span("value")
        value = ctx.text[start:end].rstrip()
        if value:
            out.append((start, start + len(value)))
    return out


def find_postal_codes(ctx: LineContext) -> list[Span]:
    out: list[Span] = []
    for pattern in P.POSTAL_CODE_PATTERNS:
        out.extend(_spans(pattern, ctx.text))
    return out


def find_card_numbers(ctx: LineContext) -> list[Span]:
    text = ctx.text
    out = _spans(P.CARD_FULL_RE, text)
    for m in P.CARD_MASKED_RE.finditer(text):
        value = m.group()
        if any(ch in P.MASK_CHARS for ch in value) and _digit_count(value) >= 2:
            out.append(m.span())
    out.extend(_spans(P.CARD_ENDING_RE, text, "digits"))
    return out


def find_account_numbers(ctx: LineContext) -> list[Span]:
    text = ctx.text
    out = _spans(P.ACCOUNT_DIGITS_RE, text)
    out.extend(_spans(P.ACCOUNT_MASKED_RE, text))
    out.extend(_spans(P.IBAN_RE, text))
    return out


def find_national_ids(ctx: LineContext) -> list[Span]:
    out: list[Span] = []
    for _name, pattern in P.NATIONAL_ID_PATTERNS:
        out.extend(_spans(pattern, ctx.text))
    return out


def find_emails(ctx: LineContext) -> list[Span]:
    if ctx.top_region:
        return _spans(P.EMAIL_RE, ctx.text)
    return _spans(ctx.kw.email_after_label, ctx.text, "value")


def find_phones(ctx: LineContext) -> list[Span]:
    out: list[Span] = []
    for m in P.PHONE_RE.finditer(ctx.text):
        if P.PHONE_MIN_DIGITS <= _digit_count(m.group()) <= P.PHONE_MAX_DIGITS:
            out.append(m.span())
    return out


def find_dates_of_birth(ctx: LineContext) -> list[Span]:
    return _spans(ctx.kw.dob_after_label, ctx.text, "value")


def find_capitalised_runs(ctx: LineContext) -> list[Span]:
    """Runs of two or more consecutive capitalised words not in the stoplist."""
    text = ctx.text
    stop = ctx.kw.name_stoplist
    out: list[Span] = []
    run: list[Span] = []

    def _flush() -> None:
        if len(run) >= 2:
            out.append((run[0][0], run[-1][1]))
        run.clear()

    for m in P.NAME_TOKEN_RE.finditer(text):
        word = m.group()
        capitalised = (
            word[0].isupper()
            and not set(word) <= P.MASK_CHARS
            and word.strip(".").lower() not in stop
        )
        adjacent = bool(run) and text[run[-1][1]:m.start()].isspace()
        if not capitalised:
            _flush()
            continue
        if run and not adjacent:
            _flush()
        run.append(m.span())
    _flush()
    return out


def _is_name_line(pattern: re.Pattern, text: str, stop: frozenset[str]) -> bool:
    if not pattern.match(text):
        return False
    words = [w.strip(".").lower() for w in P.NAME_TOKEN_RE.findall(text)]
    return not any(w in stop for w in words)


def matches_address_line(ctx: LineContext) -> bool:
    """True when the line looks like part of the customer's name/address block."""
    text = ctx.text
    kw = ctx.kw
    return (
        _is_name_line(P.ALL_CAPS_NAME_RE, text, kw.name_stoplist)
        or _is_name_line(P.MIXED_CASE_NAME_RE, text, kw.name_stoplist)
        or bool(kw.street_token.search(text))
        or bool(kw.region_name.search(text))
        or bool(kw.region_abbreviation.search(text))
        or bool(kw.country_name.search(text))
        or any(p.search(text) for p in P.POSTAL_CODE_PATTERNS)
        or bool(P.LEADING_STREET_NUMBER_RE.match(text))
        or bool(P.PO_BOX_RE.search(text))
    )


def find_whole_line(ctx: LineContext) -> list[Span]:
    stripped = ctx.text.strip()
    if not stripped:
        return []
    start = ctx.text.index(stripped)
    return [(start, start + len(stripped))]


def _set_card_found(ctx: LineContext) -> None:
    ctx.card_found = True


# ═══════════════════════════════════════════════════════════════════════════
# Rule table
# ═══════════════════════════════════════════════════════════════════════════

def _card_gate(ctx: LineContext) -> bool:
    return (ctx.top_region or ctx.has_card_label) and not ctx.looks_like_txn


RULES: list[DetectionRule] = [
    DetectionRule("label_value", lambda c: True, find_label_values),
    DetectionRule("postal_code", lambda c: c.top_region, find_postal_codes),
    DetectionRule("card_number", _card_gate, find_card_numbers, on_match=_set_card_found),
    DetectionRule("account_number", _card_gate, find_account_numbers),
    DetectionRule(
        "national_id", lambda c: c.has_id_label and not c.looks_like_txn, find_national_ids,
    ),
    DetectionRule("email", lambda c: True, find_emails),
    DetectionRule(
        "phone", lambda c: c.top_region or bool(c.kw.phone_label.search(c.text)), find_phones,
    ),
    DetectionRule("date_of_birth", lambda c: True, find_dates_of_birth),
    DetectionRule("card_name", lambda c: c.card_found, find_capitalised_runs),
]

ADDRESS_RULE = DetectionRule(
    "address_line",
    lambda c: (
        c.top_region
        and not c.is_bank_header
        and not c.looks_like_txn
        and matches_address_line(c)
    ),
    find_whole_line,
)


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def is_top_region(line_top: float, page_height: float, fraction: float | None = None) -> bool:
    frac = config.top_region_fraction if fraction is None else fraction
    if page_height <= 0:
        return False
    return line_top < page_height * frac


def detect_line(
    text: str,
    top_region: bool,
    vocab: DetectionVocabulary | None = None,
) -> list[RuleMatch]:
    """Run the rule cascade over one line of text.

    Returns every matched range in rule order.  Empty text and empty
    ranges produce nothing; no rule ever raises on odd input.
    """
    if not text or not text.strip():
        return []

    ctx = LineContext.build(text, top_region, _compiled_for(vocab))

    if ADDRESS_RULE.applies(ctx):
        spans = ADDRESS_RULE.find(ctx)
        if spans:
            logger.debug("Rule %s matched whole line", ADDRESS_RULE.name)
            return [RuleMatch(ADDRESS_RULE.name, s, e) for s, e in spans]

    matches: list[RuleMatch] = []
    for rule in RULES:
        if not rule.applies(ctx):
            continue
        spans = [(s, e) for s, e in rule.find(ctx) if e > s]
        if not spans:
            continue
        if rule.on_match is not None:
            rule.on_match(ctx)
        logger.debug("Rule %s matched %d range(s)", rule.name, len(spans))
        matches.extend(RuleMatch(rule.name, s, e) for s, e in spans)

    return matches
