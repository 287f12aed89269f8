"""Remote extraction engine — sends baked page images to the Gemini REST API.

Only redacted JPEGs ever leave the machine.  Pages are sent in small
batches; each batch walks the model fallback list, retrying a model only
when the API reports rate limiting.

Only the ``httpx`` library is required.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from core.config import config
from core.errors import EmptyExtractionError, ExtractionError, RateLimitError
from models.schemas import TRANSACTION_CATEGORIES, Transaction

logger = logging.getLogger(__name__)

_BACKOFF_BASE = 0.8   # seconds
_BACKOFF_CAP = 10.0

EXTRACTION_PROMPT = """\
You extract transactions from images of a bank statement. The statement
may come from a bank in India, Canada, the US or elsewhere. Personal
details have been blacked out; ignore the black boxes.

Extract every transaction line item:
- Map the date, description, debit (withdrawal / Dr), credit
  (deposit / Cr) and running balance columns, whatever their headers.
  When a single amount column is used, split it into debit or credit
  from its sign or a Cr/Dr marker.
- Return every date as YYYY-MM-DD. Resolve ambiguous day/month order
  from the rest of the document.
- Give the currency as an ISO 4217 code when it can be inferred from
  symbols or context; otherwise leave it out.
- Skip headers, footers, summaries, advertisements and page numbers.
  Amounts are plain numbers.
- Shorten each description to the payee or merchant and its purpose,
  dropping reference numbers, transfer prefixes and branch codes.
- Set category to one of: {categories}.

Answer with a JSON array of objects that follows the response schema.
"""


def _response_schema() -> dict:
    return {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                "date": {"type": "STRING", "description": "Transaction date, YYYY-MM-DD."},
                "description": {"type": "STRING", "description": "Payee or merchant and purpose."},
                "debit": {"type": "NUMBER", "description": "Money spent."},
                "credit": {"type": "NUMBER", "description": "Money received."},
                "balance": {"type": "NUMBER", "description": "Running balance after the transaction."},
                "currency": {"type": "STRING", "description": "ISO 4217 currency code."},
                "category": {"type": "STRING", "enum": list(TRANSACTION_CATEGORIES)},
            },
            "required": ["date", "description"],
        },
    }


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed ``attempt`` (1-based)."""
    return min(_BACKOFF_CAP, _BACKOFF_BASE * 2 ** (attempt - 1))


def normalize_category(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cat = value.strip()
    if cat in TRANSACTION_CATEGORIES:
        return cat
    for allowed in TRANSACTION_CATEGORIES:
        if allowed.lower() == cat.lower():
            return allowed
    return "Other"


def normalize_transactions(items: Any) -> list[Transaction]:
    """Validate a decoded response and clean up currency and category.

    Raises ``ExtractionError`` when the payload is not a list of objects
    with at least ``date`` and ``description``.
    """
    if not isinstance(items, list):
        raise ExtractionError("Model response is not a JSON array")

    out: list[Transaction] = []
    for item in items:
        if not isinstance(item, dict):
            raise ExtractionError("Model response contains a non-object item")
        data = dict(item)
        currency = data.get("currency")
        if isinstance(currency, str):
            data["currency"] = currency.strip().upper() or None
        category = data.get("category")
        if isinstance(category, str):
            data["category"] = normalize_category(category)
        try:
            out.append(Transaction.model_validate(data))
        except ValidationError as exc:
            raise ExtractionError(f"Malformed transaction in model response: {exc.error_count()} error(s)") from exc
    return out


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return "RESOURCE_EXHAUSTED" in response.text


class RemoteExtractionEngine:
    """
    Gemini ``generateContent`` wrapper.

    Uses a **persistent** ``httpx.Client`` for connection pooling and
    keep-alive.  ``transport`` and ``sleep`` are injectable for tests.

    Usage:
        engine = RemoteExtractionEngine(api_key="...")
        transactions = engine.extract([jpeg_b64, ...])
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        models: Optional[list[str]] = None,
        batch_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        max_attempts: Optional[int] = None,
        parallel: Optional[bool] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api_key = config.gemini_api_key if api_key is None else api_key
        self._api_url = (config.gemini_api_url if api_url is None else api_url).rstrip("/")
        self.models = list(config.extraction_models if models is None else models)
        self.batch_size = config.extraction_batch_size if batch_size is None else batch_size
        self.max_pages = config.extraction_max_pages if max_pages is None else max_pages
        self.max_attempts = config.extraction_max_attempts if max_attempts is None else max_attempts
        self.parallel = config.extraction_parallel if parallel is None else parallel
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=config.request_timeout if timeout is None else timeout,
            headers={
                "x-goog-api-key": self._api_key,
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def is_configured(self) -> bool:
        return bool(self._api_key and self._api_url and self.models)

    def close(self) -> None:
        self._client.close()

    # ── Public API ────────────────────────────────────────────────

    def extract(self, images: list[str]) -> list[Transaction]:
        """Extract transactions from base64 JPEG page images, in page order."""
        if not images:
            raise ExtractionError("No page images to extract from")
        if len(images) > self.max_pages:
            raise ExtractionError(
                f"Too many pages: {len(images)} (maximum {self.max_pages})"
            )
        if not self.is_configured():
            raise ExtractionError("Remote extraction is not configured (missing API key)")

        batches = [
            images[i:i + self.batch_size] for i in range(0, len(images), self.batch_size)
        ]
        logger.info("Extracting %d page(s) in %d batch(es)", len(images), len(batches))

        if self.parallel and len(batches) > 1:
            with ThreadPoolExecutor(max_workers=len(batches)) as pool:
                results = list(pool.map(self._extract_batch, batches))
        else:
            results = [self._extract_batch(b) for b in batches]

        transactions = [t for batch in results for t in batch]
        if not transactions:
            raise EmptyExtractionError("No transactions were found in the statement")
        logger.info("Extracted %d transaction(s)", len(transactions))
        return transactions

    # ── Internals ─────────────────────────────────────────────────

    def _payload(self, batch: list[str]) -> dict:
        parts: list[dict] = [
            {"text": EXTRACTION_PROMPT.format(categories=", ".join(TRANSACTION_CATEGORIES))},
        ]
        for img in batch:
            data = img.split(",", 1)[1] if "," in img else img
            parts.append({"inline_data": {"mime_type": "image/jpeg", "data": data}})
        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": _response_schema(),
                "temperature": 0,
            },
        }

    def _extract_batch(self, batch: list[str]) -> list[Transaction]:
        payload = self._payload(batch)
        last_error: Exception | None = None

        for model in self.models:
            try:
                return self._call_with_retry(model, payload)
            except ExtractionError as exc:
                logger.warning(
                    "Model %s failed: %s", model, exc,
                    extra={"model": model, "error_type": type(exc).__name__},
                )
                last_error = exc

        raise ExtractionError(
            f"Extraction failed with all models ({', '.join(self.models)})"
        ) from last_error

    def _call_with_retry(self, model: str, payload: dict) -> list[Transaction]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._call(model, payload)
            except RateLimitError:
                if attempt == self.max_attempts:
                    raise
                wait = backoff_delay(attempt)
                logger.warning(
                    "Model %s rate limited (attempt %d/%d), retrying in %.1fs",
                    model, attempt, self.max_attempts, wait,
                    extra={"model": model},
                )
                self._sleep(wait)
        raise ExtractionError(f"Model {model} made no attempts")

    def _call(self, model: str, payload: dict) -> list[Transaction]:
        url = f"{self._api_url}/models/{model}:generateContent"
        try:
            resp = self._client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise ExtractionError(f"Request to {model} timed out") from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(f"Request to {model} failed: {exc}") from exc

        if _is_rate_limited(resp):
            raise RateLimitError(f"Model {model} is rate limited", status_code=resp.status_code)
        if resp.status_code >= 400:
            raise ExtractionError(f"Model {model} returned HTTP {resp.status_code}: {resp.text[:300]}")

        try:
            data = resp.json()
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
            items = json.loads(text)
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ExtractionError(f"Unreadable response from {model}") from exc

        return normalize_transactions(items)
