"""Ledger ingestion: Portfolio Performance wire records -> core models.

The upstream format stores quantities as fixed-point integers. Scaling
happens here and nowhere else:

  shares   × 10^8
  amounts  × 10^2   (cents; also fees, taxes and valuation values)
  prices   × 10^8

A ledger file is a JSON document::

    {
      "transactions": [{"date": "2024-01-01", "type": "BUY",
                        "securityRef": "sec-1", "shares": 1000000000,
                        "amount": 100000, "owner": "depot"}],
      "securities":   [{"ref": "sec-1", "name": "...", "isin": "...",
                        "currency": "EUR", "latestPrice": 11000000000}],
      "valuations":   [{"date": "2024-01-01", "value": 100000}],
      "prices":       {"sec-1": 110.0}
    }

``prices`` is the caller's lookup and is already in currency units.
A bare JSON list is read as the transaction list.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union

from ..core.exceptions import LedgerFormatError, UnknownSecurityError
from ..core.models import Security, Transaction, TransactionType, Valuation

logger = logging.getLogger(__name__)

SHARES_SCALE = 100_000_000
AMOUNT_SCALE = 100
PRICE_SCALE = 100_000_000

_TYPE_ALIASES = {
    "REMOVAL": TransactionType.WITHDRAWAL,
    "DIVIDENDS": TransactionType.DIVIDEND,
    "FEE": TransactionType.FEES,
    "TAX": TransactionType.TAXES,
    "FEE_REFUND": TransactionType.FEES_REFUND,
    "TAXES_REFUND": TransactionType.TAX_REFUND,
}

_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M")


@dataclass
class LedgerData:
    transactions: list[Transaction] = field(default_factory=list)
    securities: dict[str, Security] = field(default_factory=dict)
    valuations: list[Valuation] = field(default_factory=list)
    prices: dict[str, float] = field(default_factory=dict)
    transactions_imported: int = 0
    transactions_skipped: int = 0
    warnings: list[str] = field(default_factory=list)

    def require_security(self, ref: str) -> None:
        """Raise UnknownSecurityError unless some record mentions ``ref``."""
        if ref in self.securities:
            return
        if any(tx.security_ref == ref for tx in self.transactions):
            return
        raise UnknownSecurityError(f"Unknown security: {ref}")


def parse_date(value: Union[str, date, datetime]) -> date:
    """Parse a ledger date; time components are dropped."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise LedgerFormatError(f"Missing or invalid date: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # fractional seconds, offsets
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise LedgerFormatError(f"Unrecognized date: {value!r}") from None


def parse_transaction_type(value) -> TransactionType:
    """Map a wire type name to TransactionType; unknown names become UNKNOWN."""
    name = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if name in _TYPE_ALIASES:
        return _TYPE_ALIASES[name]
    try:
        return TransactionType(name)
    except ValueError:
        logger.debug("Unknown transaction type %r", value)
        return TransactionType.UNKNOWN


def _first(record: dict, *keys):
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _scaled(raw, scale: int, label: str) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, bool):
        raise LedgerFormatError(f"{label}: {raw!r} is not a number")
    try:
        return float(raw) / scale
    except (TypeError, ValueError):
        raise LedgerFormatError(f"{label}: {raw!r} is not a number") from None


def _optional_str(raw) -> Optional[str]:
    if raw is None or raw == "":
        return None
    return str(raw)


def transaction_from_record(record: dict, sequence: int = 0) -> Transaction:
    """Convert one ledger record (fixed-point integers) into a Transaction."""
    if not isinstance(record, dict):
        raise LedgerFormatError(f"Transaction record must be an object, got {type(record).__name__}")
    seq = record.get("sequence", sequence)
    return Transaction(
        date=parse_date(record.get("date")),
        type=parse_transaction_type(_first(record, "type", "txnType", "txn_type")),
        amount=_scaled(record.get("amount"), AMOUNT_SCALE, "amount"),
        security_ref=_optional_str(_first(record, "securityRef", "security_ref", "securityId", "security_id")),
        shares=_scaled(record.get("shares"), SHARES_SCALE, "shares"),
        fees=_scaled(record.get("fees"), AMOUNT_SCALE, "fees"),
        taxes=_scaled(record.get("taxes"), AMOUNT_SCALE, "taxes"),
        currency=str(record.get("currency") or ""),
        owner=str(_first(record, "owner", "ownerId", "owner_id") or ""),
        counter_owner=_optional_str(_first(record, "counterOwner", "counter_owner")),
        sequence=seq if isinstance(seq, int) else sequence,
        note=str(record.get("note") or ""),
    )


def security_from_record(record: dict) -> Security:
    if not isinstance(record, dict):
        raise LedgerFormatError("Security record must be an object")
    ref = _first(record, "ref", "id", "uuid")
    if ref is None:
        raise LedgerFormatError(f"Security without ref: {record!r}")
    raw_price = _first(record, "latestPrice", "latest_price")
    return Security(
        ref=str(ref),
        name=str(record.get("name") or ""),
        isin=str(record.get("isin") or ""),
        ticker=str(record.get("ticker") or ""),
        currency=str(record.get("currency") or ""),
        latest_price=price_from_raw(raw_price) if raw_price is not None else None,
    )


def valuation_from_record(record: dict) -> Valuation:
    if not isinstance(record, dict):
        raise LedgerFormatError("Valuation record must be an object")
    return Valuation(
        date=parse_date(record.get("date")),
        value=_scaled(record.get("value"), AMOUNT_SCALE, "value"),
    )


def price_from_raw(raw) -> float:
    """Fixed-point (×10^8) price to currency units."""
    return _scaled(raw, PRICE_SCALE, "price")


def parse_ledger(document) -> LedgerData:
    """Build LedgerData from an already-decoded JSON document.

    Malformed transaction records are skipped with a warning; malformed
    securities, valuations or prices raise LedgerFormatError.
    """
    if isinstance(document, list):
        document = {"transactions": document}
    if not isinstance(document, dict):
        raise LedgerFormatError("Ledger must be a JSON object or a list of transactions")

    result = LedgerData()
    for i, record in enumerate(document.get("transactions") or []):
        try:
            result.transactions.append(transaction_from_record(record, sequence=i))
            result.transactions_imported += 1
        except LedgerFormatError as e:
            result.transactions_skipped += 1
            result.warnings.append(f"transaction #{i}: {e}")
            logger.warning("Skipping transaction #%d: %s", i, e)

    for record in document.get("securities") or []:
        security = security_from_record(record)
        result.securities[security.ref] = security

    result.valuations = [valuation_from_record(r) for r in document.get("valuations") or []]

    prices = document.get("prices") or {}
    if not isinstance(prices, dict):
        raise LedgerFormatError("prices must be an object mapping security ref to price")
    for ref, price in prices.items():
        result.prices[str(ref)] = _scaled(price, 1, f"price of {ref}")
    return result


def load_ledger(path: Union[str, Path]) -> LedgerData:
    """Read and convert a ledger JSON file."""
    p = Path(path)
    try:
        document = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise LedgerFormatError(f"Cannot read {p}: {e}") from e
    except ValueError as e:
        raise LedgerFormatError(f"{p} is not valid JSON: {e}") from e
    return parse_ledger(document)
