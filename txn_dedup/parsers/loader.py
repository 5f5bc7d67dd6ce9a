"""Load transactions for dedup from CSV or JSON files.

CSV files need a header row; JSON files hold a list of objects. Both use
the same field names:

    id, description, amount, date,
    provider_authorized_date, provider_posted_date, provider_merchant_name

camelCase spellings (providerMerchantName, ...) are accepted too. Rows
without a description or date, or with a non-numeric amount, are skipped
and counted in ``skipped_count``.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

from txn_dedup.models import TransactionForDedup

logger = logging.getLogger(__name__)

_ALIASES: dict[str, str] = {
    "providerAuthorizedDate": "provider_authorized_date",
    "providerPostedDate": "provider_posted_date",
    "providerMerchantName": "provider_merchant_name",
}

_OPTIONAL_FIELDS = (
    "id",
    "provider_authorized_date",
    "provider_posted_date",
    "provider_merchant_name",
)


class TransactionLoader:
    """Read a transaction file into TransactionForDedup records.

    Attributes:
        skipped_count: Rows skipped by the last ``load`` call.
    """

    SUPPORTED_SUFFIXES: set[str] = {".csv", ".json"}

    def __init__(self):
        self.skipped_count: int = 0

    def detect(self, file_path: Path) -> bool:
        return Path(file_path).suffix.lower() in self.SUPPORTED_SUFFIXES

    def load(self, file_path: Path | str) -> list[TransactionForDedup]:
        """Parse ``file_path``.

        Raises:
            ValueError: Unsupported extension or JSON that is not a list.
            FileNotFoundError: The file does not exist.
        """
        path = Path(file_path)
        self.skipped_count = 0

        if not self.detect(path):
            raise ValueError(f"Unsupported file type: {path.suffix}")
        if path.suffix.lower() == ".csv":
            rows = self._read_csv(path)
        else:
            rows = self._read_json(path)

        transactions: list[TransactionForDedup] = []
        for row in rows:
            txn = self._parse_row(row) if isinstance(row, dict) else None
            if txn is None:
                self.skipped_count += 1
                continue
            transactions.append(txn)

        if self.skipped_count:
            logger.warning("Skipped %d malformed rows in %s", self.skipped_count, path)
        return transactions

    def _read_csv(self, path: Path) -> list[dict]:
        with open(path, "r", newline="", errors="replace") as f:
            return list(csv.DictReader(f))

    def _read_json(self, path: Path) -> list:
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {path}: {e}") from e
        if isinstance(data, dict):
            data = data.get("transactions", data)
        if not isinstance(data, list):
            raise ValueError(f"Expected a list of transactions in {path}")
        return data

    def _parse_row(self, row: dict) -> TransactionForDedup | None:
        row = {_ALIASES.get(k, k): v for k, v in row.items() if k is not None}

        description = _text(row.get("description"))
        date = _text(row.get("date"))
        if not description or not date:
            return None

        amount = row.get("amount")
        if isinstance(amount, str):
            amount = amount.replace("$", "").replace(",", "").strip()
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            logger.debug("Bad amount %r for %r", row.get("amount"), description)
            return None

        optional = {key: _text(row.get(key)) or None for key in _OPTIONAL_FIELDS}
        return TransactionForDedup(
            description=description, amount=amount, date=date, **optional,
        )


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def load_transactions(file_path: Path | str) -> list[TransactionForDedup]:
    return TransactionLoader().load(file_path)
