"""Tabular aggregation of commission transactions."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List

import pandas as pd

from salesdesk.core.formatting import to_money

TRANSACTION_COLUMNS = [
    "id",
    "distributor_id",
    "client_id",
    "product_type",
    "level",
    "rate",
    "amount",
    "status",
    "month",
    "created_at",
]


@dataclass
class MonthlyReport:
    distributor_id: int
    month: str
    transaction_count: int = 0
    total: Decimal = Decimal("0.00")
    by_product: Dict[str, Decimal] = field(default_factory=dict)
    by_status: Dict[str, Decimal] = field(default_factory=dict)
    transaction_ids: List[int] = field(default_factory=list)


def build_transactions_frame(transactions: Iterable) -> pd.DataFrame:
    """Flatten transaction rows into a DataFrame; amounts stay ``Decimal``."""

    rows = [
        {column: getattr(transaction, column) for column in TRANSACTION_COLUMNS}
        for transaction in transactions
    ]
    frame = pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)
    if not frame.empty:
        frame = frame.sort_values(["created_at", "id"]).reset_index(drop=True)
    return frame


def _sum_decimal(values: pd.Series) -> Decimal:
    return to_money(sum(values, Decimal("0")))


def totals_by(frame: pd.DataFrame, column: str) -> Dict[str, Decimal]:
    if frame.empty:
        return {}
    grouped = frame.groupby(column, sort=True)["amount"].apply(_sum_decimal)
    return {str(key): value for key, value in grouped.items()}


def build_monthly_report(distributor_id: int, month: str, transactions: Iterable) -> MonthlyReport:
    frame = build_transactions_frame(transactions)
    report = MonthlyReport(distributor_id=distributor_id, month=month)
    if frame.empty:
        return report

    report.transaction_count = len(frame)
    report.total = _sum_decimal(frame["amount"])
    report.by_product = totals_by(frame, "product_type")
    report.by_status = totals_by(frame, "status")
    report.transaction_ids = [int(value) for value in frame["id"]]
    return report


__all__ = ["MonthlyReport", "build_monthly_report", "build_transactions_frame", "totals_by"]
