"""
Monetary totals for a list of line items.

Per item:
    gross    = quantity * unit_price
    discount = gross * discount / 100
    taxed    = (gross - discount) * tax_rate / 100
    line     = (gross - discount) + taxed

Document:
    total = subtotal - total_discount + total_tax

An empty list is valid and yields zero for every figure.
"""

from typing import Iterable
from pydantic import BaseModel
from ..models.document import LineItem


class DocumentTotals(BaseModel):
    subtotal: float = 0.0
    total_discount: float = 0.0
    total_tax: float = 0.0
    total: float = 0.0
    amount_paid: float = 0.0
    balance: float = 0.0  # > 0: balance due, < 0: change owed (receipts)


def line_total(item: LineItem) -> float:
    gross = item.quantity * item.unit_price
    discounted = gross * (1 - item.discount / 100)
    return discounted * (1 + item.tax_rate / 100)


def calculate_totals(items: Iterable[LineItem], amount_paid: float | None = None) -> DocumentTotals:
    subtotal = 0.0
    total_discount = 0.0
    total_tax = 0.0

    for item in items:
        gross = item.quantity * item.unit_price
        discount = gross * item.discount / 100
        subtotal += gross
        total_discount += discount
        total_tax += (gross - discount) * item.tax_rate / 100

    total = subtotal - total_discount + total_tax
    paid = amount_paid or 0.0

    return DocumentTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        total_tax=total_tax,
        total=total,
        amount_paid=paid,
        balance=total - paid,
    )
