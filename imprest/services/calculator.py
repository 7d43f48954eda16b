"""Spend totals and balances for imprest accounting."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from imprest.exceptions import ValidationFailedError
from imprest.models.records import Receipt

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from imprest.models.records import AttachmentRef
    from imprest.schemas.request import ReceiptLine

_CENTS = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round to two decimal places."""
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AccountingTotals:
    total_amount: Decimal
    balance: Decimal

    @property
    def is_overspent(self) -> bool:
        return self.balance < 0


def calculate_totals(disbursed_amount: Decimal, receipts: Iterable[Receipt]) -> AccountingTotals:
    """Sum receipt amounts and compute what is left of the disbursed amount.

    A negative balance means the requester spent more than was disbursed.
    """
    total = sum((receipt.amount for receipt in receipts), Decimal(0))
    return AccountingTotals(
        total_amount=quantize_money(total),
        balance=quantize_money(disbursed_amount - total),
    )


def pair_receipts(lines: Sequence[ReceiptLine], files: Sequence[AttachmentRef]) -> list[Receipt]:
    """Match each receipt line with its uploaded file, in order."""
    if len(lines) != len(files):
        msg = f"Receipt count ({len(lines)}) does not match uploaded file count ({len(files)})"
        raise ValidationFailedError(msg)

    receipts: list[Receipt] = []
    for line, file in zip(lines, files, strict=True):
        if line.amount < 0:
            msg = f"Receipt amount cannot be negative: {line.description}"
            raise ValidationFailedError(msg)
        receipts.append(
            Receipt(
                description=line.description,
                amount=quantize_money(line.amount),
                receipt_url=file.file_url,
                uploaded_at=file.uploaded_at,
            )
        )
    return receipts
