"""Checks run by the VALIDATION stage on parsed records."""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from docuflow.v1.documents.models import ReconciliationStatus

CUIT_PATTERN = re.compile(r"^\d{2}-\d{8}-\d$")
RECONCILIATION_TOLERANCE = Decimal("0.01")

_CUIT_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)
_CBU_BLOCK1_WEIGHTS = (7, 1, 3, 9, 7, 1, 3)
_CBU_BLOCK2_WEIGHTS = (3, 9, 7, 1, 3, 9, 7, 1, 3, 9, 7, 1, 3)


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ValidationReport") -> "ValidationReport":
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def cuit_check_digit(first_ten: str) -> int:
    total = sum(int(d) * w for d, w in zip(first_ten, _CUIT_WEIGHTS))
    check = 11 - (total % 11)
    if check == 11:
        return 0
    if check == 10:
        return 9
    return check


def is_valid_cuit(value: str | None) -> bool:
    """CUIT in ``NN-NNNNNNNN-N`` (dashes optional) with a valid mod-11 check digit."""
    if not value:
        return False
    if "-" in value and not CUIT_PATTERN.match(value):
        return False
    digits = _digits(value)
    if len(digits) != 11:
        return False
    return cuit_check_digit(digits[:10]) == int(digits[10])


def _cbu_block_ok(block: str, weights: tuple[int, ...]) -> bool:
    total = sum(int(d) * w for d, w in zip(block, weights))
    return (10 - total % 10) % 10 == int(block[-1])


def is_valid_cbu(value: str | None) -> bool:
    """22-digit CBU whose two blocks (8 + 14 digits) carry valid check digits."""
    if not value:
        return False
    digits = _digits(value)
    if len(digits) != 22:
        return False
    return _cbu_block_ok(digits[:8], _CBU_BLOCK1_WEIGHTS) and _cbu_block_ok(
        digits[8:], _CBU_BLOCK2_WEIGHTS
    )


def reconcile(total: Decimal | None, item_amounts: list[Decimal | None]) -> ReconciliationStatus:
    """Compare a list's declared total with the sum of its items.

    A list without items never reconciles.
    """
    if not item_amounts:
        return ReconciliationStatus.DIFERENCIA
    items_sum = sum((a for a in item_amounts if a is not None), Decimal("0"))
    if total is not None and abs(Decimal(total) - items_sum) <= RECONCILIATION_TOLERANCE:
        return ReconciliationStatus.CONCILIADO
    return ReconciliationStatus.DIFERENCIA


def validate_bank_transfer(
    *,
    amount: Decimal | None,
    cbu: str | None,
    beneficiary_cuit: str | None,
    transfer_date: Any = None,
) -> ValidationReport:
    report = ValidationReport()
    if amount is None or Decimal(amount) <= 0:
        report.errors.append("Transfer amount is missing or zero")

    if not cbu:
        report.warnings.append("CBU not found")
    elif not is_valid_cbu(cbu):
        report.warnings.append(f"CBU {cbu} has invalid check digits")

    if not beneficiary_cuit:
        report.warnings.append("Beneficiary CUIT not found")
    elif not is_valid_cuit(beneficiary_cuit):
        report.warnings.append(f"CUIT {beneficiary_cuit} has an invalid check digit")

    if transfer_date is None:
        report.warnings.append("Transfer date not found")
    return report


def validate_contribution_list(
    *,
    institution_cuit: str | None,
    period: str | None,
    total_amount: Decimal | None,
    item_amounts: list[Decimal | None],
) -> tuple[ValidationReport, ReconciliationStatus]:
    report = ValidationReport()
    if not item_amounts:
        report.errors.append("Contribution list has no items")
    if total_amount is None or Decimal(total_amount) <= 0:
        report.errors.append("Contribution list total is missing or zero")

    if not institution_cuit:
        report.warnings.append("Institution CUIT not found")
    elif not is_valid_cuit(institution_cuit):
        report.warnings.append(f"CUIT {institution_cuit} has an invalid check digit")

    if not period:
        report.warnings.append("Period not found")

    status = reconcile(total_amount, item_amounts)
    if item_amounts and status == ReconciliationStatus.DIFERENCIA:
        items_sum = sum((a for a in item_amounts if a is not None), Decimal("0"))
        report.errors.append(
            f"Declared total {total_amount} does not match items sum {items_sum}"
        )
    return report, status
