"""Regex parsers for bank transfer receipts and contribution lists.

Both parsers are pure functions of the document text. Amounts use the
Argentine locale (``1.234,56``).
"""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from docuflow.v1.documents.models import ReconciliationStatus

UNKNOWN_INSTITUTION = "Desconocida"
DEFAULT_CONCEPT = "Aporte sindical"

_NUMBER_PREFIX = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")

# Receipt patterns
_CBU = re.compile(r"CBU[:\s]+([\d-]+)", re.IGNORECASE)
_CUIT = re.compile(r"CUIT[:\s]+([\d-]+)", re.IGNORECASE)
_REFERENCE = re.compile(r"Referencia[:\s]+([^\n]+)", re.IGNORECASE)
_OPERATION = re.compile(r"Operaci[oó]n[:\s]+([^\n]+)", re.IGNORECASE)
_DATE_FIELD = re.compile(r"Fecha[:\s]+([\d/]+)", re.IGNORECASE)
_AMOUNT = re.compile(r"Importe[^\d]*([\d.,]+)", re.IGNORECASE)
_BENEFICIARY = re.compile(r"Beneficiario[:\s]+([^\n]+)", re.IGNORECASE)

# List patterns
_INSTITUTION = re.compile(r"Instituci[oó]n[:\s]+([^\n]+)", re.IGNORECASE)
_PERIOD = re.compile(r"Per[ií]odo[:\s]+([^\n]+)", re.IGNORECASE)
_TOTAL = re.compile(r"Total[^\d]*([\d.,]+)", re.IGNORECASE)
_ITEM = re.compile(
    r"^[ \t]*(\d+)[ \t]+(\S[^\n]*?)[ \t]+([\d.,]+)[ \t]+([\d.,]+)[ \t]+([\d.,]+)[ \t]*$",
    re.MULTILINE,
)


def clean_number(value: str | None) -> Decimal | None:
    """
    Parse an Argentine-formatted amount.

    Everything but digits and the comma is dropped, then the first comma
    becomes the decimal point. ``"$ 1.234,56"`` gives ``Decimal("1234.56")``.
    """
    if not value:
        return None
    cleaned = re.sub(r"[^\d,]", "", value).replace(",", ".", 1)
    match = _NUMBER_PREFIX.match(cleaned)
    if not match:
        return None
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def parse_date(value: str | None) -> date | None:
    """``dd/mm/yyyy`` or ``dd/mm/yy`` (two-digit years are 20yy)."""
    if not value:
        return None
    match = _DATE.match(value.strip())
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _group(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


@dataclass
class ParsedBankTransfer:
    beneficiary_name: str | None = None
    beneficiary_cuit: str | None = None
    cbu: str | None = None
    transfer_date: date | None = None
    operation_number: str | None = None
    reference_number: str | None = None
    amount: Decimal = Decimal("0")

    def fields(self) -> dict[str, Any]:
        return {
            "beneficiary_name": self.beneficiary_name,
            "beneficiary_cuit": self.beneficiary_cuit,
            "cbu": self.cbu,
            "transfer_date": self.transfer_date.isoformat() if self.transfer_date else None,
            "operation_number": self.operation_number,
            "reference_number": self.reference_number,
            "amount": str(self.amount),
        }


@dataclass
class ParsedContributionItem:
    file_number: str
    full_name_raw: str
    remunerative_amount: Decimal | None
    contribution_amount: Decimal


@dataclass
class ParsedContributionList:
    institution_name: str = UNKNOWN_INSTITUTION
    institution_cuit: str | None = None
    period: str | None = None
    concept: str = DEFAULT_CONCEPT
    total_amount: Decimal = Decimal("0")
    reconciliation_status: ReconciliationStatus = ReconciliationStatus.PENDIENTE
    items: list[ParsedContributionItem] = field(default_factory=list)

    @property
    def people_count(self) -> int:
        return len(self.items)

    def fields(self) -> dict[str, Any]:
        return {
            "institution_name": self.institution_name,
            "institution_cuit": self.institution_cuit,
            "period": self.period,
            "concept": self.concept,
            "people_count": self.people_count,
            "total_amount": str(self.total_amount),
        }


def parse_bank_transfer(text: str) -> ParsedBankTransfer:
    """Parse a bank transfer receipt. A missing or unreadable amount is 0."""
    amount = clean_number(_group(_AMOUNT, text))
    return ParsedBankTransfer(
        beneficiary_name=_group(_BENEFICIARY, text),
        beneficiary_cuit=_group(_CUIT, text),
        cbu=_group(_CBU, text),
        transfer_date=parse_date(_group(_DATE_FIELD, text)),
        operation_number=_group(_OPERATION, text),
        reference_number=_group(_REFERENCE, text),
        amount=amount if amount is not None else Decimal("0"),
    )


def parse_contribution_list(text: str) -> ParsedContributionList:
    """Parse a contribution list header and its ``<legajo> <name> <rem> <aporte> <n>`` lines."""
    items = []
    for match in _ITEM.finditer(text):
        file_number, name, remunerative, contribution, _ = match.groups()
        items.append(
            ParsedContributionItem(
                file_number=file_number,
                full_name_raw=name.strip(),
                remunerative_amount=clean_number(remunerative),
                contribution_amount=clean_number(contribution) or Decimal("0"),
            )
        )

    total = clean_number(_group(_TOTAL, text))
    return ParsedContributionList(
        institution_name=_group(_INSTITUTION, text) or UNKNOWN_INSTITUTION,
        institution_cuit=_group(_CUIT, text),
        period=_group(_PERIOD, text),
        total_amount=total if total is not None else Decimal("0"),
        items=items,
    )


class BankTransferParser:
    def parse(self, text: str) -> ParsedBankTransfer:
        return parse_bank_transfer(text)


class ContributionListParser:
    def parse(self, text: str) -> ParsedContributionList:
        return parse_contribution_list(text)
