from docuflow.v1.documents.models import DocumentType
from docuflow.v1.extraction.classifier import (
    classify,
    is_bank_receipt,
    is_contribution_list,
    normalize,
)
from tests.samples import BANK_RECEIPT_TEXT, CONTRIBUTION_LIST_TEXT


def test_normalize_lowercases_and_collapses_whitespace():
    assert normalize("  CBU:\n\t123   Importe ") == " cbu: 123 importe "


def test_bank_receipt_is_classified():
    assert is_bank_receipt(BANK_RECEIPT_TEXT)
    assert classify(BANK_RECEIPT_TEXT) == DocumentType.COMPROBANTE_BANCO


def test_contribution_list_is_classified():
    assert is_contribution_list(CONTRIBUTION_LIST_TEXT)
    assert not is_bank_receipt(CONTRIBUTION_LIST_TEXT)
    assert classify(CONTRIBUTION_LIST_TEXT) == DocumentType.LISTADO_APORTE


def test_accents_are_optional():
    text = "PERIODO 04/2024\nAPORTES del personal\nTOTAL 100"

    assert classify(text) == DocumentType.LISTADO_APORTE


def test_receipt_wins_when_both_shapes_match():
    text = "Periodo 03/2024 aportes total\nTransferencia monto 100 referencia X"

    assert is_contribution_list(text)
    assert classify(text) == DocumentType.COMPROBANTE_BANCO


def test_partial_keywords_are_unknown():
    # Amount and reference without any CBU/transfer mention
    assert classify("Importe 100\nReferencia 55") == DocumentType.DESCONOCIDO
    assert classify("") == DocumentType.DESCONOCIDO
