import re

from docuflow.v1.documents.models import DocumentType

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text.lower())


def _any(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)


def is_contribution_list(text: str) -> bool:
    t = normalize(text)
    return (
        _any(t, "periodo", "período")
        and _any(t, "aporte", "aportes")
        and _any(t, "total", "totales")
    )


def is_bank_receipt(text: str) -> bool:
    t = normalize(text)
    return (
        _any(t, "cbu", "transferencia")
        and _any(t, "importe", "monto")
        and _any(t, "referencia", "operacion", "operación")
    )


def classify(text: str) -> DocumentType:
    """Keyword heuristics. A text matching both shapes counts as a receipt."""
    is_list = is_contribution_list(text)
    is_receipt = is_bank_receipt(text)

    if is_list and not is_receipt:
        return DocumentType.LISTADO_APORTE
    if is_receipt:
        return DocumentType.COMPROBANTE_BANCO
    return DocumentType.DESCONOCIDO
