"""CSV exports of patients and invoices (semicolon separated, for spreadsheet use)."""
import csv
import io
import logging
from typing import Dict, Iterable, List

from .labels import (
    GENDER_LABELS, PAYMENT_STATUS_LABELS, format_amount, format_date, label,
)

logger = logging.getLogger(__name__)

DELIMITER = ";"

PATIENT_COLUMNS = [
    ("Nom", lambda p: p.get("last_name") or ""),
    ("Prénom", lambda p: p.get("first_name") or ""),
    ("Date de naissance", lambda p: format_date(p.get("birth_date"))),
    ("Genre", lambda p: label(GENDER_LABELS, p.get("gender"))),
    ("Email", lambda p: p.get("email") or ""),
    ("Téléphone", lambda p: p.get("phone") or ""),
    ("Adresse", lambda p: p.get("address") or ""),
    ("Profession", lambda p: p.get("occupation") or ""),
]

INVOICE_HEADERS = [
    "Numéro", "Date", "Patient", "Montant", "Statut", "Mode de paiement", "Date de paiement",
]


FORMULA_PREFIXES = ("=", "+", "-", "@")


def _safe_cell(value: str) -> str:
    # Spreadsheets evaluate cells starting with these characters
    if value and value.startswith(FORMULA_PREFIXES):
        return f"'{value}"
    return value


def _write(headers: List[str], rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=DELIMITER, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows([_safe_cell(cell) for cell in row] for row in rows)
    return buffer.getvalue()


def invoice_number(invoice: dict) -> str:
    return f"F-{int(invoice['id']):06d}"


def export_patients_csv(patients: List[dict]) -> str:
    rows = [[getter(p) for _, getter in PATIENT_COLUMNS] for p in patients]
    logger.info("Exported %d patients to CSV", len(rows))
    return _write([header for header, _ in PATIENT_COLUMNS], rows)


def invoice_rows(invoices: List[dict], patients: Dict[int, dict]) -> List[List[str]]:
    rows = []
    for invoice in invoices:
        patient = patients.get(invoice.get("patient_id"))
        patient_name = (
            f"{patient.get('last_name', '')} {patient.get('first_name', '')}".strip()
            if patient else ""
        )
        rows.append([
            invoice_number(invoice),
            format_date(invoice.get("date")),
            patient_name,
            format_amount(invoice.get("amount")),
            label(PAYMENT_STATUS_LABELS, invoice.get("payment_status")),
            invoice.get("payment_method") or "",
            format_date(invoice.get("payment_date")),
        ])
    return rows


def export_invoices_csv(invoices: List[dict], patients: Dict[int, dict]) -> str:
    """``patients`` maps patient id to record, for the name column."""
    rows = invoice_rows(invoices, patients)
    logger.info("Exported %d invoices to CSV", len(rows))
    return _write(INVOICE_HEADERS, rows)
