"""
PDF exports: a patient's record and tabular lists of patients and invoices.

Content is assembled as plain sections and rows first, then laid out with
reportlab's platypus flowables.
"""
import io
import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .export_service import INVOICE_HEADERS, PATIENT_COLUMNS, invoice_rows
from .labels import (
    APPOINTMENT_STATUS_LABELS, GENDER_LABELS, PAYMENT_STATUS_LABELS,
    format_amount, format_date, label,
)

logger = logging.getLogger(__name__)

Section = Tuple[str, List[Tuple[str, str]]]


def _text(value) -> str:
    return "" if value is None else str(value)


def _yes_no(value) -> str:
    return "Oui" if value else "Non"


def patient_record_sections(patient: dict, appointments: Sequence[dict] = (),
                            invoices: Sequence[dict] = ()) -> List[Section]:
    """The labelled fields of a patient record, grouped by section."""
    sections = [
        ("INFORMATIONS PERSONNELLES", [
            ("Nom", _text(patient.get("last_name"))),
            ("Prénom", _text(patient.get("first_name"))),
            ("Date de naissance", format_date(patient.get("birth_date"))),
            ("Genre", label(GENDER_LABELS, patient.get("gender"))),
            ("Adresse", _text(patient.get("address"))),
            ("Téléphone", _text(patient.get("phone"))),
            ("Email", _text(patient.get("email"))),
            ("Profession", _text(patient.get("occupation"))),
        ]),
        ("ANTÉCÉDENTS MÉDICAUX", [
            ("Historique médical", _text(patient.get("medical_history"))),
            ("Allergies", _text(patient.get("allergies"))),
            ("Traitement actuel", _text(patient.get("current_treatment"))),
            ("Médecin traitant", _text(patient.get("general_practitioner"))),
            ("Fumeur", _yes_no(patient.get("is_smoker"))),
        ]),
    ]

    if appointments:
        fields = []
        for index, appointment in enumerate(appointments, start=1):
            fields.append((f"RDV {index}", " - ".join(part for part in (
                format_date(appointment.get("date")),
                _text(appointment.get("reason")),
                label(APPOINTMENT_STATUS_LABELS, appointment.get("status")),
            ) if part)))
        sections.append(("HISTORIQUE DES RENDEZ-VOUS", fields))

    if invoices:
        fields = []
        total = 0.0
        for index, invoice in enumerate(invoices, start=1):
            total += float(invoice.get("amount") or 0)
            fields.append((f"Facture {index}", " - ".join(part for part in (
                format_date(invoice.get("date")),
                format_amount(invoice.get("amount")),
                label(PAYMENT_STATUS_LABELS, invoice.get("payment_status")),
            ) if part)))
        fields.append(("Total facturé", format_amount(total)))
        sections.append(("HISTORIQUE DE FACTURATION", fields))

    return sections


def _table_style(header: bool = True) -> TableStyle:
    commands = [
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
    ]
    if header:
        commands += [
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ]
    return TableStyle(commands)


def _build(story: list, title: str, pagesize=A4) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=pagesize, title=title, author="PatientHub",
        leftMargin=15 * mm, rightMargin=15 * mm, topMargin=15 * mm, bottomMargin=15 * mm,
    )
    doc.build(story)
    return buffer.getvalue()


def _cells(rows: List[List[str]], styles) -> List[list]:
    return [[Paragraph(escape(cell), styles["BodyText"]) for cell in row] for row in rows]


def export_patient_record_pdf(patient: dict, appointments: Sequence[dict] = (),
                              invoices: Sequence[dict] = (),
                              generated_on: Optional[date] = None) -> bytes:
    styles = getSampleStyleSheet()
    name = f"{_text(patient.get('first_name'))} {_text(patient.get('last_name'))}".strip()
    story = [
        Paragraph("DOSSIER PATIENT", styles["Title"]),
        Paragraph(escape(name), styles["Heading2"]),
        Paragraph(f"Généré le {format_date(generated_on or date.today())}", styles["Normal"]),
        Spacer(1, 6 * mm),
    ]
    for title, fields in patient_record_sections(patient, appointments, invoices):
        story.append(Paragraph(title, styles["Heading3"]))
        table = Table(_cells([[k, v] for k, v in fields], styles), colWidths=[50 * mm, 125 * mm])
        table.setStyle(_table_style(header=False))
        story += [table, Spacer(1, 4 * mm)]

    logger.info("Exported patient %s record to PDF", patient.get("id"))
    return _build(story, "Dossier patient")


def export_patients_pdf(patients: List[dict]) -> bytes:
    styles = getSampleStyleSheet()
    rows = [[header for header, _ in PATIENT_COLUMNS]]
    rows += [[getter(p) for _, getter in PATIENT_COLUMNS] for p in patients]
    table = Table(_cells(rows, styles), repeatRows=1)
    table.setStyle(_table_style())

    logger.info("Exported %d patients to PDF", len(patients))
    return _build(
        [Paragraph("Liste des patients", styles["Title"]), table],
        "Liste des patients", pagesize=landscape(A4),
    )


def export_invoices_pdf(invoices: List[dict], patients: Dict[int, dict]) -> bytes:
    """``patients`` maps patient id to record, for the name column."""
    styles = getSampleStyleSheet()
    rows = [list(INVOICE_HEADERS)] + invoice_rows(invoices, patients)
    table = Table(_cells(rows, styles), repeatRows=1)
    table.setStyle(_table_style())
    total = sum(float(invoice.get("amount") or 0) for invoice in invoices)

    logger.info("Exported %d invoices to PDF", len(invoices))
    return _build(
        [
            Paragraph("Factures", styles["Title"]),
            table,
            Spacer(1, 4 * mm),
            Paragraph(f"Total facturé : {format_amount(total)}", styles["Heading3"]),
        ],
        "Factures", pagesize=landscape(A4),
    )
