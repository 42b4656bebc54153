"""French display labels and formatting used by exports."""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

APPOINTMENT_STATUS_LABELS = {
    "PLANNED": "Planifié",
    "CONFIRMED": "Confirmé",
    "COMPLETED": "Terminé",
    "CANCELED": "Annulé",
    "NO_SHOW": "Absence",
}

PAYMENT_STATUS_LABELS = {
    "PAID": "Payée",
    "PENDING": "En attente",
    "CANCELED": "Annulée",
}

OSTEOPATH_STATUS_LABELS = {
    "demo": "Démo",
    "active": "Actif",
    "blocked": "Bloqué",
}

GENDER_LABELS = {
    "MALE": "Homme",
    "FEMALE": "Femme",
    "OTHER": "Autre",
}


def _key(value) -> Optional[str]:
    return getattr(value, "value", value)


def label(labels: dict, value) -> str:
    """Label for an enum member or its raw value; unknown values pass through."""
    key = _key(value)
    if key is None:
        return ""
    return labels.get(key, str(key))


def format_date(value: Union[date, datetime, str, None]) -> str:
    """``dd/mm/yyyy``; ISO strings are accepted."""
    if not value:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime("%d/%m/%Y")


def format_amount(value) -> str:
    """French currency rendering: ``60,00 €``, thousands separated by a space."""
    if value is None:
        return ""
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    integer, _, cents = f"{amount:,.2f}".partition(".")
    return f"{integer.replace(',', ' ')},{cents} €"
