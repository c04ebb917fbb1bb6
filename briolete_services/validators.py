"""Field validators and request-level sanitizing.

Validators never raise: each returns a ``ValidationResult`` whose ``error``
is the user-facing message shown by the admin panel.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union

from .catalog import Material, ServicePriority, ServiceStatus, choices, is_choice

if TYPE_CHECKING:
    from .forms import UploadedFile

MAX_STRING_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 2000
MAX_PHONE_LENGTH = 50
MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_MONEY_VALUE = 1_000_000_000
ALLOWED_FILE_TYPES = (
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)

DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
TIME_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$")
PHONE_RE = re.compile(r"^[0-9+\- ()]+$")
MONEY_RE = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")
WHITESPACE_RE = re.compile(r"\s+")

Number = Union[int, float]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(False, error)


def validate_date(value: Optional[str]) -> ValidationResult:
    if not value or not isinstance(value, str):
        return ValidationResult.fail("La fecha es requerida")
    if not DATE_RE.match(value):
        return ValidationResult.fail("Formato de fecha inválido. Debe ser YYYY-MM-DD")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return ValidationResult.fail("Fecha inválida")
    return ValidationResult.ok()


def validate_time(value: Optional[str]) -> ValidationResult:
    if not value or not isinstance(value, str):
        return ValidationResult.fail("La hora es requerida")
    if not TIME_RE.match(value):
        return ValidationResult.fail("Formato de hora inválido. Debe ser HH:mm o HH:mm:ss")
    return ValidationResult.ok()


def validate_phone(value: Optional[str]) -> ValidationResult:
    if not value or not isinstance(value, str):
        return ValidationResult.fail("El teléfono es requerido")
    if len(value) > MAX_PHONE_LENGTH:
        return ValidationResult.fail("El teléfono es demasiado largo")
    if not PHONE_RE.match(value):
        return ValidationResult.fail("Formato de teléfono inválido")
    return ValidationResult.ok()


def validate_string(
    value: Optional[str],
    field_name: str,
    max_length: int = MAX_STRING_LENGTH,
    required: bool = True,
) -> ValidationResult:
    if required and (not value or not isinstance(value, str) or not value.strip()):
        return ValidationResult.fail(f"{field_name} es requerido")
    if value and len(value) > max_length:
        return ValidationResult.fail(
            f"{field_name} es demasiado largo (máximo {max_length} caracteres)"
        )
    return ValidationResult.ok()


def validate_status(value: str) -> ValidationResult:
    if not is_choice(ServiceStatus, value):
        allowed = ", ".join(choices(ServiceStatus))
        return ValidationResult.fail(f"Estado inválido. Debe ser uno de: {allowed}")
    return ValidationResult.ok()


def validate_priority(value: str) -> ValidationResult:
    if not is_choice(ServicePriority, value):
        allowed = ", ".join(choices(ServicePriority))
        return ValidationResult.fail(f"Prioridad inválida. Debe ser una de: {allowed}")
    return ValidationResult.ok()


def validate_material(value: str) -> ValidationResult:
    if not is_choice(Material, value):
        allowed = ", ".join(choices(Material))
        return ValidationResult.fail(f"Material inválido. Debe ser uno de: {allowed}")
    return ValidationResult.ok()


def normalize_money(value: Optional[str]) -> str:
    raw = WHITESPACE_RE.sub("", str(value if value is not None else ""))
    return raw.replace(",", ".", 1)


def parse_money(value: Optional[str]) -> Optional[Number]:
    """Return the numeric value of a money string, or None when it is blank.

    Callers validate first; an unparsable string also yields None.
    """
    normalized = normalize_money(value)
    if not normalized or not MONEY_RE.match(normalized):
        return None
    amount = float(normalized)
    if not math.isfinite(amount):
        return None
    return int(amount) if amount.is_integer() else amount


def validate_money(
    value: Optional[str],
    field_name: str,
    required: bool = False,
) -> ValidationResult:
    normalized = normalize_money(value)
    if not normalized:
        if required:
            return ValidationResult.fail(f"{field_name} es requerido")
        return ValidationResult.ok()

    if not MONEY_RE.match(normalized):
        return ValidationResult.fail(f"{field_name} debe ser un número válido")
    amount = float(normalized)
    if not math.isfinite(amount):
        return ValidationResult.fail(f"{field_name} debe ser un número válido")
    if amount < 0:
        return ValidationResult.fail(f"{field_name} no puede ser negativo")
    if amount > MAX_MONEY_VALUE:
        return ValidationResult.fail(f"{field_name} es demasiado alto")
    return ValidationResult.ok()


def validate_file(upload: Optional["UploadedFile"]) -> ValidationResult:
    if upload is None:
        return ValidationResult.ok()
    if upload.size > MAX_FILE_SIZE:
        limit_mb = MAX_FILE_SIZE // (1024 * 1024)
        return ValidationResult.fail(f"Archivo demasiado grande. Máximo {limit_mb}MB")
    if upload.content_type not in ALLOWED_FILE_TYPES:
        return ValidationResult.fail(
            "Tipo de archivo no permitido. Permitidos: PDF, PNG, JPG, DOC, DOCX"
        )
    return ValidationResult.ok()


def sanitize_string(value: object, max_length: int = MAX_STRING_LENGTH) -> str:
    # Only defuses angle brackets; this is not an HTML encoder.
    text = "" if value is None else str(value)
    return text.strip().replace("<", "").replace(">", "")[:max_length]
