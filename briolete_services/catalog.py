"""Fixed value sets shared by validation and display."""

from __future__ import annotations

from enum import Enum
from typing import List, Type


class ServiceStatus(str, Enum):
    PENDING = "Pendiente"
    IN_PRODUCTION = "En fabricación"
    WARRANTY = "Garantía"
    DELIVERED = "Entregado"


class ServicePriority(str, Enum):
    WITHIN_24H = "24 horas"
    WITHIN_48H = "48 horas"
    WITHIN_72H = "72 horas"
    NORMAL = "Normal"


class Material(str, Enum):
    GOLD_14K = "Oro de 14k"
    GOLD_18K = "Oro 18k"
    SILVER_925 = "Plata 925"
    SILVER_950 = "Plata 950"


def choices(enum_cls: Type[Enum]) -> List[str]:
    return [member.value for member in enum_cls]


def is_choice(enum_cls: Type[Enum], value: str) -> bool:
    return value in choices(enum_cls)
