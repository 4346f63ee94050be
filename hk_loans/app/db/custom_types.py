# hk_loans/app/db/custom_types.py

"""
Tipos personalizados relacionados con la base de datos y los schemas.

- Money: alias tipado de Decimal, para representar importes monetarios.
- CENT: cuantizador a céntimos (NUMERIC(14, 2) en BD).
- to_money: conversión estricta a Decimal con 2 decimales.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, TypeAlias

# Alias de tipo: para el editor, Money es "un Decimal"
Money: TypeAlias = Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Convierte un valor a Decimal con 2 decimales (ROUND_HALF_UP).

    - None -> default (sumas vacías, columnas opcionales).
    - Valores no numéricos, NaN o infinito -> ValueError: nunca se
      convierte un dato erróneo en un importe cero.
    - float se pasa por str() para no arrastrar basura binaria.
    """
    if value is None:
        return default
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Importe no válido: {value!r}") from exc
    if not d.is_finite():
        raise ValueError(f"Importe no válido: {value!r}")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)
