# hk_loans/app/utils/text_utils.py

"""
Utilidades de texto reutilizables en toda la app.

- blank_to_none: trim y "" -> None (evita chocar con la UNIQUE de CPF
  cuando el formulario manda campos vacíos).
- only_digits: deja solo los dígitos (CPF, WhatsApp).
- normalize_username: minúsculas y sin espacios.
"""

from __future__ import annotations

from typing import Optional


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """
    - None -> None
    - "  hola  " -> "hola"
    - "   " -> None
    """
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def only_digits(value: Optional[str]) -> Optional[str]:
    """
    Elimina todo lo que no sea dígito. Si no queda nada -> None.

    - "123.456.789-00" -> "12345678900"
    """
    if value is None:
        return None
    s = "".join(c for c in str(value) if c.isdigit())
    return s or None


def normalize_username(value: Optional[str]) -> Optional[str]:
    return value.strip().lower() if value else None
