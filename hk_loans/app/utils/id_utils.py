# hk_loans/app/utils/id_utils.py

"""
Utilidades para la generación de IDs en HK Loans.

Objetivo:
- Tener un único sitio donde se definan los patrones de IDs
  (prefijos, longitud, alfabeto).
- Los modelos los usan como `default=` de la PK, así ningún router
  tiene que acordarse de generarlos.

Incluye:
- random_code: genera un código aleatorio dado un alfabeto.
- generate_random_id: ID <prefix><codigo> sin comprobar BD. El espacio
  (36^10) hace la colisión muy improbable y, si ocurriera, el insert
  falla con IntegrityError y la operación entera se revierte.
- Wrappers específicos por entidad.
"""

from __future__ import annotations

import secrets
import string

# Alfabetos que reutilizaremos
UPPER_ALNUM = string.ascii_uppercase + string.digits
LOWER_ALNUM = string.ascii_lowercase + string.digits

DEFAULT_LENGTH = 10


def random_code(length: int = DEFAULT_LENGTH, *, alphabet: str = UPPER_ALNUM) -> str:
    """
    Genera un código aleatorio de `length` caracteres a partir del
    alfabeto indicado.

    Ejemplo:
        random_code(6, alphabet=UPPER_ALNUM) -> 'A3Z91B'
    """
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_random_id(
    prefix: str,
    *,
    length: int = DEFAULT_LENGTH,
    alphabet: str = UPPER_ALNUM,
) -> str:
    """
    Genera un ID del estilo <prefix><codigo>.

    Ejemplo:
        generate_random_id("LOAN-") -> 'LOAN-A1B2C3D4E5'
    """
    return f"{prefix}{random_code(length=length, alphabet=alphabet)}"


def generate_plan_id() -> str:
    return generate_random_id("PLAN-")


def generate_subscription_id() -> str:
    return generate_random_id("SUB-")


def generate_client_id() -> str:
    return generate_random_id("CLI-")


def generate_document_id() -> str:
    return generate_random_id("DOC-")


def generate_partner_id() -> str:
    return generate_random_id("PAR-")


def generate_loan_id() -> str:
    return generate_random_id("LOAN-")


def generate_installment_id() -> str:
    return generate_random_id("INST-")


def generate_transaction_id() -> str:
    return generate_random_id("TRX-")


def generate_stored_filename(original: str) -> str:
    """
    Nombre de fichero en disco para un documento subido:
    <codigo>-<nombre original saneado>.
    """
    safe = "".join(c if c.isalnum() or c in "._-" else "_" for c in (original or "file"))
    return f"{random_code(12, alphabet=LOWER_ALNUM)}-{safe[-80:] or 'file'}"
