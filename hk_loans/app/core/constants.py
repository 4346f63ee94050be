# hk_loans/app/core/constants.py

"""
Constantes de negocio de HK Loans.

Aquí concentramos los "strings mágicos" que usamos en varios sitios:
- estados de préstamo y de parcela
- tipos de interés (espaciado de parcelas)
- categorías del flujo de caja (texto visible en la app, en portugués)
"""

from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    RENEGOTIATED = "RENEGOTIATED"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    INTEREST_PAID = "INTEREST_PAID"
    RENEGOTIATED = "RENEGOTIATED"


class InterestType(str, Enum):
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"


class PaymentType(str, Enum):
    FULL = "FULL"
    INTEREST_ONLY = "INTEREST_ONLY"


class TransactionType(str, Enum):
    IN = "IN"
    OUT = "OUT"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


# Estados de parcela que cuentan como "cobrados"
PAID_STATUSES = frozenset({InstallmentStatus.PAID, InstallmentStatus.INTEREST_PAID})

# ----------------------------
# Categorías del flujo de caja
# ----------------------------
CATEGORY_LOAN = "Empréstimo"
CATEGORY_COMMISSION = "Comissão"
CATEGORY_INSTALLMENT_PAYMENT = "Pagamento Parcela"
CATEGORY_INTEREST = "Juros"
CATEGORY_RENEGOTIATION = "Renegociação"
CATEGORY_DEFAULT = "Geral"

# ----------------------------
# Clientes
# ----------------------------
RATING_MIN = 1
RATING_MAX = 5
RATING_DEFAULT = 5
