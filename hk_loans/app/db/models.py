# ============================================================
# HK Loans - Modelos SQLAlchemy
# - Todo lo de negocio cuelga de un usuario (tenant), directa o
#   transitivamente vía Client.
# - Borrado de usuario -> cascada a clientes (y préstamos/parcelas/
#   documentos), socios, transacciones y suscripciones.
# - Importes en NUMERIC(14, 2) (Decimal en Python).
# ============================================================

import sqlalchemy as sa
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer,
    Numeric, String, Text, UniqueConstraint, Index, Enum as SAEnum, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from hk_loans.app.db.base import Base
from hk_loans.app.core.constants import (
    InstallmentStatus,
    InterestType,
    LoanStatus,
    Role,
    SubscriptionStatus,
    TransactionType,
    RATING_DEFAULT,
)
from hk_loans.app.utils.id_utils import (
    generate_client_id,
    generate_document_id,
    generate_installment_id,
    generate_loan_id,
    generate_partner_id,
    generate_plan_id,
    generate_subscription_id,
    generate_transaction_id,
)


def _enum(enum_cls, name: str):
    # VARCHAR + CHECK en cualquier dialecto (sin tipos nativos de Postgres)
    return SAEnum(enum_cls, name=name, native_enum=False, create_constraint=True, length=20)


# =============================================
# 1. PLANES Y SUSCRIPCIONES
# =============================================

class Plan(Base):
    __tablename__ = "plans"

    id          = Column(String, primary_key=True, default=generate_plan_id)
    name        = Column(String, nullable=False, unique=True)
    price       = Column(Numeric(14, 2), nullable=False, server_default=text("0"))
    description = Column(Text)
    max_clients = Column(Integer, nullable=False, server_default=text("100"))
    max_loans   = Column(Integer, nullable=False, server_default=text("100"))
    created_at  = Column(DateTime(timezone=True), server_default=func.now())

    users         = relationship("User", back_populates="plan")
    subscriptions = relationship("Subscription", back_populates="plan", cascade="all, delete-orphan")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id         = Column(String, primary_key=True, default=generate_subscription_id)
    user_id    = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id    = Column(String, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    status     = Column(_enum(SubscriptionStatus, "subscription_status"), nullable=False,
                        default=SubscriptionStatus.ACTIVE)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("Plan", back_populates="subscriptions")


# =============================================
# 2. USUARIOS (tenants)
# =============================================

class User(Base):
    __tablename__ = "users"

    id         = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username   = Column(String, unique=True, index=True, nullable=False)
    password   = Column(String, nullable=False)  # hash bcrypt
    name       = Column(String, nullable=False, server_default="")
    role       = Column(_enum(Role, "role_enum"), nullable=False, default=Role.USER)
    active     = Column(Boolean, nullable=False, default=True, server_default=sa.true())
    plan_id    = Column(String, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    plan          = relationship("Plan", back_populates="users")
    clients       = relationship("Client", back_populates="user", cascade="all, delete-orphan")
    partners      = relationship("Partner", back_populates="user", cascade="all, delete-orphan")
    transactions  = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")


# =============================================
# 3. CLIENTES Y DOCUMENTOS
# =============================================

class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        UniqueConstraint("user_id", "cpf", name="uq_client_user_cpf"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_client_rating_1_5"),
    )

    id          = Column(String, primary_key=True, default=generate_client_id)
    user_id     = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name        = Column(String, nullable=False)
    whatsapp    = Column(String)
    cpf         = Column(String)
    rg          = Column(String)
    address     = Column(String)
    mother_name = Column(String)
    pix         = Column(String)
    bank        = Column(String)
    observation = Column(Text)
    rating      = Column(Integer, nullable=False, default=RATING_DEFAULT, server_default=text("5"))
    group_name  = Column(String, index=True)
    created_at  = Column(DateTime(timezone=True), server_default=func.now())

    user      = relationship("User", back_populates="clients")
    loans     = relationship("Loan", back_populates="client", cascade="all, delete-orphan")
    documents = relationship(
        "ClientDocument",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="ClientDocument.created_at",
    )


class ClientDocument(Base):
    __tablename__ = "client_documents"

    id         = Column(String, primary_key=True, default=generate_document_id)
    client_id  = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    name       = Column(String, nullable=False)
    url        = Column(String, nullable=False)
    mime_type  = Column(String, nullable=False)
    size       = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    client = relationship("Client", back_populates="documents")


# =============================================
# 4. SOCIOS (comisión por referencia)
# =============================================

class Partner(Base):
    __tablename__ = "partners"

    id              = Column(String, primary_key=True, default=generate_partner_id)
    user_id         = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name            = Column(String, nullable=False)
    pix_key         = Column(String)
    commission_rate = Column(Numeric(5, 2))  # % sobre el beneficio
    created_at      = Column(DateTime(timezone=True), server_default=func.now())

    user  = relationship("User", back_populates="partners")
    loans = relationship("Loan", back_populates="partner")


# ============================
# 5. Préstamo (cabecera)
# ============================

class Loan(Base):
    __tablename__ = "loans"

    id               = Column(String, primary_key=True, default=generate_loan_id)
    client_id        = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    partner_id       = Column(String, ForeignKey("partners.id", ondelete="SET NULL"), nullable=True, index=True)
    original_loan_id = Column(String, ForeignKey("loans.id", ondelete="SET NULL"), nullable=True, index=True)

    amount        = Column(Numeric(14, 2), nullable=False)  # principal
    total_amount  = Column(Numeric(14, 2), nullable=False)  # principal + interés pactado
    interest_rate = Column(Numeric(9, 2), nullable=False, server_default=text("0"))  # solo display
    interest_type = Column(_enum(InterestType, "interest_type"), nullable=False, default=InterestType.MONTHLY)
    start_date    = Column(Date, nullable=False)
    status        = Column(_enum(LoanStatus, "loan_status"), nullable=False, default=LoanStatus.ACTIVE, index=True)
    created_at    = Column(DateTime(timezone=True), server_default=func.now())

    client  = relationship("Client", back_populates="loans")
    partner = relationship("Partner", back_populates="loans")
    installments = relationship(
        "Installment",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="Installment.number",
    )
    original_loan = relationship("Loan", remote_side=[id], back_populates="successors")
    successors    = relationship("Loan", back_populates="original_loan")


# ============================
# Parcelas
# ============================

class Installment(Base):
    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("loan_id", "number", name="uq_installment_loan_number"),
        CheckConstraint(
            "status IN ('PAID', 'INTEREST_PAID') OR paid_amount IS NULL OR paid_amount = 0",
            name="ck_installment_paid_amount_only_when_paid",
        ),
        Index("ix_installment_status_due", "status", "due_date"),
    )

    id          = Column(String, primary_key=True, default=generate_installment_id)
    loan_id     = Column(String, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    number      = Column(Integer, nullable=False)
    amount      = Column(Numeric(14, 2), nullable=False)
    due_date    = Column(Date, nullable=False)
    status      = Column(_enum(InstallmentStatus, "installment_status"), nullable=False,
                         default=InstallmentStatus.PENDING)
    paid_amount = Column(Numeric(14, 2), nullable=True)
    paid_date   = Column(Date, nullable=True)

    loan = relationship("Loan", back_populates="installments")


# =============================================
# 6. FLUJO DE CAJA
# =============================================

class Transaction(Base):
    __tablename__ = "transactions"

    id          = Column(String, primary_key=True, default=generate_transaction_id)
    user_id     = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Referencia opcional al préstamo que originó el movimiento
    loan_id     = Column(String, ForeignKey("loans.id", ondelete="SET NULL"), nullable=True, index=True)
    type        = Column(_enum(TransactionType, "transaction_type"), nullable=False)
    amount      = Column(Numeric(14, 2), nullable=False)
    category    = Column(String, nullable=False)
    description = Column(String, nullable=False, server_default="")
    date        = Column(Date, nullable=False, index=True)
    created_at  = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="transactions")
