"""SQLAlchemy models for the commission back office."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salesdesk.database import Base

CLIENT_STATUS_ENUM = ("prospect", "signature", "validation", "installation", "resiliation")
TRANSACTION_STATUS_ENUM = ("calculee", "validee", "payee")

STATUS_CALCULATED = "calculee"
STATUS_VALIDATED = "validee"
STATUS_PAID = "payee"


class Distributor(Base):
    __tablename__ = "mlm_distributors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    referral_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("mlm_distributors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Snapshot of parent.level + 1 taken at registration.
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    recruited_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    commission_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    parent: Mapped["Distributor"] = relationship(remote_side=[id], back_populates="children")
    children: Mapped[list["Distributor"]] = relationship(
        back_populates="parent", order_by="Distributor.referral_code"
    )
    transactions: Mapped[list["CommissionTransaction"]] = relationship(
        back_populates="distributor", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("level >= 1", name="ck_distributors_level_positive"),
    )


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    seller_code: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    product_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="prospect")
    installed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    transactions: Mapped[list["CommissionTransaction"]] = relationship(back_populates="client")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CommissionRule(Base):
    __tablename__ = "mlm_commission_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    product_type: Mapped[str] = mapped_column(String(50), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        UniqueConstraint("level", "product_type", name="uq_rule_level_product"),
        CheckConstraint("rate >= 0 AND rate <= 100", name="ck_rules_rate_range"),
    )


class CommissionTransaction(Base):
    __tablename__ = "mlm_commission_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    distributor_id: Mapped[int] = mapped_column(
        ForeignKey("mlm_distributors.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[int | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    product_type: Mapped[str] = mapped_column(String(50), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_CALCULATED)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    distributor: Mapped[Distributor] = relationship(back_populates="transactions")
    client: Mapped[Client] = relationship(back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_distributor_month_status", "distributor_id", "month", "status"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "status IN ('calculee', 'validee', 'payee')",
            name="ck_transactions_status_valid",
        ),
    )
