"""
Account model (chart of accounts).

Every account the ledger posts to: cash, receivables, revenue,
expenses. The chart itself is maintained elsewhere; here an
account carries its classification and a cached running balance.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Numeric, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core_ledger.models.base import Base
from core_ledger.models.enums import AccountType, EntrySide


class Account(Base):
    """
    A single account in the chart of accounts.

    ``balance`` is a denormalized cache of the ledger, signed
    debit-positive: it always equals the sum of (debit - credit)
    over the account's ledger entries. Only the ledger store
    writes to it.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum"),
        nullable=False,
    )
    normal_balance: Mapped[EntrySide] = mapped_column(
        SAEnum(EntrySide, name="entry_side_enum"),
        nullable=False,
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=Decimal("0.00")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account", order_by="LedgerEntry.id"
    )

    def __repr__(self) -> str:
        return f"<Account {self.code} ({self.account_type.value})>"
