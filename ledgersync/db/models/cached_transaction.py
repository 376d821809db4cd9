"""Cached copy of a completed transaction from the remote bank ledger."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Text, Numeric, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.base import Base, UTCDateTime


class CachedTransaction(Base):
    """
    Stores transactions mirrored from the remote bank API.

    One row per remote transaction id. Rows are replaced in place when the
    same remote id is synced again.
    """

    __tablename__ = "cached_transactions"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Remote identification
    remote_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Remote transaction UUID, the upsert key",
    )
    remote_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Human-facing transaction identifier from the bank",
    )

    # Amounts
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        nullable=False,
        comment="Unsigned amount as reported by the bank",
    )
    signed_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        nullable=False,
        comment="Amount signed by side (negative for debit)",
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="EUR", comment="Currency code (ISO 4217)"
    )
    side: Mapped[Optional[str]] = mapped_column(
        String(10), nullable=True, index=True, comment="'debit' or 'credit'"
    )

    # Descriptive fields
    label: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Counterparty label"
    )
    reference: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Payment reference"
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    operation_type: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, index=True, comment="card, transfer, direct_debit..."
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True, comment="Remote status"
    )
    web_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Timestamps
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True, comment="When the bank settled the transaction"
    )
    emitted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, comment="When the transaction was emitted"
    )
    effective_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
        comment="settled_at, falling back to emitted_at; used for ordering",
    )

    # Raw payload, kept verbatim for display
    raw_data: Mapped[str] = mapped_column(
        Text, nullable=False, comment="JSON blob of the remote payload"
    )

    fetched_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="When this row was last written by a sync",
    )

    __table_args__ = (
        Index("idx_cached_transaction_status_effective", "status", "effective_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CachedTransaction(remote_id={self.remote_id}, amount={self.amount}, "
            f"currency={self.currency}, effective_at={self.effective_at})>"
        )
