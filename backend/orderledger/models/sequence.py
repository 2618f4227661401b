"""
SQLAlchemy model for sequence counters
Project: Order Ledger
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from orderledger.models import Base


class SequenceCounter(Base):
    """
    Named counter producing human-facing sequential numbers
    (order_no, client_no).

    The row is locked while incremented, inside the same transaction
    that creates the numbered entity.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter(name={self.name}, value={self.value})>"
