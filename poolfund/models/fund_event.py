"""
Fund event journal model.

One row per event the fund engine emitted, in commit order. The payload
keeps every amount as an exact integer; base-asset quantities routinely
exceed what a float or a 64-bit column can hold, so they are stored inside
JSON rather than in numeric columns.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index
from sqlmodel import Field, SQLModel

from poolfund.engine.events import EventKind


class FundEventRecord(SQLModel, table=True):
    """
    SQLModel table definition for ``fund_events``.

    - ``sequence`` is assigned when the service drains the engine's outbox;
      ordering by it reproduces the order operations committed in.
    - ``holder`` is only set for buy / sell events and is indexed for the
      per-holder history query.
    """

    __tablename__ = "fund_events"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_fund_events_fund_sequence", "fund_address", "sequence"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    fund_address: str = Field(max_length=255)
    sequence: int
    kind: EventKind = Field(index=True)
    holder: Optional[str] = Field(default=None, index=True, max_length=255)
    payload: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)  # type: ignore[arg-type]
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return (
            f"<FundEventRecord seq={self.sequence} kind={self.kind.value} "
            f"holder={self.holder}>"
        )
