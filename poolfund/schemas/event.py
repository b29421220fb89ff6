"""Pydantic schemas for the fund event journal."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from poolfund.engine.events import EventKind


class FundEventResponse(BaseModel):
    id: UUID
    sequence: int
    kind: EventKind
    holder: Optional[str] = None
    payload: Dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
