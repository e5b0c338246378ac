"""
Disciplinary ticket schemas
"""
from datetime import datetime
from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_serializer
from orgflow.utils.datetime_utils import iso_utc
from orgflow.models.ticket import TicketStatus


class TicketCreateRequest(BaseModel):
    target_user_id: int = Field(..., description="User the ticket is filed against")
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    severity: Union[str, int] = Field("LOW", description="LOW, MEDIUM, HIGH, CRITICAL or the numeric penalty")
    is_anonymous: bool = Field(False, description="Hide the issuer's identity")


class TicketRespondRequest(BaseModel):
    action: str = Field(..., description="ACKNOWLEDGE, RESOLVE, CONTEST or VOID")
    contest_note: Optional[str] = Field(None, description="Required when contesting")


class TicketRespondResponse(BaseModel):
    status: TicketStatus
    current_score: Optional[float] = Field(None, description="Target's conduct score after a resolution")


class TicketOut(BaseModel):
    """issuer_id is always null on anonymous tickets"""
    id: int
    issuer_id: Optional[int] = None
    target_user_id: int
    title: str
    description: str
    severity: str
    penalty: int
    status: TicketStatus
    is_anonymous: bool
    contest_note: Optional[str] = None
    resolved_by_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_serializer("resolved_at", "created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class TicketListResponse(BaseModel):
    items: List[TicketOut]
    total: int
