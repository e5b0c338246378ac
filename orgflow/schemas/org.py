"""
Org chart assignment schemas
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ReportsToUpdate(BaseModel):
    reports_to_id: Optional[int] = Field(None, description="Manager's user id; null clears the link")


class DepartmentHeadUpdate(BaseModel):
    user_id: int = Field(..., description="Department member to make head")


class UserOrgOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    department_id: Optional[int] = None
    reports_to_id: Optional[int] = None
    leave_balance: int
    conduct_score: float
    active: bool

    model_config = ConfigDict(from_attributes=True)


class DepartmentOut(BaseModel):
    id: int
    name: str
    head_id: Optional[int] = None
    active: bool

    model_config = ConfigDict(from_attributes=True)


class ApproverOut(BaseModel):
    id: int
    name: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class ApprovalChainOut(BaseModel):
    """Approvers a new request would pass through, nearest first"""
    user_id: int
    approvers: List[ApproverOut]
    auto_approved: bool = Field(..., description="True when the user's own requests are approved on submission")
