from __future__ import annotations

from datetime import date, datetime
from typing import Optional, List, Literal, Dict
from pydantic import AliasChoices, BaseModel, Field


class WorkingTimesRequest(BaseModel):
    # Existing callers send "doctor"; newer ones send "providerId".
    provider_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("doctor", "providerId", "provider_id")
    )
    date: str = Field(..., min_length=1, max_length=20)


class ErrorReply(BaseModel):
    code: int
    message: str


class ScheduleEntryOut(BaseModel):
    id: str
    date: str
    working_times: str
    slots: Optional[List[int]] = None


class SchedulesResponse(BaseModel):
    data: List[ScheduleEntryOut]


class WorkingTimesResponse(BaseModel):
    provider_id: str
    date: str
    working_times: str
    slots: List[int]


class UpdateWorkingTimesRequest(BaseModel):
    working_times: List[int] = Field(..., max_length=96)


class UpdateWorkingTimesResponse(BaseModel):
    data: ScheduleEntryOut
    message: Literal["successfully"]


class GenerationSummary(BaseModel):
    today: date
    providers_seen: int
    created: Dict[str, int]
    template_errors: Dict[str, str]
    failures: Dict[str, str]


class PruneSummary(BaseModel):
    today: date
    deleted: int


class RunReportResponse(BaseModel):
    ok: bool
    started_at: datetime
    generation: Optional[GenerationSummary] = None
    pruning: Optional[PruneSummary] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok"]
