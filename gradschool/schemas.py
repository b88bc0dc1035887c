from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class DefenseRequestSubmitRequest(BaseModel):
    school_id: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    middle_name: str = ''
    last_name: str = Field(min_length=1)
    program: str = Field(min_length=1)
    thesis_title: str = ''
    defense_type: str
    defense_mode: Literal['face-to-face', 'online'] = 'face-to-face'
    submitted_by: int | None = None
    adviser_user_id: int | None = None
    defense_adviser: str = ''


class SchedulingChanges(BaseModel):
    defense_chairperson: str | None = None
    defense_panelist1: str | None = None
    defense_panelist2: str | None = None
    defense_panelist3: str | None = None
    defense_panelist4: str | None = None
    scheduled_date: date | None = None
    scheduled_time: str | None = None
    defense_mode: Literal['face-to-face', 'online'] | None = None
    defense_venue: str | None = None


class WorkflowTransitionRequest(BaseModel):
    action: Literal['receive', 'approve', 'reject', 'complete', 'resubmit', 'cancel']
    actor_user_id: int | None = None
    comment: str = ''
    coordinator_user_id: int | None = None
    changes: SchedulingChanges | None = None


class AaStatusUpdateRequest(BaseModel):
    status: Literal['pending', 'ready_for_finance', 'in_progress', 'paid', 'completed']
    actor_user_id: int | None = None
    remarks: str | None = None
