"""Pydantic schemas for job applications and their history.

Attributes are snake_case in Python and camelCase on the wire and on disk.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PipelineStage(str, Enum):
    RESEARCHED = "researched"
    APPLIED = "applied"
    PHONE_SCREEN = "phone_screen"
    INTERVIEW = "interview"
    FINAL = "final"
    OFFER = "offer"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


PIPELINE_STAGES = list(PipelineStage)
INITIAL_STAGE = PipelineStage.RESEARCHED

STAGE_TITLES = {
    PipelineStage.RESEARCHED: "Researched",
    PipelineStage.APPLIED: "Applied",
    PipelineStage.PHONE_SCREEN: "Phone Screen",
    PipelineStage.INTERVIEW: "Interview",
    PipelineStage.FINAL: "Final Round",
    PipelineStage.OFFER: "Offer",
    PipelineStage.REJECTED: "Rejected",
    PipelineStage.WITHDRAWN: "Withdrawn",
}


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NoteType(str, Enum):
    GENERAL = "general"
    INTERVIEW = "interview"
    RESEARCH = "research"
    FOLLOW_UP = "follow_up"


class CommunicationType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    MEETING = "meeting"
    MESSAGE = "message"


class CommunicationDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- History entities ----------

class StageTransition(CamelModel):
    id: str
    from_stage: Optional[PipelineStage] = None
    to_stage: PipelineStage
    timestamp: datetime
    notes: Optional[str] = None


class Note(CamelModel):
    id: str
    content: str
    timestamp: datetime
    type: NoteType = NoteType.GENERAL


class Communication(CamelModel):
    id: str
    type: CommunicationType
    direction: CommunicationDirection
    subject: Optional[str] = None
    content: str
    timestamp: datetime
    contact_person: Optional[str] = None


# ---------- Job application ----------

class JobApplication(CamelModel):
    id: str
    title: str
    company: str
    location: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    salary_range: Optional[str] = None
    application_deadline: Optional[datetime] = None
    stage: PipelineStage
    date_added: datetime
    stage_history: List[StageTransition] = Field(default_factory=list)
    notes: List[Note] = Field(default_factory=list)
    communications: List[Communication] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    source: str = "Manual Entry"


# ---------- Requests ----------
# Closed-set fields are plain strings here so the service can reject bad
# values with a 400 instead of FastAPI's 422.

class JobApplicationCreate(CamelModel):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    salary_range: Optional[str] = None
    application_deadline: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    priority: Optional[str] = None
    source: Optional[str] = None


class JobApplicationUpdate(CamelModel):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    salary_range: Optional[str] = None
    application_deadline: Optional[datetime] = None
    stage: Optional[str] = None
    tags: Optional[List[str]] = None
    priority: Optional[str] = None
    source: Optional[str] = None
    stage_history: Optional[List[StageTransition]] = None
    notes: Optional[List[Note]] = None
    communications: Optional[List[Communication]] = None


class NoteCreate(CamelModel):
    content: Optional[str] = None
    type: Optional[str] = None


class CommunicationCreate(CamelModel):
    type: Optional[str] = None
    direction: Optional[str] = None
    content: Optional[str] = None
    subject: Optional[str] = None
    contact_person: Optional[str] = None


# ---------- Responses ----------

class ApplicationPage(CamelModel):
    data: List[JobApplication]
    total: int
    page: int
    limit: int


class DeleteResponse(CamelModel):
    success: bool
    message: str
    deleted_job_application: JobApplication
