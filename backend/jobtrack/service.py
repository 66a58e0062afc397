"""Application service: CRUD and stage transitions across the four relations.

Every application row is joined with its stage transitions, notes and
communications on `jobApplicationId`. History rows are only ever appended,
except when a caller explicitly replaces a child list through `update`.
"""
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Type

from loguru import logger

from .board import filter_applications
from .exceptions import NotFoundError, ValidationError
from .schemas import (
    INITIAL_STAGE,
    ApplicationPage,
    Communication,
    CommunicationCreate,
    CommunicationDirection,
    CommunicationType,
    JobApplication,
    JobApplicationCreate,
    JobApplicationUpdate,
    Note,
    NoteCreate,
    NoteType,
    PipelineStage,
    Priority,
    StageTransition,
)
from .store import (
    CHILD_RELATIONS,
    COMMUNICATIONS,
    FOREIGN_KEY,
    JOB_APPLICATIONS,
    NOTES,
    RELATIONS,
    STAGE_TRANSITIONS,
    RecordStore,
)

CHILD_FIELDS = {
    "stage_history": STAGE_TRANSITIONS,
    "notes": NOTES,
    "communications": COMMUNICATIONS,
}

RESOURCE = "Job application"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """`job_1718000000000_3fa85f6` style identifiers."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


def coerce_choice(enum_cls: Type[Enum], value, message: str, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(message, field=field) from None


def _choices(enum_cls: Type[Enum]) -> str:
    return ", ".join(member.value for member in enum_cls)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _application_row(application: JobApplication) -> dict:
    return application.model_dump(
        mode="json", by_alias=True, exclude=set(CHILD_FIELDS)
    )


def _child_row(item, application_id: str) -> dict:
    row = item.model_dump(mode="json", by_alias=True)
    row[FOREIGN_KEY] = application_id
    return row


def paginate(items: List[JobApplication], page: int = 1, limit: int = 50) -> ApplicationPage:
    """Slice a filtered list; `page` is 1-indexed."""
    start = (page - 1) * limit
    return ApplicationPage(data=items[start:start + limit], total=len(items), page=page, limit=limit)


class ApplicationService:
    """Enforces the application invariants over a RecordStore."""

    def __init__(self, store: RecordStore):
        self.store = store

    # ---------- Reads ----------

    def _join(self, row: dict, transitions: List[dict], notes: List[dict],
              communications: List[dict]) -> JobApplication:
        app_id = row.get("id")
        return JobApplication.model_validate({
            **row,
            "stageHistory": [t for t in transitions if t.get(FOREIGN_KEY) == app_id],
            "notes": [n for n in notes if n.get(FOREIGN_KEY) == app_id],
            "communications": [c for c in communications if c.get(FOREIGN_KEY) == app_id],
        })

    def list(self, search: Optional[str] = None,
             stage: Optional[str] = None) -> List[JobApplication]:
        """All applications, fully joined, optionally filtered."""
        rows = self.store.read_all(JOB_APPLICATIONS)
        transitions = self.store.read_all(STAGE_TRANSITIONS)
        notes = self.store.read_all(NOTES)
        communications = self.store.read_all(COMMUNICATIONS)

        applications = [self._join(row, transitions, notes, communications) for row in rows]
        if search:
            applications = filter_applications(applications, search, include_tags=True)
        if stage:
            applications = [a for a in applications if a.stage.value == stage]
        return applications

    def get(self, application_id: str) -> JobApplication:
        for application in self.list():
            if application.id == application_id:
                return application
        raise NotFoundError(RESOURCE, application_id)

    def _ensure_exists(self, application_id: str) -> None:
        rows = self.store.read_all(JOB_APPLICATIONS)
        if not any(row.get("id") == application_id for row in rows):
            raise NotFoundError(RESOURCE, application_id)

    def children(self, relation: str, application_id: str) -> List[dict]:
        """Raw child rows of one application, in stored order."""
        if relation not in CHILD_RELATIONS:
            raise ValueError(f"Not a child relation: {relation}")
        return [r for r in self.store.read_all(relation) if r.get(FOREIGN_KEY) == application_id]

    # ---------- Writes ----------

    def _append_children(self, relation: str, application_id: str, items: Iterable) -> None:
        rows = self.store.read_all(relation)
        rows.extend(_child_row(item, application_id) for item in items)
        self.store.write_all(relation, rows)

    def create(self, fields: JobApplicationCreate) -> JobApplication:
        if _is_blank(fields.title) or _is_blank(fields.company):
            raise ValidationError("Title and company are required fields")
        priority = Priority.MEDIUM
        if fields.priority is not None:
            priority = coerce_choice(
                Priority, fields.priority,
                f"Invalid priority. Must be one of: {_choices(Priority)}", "priority",
            )

        now = utcnow()
        application = JobApplication(
            id=new_id("job"),
            title=fields.title,
            company=fields.company,
            location=fields.location,
            url=fields.url,
            description=fields.description,
            salary_range=fields.salary_range,
            application_deadline=fields.application_deadline,
            stage=INITIAL_STAGE,
            date_added=now,
            stage_history=[
                StageTransition(
                    id=new_id("st"),
                    from_stage=None,
                    to_stage=INITIAL_STAGE,
                    timestamp=now,
                    notes="Job application created",
                )
            ],
            tags=fields.tags or [],
            priority=priority,
            source=fields.source or "Manual Entry",
        )

        rows = self.store.read_all(JOB_APPLICATIONS)
        rows.append(_application_row(application))
        self.store.write_all(JOB_APPLICATIONS, rows)
        self._append_children(STAGE_TRANSITIONS, application.id, application.stage_history)

        logger.info(f"Created job application {application.id} ({application.title} @ {application.company})")
        return application

    def _validate_update(self, data: dict) -> dict:
        if "stage" in data:
            data["stage"] = coerce_choice(
                PipelineStage, data["stage"],
                f"Invalid stage. Must be one of: {_choices(PipelineStage)}", "stage",
            )
        if "priority" in data:
            data["priority"] = coerce_choice(
                Priority, data["priority"],
                f"Invalid priority. Must be one of: {_choices(Priority)}", "priority",
            )
        for field in ("title", "company"):
            if field in data and _is_blank(data[field]):
                raise ValidationError(f"{field.capitalize()} cannot be empty", field=field)
        if "tags" in data and data["tags"] is None:
            data["tags"] = []
        return data

    def update(self, application_id: str, changes: JobApplicationUpdate) -> JobApplication:
        """Apply a partial update.

        A stage change appends exactly one transition. Child lists are
        replaced only when present in `changes`.
        """
        existing = self.get(application_id)
        data = self._validate_update(
            changes.model_dump(exclude_unset=True, exclude=set(CHILD_FIELDS))
        )
        replaced = {
            field: getattr(changes, field)
            for field in CHILD_FIELDS
            if field in changes.model_fields_set and getattr(changes, field) is not None
        }

        rows = self.store.read_all(JOB_APPLICATIONS)
        index = next((i for i, r in enumerate(rows) if r.get("id") == application_id), None)
        if index is None:
            raise NotFoundError(RESOURCE, application_id)

        updated = existing.model_copy(update=data)
        rows[index] = _application_row(updated)
        self.store.write_all(JOB_APPLICATIONS, rows)

        new_stage = data.get("stage")
        stage_changed = new_stage is not None and new_stage != existing.stage

        for field, relation in CHILD_FIELDS.items():
            if field not in replaced and not (relation == STAGE_TRANSITIONS and stage_changed):
                continue
            children = self.store.read_all(relation)
            if field in replaced:
                children = [r for r in children if r.get(FOREIGN_KEY) != application_id]
                children.extend(_child_row(item, application_id) for item in replaced[field])
            if relation == STAGE_TRANSITIONS and stage_changed:
                transition = StageTransition(
                    id=new_id("st"),
                    from_stage=existing.stage,
                    to_stage=new_stage,
                    timestamp=utcnow(),
                    notes="Stage updated via API",
                )
                children.append(_child_row(transition, application_id))
                logger.info(
                    f"Job application {application_id}: {existing.stage.value} -> {new_stage.value}"
                )
            self.store.write_all(relation, children)

        return self.get(application_id)

    def add_note(self, application_id: str, note: NoteCreate) -> Note:
        if _is_blank(note.content):
            raise ValidationError("Note content is required", field="content")
        note_type = NoteType.GENERAL
        if note.type:
            note_type = coerce_choice(
                NoteType, note.type,
                f"Invalid note type. Must be one of: {_choices(NoteType)}", "type",
            )
        self._ensure_exists(application_id)

        created = Note(
            id=new_id("note"),
            content=note.content.strip(),
            type=note_type,
            timestamp=utcnow(),
        )
        self._append_children(NOTES, application_id, [created])
        logger.info(f"Added note {created.id} to job application {application_id}")
        return created

    def add_communication(self, application_id: str, comm: CommunicationCreate) -> Communication:
        if _is_blank(comm.content):
            raise ValidationError("Communication content is required", field="content")
        comm_type = coerce_choice(
            CommunicationType, comm.type, "Valid communication type is required", "type"
        )
        direction = coerce_choice(
            CommunicationDirection, comm.direction,
            "Valid communication direction is required", "direction",
        )
        self._ensure_exists(application_id)

        created = Communication(
            id=new_id("comm"),
            type=comm_type,
            direction=direction,
            subject=None if _is_blank(comm.subject) else comm.subject.strip(),
            content=comm.content.strip(),
            contact_person=None if _is_blank(comm.contact_person) else comm.contact_person.strip(),
            timestamp=utcnow(),
        )
        self._append_children(COMMUNICATIONS, application_id, [created])
        logger.info(f"Added {comm_type.value} communication {created.id} to job application {application_id}")
        return created

    def delete(self, application_id: str) -> JobApplication:
        """Remove the application and cascade to every child relation."""
        existing = self.get(application_id)
        for relation in RELATIONS:
            key = "id" if relation == JOB_APPLICATIONS else FOREIGN_KEY
            rows = self.store.read_all(relation)
            self.store.write_all(relation, [r for r in rows if r.get(key) != application_id])
        logger.info(f"Deleted job application {application_id}")
        return existing
