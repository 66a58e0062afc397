"""Client-side mirror of the job applications with optimistic stage moves.

The cache owns its list; callers get tuples and fresh dicts, never the
list itself. Two concurrent transitions on the same record are not
coordinated: whichever finishes last decides what the cache shows.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .board import group_by_stage
from .client import ApiClient
from .exceptions import NotFoundError, TrackerError
from .schemas import JobApplication, PipelineStage
from .service import coerce_choice

FETCH_PAGE_SIZE = 50


@dataclass
class TransitionOutcome:
    """Result of sending a stage change: the server record or the failure."""

    record: Optional[JobApplication] = None
    error: Optional[TrackerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ApplicationCache:
    def __init__(self, client: ApiClient):
        self._client = client
        self._applications: List[JobApplication] = []
        self._loading = False
        self._error: Optional[str] = None
        self._search_query = ""
        self._selected_id: Optional[str] = None

    # ---------- Read-only views ----------

    @property
    def applications(self) -> Tuple[JobApplication, ...]:
        return tuple(self._applications)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def by_stage(self) -> Dict[PipelineStage, List[JobApplication]]:
        return group_by_stage(self._applications, self._search_query)

    @property
    def selected(self) -> Optional[JobApplication]:
        if self._selected_id is None:
            return None
        return self.find(self._selected_id)

    @property
    def count(self) -> int:
        return len(self._applications)

    def find(self, application_id: str) -> Optional[JobApplication]:
        index = self._index(application_id)
        return None if index is None else self._applications[index]

    # ---------- Internal mutation ----------

    def _index(self, application_id: str) -> Optional[int]:
        for i, application in enumerate(self._applications):
            if application.id == application_id:
                return i
        return None

    def _replace(self, record: JobApplication) -> None:
        index = self._index(record.id)
        if index is not None:
            self._applications[index] = record

    def _fail(self, message: str, exc: Exception) -> None:
        self._error = message
        logger.error(f"{message}: {exc}")

    # ---------- Actions ----------

    async def fetch(self) -> None:
        """Load every application from the server, page by page."""
        self._loading = True
        self._error = None
        try:
            loaded: List[JobApplication] = []
            page = 1
            while True:
                result = await self._client.list_applications(page=page, limit=FETCH_PAGE_SIZE)
                loaded.extend(result.data)
                if not result.data or len(loaded) >= result.total:
                    break
                page += 1
            self._applications = loaded
        except TrackerError as e:
            self._fail("Failed to fetch job applications", e)
            raise
        finally:
            self._loading = False

    async def create(self, fields: Dict[str, Any]) -> JobApplication:
        try:
            created = await self._client.create_application(fields)
        except TrackerError as e:
            self._fail("Failed to create job application", e)
            raise
        self._applications.append(created)
        return created

    async def update(self, application_id: str, fields: Dict[str, Any]) -> JobApplication:
        try:
            updated = await self._client.update_application(application_id, fields)
        except TrackerError as e:
            self._fail("Failed to update job application", e)
            raise
        self._replace(updated)
        return updated

    async def _send_stage(self, application_id: str, stage: PipelineStage) -> TransitionOutcome:
        try:
            record = await self._client.update_application(application_id, {"stage": stage.value})
        except TrackerError as e:
            return TransitionOutcome(error=e)
        return TransitionOutcome(record=record)

    async def stage_transition(self, application_id: str, target_stage) -> JobApplication:
        """Move a record to `target_stage`, showing the move before the server confirms.

        On failure the record is restored from its snapshot, the error slot
        is set, and the failure is re-raised.
        """
        target = coerce_choice(PipelineStage, target_stage, f"Invalid stage: {target_stage}", "stage")
        index = self._index(application_id)
        if index is None:
            raise NotFoundError("Job application", application_id)

        current = self._applications[index]
        if current.stage == target:
            logger.debug(f"Job application {application_id} already in {target.value}")
            return current

        snapshot = current.model_copy(deep=True)
        self._applications[index] = current.model_copy(update={"stage": target})

        outcome = await self._send_stage(application_id, target)
        if outcome.ok:
            self._replace(outcome.record)
            return outcome.record

        self._replace(snapshot)
        self._fail("Failed to update job application stage", outcome.error)
        raise outcome.error

    async def delete(self, application_id: str) -> None:
        try:
            await self._client.delete_application(application_id)
        except TrackerError as e:
            self._fail("Failed to delete job application", e)
            raise
        self._applications = [a for a in self._applications if a.id != application_id]
        if self._selected_id == application_id:
            self._selected_id = None

    def set_search_query(self, query: str) -> None:
        self._search_query = query

    def select(self, application_id: Optional[str]) -> None:
        self._selected_id = application_id

    def clear_error(self) -> None:
        self._error = None
