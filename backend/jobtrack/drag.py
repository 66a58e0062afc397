"""Drag and drop between board columns."""
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .cache import ApplicationCache
from .exceptions import TrackerError
from .schemas import JobApplication, PipelineStage
from .service import coerce_choice


@dataclass
class DragState:
    dragged: Optional[JobApplication] = None
    over_stage: Optional[PipelineStage] = None

    @property
    def is_dragging(self) -> bool:
        return self.dragged is not None


class DragAndDrop:
    """Turns drop events into stage transitions on the cache.

    Rollback on failure is the cache's job; this layer only logs and
    re-raises.
    """

    def __init__(self, cache: ApplicationCache):
        self.cache = cache
        self.state = DragState()

    def start(self, application: JobApplication) -> None:
        self.state = DragState(dragged=application)

    def enter(self, stage: PipelineStage) -> None:
        self.state.over_stage = coerce_choice(PipelineStage, stage, f"Invalid stage: {stage}", "stage")

    def cancel(self) -> None:
        self.state = DragState()

    async def drop(self, stage: PipelineStage) -> Optional[JobApplication]:
        dragged = self.state.dragged
        self.state = DragState()
        if dragged is None:
            return None
        return await self.move(dragged, stage)

    async def move(self, application: JobApplication, target_stage: PipelineStage) -> Optional[JobApplication]:
        target_stage = coerce_choice(PipelineStage, target_stage, f"Invalid stage: {target_stage}", "stage")
        if application.stage == target_stage:
            logger.debug("Job application already in target stage, no update needed")
            return None

        logger.info(f'Moving "{application.title}" from {application.stage.value} to {target_stage.value}')
        try:
            self.cache.clear_error()
            moved = await self.cache.stage_transition(application.id, target_stage)
        except TrackerError as e:
            logger.error(f"Failed to move job application {application.id} to {target_stage.value}: {e}")
            raise
        logger.info(f'Moved "{application.title}" to {target_stage.value}')
        return moved
