"""Board projections: text search and one column per pipeline stage."""
from typing import Dict, Iterable, List, Optional

from .schemas import PIPELINE_STAGES, JobApplication, PipelineStage

STAGE_COLORS = {
    PipelineStage.RESEARCHED: "#D6D6F5",
    PipelineStage.APPLIED: "#F5D5A8",
    PipelineStage.PHONE_SCREEN: "#A8E0F5",
    PipelineStage.INTERVIEW: "#74B9FF",
    PipelineStage.FINAL: "#A29BFE",
    PipelineStage.OFFER: "#6BCB77",
    PipelineStage.REJECTED: "#E87171",
    PipelineStage.WITHDRAWN: "#B0B0B0",
}


def matches_search(
    application: JobApplication, query: Optional[str], include_tags: bool = False
) -> bool:
    """Case-insensitive substring match on title and company (and tags)."""
    if not query:
        return True
    term = query.lower()
    if term in application.title.lower() or term in application.company.lower():
        return True
    return include_tags and any(term in tag.lower() for tag in application.tags)


def filter_applications(
    applications: Iterable[JobApplication],
    query: Optional[str],
    include_tags: bool = False,
) -> List[JobApplication]:
    return [a for a in applications if matches_search(a, query, include_tags)]


def group_by_stage(
    applications: Iterable[JobApplication], query: Optional[str] = None
) -> Dict[PipelineStage, List[JobApplication]]:
    """Partition into one list per stage, in pipeline order.

    Every stage gets a key, and records keep their relative order.
    """
    columns: Dict[PipelineStage, List[JobApplication]] = {s: [] for s in PIPELINE_STAGES}
    for application in filter_applications(applications, query):
        columns[application.stage].append(application)
    return columns
