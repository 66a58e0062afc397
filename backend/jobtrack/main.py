from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from loguru import logger

from .board import STAGE_COLORS, group_by_stage
from .config import settings
from .exceptions import NotFoundError, TrackerError, ValidationError
from .logging_config import configure_logging
from .schemas import (
    PIPELINE_STAGES,
    STAGE_TITLES,
    ApplicationPage,
    Communication,
    CommunicationCreate,
    DeleteResponse,
    JobApplication,
    JobApplicationCreate,
    JobApplicationUpdate,
    Note,
    NoteCreate,
)
from .service import ApplicationService, paginate
from .store import create_store


@lru_cache
def get_service() -> ApplicationService:
    return ApplicationService(create_store(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    logger.info(f"{settings.APP_NAME} v{settings.VERSION} started")
    yield
    logger.info("Shutting down")


app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)

# CORS: allow local scripts and other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


# ---------- Error mapping ----------

@app.exception_handler(TrackerError)
async def tracker_exception_handler(request: Request, exc: TrackerError):
    if isinstance(exc, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        logger.opt(exception=exc).error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# ---------- Health ----------

@app.get("/health")
def health(service: ApplicationService = Depends(get_service)):
    return {
        "status": "healthy",
        "service": "jobtrack",
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": service.store.__class__.__name__,
    }


# ---------- API Endpoints ----------

@app.get("/job-applications", response_model=ApplicationPage)
def list_job_applications(
    search: Optional[str] = None,
    stage: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
    service: ApplicationService = Depends(get_service),
):
    return paginate(service.list(search=search, stage=stage), page, limit)


@app.post("/job-applications", response_model=JobApplication, status_code=status.HTTP_201_CREATED)
def create_job_application(
    body: JobApplicationCreate, service: ApplicationService = Depends(get_service)
):
    return service.create(body)


@app.get("/job-applications/{job_id}", response_model=JobApplication)
def get_job_application(job_id: str, service: ApplicationService = Depends(get_service)):
    return service.get(job_id)


@app.patch("/job-applications/{job_id}", response_model=JobApplication)
def update_job_application(
    job_id: str,
    body: JobApplicationUpdate,
    service: ApplicationService = Depends(get_service),
):
    return service.update(job_id, body)


@app.delete("/job-applications/{job_id}", response_model=DeleteResponse)
def delete_job_application(job_id: str, service: ApplicationService = Depends(get_service)):
    deleted = service.delete(job_id)
    return DeleteResponse(
        success=True,
        message="Job application deleted successfully",
        deleted_job_application=deleted,
    )


@app.post("/job-applications/{job_id}/notes", response_model=Note, status_code=status.HTTP_201_CREATED)
def add_note(job_id: str, body: NoteCreate, service: ApplicationService = Depends(get_service)):
    return service.add_note(job_id, body)


@app.post(
    "/job-applications/{job_id}/communications",
    response_model=Communication,
    status_code=status.HTTP_201_CREATED,
)
def add_communication(
    job_id: str, body: CommunicationCreate, service: ApplicationService = Depends(get_service)
):
    return service.add_communication(job_id, body)


# ---------- Board HTML ----------

@app.get("/", response_class=HTMLResponse)
def board(
    request: Request,
    search: Optional[str] = None,
    service: ApplicationService = Depends(get_service),
):
    applications = service.list()
    columns = group_by_stage(applications, search)

    return templates.TemplateResponse(
        request,
        "board.html",
        {
            "columns": columns,
            "stages": PIPELINE_STAGES,
            "stage_titles": STAGE_TITLES,
            "stage_colors": STAGE_COLORS,
            "search": search or "",
            "total": len(applications),
        },
    )


def run() -> None:
    import uvicorn

    configure_logging(settings)
    uvicorn.run("jobtrack.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
