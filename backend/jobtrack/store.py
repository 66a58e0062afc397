"""Record store for the four tracker relations.

Supports JSON files (default, mock datastore) and SQLAlchemy (any database
URL, one JSON row per relation). Both replace a whole relation per write and
scan linearly on read.
"""

import json
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, settings as default_settings
from .database import get_engine, get_session, get_session_factory, init_db
from .exceptions import StorageError
from .models import RelationRecord

JOB_APPLICATIONS = "jobApplications"
STAGE_TRANSITIONS = "stageTransitions"
NOTES = "notes"
COMMUNICATIONS = "communications"

RELATIONS = (JOB_APPLICATIONS, STAGE_TRANSITIONS, NOTES, COMMUNICATIONS)
CHILD_RELATIONS = (STAGE_TRANSITIONS, NOTES, COMMUNICATIONS)

FOREIGN_KEY = "jobApplicationId"


def _check_relation(relation: str) -> None:
    if relation not in RELATIONS:
        raise ValueError(f"Unknown relation: {relation}")


def relation_filename(relation: str) -> str:
    """`stageTransitions` -> `stage-transitions.json`."""
    kebab = "".join(f"-{c.lower()}" if c.isupper() else c for c in relation)
    return f"{kebab}.json"


class RecordStore(Protocol):
    """Storage backend protocol."""

    def read_all(self, relation: str) -> List[dict]:
        """Return every row of the relation, or [] if it cannot be read."""
        ...

    def write_all(self, relation: str, rows: List[dict]) -> None:
        """Replace the relation with `rows`; raises StorageError on failure."""
        ...


class JSONFileStore:
    """One pretty-printed JSON array per relation under `data_dir`.

    Writes land in a temp file that is renamed over the target, and a
    per-relation lock serialises writers within this process.
    """

    def __init__(self, data_dir: str = "./data"):
        self.data_dir = Path(data_dir)
        self._locks: Dict[str, threading.Lock] = {r: threading.Lock() for r in RELATIONS}

    def path_for(self, relation: str) -> Path:
        _check_relation(relation)
        return self.data_dir / relation_filename(relation)

    def read_all(self, relation: str) -> List[dict]:
        path = self.path_for(relation)
        if not path.exists():
            return []
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as e:
            logger.error(f"Error reading {relation} from {path}: {e}")
            return []
        if not isinstance(rows, list):
            logger.warning(f"{path} does not hold a JSON array, treating as empty")
            return []
        return rows

    def write_all(self, relation: str, rows: List[dict]) -> None:
        path = self.path_for(relation)
        tmp = path.with_name(path.name + ".tmp")
        with self._locks[relation]:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(rows, indent=2, default=str), encoding="utf-8")
                os.replace(tmp, path)
            except OSError as e:
                logger.error(f"Error writing {relation} to {path}: {e}")
                raise StorageError(f"Failed to write {relation}: {e}") from e
        logger.debug(f"Wrote {len(rows)} rows to {relation}")


class SQLRecordStore:
    """SQLAlchemy-backed store keeping each relation as a JSON column value."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.engine = get_engine(url, echo=echo)
        self._factory = get_session_factory(self.engine)
        init_db(self.engine)

    def read_all(self, relation: str) -> List[dict]:
        _check_relation(relation)
        try:
            with get_session(self._factory) as session:
                record = session.get(RelationRecord, relation)
                return list(record.rows) if record and record.rows else []
        except SQLAlchemyError as e:
            logger.error(f"Error reading {relation} from database: {e}")
            return []

    def write_all(self, relation: str, rows: List[dict]) -> None:
        _check_relation(relation)
        # Round-trip through json so datetimes and enums become text
        payload = json.loads(json.dumps(rows, default=str))
        try:
            with get_session(self._factory) as session:
                record = session.get(RelationRecord, relation)
                if record is None:
                    session.add(RelationRecord(name=relation, rows=payload))
                else:
                    record.rows = payload
        except SQLAlchemyError as e:
            logger.error(f"Error writing {relation} to database: {e}")
            raise StorageError(f"Failed to write {relation}: {e}") from e


def create_store(settings: Optional[Settings] = None) -> RecordStore:
    """Build the record store selected by STORE_BACKEND."""
    settings = settings or default_settings
    if settings.STORE_BACKEND == "sql":
        store = SQLRecordStore(settings.DATABASE_URL, echo=settings.DEBUG)
    else:
        store = JSONFileStore(settings.DATA_DIR)
    logger.info(f"Record store: {store.__class__.__name__}")
    return store
