"""
Persistence of accepted openings.

An ``OpeningRecord`` stores one opening polygon together with the id of
the host surface it was cut into.  ``OpeningStore`` is the persistence
collaborator used by the pipeline: a run opens a transaction, creates
openings one by one and commits once at the end, so either all openings
produced by a batch are written or, if the batch itself blows up, none.
Each insert runs in its own savepoint so a single failed write does not
spoil the batch.

One store is shared by concurrent requests.  The active session is kept
per thread and a re-entrant lock serialises transactions, so a second
batch waits for the first one to commit or roll back.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, select

from .contours import Polygon
from .db import create_db_and_tables, get_engine, get_session

logger = logging.getLogger(__name__)


class OpeningRecord(SQLModel, table=True):
    """Database model representing an opening cut into a host surface.

    Vertices are stored as a JSON array of ``[x, y, z]`` triples in
    counter-clockwise order without the closing duplicate.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    opening_id: str = Field(index=True, unique=True)
    host_surface_id: str = Field(index=True)
    vertices_json: str
    vertex_count: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def vertices(self) -> List[List[float]]:
        return json.loads(self.vertices_json)


class OpeningStore:
    """Creates and lists ``OpeningRecord`` rows."""

    def __init__(self, engine: Engine | None = None) -> None:
        self.engine = engine or get_engine()
        create_db_and_tables(self.engine)
        self._local = threading.local()
        self._lock = threading.RLock()

    @property
    def _session(self) -> Optional[Session]:
        return getattr(self._local, "session", None)

    @contextmanager
    def transaction(self) -> Iterator["OpeningStore"]:
        """Group ``create_opening`` calls into one commit.

        Commits on normal exit and rolls back if the body raises.
        """
        if self._session is not None:
            # Nested use in the same thread joins the outer transaction.
            yield self
            return
        with self._lock:
            session = get_session(self.engine)
            self._local.session = session
            try:
                yield self
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                self._local.session = None
                session.close()

    def create_opening(self, host_surface_id: str, polygon: Polygon) -> Optional[str]:
        """Record an opening; return its id, or ``None`` if it was refused."""
        verts = polygon.vertices
        if len(verts) < 3:
            logger.warning(
                "Refusing opening on %s with %d vertices", host_surface_id, len(verts)
            )
            return None
        opening_id = uuid.uuid4().hex
        record = OpeningRecord(
            opening_id=opening_id,
            host_surface_id=host_surface_id,
            vertices_json=json.dumps([list(p) for p in verts]),
            vertex_count=len(verts),
        )
        session = self._session
        if session is not None:
            with session.begin_nested():
                session.add(record)
        else:
            with self._lock, get_session(self.engine) as own:
                own.add(record)
                own.commit()
        return opening_id

    def list_openings(self, host_surface_id: str) -> List[OpeningRecord]:
        """Return committed openings of ``host_surface_id`` in creation order."""
        with self._lock, get_session(self.engine) as session:
            statement = (
                select(OpeningRecord)
                .where(OpeningRecord.host_surface_id == host_surface_id)
                .order_by(OpeningRecord.id)
            )
            return list(session.exec(statement))
