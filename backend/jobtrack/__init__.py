"""Kanban-style job application pipeline tracker.

Backend: FastAPI CRUD over four flat relations (applications, stage
transitions, notes, communications). Client: async API client, an
optimistic in-memory cache, and a drag-and-drop adapter.
"""

__version__ = "0.1.0"
