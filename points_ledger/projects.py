"""
projects.py - Project Registration

Writes the project documents the reward engine settles. Projects are owned
by the project-management workflow; this module gives it (and tests) a
transactional way to put a project in the store.
"""

from __future__ import annotations

from .core import Project, PROJECTS, SERVER_TIMESTAMP
from .store import DocumentStore


def register_project(store: DocumentStore, project: Project) -> Project:
    """
    Create a project document.

    Args:
        store: Target store
        project: Project record (normally with points_distributed=False)

    Returns:
        The project as written

    Raises:
        TransactionError: If a project with the same id already exists
    """
    def _create(txn):
        document = project.to_document()
        document["updatedAt"] = SERVER_TIMESTAMP
        txn.create(PROJECTS, project.id, document)
        return project

    return store.run_transaction(_create)
