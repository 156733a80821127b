"""
IDE Workspace — Application Package Initializer
================================================

What: Marks the `ide_workspace` directory as a Python package.
Who:  Imported by uvicorn (`ide_workspace.main:app`), Alembic, and pytest.

Architecture Note:
    The workspace backend follows the same layered layout for all three
    language editors (Python, Java, C++):

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← editor shell: HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Tree, Sync, Execution)  │  ← PathTable, TreeOps, SyncEngine
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The file tree is a flat collection of path-keyed records. Nothing above
    the PathTable assumes a tree shape; hierarchy is derived from the paths.
"""

__version__ = "1.0.0"
