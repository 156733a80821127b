# Services package init
"""
IDE Workspace — Services Layer
===============================

What:  Business logic between the routes (HTTP) and the database (persistence).
How:   Services take domain objects (Project, PathTable) and return new ones;
       routes only translate HTTP to service calls.

Service Inventory:
    - PathTable:          immutable flat file table keyed by path
    - TreeOps:            add / rename / move / remove / content edits
    - LanguageCapability: per-language templates, naming, entry point, runtime
    - ProjectStore:       snapshot persistence (SQLAlchemy)
    - AutosaveScheduler:  debounced saves of content edits
    - RemoteObjectStore:  git object store contract; GitHubClient implements it
    - SyncEngine:         push / pull / clone between a PathTable and a remote
    - ExecutionService:   Piston with Wandbox fallback behind a circuit breaker
    - WorkspaceService:   orchestrates all of the above for the routes
"""
