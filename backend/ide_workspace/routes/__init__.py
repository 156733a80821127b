# Routes package init
"""
IDE Workspace — API Routes Package
===================================

What:  HTTP route handlers for the editor shell.

Route Inventory:
    - projects.py:  /api/projects              (list, create)
                    /api/projects/{id}         (load, rename, delete, save)
                    /api/projects/{id}/...     (tree edits, contents, packages)
    - sync.py:      /api/projects/{id}/push, /pull, /api/projects/clone
    - run.py:       /api/projects/{id}/run
    - health.py:    /health

Design Principle:
    Routes are THIN: parse the request, call WorkspaceService, return the
    model. Errors propagate to the handlers registered in main.py.
"""
