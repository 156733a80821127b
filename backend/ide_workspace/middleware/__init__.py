# Middleware package init
"""
IDE Workspace — Middleware Package
===================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: correlation ID for every log line of the request
    2. Logging: method, path, status and duration, tagged with the request ID
    3. CORS: FastAPI's CORSMiddleware for the editor origin

    Responses pass back through the chain in reverse, so the request ID is
    on the response headers and the log line carries the final status.
"""
