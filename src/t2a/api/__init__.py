"""
FastAPI REST API Layer for t2a.

    - routes.py: HTTP endpoints
    - responses.py: Streamed / JSON / error responses and artifact hand-off
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
