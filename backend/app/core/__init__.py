"""
Core package — cross-cutting concerns.

Modules:
    config     — environment variables & settings
    logging    — structured JSON logging
    errors     — exception hierarchy & handlers
    middleware — request logging / request id
    security   — API key authentication
    health     — health check aggregation
    database   — async SQLAlchemy engine & sessions
    cache      — Redis cache layer
    container  — service wiring
"""
