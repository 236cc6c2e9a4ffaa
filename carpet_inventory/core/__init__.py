"""
Core application utilities.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with correlation id injection
- The domain error taxonomy mapped to HTTP status codes
- FastAPI dependency helpers (database session, session factory)
"""
