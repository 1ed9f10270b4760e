"""
The auth module provides user authentication against Supabase Auth:
registration, password and OAuth sign-in, sign-out, password recovery and the
callback that turns a one-time code into a session and a local profile.

This __init__.py file exposes the main router for the auth module,
making it easy to include in the main FastAPI application.
"""

from .routers import router

__all__ = ["router"]
