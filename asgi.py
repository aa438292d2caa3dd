"""
asgi.py -- ASGI entry point for LoanDesk.

Run with:  uvicorn asgi:app --reload

Kept separate from api/main.py so process managers and the CLI in main.py
have one stable import path for the application object.
"""

from api.main import app

__all__ = ["app"]
