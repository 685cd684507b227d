"""
FastAPI Task Manager backend package.

Tasks are stored in a document store (memory, SQLite or Firestore) and their
images in an object storage bucket (memory, local directory or Supabase).
The ASGI application lives in ``task_api.main:app``.
"""

__version__ = "0.1.0"
