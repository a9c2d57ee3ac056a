"""Declarative base for the generation tables (jobs, progress cursors, posts).

``create_all`` only sees tables whose models were imported, so callers that
create the schema import ``app.models`` first (see ``app.db.database``).
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

__all__ = ["Base"]
