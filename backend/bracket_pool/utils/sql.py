"""
Guarded writes.

conditional_update() issues a single UPDATE ... WHERE <guard> inside the
session's transaction and reports how many rows matched. Callers use it for
check-and-set writes (draw gate, finalize claim, slot install, elimination)
and refresh any ORM instances the statement touched.
"""
from typing import Any, Dict, Type

import sqlalchemy as sa
from sqlmodel import Session, SQLModel


def conditional_update(session: Session, model: Type[SQLModel], *where: Any, values: Dict[str, Any]) -> int:
    """UPDATE model SET values WHERE all(where). Returns matched row count."""
    # Pending ORM changes must reach the DB before the guarded statement reads it
    session.flush()
    stmt = sa.update(model).where(*where).values(**values)
    result = session.connection().execute(stmt)
    return result.rowcount
