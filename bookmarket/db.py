from contextlib import contextmanager
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


@contextmanager
def committing():
    """Unit of work on the request session: commit on exit, roll back on error."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
