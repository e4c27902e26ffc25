from collections.abc import Generator

from .session import SessionLocalCrib


def get_crib_db() -> Generator:
    db = SessionLocalCrib()
    try:
        yield db
    finally:
        db.close()
