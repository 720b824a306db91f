from datetime import datetime

from sqlalchemy.orm import DeclarativeBase

from app.rules.phase import to_db_time, utcnow


def db_now() -> datetime:
    return to_db_time(utcnow())


class Base(DeclarativeBase):
    pass
