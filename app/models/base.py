"""SQLAlchemy declarative Base with deterministic index and constraint names."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Index and unique-constraint names are what the driver reports on a unique
# violation; app.services.db_errors matches on them.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
}


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
