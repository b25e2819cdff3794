"""ORM model for establishments (restaurants, food trucks, catering sites)."""

from sqlalchemy import Column, Integer, String, Text

from cugino.models.base import Base, TimestampMixin


class EstablishmentRecord(TimestampMixin, Base):
    """An establishment of the chain; servers are attached to exactly one."""

    __tablename__ = "establishments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    type = Column(String(32), nullable=False, default="restaurant")
    information = Column(Text, nullable=True)
