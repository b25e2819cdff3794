"""SQLAlchemy ORM models."""

from cugino.models.base import Base
from cugino.models.establishment import EstablishmentRecord
from cugino.models.user import UserRecord

__all__ = ["Base", "EstablishmentRecord", "UserRecord"]
