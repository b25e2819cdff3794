"""ORM model for application users (auth and RBAC)."""

from sqlalchemy import Column, ForeignKey, Integer, String

from cugino.models.base import Base, TimestampMixin


class UserRecord(TimestampMixin, Base):
    """
    Persisted user row. Business rules live on cugino.domain.user.User;
    this class only maps columns.

    role: 'admin', 'manager' or 'server'
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="server")
    establishment_id = Column(
        Integer,
        ForeignKey("establishments.id", ondelete="RESTRICT", name="fk_users_establishment_id"),
        nullable=True,
        index=True,
    )
