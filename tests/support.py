"""Shared helpers for tests: isolated SQLite databases and seeded rows."""

from collections.abc import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cugino.core.database import get_db
from cugino.models import Base, EstablishmentRecord
from cugino.repositories.user_repository import SqlUserRepository
from cugino.services.user_service import UserCreateData, UserService

STRONG_PASSWORD = "Secure123!"


def make_session_factory() -> sessionmaker:
    """Fresh in-memory database shared by every session of the factory."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def add_establishment(session: Session, name: str = "Cugino Centre") -> int:
    record = EstablishmentRecord(name=name, type="restaurant")
    session.add(record)
    session.commit()
    return record.id


def make_service(session: Session) -> UserService:
    return UserService(SqlUserRepository(session))


def create_user(
    session: Session,
    name: str,
    role: str = "server",
    establishment_id: int | None = None,
    password: str = STRONG_PASSWORD,
):
    return make_service(session).create_user(
        UserCreateData(name=name, password=password, role=role, establishment_id=establishment_id)
    )


def make_client(factory: sessionmaker, raise_server_exceptions: bool = True) -> TestClient:
    """TestClient whose get_db dependency uses factory. Caller clears app.dependency_overrides."""
    from cugino.main import app

    def override_get_db() -> Generator[Session, None, None]:
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
