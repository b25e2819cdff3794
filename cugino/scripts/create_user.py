"""
Create a user (e.g. first admin). Run from project root:
  python -m cugino.scripts.create_user NAME PASSWORD [role] [--establishment-id N]
Example:
  python -m cugino.scripts.create_user admin 'Your-s3cure!pass' admin
"""
import argparse
import sys

from cugino.core.config import get_settings
from cugino.core.database import SessionLocal
from cugino.core.errors import AppError
from cugino.core.logging_config import configure_logging
from cugino.domain.roles import Role
from cugino.repositories.user_repository import SqlUserRepository
from cugino.services.user_service import UserCreateData, UserService


def _format_error(exc: AppError) -> str:
    if isinstance(exc.details, list):
        return "; ".join(str(d) for d in exc.details)
    return exc.message


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Cugino user (no registration UI).")
    parser.add_argument("name", help="User name (2-255 chars)")
    parser.add_argument("password", help="Password (6-128 chars, mixed case, digit, special)")
    parser.add_argument("role", nargs="?", default="server", choices=[r.value for r in Role])
    parser.add_argument(
        "--establishment-id",
        type=int,
        default=None,
        help="Establishment id (required for servers)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)

    db = SessionLocal()
    try:
        service = UserService(SqlUserRepository(db), settings)
        user = service.create_user(
            UserCreateData(
                name=args.name,
                password=args.password,
                role=args.role,
                establishment_id=args.establishment_id,
            )
        )
    except AppError as exc:
        print(f"Could not create user: {_format_error(exc)}", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Created user '{user.name}' (id {user.id}) with role '{user.role.value}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
