"""
Create the demo users and print a bearer token for each.

    python -m chemflow.seed
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from chemflow.auth import TokenAuthenticator
from chemflow.config import get_settings
from chemflow.database import Base, build_engine, build_session_factory
from chemflow.logging_setup import configure_logging
from chemflow.models.domain import User
from chemflow.models.enums import Department, UserRole
from chemflow.services.repository import UserRepository
# Import models to register them with SQLAlchemy Base
from chemflow.models.audit import AuditLogRecord  # noqa: F401
from chemflow.models.records import TicketRecord, UserRecord  # noqa: F401

logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("admin", "Admin User", UserRole.ADMIN, Department.ENGINEERING, "admin@company.com"),
    ("approver", "Approver User", UserRole.APPROVER, Department.QUALITY, "approver@company.com"),
    ("user", "Regular User", UserRole.REQUESTER, Department.PRODUCTION, "user@company.com"),
]


def seed_users(db: Session) -> List[User]:
    """Create any demo user that does not exist yet. Existing users are left alone."""
    users = UserRepository(db)
    seeded = []
    for username, full_name, role, department, email in DEMO_USERS:
        user = users.get_by_username(username)
        if user is None:
            user = users.add(username, full_name, role, department=department, email=email)
            logger.info("Created user %s", username, extra={"user_id": user.id, "role": role.value})
        seeded.append(user)
    return seeded


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    authenticator = TokenAuthenticator(settings)

    db = build_session_factory(engine)()
    try:
        for user in seed_users(db):
            print(f"{user.username}\t{user.role.value}\t{authenticator.issue(user.id, user.role)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
