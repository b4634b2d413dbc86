"""
User storage with idempotent registration.

Registration may race: two first-sighting requests for the same identity
subject can both try to register. The unique constraints on keycloak_id and
email decide the winner; the loser reads back the winning row instead of
creating a second one.
"""
import logging
from typing import Callable, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.security import IdentityClaim, get_password_hash
from models import User

logger = logging.getLogger(__name__)


def _find_existing(db: Session, claim: IdentityClaim) -> Optional[User]:
    conditions = [User.keycloak_id == claim.subject]
    if claim.email:
        conditions.append(User.email == claim.email)
    return db.query(User).filter(or_(*conditions)).first()


class UserStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, user_id: str) -> Optional[User]:
        """Look up by internal id or by identity subject."""
        db = self._session_factory()
        try:
            return (
                db.query(User)
                .filter(or_(User.id == user_id, User.keycloak_id == user_id))
                .first()
            )
        finally:
            db.close()

    def exists(self, user_id: str) -> bool:
        return self.get(user_id) is not None

    def register(self, claim: IdentityClaim, password: str) -> Tuple[User, bool]:
        """
        Create the user for this subject, or return the one that already exists.

        Returns (user, created).
        """
        db = self._session_factory()
        try:
            existing = _find_existing(db, claim)
            if existing:
                if existing.keycloak_id is None:
                    # Pre-existing account registered by email; bind it to the subject.
                    existing.keycloak_id = claim.subject
                    db.commit()
                logger.info(f"User already registered for subject {claim.subject}")
                return existing, False

            user = User(
                keycloak_id=claim.subject,
                email=claim.email or f"{claim.subject}@users.invalid",
                password_hash=get_password_hash(password),
                first_name=claim.first_name,
                last_name=claim.last_name,
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                winner = _find_existing(db, claim)
                if winner is None:
                    raise
                logger.info(f"Concurrent registration for subject {claim.subject} resolved to existing user")
                return winner, False

            db.refresh(user)
            logger.info(f"Registered user {user.id} for subject {claim.subject}")
            return user, True
        finally:
            db.close()
