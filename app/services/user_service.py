from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from collections import defaultdict
from typing import Callable, Dict, List, Optional
from uuid import UUID
import logging

from app.core.exceptions import EmailAlreadyRegistered, PersistenceWriteFailed
from app.models.user import User, UserRole
from app.services.referral_service import ReferralService

logger = logging.getLogger(__name__)

UserListener = Callable[[User], None]

# Fields a profile patch may touch. referral_code is set once at signup.
EDITABLE_FIELDS = ("full_name", "mobile", "institute_name", "whatsapp")


class UserService:
    # Process-wide so every request's service instance sees the same listeners
    _listeners: Dict[str, List[UserListener]] = defaultdict(list)

    def __init__(self, db: Session):
        self.db = db
        self.referrals = ReferralService(db)

    def get_user(self, user_id) -> Optional[User]:
        if not isinstance(user_id, UUID):
            try:
                user_id = UUID(str(user_id))
            except ValueError:
                return None
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def create_user(self, email: str, full_name: str, role: str = UserRole.STUDENT,
                    mobile: str = None, institute_name: str = None, whatsapp: str = None,
                    referral_token: str = None) -> User:
        """Register a profile; partners get their code, students get their referral bound"""
        if role not in UserRole.ALL:
            raise ValueError(f"Unknown role: {role}")
        if self.get_by_email(email) is not None:
            raise EmailAlreadyRegistered()

        user = User(
            email=email.strip().lower(),
            role=role,
            full_name=full_name.strip(),
            mobile=mobile,
            institute_name=institute_name if role == UserRole.PARTNER else None,
            whatsapp=whatsapp if role == UserRole.PARTNER else None
        )
        try:
            if role == UserRole.PARTNER:
                user.referral_code = self.referrals.assign_partner_code(full_name, email)
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError as e:
            self.db.rollback()
            raise EmailAlreadyRegistered() from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating user {email}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed() from e

        logger.info(f"Registered {role} {user.id}" + (f" with code {user.referral_code}" if user.is_partner else ""))

        if role == UserRole.STUDENT and referral_token:
            # Attribution must never block signup
            try:
                self.referrals.bind(referral_token, user.id)
                self.db.refresh(user)
            except PersistenceWriteFailed as e:
                logger.error(f"Referral binding skipped for user {user.id}: {e}")
        return user

    def update_user(self, user_id, patch: dict) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise ValueError(f"User {user_id} not found")

        ignored = [key for key in patch if key not in EDITABLE_FIELDS]
        if ignored:
            logger.warning(f"Ignoring read-only profile fields for user {user_id}: {', '.join(sorted(ignored))}")

        try:
            for key in EDITABLE_FIELDS:
                if key in patch:
                    setattr(user, key, patch[key])
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as e:
            logger.error(f"Error updating user {user_id}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed() from e

        self._notify(user)
        return user

    @classmethod
    def subscribe(cls, user_id, callback: UserListener) -> Callable[[], None]:
        """Call ``callback`` with the user after every committed profile update"""
        key = str(user_id)
        cls._listeners[key].append(callback)

        def unsubscribe():
            listeners = cls._listeners.get(key)
            if listeners and callback in listeners:
                listeners.remove(callback)
                if not listeners:
                    del cls._listeners[key]

        return unsubscribe

    def _notify(self, user: User):
        for callback in list(self._listeners.get(str(user.id), ())):
            try:
                callback(user)
            except Exception as e:
                logger.error(f"User change listener failed for {user.id}: {e}")
