from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
import ipaddress
import logging
import random
import re
import string

from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import PersistenceWriteFailed, ReferralNotFound
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass
class PartnerIdentity:
    user_id: UUID
    code: str
    display_name: str
    institute_name: Optional[str] = None
    whatsapp: Optional[str] = None


@dataclass
class PendingReferral:
    """Referral code held by an anonymous visitor until signup"""
    code: str
    captured_at: datetime

    def to_cookie(self) -> str:
        return f"{self.code}|{int(self.captured_at.timestamp())}"

    @classmethod
    def from_cookie(cls, value: Optional[str]) -> Optional["PendingReferral"]:
        if not value:
            return None
        code, _, stamp = value.partition("|")
        code = clean_referral_code(code)
        if not code:
            return None
        try:
            captured_at = datetime.fromtimestamp(int(stamp), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            captured_at = utcnow()
        return cls(code=code, captured_at=captured_at)


def clean_referral_code(token: Optional[str]) -> Optional[str]:
    """Canonical referral code, or None when the token is unusable.

    Accepts bare codes, /r/<code> paths and codes stored with the partner
    domain suffix (``name.alife-stable-academy.com``).
    """
    if token is None:
        return None
    code = str(token).strip()
    for prefix in ("https://", "http://"):
        if code.lower().startswith(prefix):
            code = code[len(prefix):]
    if code.lower().startswith(("/r/", "r/")):
        code = code[code.lower().index("r/") + 2:]
    code = code.strip("/")
    for suffix in (settings.PARTNER_DOMAIN_SUFFIX, f".{settings.MAIN_DOMAIN}"):
        if suffix and code.lower().endswith(suffix):
            code = code[: -len(suffix)]
    if not _CODE_PATTERN.match(code):
        return None
    return code


def partner_code_from_host(host: Optional[str]) -> Optional[str]:
    """Subdomain of a partner-branded site, None for the main site"""
    if not host:
        return None
    hostname = host.split(":", 1)[0].strip().lower().rstrip(".")
    if not hostname or hostname == "localhost":
        return None
    try:
        ipaddress.ip_address(hostname)
        return None
    except ValueError:
        pass
    main_domain = settings.MAIN_DOMAIN
    if hostname in (main_domain, f"www.{main_domain}"):
        return None
    if not hostname.endswith(f".{main_domain}"):
        return None
    subdomain = hostname[: -len(main_domain) - 1].split(".")[-1]
    if not subdomain or subdomain == "www":
        return None
    return clean_referral_code(subdomain)


def generate_referral_code(name: str, email: str = None, with_suffix: bool = False) -> str:
    """Generate a partner referral code from the partner's name"""
    # Lower-case alphanumerics only, so the code doubles as a subdomain
    base = "".join(c for c in (name or "").lower() if c.isascii() and c.isalnum())[:20]
    if len(base) < 3 and email:
        base = "".join(c for c in email.split("@")[0].lower() if c.isascii() and c.isalnum())[:20]
    if len(base) < 3:
        base = "partner"

    if not with_suffix:
        return base

    random_part = "".join(random.choices(string.digits, k=4))
    return f"{base}{random_part}"


def attributed_code(user: Optional[User], pending: Optional[PendingReferral] = None,
                    host_code: Optional[str] = None) -> Optional[str]:
    """Partner code that prices and commissions apply to for this visitor"""
    if user is not None and user.role == UserRole.STUDENT and user.referral_code:
        return clean_referral_code(user.referral_code)
    if pending is not None:
        return pending.code
    return host_code


class ReferralService:
    def __init__(self, db: Session):
        self.db = db

    def capture(self, token: str) -> Optional[PendingReferral]:
        """Turn a referral token into a pending referral; nothing is stored server-side"""
        code = clean_referral_code(token)
        if not code:
            logger.info(f"Ignoring malformed referral token {token!r}")
            return None
        pending = PendingReferral(code=code, captured_at=utcnow())
        logger.info(f"Captured pending referral {code}")
        return pending

    def find_partner(self, token: str) -> Optional[User]:
        code = clean_referral_code(token)
        if not code:
            return None
        return self.db.query(User).filter(
            User.role == UserRole.PARTNER,
            func.lower(User.referral_code) == code.lower()
        ).order_by(User.created_at, User.id).first()

    def get_partner(self, token: str) -> User:
        partner = self.find_partner(token)
        if partner is None:
            raise ReferralNotFound(str(token))
        return partner

    def resolve(self, token: str) -> Optional[PartnerIdentity]:
        """Partner branding for a referral token, None falls back to the default site"""
        partner = self.find_partner(token)
        if partner is None:
            logger.info(f"No partner found for referral {token!r}")
            return None
        return PartnerIdentity(
            user_id=partner.id,
            code=partner.referral_code,
            display_name=partner.full_name,
            institute_name=partner.institute_name,
            whatsapp=partner.whatsapp
        )

    def bind(self, token: Optional[str], user_id: UUID) -> Optional[str]:
        """Attach a referral to a freshly registered student.

        Returns the bound code: the partner's stored spelling when the partner
        exists, the clean token otherwise. Partner accounts are never
        attributed and an existing attribution is never replaced.
        """
        code = clean_referral_code(token)
        user = self.db.get(User, user_id)
        if code is None or user is None or user.role != UserRole.STUDENT:
            return None
        if user.referral_code:
            return user.referral_code

        partner = self.find_partner(code)
        if partner is None:
            logger.warning(f"No partner found for referral {code!r} bound to user {user_id}")
        else:
            code = partner.referral_code

        try:
            user.referral_code = code
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as e:
            logger.error(f"Error binding referral for user {user_id}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed() from e

        logger.info(f"Bound referral {code} to user {user_id}")
        return user.referral_code

    def code_exists(self, code: str) -> bool:
        return self.db.query(User.id).filter(
            func.lower(User.referral_code) == code.lower(),
            User.role == UserRole.PARTNER
        ).first() is not None

    def assign_partner_code(self, name: str, email: str = None, max_attempts: int = 20) -> str:
        """Pick an unused referral code for a new partner"""
        code = generate_referral_code(name, email)
        attempts = 0
        while self.code_exists(code):
            attempts += 1
            if attempts >= max_attempts:
                raise PersistenceWriteFailed("Could not generate unique referral code after multiple attempts")
            code = generate_referral_code(name, email, with_suffix=True)
        return code

    def referred_students(self, partner: User) -> List[User]:
        return self.db.query(User).filter(
            User.role == UserRole.STUDENT,
            func.lower(User.referral_code) == partner.referral_code.lower()
        ).order_by(User.created_at).all()
