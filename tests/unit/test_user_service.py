"""
Unit tests for user profiles, partner signup and change subscriptions.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.clock import utcnow
from app.core.exceptions import EmailAlreadyRegistered
from app.models.enrollment import Purchase, PurchaseStatus
from app.models.user import UserRole
from app.services.expiry_scheduler import ExpiryScheduler
from app.services.purchase_service import PurchaseService
from app.services.user_service import UserService


class TestSignup:

    def test_partner_gets_generated_code(self, db):
        user = UserService(db).create_user("ravi@example.com", "Ravi Kumar", role=UserRole.PARTNER,
                                           whatsapp="9876543210", institute_name="Ravi Classes")
        assert user.referral_code == "ravikumar"
        assert user.whatsapp == "9876543210"

    def test_student_bound_to_referral(self, db, partner):
        user = UserService(db).create_user("new@example.com", "New Student", referral_token="/r/partner123")
        assert user.referral_code == "PARTNER123"

    def test_student_without_referral(self, db):
        user = UserService(db).create_user("solo@example.com", "Solo Student")
        assert user.referral_code is None
        assert user.institute_name is None

    def test_duplicate_email(self, db):
        service = UserService(db)
        service.create_user("dup@example.com", "First")
        with pytest.raises(EmailAlreadyRegistered):
            service.create_user("DUP@example.com", "Second")

    def test_unknown_role(self, db):
        with pytest.raises(ValueError):
            UserService(db).create_user("x@example.com", "X", role="admin")


class TestProfileUpdates:

    def test_referral_code_is_immutable(self, db, partner):
        user = UserService(db).update_user(partner.id, {"referral_code": "HIJACK", "full_name": "Renamed"})
        assert user.referral_code == "PARTNER123"
        assert user.full_name == "Renamed"

    def test_unknown_user(self, db):
        with pytest.raises(ValueError):
            UserService(db).update_user("not-a-uuid", {"full_name": "X"})

    def test_subscribers_see_committed_updates(self, db, student):
        seen = []
        unsubscribe = UserService.subscribe(student.id, lambda user: seen.append(user.mobile))

        UserService(db).update_user(student.id, {"mobile": "9000000001"})
        unsubscribe()
        UserService(db).update_user(student.id, {"mobile": "9000000002"})

        assert seen == ["9000000001"]

    def test_subscriber_errors_are_contained(self, db, student):
        def broken(_):
            raise RuntimeError("listener down")

        UserService.subscribe(student.id, broken)
        assert UserService(db).update_user(student.id, {"mobile": "9000000003"}).mobile == "9000000003"


class TestExpiryScheduler:

    @pytest.mark.asyncio
    async def test_sweep_expires_overdue_purchases(self, db, make_course, student):
        course = make_course()
        PurchaseService(db).purchase(student, course, Decimal("2500"), plan_days=1,
                                     now=utcnow() - timedelta(days=2))

        expired = await ExpiryScheduler(initial_delay=0, loop_interval=3600).sweep()

        assert expired == 1
        db.expire_all()
        assert db.query(Purchase).one().status == PurchaseStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_start_and_stop(self, db):
        scheduler = ExpiryScheduler(initial_delay=3600, loop_interval=3600)
        await scheduler.start()
        assert scheduler.running is True
        await scheduler.stop()
        assert scheduler.running is False
        assert scheduler.task.cancelled()
