"""
Unit tests for referral capture, resolution and binding.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.models.user import User, UserRole
from app.services.referral_service import (
    PendingReferral,
    ReferralService,
    attributed_code,
    clean_referral_code,
    generate_referral_code,
    partner_code_from_host,
)


class TestCleanReferralCode:

    @pytest.mark.parametrize("token, expected", [
        ("PARTNER123", "PARTNER123"),
        ("  PARTNER123  ", "PARTNER123"),
        ("/r/PARTNER123", "PARTNER123"),
        ("r/PARTNER123", "PARTNER123"),
        ("/R/PARTNER123/", "PARTNER123"),
        ("partner123.alife-stable-academy.com", "partner123"),
        ("https://partner123.alifestableacademy.com", "partner123"),
        ("john_doe-2", "john_doe-2"),
    ])
    def test_normalises(self, token, expected):
        assert clean_referral_code(token) == expected

    @pytest.mark.parametrize("token", [None, "", "   ", "/r/", "bad code", "a;drop", "x" * 65])
    def test_rejects(self, token):
        assert clean_referral_code(token) is None


class TestPartnerCodeFromHost:

    @pytest.mark.parametrize("host, expected", [
        ("partner123.alifestableacademy.com", "partner123"),
        ("PARTNER123.alifestableacademy.com:443", "partner123"),
        ("alifestableacademy.com", None),
        ("www.alifestableacademy.com", None),
        ("localhost:8000", None),
        ("127.0.0.1", None),
        ("partner123.example.com", None),
        (None, None),
    ])
    def test_host(self, host, expected):
        assert partner_code_from_host(host) == expected


class TestGenerateReferralCode:

    def test_from_name(self):
        assert generate_referral_code("Ravi Kumar") == "ravikumar"

    def test_truncated_to_twenty(self):
        assert len(generate_referral_code("A Very Long Institute Name Indeed")) == 20

    def test_falls_back_to_email_then_default(self):
        assert generate_referral_code("R K", email="ravi.k@example.com") == "ravik"
        assert generate_referral_code("", email=None) == "partner"

    def test_suffix_adds_four_digits(self):
        code = generate_referral_code("Ravi Kumar", with_suffix=True)
        assert code.startswith("ravikumar")
        assert code[-4:].isdigit() and len(code) == len("ravikumar") + 4


class TestPendingReferral:

    def test_cookie_round_trip(self):
        pending = PendingReferral(code="PARTNER123", captured_at=datetime(2026, 5, 1, tzinfo=timezone.utc))
        restored = PendingReferral.from_cookie(pending.to_cookie())
        assert restored == pending

    def test_garbage_cookie(self):
        assert PendingReferral.from_cookie("") is None
        assert PendingReferral.from_cookie("bad code|123") is None


class TestAttributedCode:

    def test_bound_code_beats_pending_and_host(self):
        user = SimpleNamespace(role=UserRole.STUDENT, referral_code="BOUND")
        pending = PendingReferral(code="PENDING", captured_at=datetime.now(timezone.utc))
        assert attributed_code(user, pending, "host") == "BOUND"

    def test_pending_beats_host(self):
        pending = PendingReferral(code="PENDING", captured_at=datetime.now(timezone.utc))
        assert attributed_code(None, pending, "host") == "PENDING"

    def test_host_when_nothing_else(self):
        user = SimpleNamespace(role=UserRole.STUDENT, referral_code=None)
        assert attributed_code(user, None, "host") == "host"

    def test_partner_own_code_is_not_an_attribution(self):
        user = SimpleNamespace(role=UserRole.PARTNER, referral_code="MINE")
        assert attributed_code(user, None, None) is None


class TestReferralService:

    def test_capture_creates_no_rows(self, db):
        pending = ReferralService(db).capture("/r/PARTNER123")
        assert pending.code == "PARTNER123"
        assert db.query(User).count() == 0

    def test_capture_malformed(self, db):
        assert ReferralService(db).capture("not a code") is None

    def test_resolve_known_partner(self, db, partner):
        identity = ReferralService(db).resolve("partner123")
        assert identity.code == "PARTNER123"
        assert identity.display_name == "Partner One Two Three"
        assert identity.institute_name == "Bright Future Institute"

    def test_resolve_unknown_returns_none(self, db):
        assert ReferralService(db).resolve("GHOST") is None

    def test_bind_uses_partner_spelling(self, db, partner, student):
        code = ReferralService(db).bind("partner123", student.id)
        db.refresh(student)
        assert code == "PARTNER123"
        assert student.referral_code == "PARTNER123"

    def test_bind_unknown_code_keeps_clean_token(self, db, student):
        code = ReferralService(db).bind("/r/GHOST", student.id)
        db.refresh(student)
        assert code == "GHOST"
        assert student.referral_code == "GHOST"

    def test_bind_never_overwrites(self, db, partner, make_user):
        student = make_user(referral_code="FIRST")
        assert ReferralService(db).bind("PARTNER123", student.id) == "FIRST"
        db.refresh(student)
        assert student.referral_code == "FIRST"

    def test_bind_ignores_partners(self, db, partner, make_user):
        other = make_user(role=UserRole.PARTNER, referral_code="other")
        assert ReferralService(db).bind("PARTNER123", other.id) is None
        db.refresh(other)
        assert other.referral_code == "other"

    def test_assign_partner_code_avoids_collisions(self, db, make_user):
        make_user(role=UserRole.PARTNER, referral_code="ravikumar")
        code = ReferralService(db).assign_partner_code("Ravi Kumar")
        assert code != "ravikumar"
        assert code.startswith("ravikumar")

    def test_referred_students(self, db, partner, make_user):
        first = make_user(referral_code="PARTNER123")
        make_user(referral_code="someone-else")
        students = ReferralService(db).referred_students(partner)
        assert [s.id for s in students] == [first.id]
