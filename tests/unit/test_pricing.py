"""
Unit tests for course id normalisation and partner pricing.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.core.exceptions import CourseNotFound
from app.services.pricing_service import (
    FREE,
    PriceResolver,
    amount_of,
    canonical_price,
    is_free,
    normalize_course_id,
    parse_price,
)


class TestNormalizeCourseId:

    @pytest.mark.parametrize("value", [5, "5", "05", "005", 5.0, Decimal("5"), " 5 "])
    def test_numeric_forms_collapse(self, value):
        assert normalize_course_id(value) == "5"

    def test_slugs_are_trimmed_not_lowercased(self):
        assert normalize_course_id("  Intro-To-ML ") == "Intro-To-ML"

    @pytest.mark.parametrize("value", [None, True, "", "   ", 5.5, float("nan")])
    def test_rejects_unusable_ids(self, value):
        with pytest.raises(ValueError):
            normalize_course_id(value)


class TestFreePrices:

    @pytest.mark.parametrize("value", [None, "", "Free", "free", " FREE ", 0, "0", 0.0, Decimal("0.00")])
    def test_free_forms(self, value):
        assert is_free(value) is True
        assert canonical_price(value) == FREE
        assert amount_of(canonical_price(value)) == Decimal("0")

    @pytest.mark.parametrize("value", [1, "499", Decimal("2500.00"), "₹2,999"])
    def test_paid_forms(self, value):
        assert is_free(value) is False

    def test_parse_price_strips_currency_formatting(self):
        assert parse_price("₹2,999.50") == Decimal("2999.50")
        assert parse_price("abc") is None


class TestPriceResolver:

    def test_no_partner_uses_catalog_price(self, db, make_course):
        course = make_course(price=Decimal("2500"))
        assert PriceResolver(db).price_for(course.id, None, course.price) == Decimal("2500")

    def test_partner_listing_overrides_catalog(self, db, make_course, partner, make_listing):
        course = make_course(price=Decimal("2500"))
        make_listing(partner, course.id, 3000, 2500)

        price = PriceResolver(db).price_for(course.id, "PARTNER123", course.price)

        assert price == Decimal("3000")

    def test_partner_code_match_is_case_insensitive(self, db, make_course, partner, make_listing):
        course = make_course(price=Decimal("2500"))
        make_listing(partner, course.id, 3000, 2500)

        assert PriceResolver(db).price_for(101, "partner123", course.price) == Decimal("3000")

    def test_unlisted_course_falls_back_to_catalog(self, db, make_course, partner, make_listing):
        listed = make_course(course_id="101", price=Decimal("2500"))
        other = make_course(course_id="102", title="Data Science", price=Decimal("4000"))
        make_listing(partner, listed.id, 3000, 2500)

        assert PriceResolver(db).price_for(other.id, "PARTNER123", other.price) == Decimal("4000")

    def test_unknown_partner_falls_back_to_catalog(self, db, make_course):
        course = make_course(price=Decimal("2500"))
        assert PriceResolver(db).price_for(course.id, "NOBODY", course.price) == Decimal("2500")

    def test_mixed_id_representations_match(self, db, make_course, partner, make_listing):
        course = make_course(course_id="5", price=Decimal("1000"))
        # Older listings kept the id as entered
        make_listing(partner, "05", 1500, 1000)

        resolver = PriceResolver(db)
        assert resolver.price_for(5, "PARTNER123", course.price) == Decimal("1500")
        assert resolver.price_for("5", "PARTNER123", course.price) == Decimal("1500")

    def test_earliest_listing_wins_when_several_match(self, db, make_course, partner, make_listing):
        course = make_course(course_id="5", price=Decimal("1000"))
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        make_listing(partner, "5", 1800, 1000, created_at=now)
        make_listing(partner, "05", 1500, 1000, created_at=now - timedelta(days=1))

        assert PriceResolver(db).price_for(course.id, "PARTNER123", course.price) == Decimal("1500")

    def test_free_catalog_price_is_free(self, db, make_course):
        course = make_course(price=None)
        assert PriceResolver(db).price_for(course.id, None, course.price) == FREE

    def test_get_course_normalises_id(self, db, make_course):
        make_course(course_id="7")
        assert PriceResolver(db).get_course("007").id == "7"

    def test_get_course_missing_or_inactive(self, db, make_course):
        make_course(course_id="8", is_active=False)
        resolver = PriceResolver(db)
        with pytest.raises(CourseNotFound):
            resolver.get_course("8")
        with pytest.raises(CourseNotFound):
            resolver.get_course("999")
