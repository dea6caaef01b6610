"""Unit tests for persistence layer."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy import text

from marketplace.domain.models import (
    Notification,
    NotificationType,
    OfferStatus,
    Project,
    ProjectStatus,
    RequestStatus,
)
from marketplace.persistence import (
    DatabaseConnectionError,
    DataIntegrityError,
    RecordNotFoundError,
    UnitOfWork,
    close_database,
    get_session,
    init_database,
)
from marketplace.persistence.schema import CategoryModel

from tests.helpers import (
    NOW,
    make_service,
    seed_category,
    seed_company,
    seed_offer,
    seed_request,
)


def make_project(**overrides) -> Project:
    values = {
        "id": "project-1",
        "request_id": "req-1",
        "owner_id": "customer-1",
        "company_id": "company-1",
        "title": "Fix kitchen sink",
        "budget": Decimal("150.00"),
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return Project(**values)


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_init_database_creates_file(self, tmp_path):
        db_file = tmp_path / "marketplace.db"

        init_database(f"sqlite:///{db_file}")
        try:
            assert db_file.exists()
            with get_session() as session:
                assert session.execute(text("SELECT 1")).scalar_one() == 1
        finally:
            close_database()

    def test_init_database_creates_parent_directories(self, tmp_path):
        db_file = tmp_path / "nested" / "dir" / "marketplace.db"

        init_database(f"sqlite:///{db_file}")
        close_database()

        assert db_file.exists()

    def test_schema_creation_is_idempotent(self, tmp_path):
        db_url = f"sqlite:///{tmp_path / 'marketplace.db'}"

        init_database(db_url)
        with UnitOfWork() as uow:
            uow.categories.add("cat-1", "Plumbing")
        close_database()

        init_database(db_url)
        try:
            with UnitOfWork() as uow:
                assert uow.categories.get_name("cat-1") == "Plumbing"
        finally:
            close_database()

    @pytest.mark.parametrize("url", ["", None])
    def test_invalid_url_raises_error(self, url):
        with pytest.raises(DatabaseConnectionError):
            init_database(url)

    def test_session_without_init_raises_error(self):
        close_database()

        with pytest.raises(DatabaseConnectionError):
            with get_session():
                pass


@pytest.mark.usefixtures("database")
class TestSessionManagement:
    """Tests for get_session commit and rollback."""

    def test_session_commits_on_success(self):
        with get_session() as session:
            session.add(CategoryModel(id="cat-1", name="Plumbing"))

        with get_session() as session:
            assert session.get(CategoryModel, "cat-1") is not None

    def test_session_rolls_back_on_exception(self):
        with pytest.raises(ValueError):
            with get_session() as session:
                session.add(CategoryModel(id="cat-1", name="Plumbing"))
                session.flush()
                raise ValueError("boom")

        with get_session() as session:
            assert session.get(CategoryModel, "cat-1") is None


@pytest.mark.usefixtures("database")
class TestUnitOfWork:
    """Tests for the unit of work boundary and after-commit hooks."""

    def test_commits_on_success(self):
        with UnitOfWork() as uow:
            uow.categories.add("cat-1", "Plumbing")

        with UnitOfWork() as uow:
            assert uow.categories.get_name("cat-1") == "Plumbing"

    def test_rolls_back_on_exception(self):
        with pytest.raises(RuntimeError):
            with UnitOfWork() as uow:
                uow.categories.add("cat-1", "Plumbing")
                raise RuntimeError("boom")

        with UnitOfWork() as uow:
            assert uow.categories.get_name("cat-1") is None

    def test_hooks_run_after_commit(self):
        calls = []

        with UnitOfWork() as uow:
            uow.categories.add("cat-1", "Plumbing")
            uow.after_commit(calls.append, "done")
            assert calls == []

        assert calls == ["done"]

    def test_hooks_receive_args_and_kwargs(self):
        callback = Mock()

        with UnitOfWork() as uow:
            uow.after_commit(callback, 1, 2, key="value")

        callback.assert_called_once_with(1, 2, key="value")

    def test_hooks_dropped_on_rollback(self):
        callback = Mock()

        with pytest.raises(RuntimeError):
            with UnitOfWork() as uow:
                uow.after_commit(callback)
                raise RuntimeError("boom")

        callback.assert_not_called()

    def test_failing_hook_does_not_stop_others_or_raise(self):
        failing = Mock(side_effect=RuntimeError("emitter down"))
        second = Mock()

        with UnitOfWork() as uow:
            uow.categories.add("cat-1", "Plumbing")
            uow.after_commit(failing)
            uow.after_commit(second)

        second.assert_called_once()
        with UnitOfWork() as uow:
            assert uow.categories.get_name("cat-1") == "Plumbing"


@pytest.mark.usefixtures("database")
class TestServiceRequestRepository:
    """Tests for ServiceRequestRepository."""

    def test_add_and_get_resolves_category_name(self):
        seed_category()
        seed_request(tags=["pipes", " pipes ", "leaks"])

        with UnitOfWork() as uow:
            request = uow.requests.get("req-1")

        assert request.category_name == "Plumbing"
        assert request.tags == ["pipes", "leaks"]
        assert request.status == RequestStatus.PENDING
        assert request.created_at == NOW

    def test_get_missing_returns_none(self):
        with UnitOfWork() as uow:
            assert uow.requests.get("missing") is None

    def test_request_without_category(self):
        seed_request(category_id=None, category_name=None)

        with UnitOfWork() as uow:
            assert uow.requests.get("req-1").category_name is None

    def test_update_status(self):
        seed_category()
        seed_request()
        later = NOW + timedelta(hours=1)

        with UnitOfWork() as uow:
            uow.requests.update_status("req-1", RequestStatus.MATCHING, later)

        with UnitOfWork() as uow:
            request = uow.requests.get("req-1")
        assert request.status == RequestStatus.MATCHING
        assert request.updated_at == later

    def test_update_status_missing_raises(self):
        with pytest.raises(RecordNotFoundError):
            with UnitOfWork() as uow:
                uow.requests.update_status("missing", RequestStatus.MATCHING, NOW)

    def test_unknown_category_violates_foreign_key(self):
        with pytest.raises(DataIntegrityError):
            seed_request(category_id="cat-unknown")


@pytest.mark.usefixtures("database")
class TestCompanyRepository:
    """Tests for CompanyRepository."""

    def test_add_and_get_with_services_and_tags(self):
        seed_company(
            services=[
                make_service("Plumbing Repair", tags=["pipes", "leaks"]),
                make_service("Heating", description="Boilers and radiators"),
            ]
        )

        with UnitOfWork() as uow:
            company = uow.companies.get("company-1")

        assert [service.name for service in company.services] == ["Plumbing Repair", "Heating"]
        assert sorted(company.services[0].tags) == ["leaks", "pipes"]
        assert company.services[1].description == "Boilers and radiators"
        assert company.is_verified

    def test_get_by_owner(self):
        seed_company()

        with UnitOfWork() as uow:
            assert uow.companies.get_by_owner("provider-1").id == "company-1"
            assert uow.companies.get_by_owner("someone-else") is None

    def test_owner_owns_at_most_one_company(self):
        seed_company()

        with pytest.raises(DataIntegrityError):
            seed_company(id="company-2")

    def test_add_review_recomputes_rating(self):
        company = seed_company(ratings=[4.0, 5.0])

        assert company.review_ratings == [4.0, 5.0]
        assert company.review_count == 2
        assert company.rating == pytest.approx(4.5)
        assert company.average_rating == pytest.approx(4.5)

    def test_review_rating_out_of_range(self):
        seed_company()

        with pytest.raises(DataIntegrityError):
            with UnitOfWork() as uow:
                uow.companies.add_review("company-1", 6, NOW)

    def test_review_for_missing_company(self):
        with pytest.raises(RecordNotFoundError):
            with UnitOfWork() as uow:
                uow.companies.add_review("missing", 4, NOW)

    def test_increment_completed_projects(self):
        seed_company(projects_completed_count=9)

        with UnitOfWork() as uow:
            uow.companies.increment_completed_projects("company-1")

        with UnitOfWork() as uow:
            assert uow.companies.get("company-1").projects_completed_count == 10

    def test_increment_missing_company_raises(self):
        with pytest.raises(RecordNotFoundError):
            with UnitOfWork() as uow:
                uow.companies.increment_completed_projects("missing")


@pytest.mark.usefixtures("database")
class TestMatchCandidates:
    """Tests for the coarse candidate filter."""

    def _candidates(self, limit=20, **request_overrides):
        request = seed_request(**request_overrides)
        with UnitOfWork() as uow:
            return [company.id for company in uow.companies.find_match_candidates(request, limit)]

    @pytest.fixture(autouse=True)
    def category(self, database):
        seed_category()

    def _company(self, number, created_offset=0, **overrides):
        values = {
            "id": f"company-{number}",
            "owner_user_id": f"provider-{number}",
            "country_id": "elsewhere",
            "city_id": "elsewhere",
            "services": [make_service("Gardening")],
            "created_at": NOW + timedelta(minutes=created_offset),
        }
        values.update(overrides)
        return seed_company(**values)

    def test_matches_on_category_in_service_name(self):
        self._company(1, services=[make_service("Emergency PLUMBING")])
        self._company(2)

        assert self._candidates(country_id=None, city_id=None) == ["company-1"]

    def test_matches_on_category_in_service_description(self):
        self._company(1, services=[make_service("Home", description="plumbing and more")])

        assert self._candidates(country_id=None, city_id=None) == ["company-1"]

    def test_matches_on_country_or_city(self):
        self._company(1, country_id="country-1")
        self._company(2, city_id="city-1")
        self._company(3)

        assert self._candidates(category_id=None) == ["company-1", "company-2"]

    def test_matches_on_tags(self):
        self._company(1, services=[make_service("Gardening", tags=["hedges"])])
        self._company(2, services=[make_service("Gardening", tags=["lawns"])])

        candidates = self._candidates(
            category_id=None, country_id=None, city_id=None, tags=["hedges", "trees"]
        )

        assert candidates == ["company-1"]

    def test_excludes_unverified_and_inactive(self):
        self._company(1, country_id="country-1", verification_status="PENDING")
        self._company(2, country_id="country-1", is_active=False)
        self._company(3, country_id="country-1")

        assert self._candidates(category_id=None) == ["company-3"]

    def test_no_conditions_returns_empty(self):
        self._company(1)

        assert self._candidates(category_id=None, country_id=None, city_id=None) == []

    def test_limit_keeps_oldest_companies(self):
        for number in range(1, 6):
            self._company(number, created_offset=10 - number, country_id="country-1")

        assert self._candidates(limit=3, category_id=None) == [
            "company-5",
            "company-4",
            "company-3",
        ]

    def test_like_wildcards_in_category_are_literal(self):
        with UnitOfWork() as uow:
            uow.categories.add("cat-pct", "100%")
        self._company(1, services=[make_service("1000 Plumbers")])
        self._company(2, services=[make_service("100% Guaranteed")])

        candidates = self._candidates(category_id="cat-pct", country_id=None, city_id=None)

        assert candidates == ["company-2"]


@pytest.mark.usefixtures("database")
class TestOfferRepository:
    """Tests for OfferRepository and the offer indexes."""

    @pytest.fixture(autouse=True)
    def seeded(self, database):
        seed_category()
        seed_request()
        seed_company()
        seed_company(id="company-2", owner_user_id="provider-2")

    def test_add_and_get(self):
        seed_offer(attachments=["quote.pdf"], estimated_days=3)

        with UnitOfWork() as uow:
            offer = uow.offers.get("offer-1")

        assert offer.price == Decimal("150.00")
        assert offer.attachments == ["quote.pdf"]
        assert offer.estimated_days == 3
        assert offer.expires_at == NOW + timedelta(days=7)

    def test_second_live_offer_from_same_company_is_rejected(self):
        seed_offer()

        with pytest.raises(DataIntegrityError):
            seed_offer(id="offer-2")

    def test_withdrawn_offer_does_not_block_new_one(self):
        seed_offer(status=OfferStatus.WITHDRAWN)
        seed_offer(id="offer-2")

        with UnitOfWork() as uow:
            assert uow.offers.find_live("req-1", "company-1").id == "offer-2"
            assert uow.offers.count_live("req-1") == 1

    def test_rejected_offer_still_blocks_resubmission(self):
        seed_offer(status=OfferStatus.REJECTED)

        with pytest.raises(DataIntegrityError):
            seed_offer(id="offer-2")

    def test_only_one_accepted_offer_per_request(self):
        seed_offer()
        seed_offer(id="offer-2", company_id="company-2")

        with pytest.raises(DataIntegrityError):
            with UnitOfWork() as uow:
                assert uow.offers.transition_if_pending("offer-1", OfferStatus.ACCEPTED, NOW)
                uow.offers.transition_if_pending("offer-2", OfferStatus.ACCEPTED, NOW)

        with UnitOfWork() as uow:
            assert not uow.offers.has_accepted("req-1")

    def test_transition_if_pending_only_moves_pending(self):
        seed_offer(status=OfferStatus.WITHDRAWN)

        with UnitOfWork() as uow:
            assert uow.offers.transition_if_pending("offer-1", OfferStatus.ACCEPTED, NOW) is False
            assert uow.offers.get("offer-1").status == OfferStatus.WITHDRAWN

    def test_reject_pending_for_request(self):
        seed_offer()
        seed_offer(id="offer-2", company_id="company-2")
        seed_company(id="company-3", owner_user_id="provider-3")
        seed_offer(id="offer-3", company_id="company-3", status=OfferStatus.WITHDRAWN)

        with UnitOfWork() as uow:
            rejected = uow.offers.reject_pending_for_request("req-1", "offer-1", NOW)

        with UnitOfWork() as uow:
            statuses = {offer.id: offer.status for offer in uow.offers.list_for_request("req-1")}
        assert rejected == 1
        assert statuses == {
            "offer-1": OfferStatus.PENDING,
            "offer-2": OfferStatus.REJECTED,
            "offer-3": OfferStatus.WITHDRAWN,
        }

    def test_list_for_request_newest_first(self):
        seed_offer()
        seed_offer(id="offer-2", company_id="company-2", created_at=NOW + timedelta(hours=1))

        with UnitOfWork() as uow:
            offers = uow.offers.list_for_request("req-1")

        assert [offer.id for offer in offers] == ["offer-2", "offer-1"]

    def test_update_terms(self):
        seed_offer()

        with UnitOfWork() as uow:
            updated = uow.offers.update_terms(
                "offer-1", NOW + timedelta(hours=1), price=Decimal("99.50"), estimated_days=2
            )

        assert updated.price == Decimal("99.50")
        assert updated.estimated_days == 2
        assert updated.updated_at == NOW + timedelta(hours=1)

    def test_update_terms_of_processed_offer_returns_none(self):
        seed_offer(status=OfferStatus.REJECTED)

        with UnitOfWork() as uow:
            assert uow.offers.update_terms("offer-1", NOW, price=Decimal("1")) is None

    def test_expire_overdue(self):
        seed_offer(expires_at=NOW - timedelta(seconds=1))
        seed_offer(id="offer-2", company_id="company-2", expires_at=NOW + timedelta(days=1))

        with UnitOfWork() as uow:
            expired = uow.offers.expire_overdue(NOW)

        with UnitOfWork() as uow:
            assert uow.offers.get("offer-1").status == OfferStatus.EXPIRED
            assert uow.offers.get("offer-2").status == OfferStatus.PENDING
        assert expired == 1

    def test_expire_overdue_ignores_processed_offers(self):
        seed_offer(status=OfferStatus.ACCEPTED, expires_at=NOW - timedelta(days=1))

        with UnitOfWork() as uow:
            assert uow.offers.expire_overdue(NOW) == 0


@pytest.mark.usefixtures("database")
class TestProjectRepository:
    """Tests for ProjectRepository."""

    @pytest.fixture(autouse=True)
    def seeded(self, database):
        seed_category()
        seed_request()
        seed_company()

    def test_add_and_get(self):
        with UnitOfWork() as uow:
            uow.projects.add(make_project())

        with UnitOfWork() as uow:
            project = uow.projects.get("project-1")
            by_request = uow.projects.get_by_request("req-1")

        assert project == by_request
        assert project.status == ProjectStatus.PENDING
        assert project.budget == Decimal("150.00")

    def test_one_project_per_request(self):
        with UnitOfWork() as uow:
            uow.projects.add(make_project())

        with pytest.raises(DataIntegrityError):
            with UnitOfWork() as uow:
                uow.projects.add(make_project(id="project-2"))

    def test_update_status_and_progress(self):
        later = NOW + timedelta(days=1)
        with UnitOfWork() as uow:
            uow.projects.add(make_project())
            uow.projects.update_status("project-1", ProjectStatus.ACTIVE, later)
            updated = uow.projects.update_progress("project-1", 40, later)

        assert updated.status == ProjectStatus.ACTIVE
        assert updated.progress == 40
        assert updated.updated_at == later

    def test_update_missing_project_raises(self):
        with pytest.raises(RecordNotFoundError):
            with UnitOfWork() as uow:
                uow.projects.update_status("missing", ProjectStatus.ACTIVE, NOW)


@pytest.mark.usefixtures("database")
class TestNotificationRepository:
    """Tests for NotificationRepository."""

    def _notification(self, **overrides):
        values = {
            "user_id": "customer-1",
            "type": NotificationType.OFFER,
            "title": "New Offer Received",
            "message": "Acme Plumbing submitted an offer",
            "data": {"offer_id": "offer-1"},
            "created_at": NOW,
        }
        values.update(overrides)
        return Notification(**values)

    def test_add_assigns_id(self):
        with UnitOfWork() as uow:
            stored = uow.notifications.add(self._notification())

        assert stored.id
        assert stored.data == {"offer_id": "offer-1"}
        assert stored.is_read is False

    def test_list_for_user_newest_first(self):
        with UnitOfWork() as uow:
            uow.notifications.add(self._notification(id="n-1"))
            uow.notifications.add(self._notification(id="n-2", created_at=NOW + timedelta(1)))
            uow.notifications.add(self._notification(id="n-3", user_id="provider-1"))

        with UnitOfWork() as uow:
            notifications = uow.notifications.list_for_user("customer-1")

        assert [notification.id for notification in notifications] == ["n-2", "n-1"]

    def test_list_unread_only(self):
        with UnitOfWork() as uow:
            uow.notifications.add(self._notification(id="n-1", is_read=True))
            uow.notifications.add(self._notification(id="n-2"))

        with UnitOfWork() as uow:
            unread = uow.notifications.list_for_user("customer-1", unread_only=True)

        assert [notification.id for notification in unread] == ["n-2"]
