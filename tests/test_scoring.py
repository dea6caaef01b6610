"""Unit tests for the company scoring engine."""

import pytest

from marketplace.config.models import ScoringRules
from marketplace.scoring import CompanyScorer, ScoreResult, score_company

from tests.helpers import make_company, make_request, make_service


class TestCategoryMatch:
    """Tests for the category/service match bonus."""

    def test_service_name_contains_category(self):
        request = make_request(city_id=None, country_id=None)
        company = make_company(city_id=None, country_id=None)

        result = score_company(request, company)

        assert result.score == 40
        assert result.reasons == ["Category match"]

    def test_match_is_case_insensitive(self):
        request = make_request(category_name="PLUMBING", city_id=None, country_id=None)
        company = make_company(
            city_id=None, country_id=None, services=[make_service("emergency plumbing")]
        )

        assert score_company(request, company).score == 40

    def test_service_description_contains_category(self):
        request = make_request(city_id=None, country_id=None)
        company = make_company(
            city_id=None,
            country_id=None,
            services=[make_service("Home care", description="Heating and plumbing work")],
        )

        assert "Category match" in score_company(request, company).reasons

    def test_blank_category_never_matches(self):
        request = make_request(category_name="  ", city_id=None, country_id=None)
        company = make_company(city_id=None, country_id=None)

        assert score_company(request, company).score == 0

    def test_missing_category_contributes_zero(self):
        request = make_request(category_name=None, city_id=None, country_id=None)
        company = make_company(city_id=None, country_id=None)

        result = score_company(request, company)

        assert result.score == 0
        assert result.reasons == []


class TestLocation:
    """Tests for the mutually exclusive city and country bonuses."""

    def test_same_city_beats_same_country(self):
        request = make_request(category_name=None)
        company = make_company()

        result = score_company(request, company)

        assert result.score == 30
        assert result.reasons == ["Same city"]

    def test_same_country_only(self):
        request = make_request(category_name=None, city_id="city-1")
        company = make_company(city_id="city-2")

        result = score_company(request, company)

        assert result.score == 20
        assert result.reasons == ["Same country"]

    def test_unknown_locations_do_not_match(self):
        request = make_request(category_name=None, city_id=None, country_id=None)
        company = make_company(city_id=None, country_id=None)

        assert score_company(request, company).score == 0

    @pytest.mark.parametrize(
        "request_city,company_city,request_country,company_country",
        [
            ("c1", "c1", "n1", "n1"),
            ("c1", "c2", "n1", "n1"),
            ("c1", "c1", "n1", "n2"),
            (None, None, "n1", "n1"),
        ],
    )
    def test_city_and_country_never_both_awarded(
        self, request_city, company_city, request_country, company_country
    ):
        request = make_request(
            category_name=None, city_id=request_city, country_id=request_country
        )
        company = make_company(city_id=company_city, country_id=company_country)

        reasons = score_company(request, company).reasons

        assert not ("Same city" in reasons and "Same country" in reasons)


class TestTagOverlap:
    """Tests for the capped tag overlap bonus."""

    def _score(self, request_tags, service_tags):
        request = make_request(
            category_name=None, city_id=None, country_id=None, tags=request_tags
        )
        company = make_company(
            city_id=None,
            country_id=None,
            services=[make_service("Services", tags=service_tags)],
        )
        return score_company(request, company)

    @pytest.mark.parametrize(
        "count,expected",
        [(0, 0), (1, 5), (2, 10), (3, 15), (4, 15), (6, 15)],
    )
    def test_bonus_is_five_per_tag_capped_at_fifteen(self, count, expected):
        tags = [f"tag-{index}" for index in range(count)]

        assert self._score(tags, tags).score == expected

    def test_reason_reports_overlap_count(self):
        result = self._score(["pipes", "leaks", "boilers"], ["pipes", "leaks"])

        assert result.reasons == ["2 tag matches"]
        assert result.score == 10

    def test_tags_spread_over_services_are_counted_once(self):
        request = make_request(
            category_name=None, city_id=None, country_id=None, tags=["pipes", "leaks"]
        )
        company = make_company(
            city_id=None,
            country_id=None,
            services=[
                make_service("A", tags=["pipes"]),
                make_service("B", tags=["pipes", "leaks"]),
            ],
        )

        assert CompanyScorer.tag_overlap(request, company) == 2

    def test_tag_match_is_exact(self):
        assert self._score(["Pipes"], ["pipes"]).score == 0

    def test_bonus_is_monotonic(self):
        scores = [
            self._score([f"t{i}" for i in range(n)], [f"t{i}" for i in range(6)]).score
            for n in range(7)
        ]

        assert scores == sorted(scores)


class TestRatingAndExperience:
    """Tests for the rating tiers and experience bonus."""

    def _company(self, ratings=(), completed=0):
        return make_company(
            city_id=None,
            country_id=None,
            services=[],
            review_ratings=list(ratings),
            projects_completed_count=completed,
        )

    def _request(self):
        return make_request(category_name=None, city_id=None, country_id=None)

    @pytest.mark.parametrize(
        "ratings,expected_score,expected_reasons",
        [
            ([], 0, []),
            ([3.9], 0, []),
            ([4.0], 5, ["Highly rated"]),
            ([4.0, 4.9], 5, ["Highly rated"]),
            ([4.5], 10, ["Top rated"]),
            ([5.0, 4.0], 10, ["Top rated"]),
        ],
    )
    def test_rating_tiers(self, ratings, expected_score, expected_reasons):
        result = score_company(self._request(), self._company(ratings))

        assert result.score == expected_score
        assert result.reasons == expected_reasons

    def test_average_rating_is_reported(self):
        result = score_company(self._request(), self._company([4.0, 5.0]))

        assert result.average_rating == pytest.approx(4.5)

    def test_no_reviews_average_is_zero(self):
        assert score_company(self._request(), self._company()).average_rating == 0.0

    @pytest.mark.parametrize("completed,expected", [(0, 0), (9, 0), (10, 5), (25, 5)])
    def test_experience_bonus(self, completed, expected):
        result = score_company(self._request(), self._company(completed=completed))

        assert result.score == expected


class TestScoringProperties:
    """Whole-score properties."""

    def test_plumbing_scenario_scores_85(self):
        request = make_request(category_name="Plumbing", city_id="city-x")
        company = make_company(
            city_id="city-x",
            services=[make_service("Plumbing Repair")],
            review_ratings=[4.8],
            projects_completed_count=12,
        )

        result = score_company(request, company)

        assert result == ScoreResult(
            score=85,
            reasons=["Category match", "Same city", "Top rated", "Experienced"],
            average_rating=4.8,
        )

    def test_total_is_not_capped(self):
        request = make_request(tags=["a", "b", "c"])
        company = make_company(
            services=[make_service("Plumbing", tags=["a", "b", "c"])],
            review_ratings=[5.0],
            projects_completed_count=50,
        )

        # 40 + 30 + 15 + 10 + 5
        assert score_company(request, company).score == 100

    def test_scoring_is_deterministic(self):
        request = make_request(tags=["a"])
        company = make_company(
            services=[make_service("Plumbing", tags=["a"])], review_ratings=[4.2]
        )

        assert score_company(request, company) == score_company(request, company)

    def test_score_is_never_negative_for_empty_company(self):
        request = make_request()
        company = make_company(
            services=[], city_id=None, country_id=None, verification_status="PENDING"
        )

        assert score_company(request, company).score >= 0

    def test_custom_rules_change_weights(self):
        rules = ScoringRules(category_weight=100, same_city_weight=1)
        request = make_request()
        company = make_company()

        assert CompanyScorer(rules).score(request, company).score == 101
