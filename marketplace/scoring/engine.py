"""Rule-based scoring of a company against a service request.

The score is a sum of independent bonuses, each contributing a reason string:

1. Category match: a service name or description contains the category name
2. Location: same city, or failing that, same country
3. Tag overlap: distinct request tags found among the company's service tags
4. Rating: average review rating reaching the top or high tier
5. Experience: enough completed projects

The total is not capped. Scoring is pure and total: missing data contributes
zero and never raises.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

from marketplace.config.models import ScoringRules
from marketplace.domain.models import Company, ServiceRequest
from marketplace.utils.text import contains_ignore_case

REASON_CATEGORY = "Category match"
REASON_SAME_CITY = "Same city"
REASON_SAME_COUNTRY = "Same country"
REASON_TOP_RATED = "Top rated"
REASON_HIGHLY_RATED = "Highly rated"
REASON_EXPERIENCED = "Experienced"


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one company.

    Attributes:
        score: Sum of all awarded bonuses (never negative)
        reasons: One human-readable reason per awarded bonus, in rule order
        average_rating: Mean review rating used for the rating bonus
    """

    score: int
    reasons: List[str] = field(default_factory=list)
    average_rating: float = 0.0


class CompanyScorer:
    """Scores companies with a fixed set of rules.

    Example:
        >>> scorer = CompanyScorer(ScoringRules())
        >>> result = scorer.score(request, company)
        >>> result.score, result.reasons
        (85, ['Category match', 'Same city', 'Top rated', 'Experienced'])
    """

    def __init__(self, rules: Optional[ScoringRules] = None):
        self.rules = rules or ScoringRules()

    def score(self, request: ServiceRequest, company: Company) -> ScoreResult:
        """Score a company against a request.

        Args:
            request: Request being matched (category name resolved)
            company: Candidate company with services and review ratings

        Returns:
            ScoreResult with the total, reasons and average rating
        """
        rules = self.rules
        total = 0
        reasons: List[str] = []

        if self._matches_category(request, company):
            total += rules.category_weight
            reasons.append(REASON_CATEGORY)

        # City is checked first; country only counts when the city did not match
        if _same_location(request.city_id, company.city_id):
            total += rules.same_city_weight
            reasons.append(REASON_SAME_CITY)
        elif _same_location(request.country_id, company.country_id):
            total += rules.same_country_weight
            reasons.append(REASON_SAME_COUNTRY)

        overlap = self.tag_overlap(request, company)
        if overlap > 0:
            total += min(overlap * rules.tag_weight, rules.tag_cap)
            reasons.append(f"{overlap} tag matches")

        average_rating = company.average_rating
        if average_rating >= rules.top_rated_threshold:
            total += rules.top_rated_bonus
            reasons.append(REASON_TOP_RATED)
        elif average_rating >= rules.highly_rated_threshold:
            total += rules.highly_rated_bonus
            reasons.append(REASON_HIGHLY_RATED)

        if company.projects_completed_count >= rules.experience_threshold:
            total += rules.experience_bonus
            reasons.append(REASON_EXPERIENCED)

        return ScoreResult(score=total, reasons=reasons, average_rating=average_rating)

    @staticmethod
    def tag_overlap(request: ServiceRequest, company: Company) -> int:
        """Count distinct request tags present in any of the company's services."""
        if not request.tags:
            return 0

        company_tags: Set[str] = set()
        for service in company.services:
            company_tags.update(service.tags)

        return len(set(request.tags) & company_tags)

    @staticmethod
    def _matches_category(request: ServiceRequest, company: Company) -> bool:
        category = request.category_name
        return any(
            contains_ignore_case(service.name, category)
            or contains_ignore_case(service.description, category)
            for service in company.services
        )


def _same_location(request_value: Optional[str], company_value: Optional[str]) -> bool:
    # Two unknown locations are not the same location
    return request_value is not None and request_value == company_value


def score_company(
    request: ServiceRequest, company: Company, rules: Optional[ScoringRules] = None
) -> ScoreResult:
    """Functional form of ``CompanyScorer.score``."""
    return CompanyScorer(rules).score(request, company)
