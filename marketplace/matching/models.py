"""Data models for matching results."""

from dataclasses import dataclass, field
from typing import List

from marketplace.domain.models import Company, RequestStatus


@dataclass
class MatchedCompany:
    """A ranked candidate company with the outcome of scoring it.

    Attributes:
        company: Candidate company
        match_score: Total score
        match_reasons: Reasons for every awarded bonus
        average_rating: Mean review rating (0.0 without reviews)
    """

    company: Company
    match_score: int
    match_reasons: List[str] = field(default_factory=list)
    average_rating: float = 0.0


@dataclass
class MatchOutcome:
    """Result of one matching run.

    Attributes:
        request_id: Request that was matched
        matches: Ranked companies, best first, already truncated
        total_matches: Number of candidates scored before truncation
        request_status: Request status after the run
    """

    request_id: str
    matches: List[MatchedCompany] = field(default_factory=list)
    total_matches: int = 0
    request_status: RequestStatus = RequestStatus.MATCHING
