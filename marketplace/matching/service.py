"""Matcher: ranks candidate companies for a service request."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from marketplace.config.models import MatchingConfig, ScoringRules
from marketplace.domain.access import require_owner_or_admin
from marketplace.domain.exceptions import RequestNotFoundError
from marketplace.domain.models import ActingUser, RequestStatus
from marketplace.domain.states import can_transition
from marketplace.logging import get_logger
from marketplace.logging.context import log_context
from marketplace.persistence.unit_of_work import UnitOfWork
from marketplace.scoring.engine import CompanyScorer
from marketplace.utils.timestamps import utc_now

from .models import MatchedCompany, MatchOutcome

logger = get_logger(__name__, component="matching")


class Matcher:
    """Finds, scores and ranks companies for a request.

    Matching is informational for the requester: it does not notify companies
    and its only write is moving the request into MATCHING.
    """

    def __init__(
        self,
        matching: Optional[MatchingConfig] = None,
        scoring: Optional[ScoringRules] = None,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize Matcher.

        Args:
            matching: Candidate and result limits (defaults if None)
            scoring: Scoring rules (defaults if None)
            uow_factory: Callable returning a fresh UnitOfWork
            clock: Source of the current UTC time
            logger_instance: Optional logger instance (defaults to module logger)
        """
        self.matching = matching or MatchingConfig()
        self.scorer = CompanyScorer(scoring)
        self.uow_factory = uow_factory
        self.clock = clock
        self.logger = logger_instance or logger

    def match(self, request_id: str, actor: ActingUser) -> MatchOutcome:
        """Rank companies for a request.

        Algorithm:
        1. Load the request with its category
        2. Check the actor owns the request or is an administrator
        3. Fetch at most ``candidate_limit`` candidates via the coarse filter
        4. Score every candidate and sort by score, ties in candidate order
        5. Keep the best ``result_limit`` matches
        6. Move the request to MATCHING when its transition table allows it

        Args:
            request_id: Request to match
            actor: Authenticated caller

        Returns:
            MatchOutcome with ranked matches and the candidate count

        Raises:
            RequestNotFoundError: If the request does not exist
            ForbiddenError: If the actor is neither owner nor administrator
            PersistenceError: If database error occurs
        """
        with log_context(request_id=request_id, actor_id=actor.user_id):
            with self.uow_factory() as uow:
                request = uow.requests.get(request_id)
                if request is None:
                    raise RequestNotFoundError()

                require_owner_or_admin(
                    request, actor, "Only the request owner can run matching."
                )

                candidates = uow.companies.find_match_candidates(
                    request, self.matching.candidate_limit
                )

                scored: List[MatchedCompany] = []
                for company in candidates:
                    result = self.scorer.score(request, company)
                    scored.append(
                        MatchedCompany(
                            company=company,
                            match_score=result.score,
                            match_reasons=list(result.reasons),
                            average_rating=result.average_rating,
                        )
                    )

                # sorted() is stable, so equal scores keep candidate order
                ranked = sorted(scored, key=lambda match: match.match_score, reverse=True)

                status = request.status
                if status == RequestStatus.MATCHING:
                    pass
                elif can_transition(status, RequestStatus.MATCHING):
                    uow.requests.update_status(request.id, RequestStatus.MATCHING, self.clock())
                    status = RequestStatus.MATCHING
                else:
                    self.logger.info(
                        f"Request {request.id} left in {status.value} after matching",
                        extra={"event": "matching.status_unchanged", "status": status.value},
                    )

            outcome = MatchOutcome(
                request_id=request.id,
                matches=ranked[: self.matching.result_limit],
                total_matches=len(ranked),
                request_status=status,
            )

            self.logger.info(
                f"Matched request {request.id}: {len(outcome.matches)} of "
                f"{outcome.total_matches} candidates returned",
                extra={
                    "event": "matching.completed",
                    "candidates": outcome.total_matches,
                    "returned": len(outcome.matches),
                },
            )
            return outcome
