"""Matcher: coarse candidate filtering, scoring and ranking."""

from .models import MatchedCompany, MatchOutcome
from .service import Matcher

__all__ = ["Matcher", "MatchOutcome", "MatchedCompany"]
