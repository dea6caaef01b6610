"""Scoring engine for ranking companies against service requests."""

from .engine import CompanyScorer, ScoreResult, score_company

__all__ = ["CompanyScorer", "ScoreResult", "score_company"]
