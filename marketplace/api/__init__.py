"""Payload shapes and error mapping for an HTTP adapter."""

from .responses import (
    acceptance_response,
    error_response,
    match_response,
    offer_response,
    offers_response,
    parse_offer_submission,
    parse_offer_update,
    parse_project_update,
    project_response,
)

__all__ = [
    "match_response",
    "offer_response",
    "offers_response",
    "acceptance_response",
    "project_response",
    "error_response",
    "parse_offer_submission",
    "parse_offer_update",
    "parse_project_update",
]
