"""Offer lifecycle controller."""

from .models import AcceptanceResult, OfferSubmission, OfferUpdate
from .service import OfferService

__all__ = ["OfferService", "OfferSubmission", "OfferUpdate", "AcceptanceResult"]
