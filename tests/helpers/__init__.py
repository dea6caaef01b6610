"""Test helper utilities for marketplace engine tests."""

from .factories import (
    NOW,
    FixedClock,
    RecordingEmitter,
    make_company,
    make_offer,
    make_request,
    make_service,
    seed_category,
    seed_company,
    seed_offer,
    seed_request,
)

__all__ = [
    "NOW",
    "FixedClock",
    "RecordingEmitter",
    "make_company",
    "make_offer",
    "make_request",
    "make_service",
    "seed_category",
    "seed_company",
    "seed_offer",
    "seed_request",
]
