"""
app/validators package marker.
"""

from app.validators.discount_validator import (
    compute_discount_percent,
    matches_estimation_fingerprint,
    validate_discount,
)

__all__ = [
    "compute_discount_percent",
    "matches_estimation_fingerprint",
    "validate_discount",
]
