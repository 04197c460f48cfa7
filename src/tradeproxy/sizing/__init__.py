"""Order sizing policies (clamp-to-minimum and reject-below-minimum)."""

from tradeproxy.sizing.policy import (
    ClampToMinimumPolicy,
    RejectBelowMinimumPolicy,
    SizingPolicy,
    build_policy,
    compute_final_size,
    fallback_constraints,
    round_to_step,
    round_up_to_step,
)

__all__ = [
    "ClampToMinimumPolicy",
    "RejectBelowMinimumPolicy",
    "SizingPolicy",
    "build_policy",
    "compute_final_size",
    "fallback_constraints",
    "round_to_step",
    "round_up_to_step",
]
