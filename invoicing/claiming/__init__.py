"""Claiming of administrator-provisioned business profiles."""

from invoicing.claiming.coordinator import (
    ClaimError,
    ClaimGraph,
    ClaimingCoordinator,
    ClaimOutcome,
    ClaimState,
    build_claim_operations,
    load_claim_graph,
    select_pending_business,
)

__all__ = [
    "ClaimError",
    "ClaimGraph",
    "ClaimingCoordinator",
    "ClaimOutcome",
    "ClaimState",
    "build_claim_operations",
    "load_claim_graph",
    "select_pending_business",
]
