"""
Claiming Coordinator

An administrator can provision a business profile for someone who has not
signed up yet. The profile sits in `pending_claim` with the future owner's
email and is owned by the administrator. The first time that person signs
in, the profile and everything hanging off it moves to them in a single
transaction.

DESIGN DECISION: The claim is an explicit workflow,

    IDLE -> CLAIMING -> CLAIMED
      ^         |
      +---------+  (nothing to claim, lost race, or store failure)

and the transaction opens with a ClaimBusiness compare-and-set. Two
triggers in this process cannot overlap because the state leaves IDLE
before the first await. Two processes racing each other both submit, the
store commits one and rejects the other with a ConflictError, and the
loser returns to IDLE without changing anything.

Which profile is claimed when several match the same email is
deterministic: oldest first, then lowest id.
"""

from collections.abc import Iterable
from contextlib import aclosing
from enum import Enum
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from invoicing.audit import AuditLogger, create_correlation_id
from invoicing.models.entities import (
    BankAccount,
    Business,
    BusinessStatus,
    Client,
    EntityKind,
    Expense,
    Identity,
    Invoice,
    Service,
    Tax,
    TermsTemplate,
)
from invoicing.models.operations import ClaimBusiness, Operation, link_owner
from invoicing.services.storage import (
    ConflictError,
    StorageError,
    StoreInterface,
    StoreQuery,
)
from invoicing.services.transactions import TransactionSubmitter


logger = structlog.get_logger(__name__)


class ClaimError(Exception):
    """The claiming transaction could not be committed."""

    def __init__(self, message: str, business_id: UUID):
        super().__init__(message)
        self.business_id = business_id


class ClaimState(str, Enum):
    IDLE = "idle"
    CLAIMING = "claiming"
    CLAIMED = "claimed"


# =============================================================================
# CLAIM GRAPH
# =============================================================================

class ClaimGraph(BaseModel):
    """A pending business with every record that moves with it."""
    model_config = ConfigDict(frozen=True)

    business: Business
    clients: list[Client] = Field(default_factory=list)
    # Invoices reached through each client, keyed by client id
    client_invoices: dict[UUID, list[Invoice]] = Field(default_factory=dict)
    # Invoices linked to the business itself
    business_invoices: list[Invoice] = Field(default_factory=list)
    services: list[Service] = Field(default_factory=list)
    bank_accounts: list[BankAccount] = Field(default_factory=list)
    taxes: list[Tax] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    terms_templates: list[TermsTemplate] = Field(default_factory=list)


async def load_claim_graph(store: StoreInterface, business: Business) -> ClaimGraph:
    """Read everything linked to a business, directly or through its clients."""

    async def linked(kind: EntityKind, **where) -> list:
        return await store.query(StoreQuery(entity=kind, where=where))

    clients = await linked(EntityKind.CLIENT, business_id=business.id)
    client_invoices = {
        client.id: await linked(EntityKind.INVOICE, client_id=client.id)
        for client in clients
    }

    return ClaimGraph(
        business=business,
        clients=clients,
        client_invoices=client_invoices,
        business_invoices=await linked(EntityKind.INVOICE, business_id=business.id),
        services=await linked(EntityKind.SERVICE, business_id=business.id),
        bank_accounts=await linked(EntityKind.BANK_ACCOUNT, business_id=business.id),
        taxes=await linked(EntityKind.TAX, business_id=business.id),
        expenses=await linked(EntityKind.EXPENSE, business_id=business.id),
        terms_templates=await linked(EntityKind.TERMS_TEMPLATE, business_id=business.id),
    )


def build_claim_operations(graph: ClaimGraph, identity: Identity) -> list[Operation]:
    """
    The claim transaction: activate the business, then relink every
    dependent record to the claimant.

    An invoice reachable both through a client and directly is linked once.
    """
    ops: list[Operation] = [
        ClaimBusiness(business_id=graph.business.id, owner_id=identity.id),
    ]
    seen: set[tuple[EntityKind, UUID]] = set()

    def relink(kind: EntityKind, records: Iterable) -> None:
        for record in records:
            if (kind, record.id) in seen:
                continue
            seen.add((kind, record.id))
            ops.append(link_owner(kind, record.id, identity.id))

    for client in graph.clients:
        relink(EntityKind.CLIENT, [client])
        relink(EntityKind.INVOICE, graph.client_invoices.get(client.id, []))
    relink(EntityKind.INVOICE, graph.business_invoices)
    relink(EntityKind.SERVICE, graph.services)
    relink(EntityKind.BANK_ACCOUNT, graph.bank_accounts)
    relink(EntityKind.TAX, graph.taxes)
    relink(EntityKind.EXPENSE, graph.expenses)
    relink(EntityKind.TERMS_TEMPLATE, graph.terms_templates)
    return ops


def select_pending_business(candidates: Iterable[Business]) -> Optional[Business]:
    """Oldest pending profile first, lowest id on a tie."""
    ordered = sorted(candidates, key=lambda b: (b.created_at, str(b.id)))
    return ordered[0] if ordered else None


# =============================================================================
# COORDINATOR
# =============================================================================

class ClaimOutcome(BaseModel):
    """What one claim attempt did."""
    model_config = ConfigDict(frozen=True)

    claimed: bool
    business_id: Optional[UUID] = None
    relinked_count: int = 0
    reason: Optional[str] = None


class ClaimingCoordinator:
    """
    Claims a pending business for the signed-in identity.

    `claim_if_needed` evaluates the trigger once; `watch` keeps evaluating
    it whenever the set of pending businesses changes.
    """

    def __init__(
        self,
        submitter: TransactionSubmitter,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._submitter = submitter
        self._store = submitter.store
        self._audit = audit_logger or AuditLogger()
        self._state = ClaimState.IDLE

    @property
    def state(self) -> ClaimState:
        return self._state

    def reset(self) -> None:
        """Forget a completed claim, e.g. when the identity changes."""
        self._state = ClaimState.IDLE

    async def find_claimable(self, identity: Identity) -> Optional[Business]:
        """
        The business this identity should claim, if any.

        None when the identity already owns a business or no pending
        profile carries its email (compared case-insensitively).
        """
        owned = await self._store.query(
            StoreQuery(entity=EntityKind.BUSINESS, where={"owner_id": identity.id})
        )
        if owned:
            return None
        pending = await self._store.query(
            StoreQuery(
                entity=EntityKind.BUSINESS,
                where={"status": BusinessStatus.PENDING_CLAIM},
            )
        )
        return select_pending_business(b for b in pending if b.is_claimable_by(identity))

    async def claim_if_needed(
        self,
        identity: Identity,
        correlation_id: Optional[UUID] = None,
    ) -> ClaimOutcome:
        """
        Run the claim workflow once.

        Raises:
            ClaimError: The store failed to commit the claim
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._state != ClaimState.IDLE:
            reason = f"claim workflow is {self._state.value}"
            await self._audit.log_claim_skipped(reason, correlation_id)
            return ClaimOutcome(claimed=False, reason=reason)

        self._state = ClaimState.CLAIMING
        try:
            business = await self.find_claimable(identity)
        except BaseException:
            self._state = ClaimState.IDLE
            raise

        if business is None:
            self._state = ClaimState.IDLE
            reason = "no pending business to claim"
            await self._audit.log_claim_skipped(reason, correlation_id)
            return ClaimOutcome(claimed=False, reason=reason)

        try:
            await self._audit.log_claim_started(business.id, identity.id, correlation_id)
            graph = await load_claim_graph(self._store, business)
            operations = build_claim_operations(graph, identity)
            await self._submitter.submit(operations, correlation_id)

        except ConflictError as e:
            # Another session claimed it between our read and our commit
            self._state = ClaimState.IDLE
            reason = "business was claimed concurrently"
            logger.info("claim_conflict", identity_id=str(identity.id), error=str(e))
            await self._audit.log_claim_skipped(reason, correlation_id, business_id=business.id)
            return ClaimOutcome(claimed=False, business_id=business.id, reason=reason)

        except StorageError as e:
            self._state = ClaimState.IDLE
            await self._audit.log_claim_failed(business.id, str(e), correlation_id)
            raise ClaimError(f"Could not claim business {business.id}: {e}", business.id) from e

        except BaseException:
            self._state = ClaimState.IDLE
            raise

        self._state = ClaimState.CLAIMED
        relinked = len(operations) - 1
        await self._audit.log_claim_completed(business.id, identity.id, relinked, correlation_id)
        return ClaimOutcome(claimed=True, business_id=business.id, relinked_count=relinked)

    async def watch(self, identity: Identity) -> None:
        """
        Re-evaluate the claim whenever the set of pending businesses changes.

        Runs until cancelled or until a claim succeeds. A failed claim is
        logged and retried on the next change.
        """
        pending_query = StoreQuery(
            entity=EntityKind.BUSINESS,
            where={"status": BusinessStatus.PENDING_CLAIM},
        )
        async with aclosing(self._store.subscribe(pending_query)) as updates:
            async for pending in updates:
                if not any(b.is_claimable_by(identity) for b in pending):
                    continue
                try:
                    outcome = await self.claim_if_needed(identity)
                except ClaimError as e:
                    logger.error("claim_failed", business_id=str(e.business_id), error=str(e))
                    continue
                if outcome.claimed:
                    return
