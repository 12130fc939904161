"""
MOA Master Orders Engine — Application Service
================================================
One object wiring allocation, building, the state machine and
membership together around a shared order store, clock and
notification sink.

    registry = SubscriberRegistry()
    service = MasterOrderService(subscriber_registry=registry)
    service.register_subscriptions(registry)

From then on a member order moving processing -> reviewed through
`service.store.update_status(...)` lands in its account master order
once the transaction commits.
"""

from __future__ import annotations

from typing import Iterable

from core.events.registry import SubscriberRegistry
from core.notifications.sink import NotificationSink
from core.order_store.models import MemberOrder
from core.order_store.providers import (
    AccountBillingProvider,
    DbAccountBillingProvider,
    DbProductResolver,
    ProductResolver,
)
from core.order_store.service import OrderStore
from core.time.clock import Clock, get_default_clock
from engines.master_orders.allocation import AllocationCoordinator
from engines.master_orders.builder import (
    MasterOrderBuilder,
    MergeResult,
    ReconstructionResult,
)
from engines.master_orders.bulk_actions import BulkTransitionRunner, BulkTransitionSummary
from engines.master_orders.config import MasterOrderSettings, load_settings
from engines.master_orders.documents import (
    DocumentOutcome,
    DocumentTrigger,
    GeneratedDocument,
)
from engines.master_orders.membership import (
    AdmissionResult,
    MembershipManager,
    RemovalResult,
)
from engines.master_orders.models import MasterOrder
from engines.master_orders import queries
from engines.master_orders.state_machine import MasterOrderStateMachine, TransitionResult
from engines.master_orders.statuses import is_regression
from engines.master_orders.subscriptions import (
    MasterOrderSubscriptionHandler,
    register_master_order_subscriptions,
)
from engines.master_orders.validation import (
    MasterOrderValidator,
    ReconciliationResult,
    ValidationReport,
)


class MasterOrderService:
    def __init__(
        self,
        *,
        settings: MasterOrderSettings | None = None,
        store: OrderStore | None = None,
        billing: AccountBillingProvider | None = None,
        products: ProductResolver | None = None,
        notifications: NotificationSink | None = None,
        subscriber_registry: SubscriberRegistry | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or load_settings()
        self.clock = clock or get_default_clock()
        self.store = store or OrderStore(
            subscriber_registry=subscriber_registry, clock=self.clock
        )
        self.notifications = notifications

        self.allocator = AllocationCoordinator(
            settings=self.settings,
            billing=billing or DbAccountBillingProvider(),
            clock=self.clock,
            store=self.store,
        )
        self.builder = MasterOrderBuilder(
            store=self.store,
            products=products or DbProductResolver(),
            clock=self.clock,
        )
        self.state_machine = MasterOrderStateMachine(
            settings=self.settings,
            store=self.store,
            notifications=notifications,
            subscriber_registry=subscriber_registry,
            clock=self.clock,
        )
        self.membership = MembershipManager(
            settings=self.settings,
            store=self.store,
            allocator=self.allocator,
            builder=self.builder,
            notifications=notifications,
            clock=self.clock,
        )
        self.validator = MasterOrderValidator(
            store=self.store,
            products=products or DbProductResolver(),
            builder=self.builder,
        )
        self.bulk = BulkTransitionRunner(
            state_machine=self.state_machine,
            validator=self.validator,
            notifications=notifications,
        )
        self.documents = DocumentTrigger(state_machine=self.state_machine, store=self.store)

    def register_subscriptions(self, registry: SubscriberRegistry) -> MasterOrderSubscriptionHandler:
        handler = MasterOrderSubscriptionHandler(self.membership)
        register_master_order_subscriptions(registry, handler)
        return handler

    # ══════════════════════════════════════════════════════════
    # ALLOCATION / BUILDER
    # ══════════════════════════════════════════════════════════

    def acquire_or_create_master_order(self, account_id) -> int:
        return self.allocator.acquire_or_create_master_order(account_id)

    def merge_into(self, master_order_id: int, member_order_id: int) -> MergeResult:
        return self.builder.merge_into(master_order_id, member_order_id)

    def reconstruct(
        self,
        master_order_id: int,
        remaining_member_ids: Iterable[int] | None = None,
    ) -> ReconstructionResult:
        return self.builder.reconstruct(master_order_id, remaining_member_ids)

    # ══════════════════════════════════════════════════════════
    # STATE MACHINE
    # ══════════════════════════════════════════════════════════

    @staticmethod
    def is_regression(old_status: str, new_status: str) -> bool:
        return is_regression(old_status, new_status)

    def transition(
        self,
        master_order_id: int,
        new_status: str,
        *,
        note: str | None = None,
        system: bool = False,
    ) -> TransitionResult:
        return self.state_machine.transition(
            master_order_id, new_status, note=note, system=system
        )

    def revert_if_disallowed(self, master_order_id: int, previous_status: str) -> TransitionResult:
        return self.state_machine.revert_if_disallowed(master_order_id, previous_status)

    def bulk_transition(self, order_ids: Iterable[int], new_status: str) -> BulkTransitionSummary:
        return self.bulk.bulk_transition(order_ids, new_status)

    def handle_document_generated(self, document: GeneratedDocument) -> list[DocumentOutcome]:
        return self.documents.handle_document_generated(document)

    # ══════════════════════════════════════════════════════════
    # MEMBERSHIP
    # ══════════════════════════════════════════════════════════

    def admit(self, member_order_id: int) -> AdmissionResult:
        return self.membership.admit(member_order_id)

    def remove(self, member_order_id: int) -> RemovalResult:
        return self.membership.remove(member_order_id)

    # ══════════════════════════════════════════════════════════
    # QUERIES / VALIDATION
    # ══════════════════════════════════════════════════════════

    def get_master_order(self, master_order_id: int) -> MasterOrder | None:
        return queries.get_master_order(master_order_id)

    def get_master_order_for(self, member_order_id: int) -> MasterOrder | None:
        return queries.get_master_order_for(member_order_id)

    def get_members(self, master_order_id: int) -> list[MemberOrder]:
        return queries.get_members(master_order_id)

    def get_active_master_order(self, account_id) -> MasterOrder | None:
        return queries.get_active_master_order(account_id)

    def validate_master_order_totals(self, master_order_id: int) -> ValidationReport:
        return self.validator.validate_master_order_totals(master_order_id)

    def reconcile(self, master_order_id: int) -> ReconciliationResult:
        return self.validator.reconcile(master_order_id)


__all__ = ["MasterOrderService"]
