"""
MOA Master Orders — Allocation Coordinator
============================================
Returns the one active master order of an account, creating it
when the account has none.

Two-phase locking:
    1. Named lock `master_order_account_<account_id>` (bounded wait)
       serializes allocation per account across workers.
    2. Inside the transaction the registry row is read FOR UPDATE.

Reservation is a single atomic statement:
    - no row yet:      INSERT (savepoint); unique conflict = lost race
    - inactive row:    UPDATE ... WHERE is_active = false; 0 rows = lost race
A lost race returns the winner's master order id.

Any failure after the reservation rolls back the whole transaction,
reservation included.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import DatabaseError, IntegrityError, transaction

from core.locks.errors import LockTimeout
from core.locks.service import named_lock
from core.order_store.models import Account, OrderKind
from core.order_store.providers import AccountBillingProvider, DbAccountBillingProvider
from core.order_store.service import OrderStore
from core.time.clock import Clock, get_default_clock
from engines.master_orders.config import MasterOrderSettings
from engines.master_orders.errors import AllocationError, AllocationLockTimeout
from engines.master_orders.models import MasterOrder, MasterOrderRegistry
from engines.master_orders.statuses import MasterOrderStatus

logger = logging.getLogger("moa.master_orders")

PAYMENT_METHOD_BANK_TRANSFER = "bacs"
PAYMENT_METHOD_BANK_TRANSFER_TITLE = "Bank transfer (account)"
PAYMENT_METHOD_MEMBER = "member_payment"
PAYMENT_METHOD_MEMBER_TITLE = "Paid by members"

CENTRAL_PAYMENT_NOTE = (
    "Account pays centrally: payment must be confirmed manually."
)


def allocation_lock_name(account_id) -> str:
    return f"master_order_account_{account_id}"


@dataclass(frozen=True)
class _Reservation:
    won: bool
    winner_master_order_id: int | None = None


class AllocationCoordinator:
    def __init__(
        self,
        *,
        settings: MasterOrderSettings | None = None,
        billing: AccountBillingProvider | None = None,
        clock: Clock | None = None,
        store: OrderStore | None = None,
    ):
        self._settings = settings or MasterOrderSettings()
        self._billing = billing or DbAccountBillingProvider()
        self._clock = clock or get_default_clock()
        self._store = store or OrderStore(clock=self._clock)

    # ══════════════════════════════════════════════════════════
    # PUBLIC
    # ══════════════════════════════════════════════════════════

    def acquire_or_create_master_order(self, account_id) -> int:
        """
        Return the id of the account's active master order.

        Raises AllocationLockTimeout (retryable) when the account lock
        is busy for longer than the configured timeout, and
        AllocationError on storage failures.
        """
        lock_name = allocation_lock_name(account_id)
        try:
            with named_lock(
                lock_name,
                timeout=self._settings.allocation_lock_timeout,
                ttl=self._settings.allocation_lock_ttl,
                clock=self._clock,
            ):
                return self._allocate(account_id)
        except LockTimeout as exc:
            logger.warning(f"Allocation lock busy for account {account_id}: {exc}")
            raise AllocationLockTimeout(
                account_id, self._settings.allocation_lock_timeout
            ) from exc
        except AllocationError:
            raise
        except DatabaseError as exc:
            logger.error(
                f"Master order allocation failed for account {account_id}: {exc}",
                exc_info=True,
            )
            raise AllocationError(
                account_id,
                f"Master order allocation failed for account {account_id}.",
            ) from exc

    # ══════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════

    @transaction.atomic
    def _allocate(self, account_id) -> int:
        account = Account.objects.filter(account_id=account_id).first()
        if account is None:
            raise AllocationError(account_id, f"Account {account_id} does not exist.")

        entry = (
            MasterOrderRegistry.objects.select_for_update()
            .filter(account_id=account_id)
            .first()
        )

        if entry is not None and entry.is_active:
            current = self._current_master(entry)
            if current is not None:
                logger.debug(
                    f"Account {account_id} reuses master order #{current.id}."
                )
                return current.id
            # Stale entry: the master is gone or no longer initial.
            MasterOrderRegistry.objects.filter(pk=entry.pk).update(
                is_active=False,
                updated_at=self._clock.now_utc(),
            )
            entry.is_active = False
            logger.info(
                f"Registry entry for account {account_id} was stale "
                f"(master order #{entry.master_order_id}), marked inactive."
            )

        reservation = self._reserve(account_id, has_row=entry is not None)
        if not reservation.won:
            logger.info(
                f"Account {account_id} already allocated master order "
                f"#{reservation.winner_master_order_id}."
            )
            if reservation.winner_master_order_id is None:
                raise AllocationError(
                    account_id,
                    f"Account {account_id} has a reservation in progress.",
                    retryable=True,
                )
            return reservation.winner_master_order_id

        master = self._create_master(account)
        updated = MasterOrderRegistry.objects.filter(
            account_id=account_id,
            master_order__isnull=True,
            is_active=True,
        ).update(master_order=master, updated_at=self._clock.now_utc())
        if updated != 1:
            raise AllocationError(
                account_id,
                f"Reservation for account {account_id} disappeared before "
                f"master order #{master.id} was registered.",
            )

        logger.info(
            f"Created master order #{master.id} for account {account_id} "
            f"({'central' if master.pays_centrally else 'member'} payment)."
        )
        return master.id

    def _current_master(self, entry: MasterOrderRegistry) -> MasterOrder | None:
        if entry.master_order_id is None:
            return None
        master = MasterOrder.objects.filter(id=entry.master_order_id).first()
        if master is None or master.status != MasterOrderStatus.INITIAL:
            return None
        return master

    def _reserve(self, account_id, *, has_row: bool) -> _Reservation:
        now = self._clock.now_utc()
        if not has_row:
            try:
                with transaction.atomic():
                    MasterOrderRegistry.objects.create(
                        account_id=account_id,
                        master_order=None,
                        is_active=True,
                    )
                return _Reservation(won=True)
            except IntegrityError:
                return _Reservation(won=False, winner_master_order_id=self._winner(account_id))

        claimed = MasterOrderRegistry.objects.filter(
            account_id=account_id,
            is_active=False,
        ).update(master_order=None, is_active=True, updated_at=now)
        if claimed == 1:
            return _Reservation(won=True)
        return _Reservation(won=False, winner_master_order_id=self._winner(account_id))

    def _winner(self, account_id) -> int | None:
        return (
            MasterOrderRegistry.objects.filter(account_id=account_id, is_active=True)
            .values_list("master_order_id", flat=True)
            .first()
        )

    def _create_master(self, account: Account) -> MasterOrder:
        pays_centrally = self._billing.pays_centrally(account.account_id)
        now = self._clock.now_utc()

        master = MasterOrder(
            account=account,
            account_name=account.name,
            status=MasterOrderStatus.INITIAL,
            included_order_ids=[],
            pays_centrally=pays_centrally,
        )
        if pays_centrally:
            master.payment_method = PAYMENT_METHOD_BANK_TRANSFER
            master.payment_method_title = PAYMENT_METHOD_BANK_TRANSFER_TITLE
            master.paid_at = None
        else:
            master.payment_method = PAYMENT_METHOD_MEMBER
            master.payment_method_title = PAYMENT_METHOD_MEMBER_TITLE
            master.paid_at = now
        master.save()

        if not pays_centrally:
            master.transaction_id = f"auto_member_payment_{master.id}"
            master.save(update_fields=["transaction_id", "updated_at"])
        else:
            self._store.add_note(OrderKind.MASTER, master.id, CENTRAL_PAYMENT_NOTE)
        return master
