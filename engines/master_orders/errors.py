"""
MOA Master Orders — Error Taxonomy
====================================
Raised:
    AllocationError, AllocationLockTimeout, MasterOrderNotFound,
    MemberOrderNotFound

Returned inside results (never raised by the engine):
    InvalidTransitionError, ReconstructionError, RemovalRefusedError
"""

from __future__ import annotations


class MasterOrderError(Exception):
    """Base for every master order engine error."""


class AllocationError(MasterOrderError):
    def __init__(self, account_id, message: str, *, retryable: bool = False):
        self.account_id = account_id
        self.retryable = retryable
        super().__init__(message)


class AllocationLockTimeout(AllocationError):
    def __init__(self, account_id, timeout: float):
        self.timeout = timeout
        super().__init__(
            account_id,
            f"Could not lock master order allocation for account {account_id} "
            f"within {timeout:g}s.",
            retryable=True,
        )


class MasterOrderNotFound(MasterOrderError, LookupError):
    def __init__(self, master_order_id):
        self.master_order_id = master_order_id
        super().__init__(f"Master order #{master_order_id} does not exist.")


class MemberOrderNotFound(MasterOrderError, LookupError):
    def __init__(self, member_order_id):
        self.member_order_id = member_order_id
        super().__init__(f"Member order #{member_order_id} does not exist.")


class InvalidTransitionError(MasterOrderError):
    def __init__(self, master_order_id, old_status: str, new_status: str):
        self.master_order_id = master_order_id
        self.old_status = old_status
        self.new_status = new_status
        super().__init__(
            f"Master order #{master_order_id} cannot move from "
            f"'{old_status}' to '{new_status}'."
        )


class ReconstructionError(MasterOrderError):
    def __init__(self, member_order_id, product_id: int, variation_id: int, reason: str):
        self.member_order_id = member_order_id
        self.product_id = product_id
        self.variation_id = variation_id
        self.reason = reason
        super().__init__(
            f"Skipped line {product_id}/{variation_id} of order #{member_order_id}: {reason}"
        )


class RemovalRefusedError(MasterOrderError):
    def __init__(self, member_order_id, master_order_id, master_status: str):
        self.member_order_id = member_order_id
        self.master_order_id = master_order_id
        self.master_status = master_status
        super().__init__(
            f"Order #{member_order_id} cannot leave master order #{master_order_id} "
            f"in status '{master_status}'."
        )
