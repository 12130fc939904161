"""
MOA Order Store — Read-only Providers
=======================================
Narrow lookups the aggregation engine consumes without touching
the order store models directly.
"""

from __future__ import annotations

import logging
from typing import Protocol

from core.order_store.models import Account, Product

logger = logging.getLogger("moa.order_store")


class AccountBillingProvider(Protocol):
    def pays_centrally(self, account_id) -> bool:
        ...  # pragma: no cover


class ProductResolver(Protocol):
    def is_resolvable(self, product_id: int, variation_id: int = 0) -> bool:
        ...  # pragma: no cover


class DbAccountBillingProvider:
    """Reads the billing preference from the Account row."""

    def pays_centrally(self, account_id) -> bool:
        flag = (
            Account.objects.filter(account_id=account_id)
            .values_list("pays_centrally", flat=True)
            .first()
        )
        if flag is None:
            logger.warning(
                f"Account {account_id} not found, treating it as individually paying."
            )
            return False
        return bool(flag)


class DbProductResolver:
    """
    A line is resolvable when its variation (or, without one, its
    product) exists in the catalog and is active.
    """

    def is_resolvable(self, product_id: int, variation_id: int = 0) -> bool:
        lookup_id = variation_id or product_id
        return Product.objects.filter(id=lookup_id, is_active=True).exists()
