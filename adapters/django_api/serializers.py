"""
MOA Django Adapter — JSON shapes
=================================
Response envelopes and plain-dict renderings of engine objects.
Money is rendered as decimal strings.
"""

from __future__ import annotations

from typing import Any, Optional

from core.order_store.models import MemberOrder
from engines.master_orders.bulk_actions import BulkTransitionSummary
from engines.master_orders.documents import DocumentOutcome
from engines.master_orders.models import MasterOrder
from engines.master_orders.state_machine import TransitionResult
from engines.master_orders.validation import ValidationReport


def error_response(
    *,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return {
        "ok": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def success_response(data: Any) -> dict[str, Any]:
    return {"ok": True, "data": data}


def master_order_to_dict(master: MasterOrder, *, with_items: bool = True) -> dict[str, Any]:
    data = {
        "id": master.id,
        "account_id": str(master.account_id),
        "account_name": master.account_name,
        "status": master.status,
        "included_order_ids": master.member_ids,
        "subtotal": str(master.subtotal),
        "total_tax": str(master.total_tax),
        "total": str(master.total),
        "total_quantity": master.total_quantity,
        "payment_method": master.payment_method,
        "transaction_id": master.transaction_id,
        "paid_at": master.paid_at.isoformat() if master.paid_at else None,
        "pays_centrally": master.pays_centrally,
    }
    if with_items:
        data["items"] = [
            {
                "product_id": item.product_id,
                "variation_id": item.variation_id,
                "name": item.name,
                "quantity": item.quantity,
                "subtotal": str(item.subtotal),
                "total": str(item.total),
                "tax": str(item.tax),
                "taxes": dict(item.taxes or {}),
            }
            for item in master.items.order_by("position", "id")
        ]
    return data


def member_order_to_dict(order: MemberOrder) -> dict[str, Any]:
    return {
        "id": order.id,
        "account_id": str(order.account_id) if order.account_id else None,
        "status": order.status,
        "master_order_id": order.master_order_id,
        "merged_at": order.merged_at.isoformat() if order.merged_at else None,
    }


def transition_to_dict(result: TransitionResult) -> dict[str, Any]:
    return {
        "master_order_id": result.master_order_id,
        "old_status": result.old_status,
        "new_status": result.new_status,
        "outcome": result.outcome,
        "members_updated": list(result.members_updated),
        "rejection": str(result.rejection) if result.rejection else None,
    }


def validation_to_dict(report: ValidationReport) -> dict[str, Any]:
    return {
        "master_order_id": report.master_order_id,
        "is_valid": report.is_valid,
        "members_checked": report.members_checked,
        "discrepancies": [
            {
                "product_id": line.product_id,
                "variation_id": line.variation_id,
                "expected_quantity": line.expected_quantity,
                "actual_quantity": line.actual_quantity,
                "expected_total": str(line.expected_total),
                "actual_total": str(line.actual_total),
            }
            for line in report.discrepancies
        ],
    }


def bulk_summary_to_dict(summary: BulkTransitionSummary) -> dict[str, Any]:
    return {
        "new_status": summary.new_status,
        "changed": list(summary.changed),
        "blocked": list(summary.blocked),
        "unchanged": list(summary.unchanged),
        "not_master": list(summary.not_master),
        "invalid_master_ids": list(summary.invalid_master_ids),
    }


def document_outcome_to_dict(outcome: DocumentOutcome) -> dict[str, Any]:
    return {
        "order_id": outcome.order_id,
        "action": outcome.action,
        "transition": transition_to_dict(outcome.transition) if outcome.transition else None,
    }
