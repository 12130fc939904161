"""
MOA Django Adapter Views
=========================
Pass-through JSON views over MasterOrderService.

Engine errors map to:
    MasterOrderNotFound / MemberOrderNotFound / OrderNotFound  -> 404
    AllocationLockTimeout                                      -> 503
    AllocationError                                            -> 500
    invalid input                                              -> 400
Blocked transitions are not errors: they come back with
outcome "blocked" and the rejection message.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.serializers import (
    bulk_summary_to_dict,
    document_outcome_to_dict,
    error_response,
    master_order_to_dict,
    member_order_to_dict,
    success_response,
    transition_to_dict,
    validation_to_dict,
)
from adapters.django_api.wiring import build_service
from core.order_store.errors import OrderNotFound, UnknownOrderStatus
from engines.master_orders.documents import GeneratedDocument
from engines.master_orders.errors import (
    AllocationError,
    AllocationLockTimeout,
    MasterOrderNotFound,
    MemberOrderNotFound,
)

logger = logging.getLogger("moa.http")


def _json_error(code: str, message: str, status: int = 400) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except Exception as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_id_list(value: Any, field_name: str) -> list[int]:
    if not isinstance(value, list) or not value:
        raise ValueError(f"{field_name} must be a non-empty list of ids.")
    try:
        return [int(item) for item in value]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must contain integer ids.") from exc


def _run(action) -> JsonResponse:
    try:
        return JsonResponse(success_response(action()))
    except (MasterOrderNotFound, MemberOrderNotFound, OrderNotFound) as exc:
        return _json_error("NOT_FOUND", str(exc), status=404)
    except AllocationLockTimeout as exc:
        return _json_error("ALLOCATION_BUSY", str(exc), status=503)
    except AllocationError as exc:
        logger.error(f"Allocation failed: {exc}", exc_info=True)
        return _json_error("ALLOCATION_FAILED", str(exc), status=500)
    except (ValueError, KeyError) as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)


# ══════════════════════════════════════════════════════════════
# READS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def master_order_detail_view(request: HttpRequest, master_order_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()

    def action():
        master = build_service().get_master_order(master_order_id)
        if master is None:
            raise MasterOrderNotFound(master_order_id)
        return master_order_to_dict(master)

    return _run(action)


@csrf_exempt
def master_order_members_view(request: HttpRequest, master_order_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _run(
        lambda: [
            member_order_to_dict(order)
            for order in build_service().get_members(master_order_id)
        ]
    )


@csrf_exempt
def master_order_for_member_view(request: HttpRequest, member_order_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()

    def action():
        master = build_service().get_master_order_for(member_order_id)
        return master_order_to_dict(master, with_items=False) if master else None

    return _run(action)


@csrf_exempt
def master_order_validation_view(request: HttpRequest, master_order_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _run(
        lambda: validation_to_dict(
            build_service().validate_master_order_totals(master_order_id)
        )
    )


# ══════════════════════════════════════════════════════════════
# WRITES
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def master_order_transition_view(request: HttpRequest, master_order_id: int) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()

    def action():
        body = _parse_json_body(request)
        result = build_service().transition(
            master_order_id,
            str(body["status"]),
            note=body.get("note"),
        )
        return transition_to_dict(result)

    return _run(action)


@csrf_exempt
def master_order_reconcile_view(request: HttpRequest, master_order_id: int) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()

    def action():
        result = build_service().reconcile(master_order_id)
        return {
            "repaired": result.repaired,
            "reason": result.reason,
            "validation": validation_to_dict(result.report),
        }

    return _run(action)


@csrf_exempt
def bulk_transition_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()

    def action():
        body = _parse_json_body(request)
        summary = build_service().bulk_transition(
            _parse_id_list(body.get("order_ids"), "order_ids"),
            str(body["status"]),
        )
        return bulk_summary_to_dict(summary)

    return _run(action)


@csrf_exempt
def document_generated_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()

    def action():
        body = _parse_json_body(request)
        document = GeneratedDocument(
            document_type=body["document_type"],
            order_ids=tuple(_parse_id_list(body.get("order_ids"), "order_ids")),
        )
        outcomes = build_service().handle_document_generated(document)
        return [document_outcome_to_dict(outcome) for outcome in outcomes]

    return _run(action)


@csrf_exempt
def member_order_status_view(request: HttpRequest, member_order_id: int) -> JsonResponse:
    """
    Change a member order's status as a normal (event-emitting) write.

    Admission and removal run after the write commits.
    """
    if request.method != "POST":
        return _method_not_allowed()

    def action():
        body = _parse_json_body(request)
        service = build_service()
        try:
            service.store.update_status(
                member_order_id,
                str(body["status"]),
                note=str(body.get("note", "")),
            )
        except UnknownOrderStatus as exc:
            raise ValueError(str(exc)) from exc
        order = service.store.get_order(member_order_id)
        return member_order_to_dict(order)

    return _run(action)
