"""
HTTP adapter contract: status codes and JSON envelopes over a
service wired to an in-memory notice sink.
"""

from __future__ import annotations

import pytest

from adapters.django_api.wiring import create_service, install_service
from core.order_store.models import MemberOrder
from engines.master_orders.models import MasterOrder
from engines.master_orders.statuses import MasterOrderStatus
from tests.factories import line

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture
def http_service(sink):
    service = create_service(sink)
    install_service(service)
    yield service
    install_service(None)


@pytest.fixture
def reviewed(client, http_service, make_account, make_order):
    """Two member orders reviewed over HTTP; returns (master_id, orders)."""
    account = make_account("Lycée Hugo")
    orders = [
        make_order(account, [line(7, 2)]),
        make_order(account, [line(7, 1), line(9, 1)]),
    ]
    for order in orders:
        response = client.post(
            f"/v1/member-orders/{order.id}/status",
            {"status": "reviewed"},
            content_type="application/json",
        )
        assert response.status_code == 200
    return MemberOrder.objects.get(id=orders[0].id).master_order_id, orders


def test_member_status_write_admits_order(client, reviewed) -> None:
    master_id, orders = reviewed

    response = client.get(f"/v1/member-orders/{orders[1].id}/master-order")

    body = response.json()
    assert body["ok"] is True
    assert body["data"]["id"] == master_id
    assert body["data"]["included_order_ids"] == [o.id for o in orders]
    assert "items" not in body["data"]


def test_master_detail_renders_money_as_strings(client, reviewed) -> None:
    master_id, _ = reviewed

    data = client.get(f"/v1/master-orders/{master_id}").json()["data"]

    assert data["status"] == MasterOrderStatus.INITIAL
    assert data["total"] == "40.00"
    assert [(i["product_id"], i["quantity"]) for i in data["items"]] == [(7, 3), (9, 1)]
    assert data["items"][0]["total"] == "30.00"


def test_members_and_validation(client, reviewed) -> None:
    master_id, orders = reviewed

    members = client.get(f"/v1/master-orders/{master_id}/members").json()["data"]
    validation = client.get(f"/v1/master-orders/{master_id}/validation").json()["data"]

    assert [m["id"] for m in members] == [o.id for o in orders]
    assert validation["is_valid"] is True
    assert validation["members_checked"] == 2


def test_transition_and_blocked_transition(client, reviewed, sink) -> None:
    master_id, _ = reviewed

    blocked = client.post(
        f"/v1/master-orders/{master_id}/transition",
        {"status": MasterOrderStatus.COMPLETE},
        content_type="application/json",
    ).json()["data"]
    applied = client.post(
        f"/v1/master-orders/{master_id}/transition",
        {"status": MasterOrderStatus.WAREHOUSE, "note": "Picked by team B."},
        content_type="application/json",
    ).json()["data"]

    assert blocked["outcome"] == "blocked"
    assert blocked["rejection"]
    assert applied["outcome"] == "changed"
    assert len(applied["members_updated"]) == 2
    assert MasterOrder.objects.get(id=master_id).status == MasterOrderStatus.WAREHOUSE


def test_bulk_transition_and_documents(client, reviewed) -> None:
    master_id, orders = reviewed

    bulk = client.post(
        "/v1/master-orders/bulk-transition",
        {"order_ids": [master_id, 987654], "status": MasterOrderStatus.WAREHOUSE},
        content_type="application/json",
    ).json()["data"]
    documents = client.post(
        "/v1/documents/generated",
        {"document_type": "bulk-packing-slip", "order_ids": [master_id]},
        content_type="application/json",
    ).json()["data"]

    assert bulk["changed"] == [master_id]
    assert bulk["not_master"] == [987654]
    assert documents == [{"order_id": master_id, "action": "already_warehouse", "transition": None}]


def test_reconcile(client, reviewed) -> None:
    master_id, _ = reviewed
    data = client.post(f"/v1/master-orders/{master_id}/reconcile").json()["data"]
    assert data["repaired"] is False
    assert data["validation"]["is_valid"] is True


@pytest.mark.parametrize(
    "method, url, status",
    [
        ("get", "/v1/master-orders/424242", 404),
        ("get", "/v1/master-orders/424242/members", 404),
        ("get", "/v1/member-orders/424242/master-order", 200),
        ("post", "/v1/master-orders/1/members", 405),
        ("get", "/v1/master-orders/bulk-transition", 405),
    ],
)
def test_error_mapping(client, http_service, method, url, status) -> None:
    response = getattr(client, method)(url)
    assert response.status_code == status
    if status != 200:
        assert response.json()["ok"] is False


def test_bad_requests(client, http_service, make_account, make_order) -> None:
    order = make_order(make_account(), [line(1, 1)])

    unknown_status = client.post(
        f"/v1/member-orders/{order.id}/status",
        {"status": "teleported"},
        content_type="application/json",
    )
    not_master_status = client.post(
        "/v1/master-orders/bulk-transition",
        {"order_ids": [1], "status": "processing"},
        content_type="application/json",
    )
    empty_ids = client.post(
        "/v1/documents/generated",
        {"document_type": "bulk-packing-slip", "order_ids": []},
        content_type="application/json",
    )
    broken_json = client.post(
        f"/v1/master-orders/{order.id}/transition",
        "{not json",
        content_type="application/json",
    )

    for response in (unknown_status, not_master_status, empty_ids, broken_json):
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


def test_unknown_member_order_status_write(client, http_service) -> None:
    response = client.post(
        "/v1/member-orders/424242/status",
        {"status": "reviewed"},
        content_type="application/json",
    )
    assert response.status_code == 404
