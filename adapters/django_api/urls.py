"""
MOA Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("master-orders/bulk-transition", views.bulk_transition_view),
    path("master-orders/<int:master_order_id>", views.master_order_detail_view),
    path("master-orders/<int:master_order_id>/members", views.master_order_members_view),
    path(
        "master-orders/<int:master_order_id>/validation",
        views.master_order_validation_view,
    ),
    path(
        "master-orders/<int:master_order_id>/transition",
        views.master_order_transition_view,
    ),
    path(
        "master-orders/<int:master_order_id>/reconcile",
        views.master_order_reconcile_view,
    ),
    path(
        "member-orders/<int:member_order_id>/master-order",
        views.master_order_for_member_view,
    ),
    path("member-orders/<int:member_order_id>/status", views.member_order_status_view),
    path("documents/generated", views.document_generated_view),
]
