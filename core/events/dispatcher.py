"""
MOA Event Bus — Dispatcher
============================
Hands a committed event to each subscriber in registration order.

A failing subscriber is logged and recorded in the report; the
remaining subscribers still run and the publisher never sees the
exception. Events are any object with `event_type` and `event_id`.

Publishers use `dispatch_on_commit` so nothing is delivered for a
transaction that rolls back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from django.db import transaction

from core.events.registry import SubscriberRegistry

logger = logging.getLogger("moa.events")


@dataclass(frozen=True)
class SubscriberFailure:
    handler: str
    engine: str
    error_type: str
    error: str


@dataclass
class DispatchReport:
    event_type: str
    event_id: str
    notified: int = 0
    failures: list[SubscriberFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


def dispatch(event: Any, registry: SubscriberRegistry) -> DispatchReport:
    report = DispatchReport(event.event_type, str(event.event_id))
    subscriptions = registry.subscriptions_for(report.event_type)
    if not subscriptions:
        logger.debug(f"{report.event_type} ({report.event_id}) has no subscribers")
        return report

    for subscription in subscriptions:
        try:
            subscription.handler(event)
        except Exception as exc:
            report.failures.append(
                SubscriberFailure(
                    handler=subscription.handler_name,
                    engine=subscription.engine,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            )
            logger.error(
                f"{subscription.handler_name} failed on {report.event_type} "
                f"({report.event_id}): {exc}",
                exc_info=True,
            )
        else:
            report.notified += 1

    logger.info(
        f"{report.event_type} ({report.event_id}) delivered: "
        f"{report.notified} ok, {report.failed} failed"
    )
    return report


def dispatch_on_commit(event: Any, registry: SubscriberRegistry | None) -> None:
    """
    Deliver `event` once the surrounding transaction commits.

    Outside a transaction Django runs the callback at once.
    """
    if registry is None:
        return
    transaction.on_commit(lambda: dispatch(event, registry))
