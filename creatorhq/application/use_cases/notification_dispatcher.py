from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.application.ports.calendar import CalendarPort
from creatorhq.application.ports.email import EmailPort
from creatorhq.application.utils import email_templates
from creatorhq.domain.entities.booking import Booking, BookingStatus
from creatorhq.domain.entities.creator import CreatorProfile
from creatorhq.domain.entities.lifecycle import BookingEvent


@dataclass(frozen=True)
class SideEffectTask:
    name: str
    run: Callable[[], Any]


@dataclass(frozen=True)
class TaskOutcome:
    name: str
    status: str  # "ok" | "failed" | "timeout" | "skipped"
    error: str | None = None


@dataclass(frozen=True)
class DispatchReport:
    event: BookingEvent
    booking_id: str
    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def failures(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.status in {"failed", "timeout"}]


class EmailRejected(RuntimeError):
    pass


class _Skipped(Exception):
    pass


logger = logging.getLogger(__name__)


def settle_all(
    tasks: list[SideEffectTask],
    timeout: float,
    executor: ThreadPoolExecutor | None = None,
) -> list[TaskOutcome]:
    """
    Run tasks concurrently and collect one outcome per task.
    Never raises: failures and timeouts are recorded, logged and returned.

    With a caller-owned executor, tasks still running at the deadline finish
    on that executor and tasks that never started are cancelled. Without one
    a throwaway pool is used.
    """
    if not tasks:
        return []

    owned = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="side-effect")
    futures = {pool.submit(task.run): task for task in tasks}
    try:
        done, pending = wait(futures, timeout=timeout)
        for future in pending:
            future.cancel()
    finally:
        if owned:
            pool.shutdown(wait=False, cancel_futures=True)

    outcomes: list[TaskOutcome] = []
    for future, task in futures.items():
        if future not in done:
            logger.warning("Side effect timed out", extra={"task": task.name, "status": "timeout"})
            outcomes.append(TaskOutcome(task.name, "timeout", f"timed out after {timeout}s"))
            continue
        error = future.exception()
        if error is None:
            outcomes.append(TaskOutcome(task.name, "ok"))
        elif isinstance(error, _Skipped):
            outcomes.append(TaskOutcome(task.name, "skipped", str(error) or None))
        else:
            logger.error("Side effect failed", extra={"task": task.name, "status": "failed", "error": str(error)})
            outcomes.append(TaskOutcome(task.name, "failed", str(error)))
    return outcomes


class NotificationDispatcher:
    """
    Fans lifecycle events out to emails, calendar sync and revenue metrics.

    Every task is independent: one failing (or hanging) never blocks the others,
    and dispatch() never raises into the state transition that triggered it.
    """

    def __init__(
        self,
        email: EmailPort,
        calendar: CalendarPort | None,
        repository: BookingRepositoryPort,
        timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] | None = None,
        max_workers: int = 8,
    ) -> None:
        self._email = email
        self._calendar = calendar
        self._repository = repository
        self._timeout = timeout_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._logger = logging.getLogger(__name__)
        # shared by every dispatch so a hanging provider cannot pile up threads
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="side-effect")

    def dispatch(self, event: BookingEvent, booking: Booking, **context: Any) -> DispatchReport:
        try:
            creator = self._repository.get_creator(booking.creator_id)
            tasks = self.build_tasks(event, booking, creator, **context)
        except Exception as e:
            self._logger.exception(
                "Failed to prepare side effects",
                extra={"event": event.value, "booking_id": booking.id, "error": str(e)},
            )
            return DispatchReport(event=event, booking_id=booking.id)

        try:
            outcomes = settle_all(tasks, self._timeout, self._executor)
        except RuntimeError as e:
            # submitting after close()
            self._logger.error(
                "Side effects not started",
                extra={"event": event.value, "booking_id": booking.id, "error": str(e)},
            )
            return DispatchReport(event=event, booking_id=booking.id)
        report = DispatchReport(event=event, booking_id=booking.id, outcomes=outcomes)
        self._logger.info(
            "Side effects dispatched",
            extra={
                "event": event.value,
                "booking_id": booking.id,
                "status": ",".join(f"{o.name}:{o.status}" for o in outcomes) or "none",
            },
        )
        return report

    def close(self) -> None:
        """Let in-flight side effects finish, then release the worker threads."""
        self._executor.shutdown(wait=True, cancel_futures=True)

    def build_tasks(
        self,
        event: BookingEvent,
        booking: Booking,
        creator: CreatorProfile | None,
        **context: Any,
    ) -> list[SideEffectTask]:
        tasks: list[SideEffectTask] = []

        if event == BookingEvent.requested:
            tasks.append(self._creator_email("creator_request_email", email_templates.new_request_for_creator, booking, creator))

        elif event == BookingEvent.confirmed:
            tasks.append(self._client_email("client_confirmation_email", email_templates.confirmation_for_client(booking, creator), booking))
            tasks.append(self._creator_email("creator_confirmation_email", email_templates.confirmation_for_creator, booking, creator))
            tasks.append(self._calendar_task(booking, creator))

        elif event == BookingEvent.payment_succeeded:
            tasks.append(self._client_email("client_payment_email", email_templates.payment_confirmed_for_client(booking, creator), booking))
            tasks.append(self._creator_email("creator_payment_email", email_templates.payment_received_for_creator, booking, creator))
            tasks.append(self._calendar_task(booking, creator))
            amount = context.get("amount") or booking.price
            tasks.append(
                SideEffectTask(
                    "revenue_metrics",
                    lambda: self._repository.record_revenue(booking.creator_id, amount, "booking", self._clock()),
                )
            )

        elif event == BookingEvent.payment_requested:
            content = email_templates.payment_request_for_client(
                booking, creator, context["payment_link"], context.get("note")
            )
            tasks.append(self._client_email("payment_request_email", content, booking))

        elif event == BookingEvent.meeting_link_sent:
            content = email_templates.meeting_link_for_client(booking, creator, context.get("note"))
            tasks.append(self._client_email("meeting_link_email", content, booking))

        elif event == BookingEvent.rescheduled and booking.status == BookingStatus.confirmed:
            tasks.append(self._calendar_task(booking, creator))

        return tasks

    def _send(self, to: str, content: email_templates.EmailContent) -> None:
        if not self._email.send(to, content.subject, content.html):
            raise EmailRejected(f"email to {to} was not accepted")

    def _client_email(self, name: str, content: email_templates.EmailContent, booking: Booking) -> SideEffectTask:
        return SideEffectTask(name, lambda: self._send(booking.client_email, content))

    def _creator_email(
        self,
        name: str,
        template: Callable[[Booking, CreatorProfile | None], email_templates.EmailContent],
        booking: Booking,
        creator: CreatorProfile | None,
    ) -> SideEffectTask:
        def run() -> None:
            if creator is None or not creator.contact_email:
                raise _Skipped("creator has no contact email")
            self._send(creator.contact_email, template(booking, creator))

        return SideEffectTask(name, run)

    def _calendar_task(self, booking: Booking, creator: CreatorProfile | None) -> SideEffectTask:
        def run() -> None:
            if self._calendar is None:
                raise _Skipped("calendar integration disabled")
            credential = self._repository.get_calendar_credential(booking.creator_id)
            if credential is None:
                raise _Skipped("creator has no calendar connected")
            if credential.is_expired(self._clock()) and credential.refresh_token:
                credential = self._calendar.refresh(credential)
                self._repository.save_calendar_credential(credential)
            event_id = self._calendar.upsert_event(credential, booking, creator)
            self._logger.info("Calendar synced", extra={"booking_id": booking.id, "event": event_id})

        return SideEffectTask("calendar_sync", run)
