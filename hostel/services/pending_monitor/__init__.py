"""Background retry of room/tag assignment for pending registrants.

`resolve_pending_assignments` performs one scan and can be called from
scripts or tests. `PendingAssignmentMonitor` runs that scan on an interval
inside the application lifespan, and wakes early when a change event reports
new capacity (a room or tag created or released, or a settings update).
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from mongoengine.queryset.visitor import Q

from hostel.models.user import User
from hostel.services.assignment import Registrant, assign_room, assign_tag, release_bed, release_tag
from hostel.services.notifications import ChangeEvent, ChangeFeed, get_feed, publish_change
from hostel.services.policy import AssignmentPolicy, load_assignment_policy
from hostel.utils.base import AssignmentStatus, ChangeAction
from hostel.utils.config import settings
from hostel.utils.logger import get_logger


logger = get_logger(__name__)

PENDING = AssignmentStatus.PENDING.value
ASSIGNED = AssignmentStatus.ASSIGNED.value


@dataclass
class ScanReport:
    scanned: int = 0
    rooms_assigned: int = 0
    tags_assigned: int = 0


def pending_users() -> list[User]:
    """Users with any pending field, oldest registration first."""
    query = Q(room_status=PENDING) | Q(tag_status=PENDING)
    return list(User.objects(query).order_by("created_at", "id"))


def resolve_pending_room(user: User, registrant: Registrant, policy: AssignmentPolicy) -> Optional[bool]:
    """None when no bed could be reserved, otherwise whether this user got it."""
    room = assign_room(registrant, policy)
    if room is None:
        return None
    applied = User.conditional_update(
        user.id,
        {"room_status": PENDING},
        {
            "set__room_id": room.room_id,
            "set__room_number": room.room_number,
            "set__wing": room.wing,
            "set__bed_number": room.bed_number,
            "set__room_status": ASSIGNED,
        },
    )
    if not applied:
        # someone else resolved this user between the scan and now
        release_bed(room.room_id, room.bed_number)
        return False
    publish_change("users", user.id, ChangeAction.ASSIGNED)
    return True


def resolve_pending_tag(user: User, registrant: Registrant) -> Optional[bool]:
    tag_number = assign_tag(registrant)
    if tag_number is None:
        return None
    applied = User.conditional_update(
        user.id,
        {"tag_status": PENDING},
        {"set__tag_number": tag_number, "set__tag_status": ASSIGNED},
    )
    if not applied:
        release_tag(tag_number, user.id)
        return False
    publish_change("users", user.id, ChangeAction.ASSIGNED)
    return True


def resolve_pending_assignments() -> ScanReport:
    """Run one first-come-first-served pass over pending users.

    Only fields that are still pending are touched. Once a resource class
    comes back empty it is not retried for the rest of the pass; a user that
    was resolved elsewhere hands its reservation back and the pass goes on.
    """
    report = ScanReport()
    genders_without_rooms: set[str] = set()
    tags_exhausted = False

    for user in pending_users():
        report.scanned += 1
        registrant = Registrant(user_id=user.id, gender=user.gender, is_vip=bool(user.is_vip))

        if user.room_status == PENDING and user.gender not in genders_without_rooms:
            policy = load_assignment_policy()
            resolved = resolve_pending_room(user, registrant, policy)
            if resolved is None:
                genders_without_rooms.add(user.gender)
            elif resolved:
                report.rooms_assigned += 1

        if user.tag_status == PENDING and not tags_exhausted:
            resolved = resolve_pending_tag(user, registrant)
            if resolved is None:
                tags_exhausted = True
            elif resolved:
                report.tags_assigned += 1

    if report.rooms_assigned or report.tags_assigned:
        logger.info(
            "Pending scan resolved assignments | scanned=%s | rooms=%s | tags=%s",
            report.scanned,
            report.rooms_assigned,
            report.tags_assigned,
        )
    else:
        logger.debug("Pending scan found nothing to assign | scanned=%s", report.scanned)
    return report


class PendingAssignmentMonitor:
    def __init__(
        self,
        interval_seconds: float,
        feed: Optional[ChangeFeed] = None,
        scan: Callable[[], ScanReport] = resolve_pending_assignments,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._interval = interval_seconds
        self._feed = feed
        self._scan = scan
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        if self._feed is not None:
            self._unsubscribe = self._feed.subscribe(self._on_change)
        self._task = self._loop.create_task(self._run(), name="pending-assignment-monitor")
        logger.info("Pending assignment monitor started | interval=%ss", self._interval)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Pending assignment monitor stopped")

    def _on_change(self, event: ChangeEvent) -> None:
        if not event.signals_capacity:
            return
        loop, wake = self._loop, self._wake
        if loop is None or wake is None or loop.is_closed():
            return
        # publishers run in worker threads
        loop.call_soon_threadsafe(wake.set)

    async def run_once(self) -> Optional[ScanReport]:
        try:
            return await run_in_threadpool(self._scan)
        except Exception:
            logger.exception("Pending assignment scan failed")
            return None

    async def _run(self) -> None:
        while True:
            await self.run_once()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()


@asynccontextmanager
async def monitor_lifespan(app: FastAPI) -> AsyncIterator[None]:
    if not settings.pending_monitor_enabled:
        logger.info("Pending assignment monitor disabled")
        yield
        return

    monitor = PendingAssignmentMonitor(
        interval_seconds=settings.pending_scan_interval_seconds,
        feed=get_feed(),
    )
    monitor.start()
    app.state.pending_monitor = monitor
    try:
        yield
    finally:
        await monitor.stop()
