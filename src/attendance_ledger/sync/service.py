from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Callable, Iterable, Optional, Sequence

from ..attendance.ledger import LedgerStore
from ..core.enums import AttendanceStatus, EnrollmentStatus, MirrorAction, SyncState
from ..core.exceptions import CacheError, ValidationError
from ..roster.model import BimesterConfig, ClassGroup, Student, Subject
from ..roster.store import RosterStore
from .cache import CacheStore
from .dispatcher import LoopDispatcher
from .remote import RemoteStore
from .snapshot import SchoolSnapshot, lesson_count_setting_key

logger = logging.getLogger(__name__)


class SchoolDataService:
    """Single owner of roster + ledger state, kept local-first.

    Reads come from memory. Each mutation runs the same pipeline:
    apply in memory, write the whole snapshot to the cache, then dispatch one
    remote write without waiting for it. A remote refresh replaces the state
    wholesale when it succeeds and leaves it alone when it does not.
    """

    def __init__(
        self,
        *,
        cache: CacheStore,
        remote: RemoteStore,
        dispatcher: LoopDispatcher,
        initial: Optional[SchoolSnapshot] = None,
        default_bimesters: Sequence[BimesterConfig] = (),
    ):
        self._cache = cache
        self._remote = remote
        self._dispatcher = dispatcher
        self._default_bimesters = tuple(default_bimesters)
        # Refreshes land on the I/O loop thread while mutations come from callers.
        self._lock = threading.RLock()

        initial = initial or SchoolSnapshot(bimesters=self._default_bimesters)
        self._roster = RosterStore()
        self._ledger = LedgerStore()
        self._load(initial)

        self._state = SyncState.COLD
        # Last non-syncing state; a failed refresh falls back to it.
        self._settled = SyncState.COLD
        self._refreshing = 0
        self._stale = False

    # --- state ---

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_stale(self) -> bool:
        """True after a refresh failed; the data shown is the last known good state."""
        return self._stale

    @property
    def is_syncing(self) -> bool:
        return self._state == SyncState.REMOTE_SYNCING

    @property
    def roster(self) -> RosterStore:
        return self._roster

    @property
    def ledger(self) -> LedgerStore:
        return self._ledger

    def snapshot(self) -> SchoolSnapshot:
        with self._lock:
            return SchoolSnapshot(
                classes=self._roster.classes,
                students=self._roster.students,
                subjects=self._roster.subjects,
                bimesters=self._roster.bimesters,
                attendance=self._ledger.attendance,
                lesson_counts=self._ledger.lesson_counts,
            )

    def _load(self, snapshot: SchoolSnapshot) -> None:
        self._roster = RosterStore(
            classes=snapshot.classes,
            students=snapshot.students,
            subjects=snapshot.subjects,
            bimesters=snapshot.bimesters,
        )
        self._ledger.replace(snapshot.attendance, snapshot.lesson_counts)

    def _set_state(self, state: SyncState) -> None:
        if state != self._state:
            logger.info("Sync state %s -> %s", self._state.value, state.value)
            self._state = state

    def _settle(self, state: SyncState) -> None:
        self._settled = state
        if not self._refreshing:
            self._set_state(state)

    # --- startup / refresh ---

    def bootstrap(self) -> SyncState:
        """Hydrate from the local cache, synchronously and before any network call."""
        blob = self._cache.read()
        if blob is None:
            logger.info("No cached state, starting cold")
            return self._state

        try:
            snapshot = SchoolSnapshot.from_cache_blob(blob, fallback=self.snapshot())
        except ValidationError as e:
            logger.error("Cache parsing error, ignoring cached state: %s", e)
            return self._state

        with self._lock:
            self._load(snapshot)
            self._settle(SyncState.CACHE_WARM)
        return self._state

    def start(self):
        """Bootstrap from cache, then kick off a remote refresh without waiting for it."""
        self.bootstrap()
        return self._dispatcher.submit(self.refresh(), label="initial refresh")

    async def refresh(self) -> bool:
        """Replace local state with the remote dataset. Never raises.

        Overlapping refreshes are allowed; the state stays ``REMOTE_SYNCING``
        until the last one finishes, and the last one to succeed wins.
        """
        with self._lock:
            self._refreshing += 1
            self._set_state(SyncState.REMOTE_SYNCING)

        snapshot = None
        try:
            snapshot = await self._fetch_snapshot()
        finally:
            with self._lock:
                self._refreshing -= 1
                if snapshot is None:
                    self._stale = True
                    if not self._refreshing:
                        self._set_state(self._settled)
                    logger.warning("Refresh failed, keeping %s data", self._settled.value)
                else:
                    self._load(snapshot)
                    self._stale = False
                    self._persist()
                    self._settle(SyncState.REMOTE_WARM)
        return snapshot is not None

    async def _fetch_snapshot(self) -> Optional[SchoolSnapshot]:
        try:
            payload = await self._remote.fetch_all()
        except Exception:
            logger.exception("Remote fetch raised")
            return None
        if payload is None:
            return None

        try:
            return SchoolSnapshot.from_remote_payload(payload, default_bimesters=self._default_bimesters)
        except ValidationError as e:
            logger.error("Discarding remote payload: %s", e)
        except Exception:
            logger.exception("Unexpected error parsing remote payload")
        return None

    async def drain(self) -> None:
        await self._dispatcher.drain()

    # --- mutation pipeline ---

    def _persist(self) -> None:
        try:
            self._cache.write(self.snapshot().to_cache_blob())
        except CacheError as e:
            logger.error("Failed to persist cache: %s", e)

    def _commit(self, apply: Callable[[], Any], action: MirrorAction, payload: Callable[[Any], Any]):
        """Apply -> persist -> mirror. ``apply`` returning ``None`` means nothing changed."""
        with self._lock:
            result = apply()
            if result is None:
                return None
            self._persist()
            body = payload(result)

        self._dispatcher.submit(self._remote.mirror(action, body), label=f"mirror {action.value}")
        return result

    def toggle_status(self, subject_id: str, student_id: str, work_date: date, lesson_index: int) -> Optional[AttendanceStatus]:
        """Cycle one lesson cell. Returns ``None`` for refused writes (weekend, frozen student)."""

        def apply():
            student = self._roster.get_student(student_id)
            enrollment = student.status if student else EnrollmentStatus.ACTIVE
            return self._ledger.toggle_status(subject_id, student_id, work_date, lesson_index, enrollment=enrollment)

        def payload(_status):
            statuses = self._ledger.statuses_for(subject_id, student_id, work_date)
            return {
                "studentId": student_id,
                "date": work_date.isoformat(),
                "statusArray": [s.value for s in statuses],
                "subjectId": subject_id,
            }

        return self._commit(apply, MirrorAction.SAVE_ATTENDANCE, payload)

    def update_lesson_count(self, work_date: date, count: int) -> int:
        return self._commit(
            lambda: self._ledger.update_lesson_count(work_date, count),
            MirrorAction.UPDATE_SETTINGS,
            lambda value: {"key": lesson_count_setting_key(work_date.isoformat()), "value": value},
        )

    def add_student(self, student: Student) -> Student:
        return self._commit(lambda: self._roster.add_student(student), MirrorAction.UPDATE_STUDENT, Student.to_dict)

    def update_student(self, student: Student) -> Student:
        return self._commit(lambda: self._roster.update_student(student), MirrorAction.UPDATE_STUDENT, Student.to_dict)

    def delete_student(self, student_id: str) -> bool:
        def apply():
            self._roster.delete_student(student_id)
            self._ledger.remove_student(student_id)
            return True

        return self._commit(apply, MirrorAction.DELETE_STUDENT, lambda _: {"id": student_id})

    def batch_add_students(
        self,
        names: Iterable[str],
        *,
        class_id: Optional[str],
        status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
    ) -> list[Student]:
        with self._lock:
            created = self._roster.batch_add(list(names), class_id=class_id, status=status)
            if created:
                self._persist()
        for student in created:
            self._dispatcher.submit(
                self._remote.mirror(MirrorAction.UPDATE_STUDENT, student.to_dict()),
                label=f"mirror {MirrorAction.UPDATE_STUDENT.value}",
            )
        return created

    def upsert_class(self, class_group: ClassGroup) -> ClassGroup:
        return self._commit(lambda: self._roster.upsert_class(class_group), MirrorAction.UPSERT_CLASS, ClassGroup.to_dict)

    def delete_class(self, class_id: str) -> bool:
        """Remove a class; members lose their class link but keep their attendance history."""

        def apply():
            self._roster.delete_class(class_id)
            return True

        return self._commit(apply, MirrorAction.DELETE_CLASS, lambda _: {"id": class_id})

    def upsert_subject(self, subject: Subject) -> Subject:
        return self._commit(lambda: self._roster.upsert_subject(subject), MirrorAction.UPSERT_SUBJECT, Subject.to_dict)

    def delete_subject(self, subject_id: str) -> bool:
        def apply():
            self._roster.delete_subject(subject_id)
            self._ledger.remove_subject(subject_id)
            return True

        return self._commit(apply, MirrorAction.DELETE_SUBJECT, lambda _: {"id": subject_id})

    def update_bimesters(self, bimesters: Iterable[BimesterConfig]) -> tuple[BimesterConfig, ...]:
        return self._commit(
            lambda: self._roster.replace_bimesters(bimesters),
            MirrorAction.UPDATE_BIMESTERS,
            lambda items: [b.to_dict() for b in items],
        )

    def update_bimester_dates(self, bimester_id: int, *, start: date, end: date) -> tuple[BimesterConfig, ...]:
        return self._commit(
            lambda: self._roster.update_bimester_dates(bimester_id, start=start, end=end),
            MirrorAction.UPDATE_BIMESTERS,
            lambda items: [b.to_dict() for b in items],
        )
