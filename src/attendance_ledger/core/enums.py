from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Per-lesson attendance status, stored with the record store's short codes."""

    PRESENT = "P"
    ABSENT = "F"
    EXCUSED = "J"
    UNDEFINED = "-"

    @property
    def is_explicit(self) -> bool:
        return self is not AttendanceStatus.UNDEFINED


class EnrollmentStatus(str, Enum):
    """Enrollment situation of a student within the school year."""

    ACTIVE = "Cursando"
    DROPOUT = "Evasão"
    TRANSFERRED = "Transferência"
    OTHER = "Outro"

    @classmethod
    def parse(cls, value) -> "EnrollmentStatus":
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name):
                return member
        return cls.OTHER

    @property
    def is_frozen(self) -> bool:
        return self in (EnrollmentStatus.DROPOUT, EnrollmentStatus.TRANSFERRED)


class SyncState(str, Enum):
    """Lifecycle of the local-first data service."""

    COLD = "COLD"
    CACHE_WARM = "CACHE_WARM"
    REMOTE_SYNCING = "REMOTE_SYNCING"
    REMOTE_WARM = "REMOTE_WARM"


class MirrorAction(str, Enum):
    """Write actions understood by the remote record store."""

    SAVE_ATTENDANCE = "SAVE_ATTENDANCE"
    UPDATE_STUDENT = "UPDATE_STUDENT"
    DELETE_STUDENT = "DELETE_STUDENT"
    UPSERT_CLASS = "UPSERT_CLASS"
    DELETE_CLASS = "DELETE_CLASS"
    UPSERT_SUBJECT = "UPSERT_SUBJECT"
    DELETE_SUBJECT = "DELETE_SUBJECT"
    UPDATE_BIMESTERS = "UPDATE_BIMESTERS"
    UPDATE_SETTINGS = "UPDATE_SETTINGS"
