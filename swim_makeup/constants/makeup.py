# swim_makeup/constants/makeup.py
"""
Constants for makeup booking status values and class bands.

Provides type-safe constants to replace hardcoded strings throughout the codebase.
"""


class ClassBand:
    """Proficiency tier shared by slots and requests."""
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"

    @classmethod
    def all_values(cls) -> list[str]:
        """Return all valid class bands."""
        return [cls.BEGINNER, cls.INTERMEDIATE, cls.ADVANCED]

    @classmethod
    def is_valid(cls, band: str) -> bool:
        """Check if a class band value is valid."""
        return band in cls.all_values()


class RequestStatus:
    """Makeup request status values."""
    WAITING = "WAITING"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"

    # Allowed transitions. CONFIRMED may also be a creation state
    # (immediate booking), which is not a transition.
    TRANSITIONS = {
        WAITING: {CONFIRMED, EXPIRED},
        CONFIRMED: {DECLINED},
        DECLINED: set(),
        EXPIRED: set(),
    }

    @classmethod
    def all_values(cls) -> list[str]:
        """Return all valid status values."""
        return [cls.WAITING, cls.CONFIRMED, cls.DECLINED, cls.EXPIRED]

    @classmethod
    def active_values(cls) -> list[str]:
        """Statuses that still hold a claim on a slot."""
        return [cls.WAITING, cls.CONFIRMED]

    @classmethod
    def is_valid(cls, status: str) -> bool:
        """Check if a status value is valid."""
        return status in cls.all_values()


class AbsenceStatus:
    """Absence notice status values."""
    ABSENT_LOGGED = "ABSENT_LOGGED"
    WAITING = "WAITING"
    MAKEUP_CONFIRMED = "MAKEUP_CONFIRMED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    @classmethod
    def all_values(cls) -> list[str]:
        """Return all valid status values."""
        return [
            cls.ABSENT_LOGGED,
            cls.WAITING,
            cls.MAKEUP_CONFIRMED,
            cls.EXPIRED,
            cls.CANCELLED,
        ]

    @classmethod
    def sweepable_values(cls) -> list[str]:
        """Statuses that the deadline sweep forces to EXPIRED."""
        return [cls.ABSENT_LOGGED, cls.WAITING, cls.CANCELLED]

    @classmethod
    def bookable_values(cls) -> list[str]:
        """Statuses from which a parent may start a new booking attempt."""
        return [cls.ABSENT_LOGGED, cls.CANCELLED]


class SlotAvailability:
    """Search listing classification derived from remaining makeup capacity."""
    OPEN = "open"
    LAST_SLOT = "last-slot"
    FULL = "full"
