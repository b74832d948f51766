# swim_makeup/utils/validators.py
"""
Input and state validation shared by the booking, decline and sweep paths.
"""

from swim_makeup.constants.makeup import ClassBand, RequestStatus
from swim_makeup.core.errors import InvalidStatusTransition, ValidationFailed


def validate_class_band(class_band: str) -> str:
    """
    Validate a class band value.

    Returns:
        The validated class band (uppercased)

    Raises:
        ValidationFailed: If the band is unknown
    """
    band_upper = (class_band or "").upper()
    if not ClassBand.is_valid(band_upper):
        raise ValidationFailed(
            f"Invalid class band. Must be one of: {', '.join(ClassBand.all_values())}",
            reason="invalid_class_band",
        )
    return band_upper


def validate_band_matches_slot(declared_class_band: str, slot_class_band: str) -> None:
    """
    The parent's declared band is cross-checked against the slot, never
    copied from it.
    """
    if validate_class_band(declared_class_band) != slot_class_band:
        raise ValidationFailed(
            "The declared class band does not match this slot",
            reason="class_band_mismatch",
        )


def validate_request_transition(current_status: str, new_status: str) -> None:
    """
    Validate a makeup request status transition.

    Valid transitions:
    - WAITING → CONFIRMED (promotion)
    - WAITING → EXPIRED (sweep or manual close)
    - CONFIRMED → DECLINED (parent gives the slot back)

    CONFIRMED, DECLINED and EXPIRED never go back to WAITING; the parent
    creates a new request instead.

    Raises:
        InvalidStatusTransition: If the transition is not allowed
    """
    allowed = RequestStatus.TRANSITIONS.get(current_status, set())
    if new_status not in allowed:
        raise InvalidStatusTransition(
            f"Cannot change a request from {current_status} to {new_status}"
        )
