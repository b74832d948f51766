# swim_makeup/api/v1/endpoints/makeup.py
import html
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from swim_makeup.api import deps
from swim_makeup.api.deps import limiter
from swim_makeup.core.errors import InvalidStatusTransition, NotFound, ValidationFailed
from swim_makeup.crud import class_slot
from swim_makeup.schemas.makeup_request import BookingCreate, BookingResponse, MakeupRequestOut, WaitlistJoin
from swim_makeup.schemas.slot import ClassBandLiteral, SlotOption, SlotSearchRequest, SlotSearchResult
from swim_makeup.utils.makeup_booking import book_slot, join_waitlist, search_slots
from swim_makeup.utils.makeup_decline import decline_booking
from swim_makeup.utils.makeup_notifications import Notifier

router = APIRouter(prefix="/makeup", tags=["Makeup"])
logger = logging.getLogger(__name__)


@router.get("/class-slots", response_model=List[SlotOption])
@limiter.limit("60/minute")
def list_class_slots(
    request: Request,
    lesson_date: date = Query(..., alias="date"),
    class_band: ClassBandLiteral = Query(...),
    db: Session = Depends(deps.get_db),
):
    """Lessons of a class band on one day, for picking the lesson being missed."""
    return class_slot.get_by_date_and_band(db, lesson_date=lesson_date, class_band=class_band)


@router.post("/search", response_model=List[SlotSearchResult])
@limiter.limit("60/minute")
def search_makeup_slots(
    request: Request,
    search_in: SlotSearchRequest,
    db: Session = Depends(deps.get_db),
):
    """
    List makeup candidates for an absence.

    Each slot is classified as:
    - **open**: 2+ places left, book immediately
    - **last-slot**: 1 place left, book immediately
    - **full**: waitlist only
    """
    return search_slots(
        db,
        child_name=search_in.child_name,
        class_band=search_in.declared_class_band,
        absent_date=search_in.absent_date,
    )


@router.post("/book", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def book_makeup_slot(
    request: Request,
    booking_in: BookingCreate,
    db: Session = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
):
    """
    Book a makeup lesson immediately.

    **Errors**:
    - 404: Slot or absence notice not found
    - 409: No places left, duplicate request, lesson started
    - 422: Class band does not match the slot
    """
    booking, decline_token = book_slot(db, booking_in, notifier=notifier)
    return BookingResponse(
        status=booking.status,
        message="Your makeup lesson is booked.",
        request=MakeupRequestOut.model_validate(booking),
        decline_token=decline_token,
    )


@router.post("/waitlist", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def join_makeup_waitlist(
    request: Request,
    waitlist_in: WaitlistJoin,
    db: Session = Depends(deps.get_db),
):
    """
    Join the waitlist of a full lesson. The request is confirmed automatically
    (and an email sent) as soon as a place opens.

    **Errors**:
    - 404: Slot or absence notice not found
    - 409: Slot still has places, waitlist closed, duplicate request
    - 422: Class band does not match the slot, missing email
    """
    entry = join_waitlist(db, waitlist_in)
    return BookingResponse(
        status=entry.status,
        message="You're on the waitlist. We'll confirm automatically if a place opens.",
        request=MakeupRequestOut.model_validate(entry),
    )


_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: sans-serif; display: flex; justify-content: center; align-items: center;
           min-height: 100vh; margin: 0; background-color: #f5f5f5; }}
    .container {{ background: white; padding: 48px; border-radius: 12px; text-align: center; max-width: 500px; }}
    h1 {{ color: {color}; margin-bottom: 16px; }}
    p {{ color: #666; line-height: 1.6; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>{title}</h1>
    <p>{message}</p>
  </div>
</body>
</html>
"""


def _page(title: str, message: str, status_code: int, color: str = "#dc2626") -> HTMLResponse:
    return HTMLResponse(
        _PAGE.format(title=html.escape(title), message=html.escape(message), color=color),
        status_code=status_code,
    )


@router.get("/decline", response_class=HTMLResponse)
@limiter.limit("30/minute")
def decline_makeup_booking(
    request: Request,
    token: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
):
    """
    Emailed decline link. Gives the place back and confirms the next waiter.
    Always answers with a small human-readable page.
    """
    try:
        decline_booking(db, token or "", notifier=notifier)
    except ValidationFailed:
        return _page("Invalid link", "This decline link is incomplete.", status.HTTP_400_BAD_REQUEST)
    except NotFound:
        return _page("Booking not found", "We could not find a booking for this link.", status.HTTP_404_NOT_FOUND)
    except InvalidStatusTransition:
        return _page(
            "Already processed",
            "This booking has already been declined or is no longer active.",
            status.HTTP_409_CONFLICT,
        )
    except Exception as e:
        logger.error(f"Failed to process decline link: {e}", exc_info=True)
        return _page(
            "Something went wrong",
            "We could not process your request. Please try again later.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return _page(
        "Makeup lesson declined",
        "Your makeup booking has been cancelled. The place will be offered to the next family on the waitlist.",
        status.HTTP_200_OK,
        color="#16a34a",
    )
