# swim_makeup/api/v1/endpoints/absences.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from swim_makeup.api import deps
from swim_makeup.api.deps import limiter
from swim_makeup.schemas.absence_notice import AbsenceCreate, AbsenceCreated, AbsenceNotice, AbsenceResume
from swim_makeup.schemas.makeup_request import MakeupRequestOut
from swim_makeup.utils.absence_notices import log_absence, resume_absence
from swim_makeup.utils.makeup_notifications import Notifier

router = APIRouter(prefix="/absences", tags=["Absences"])


@router.post("", response_model=AbsenceCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_absence(
    request: Request,
    absence_in: AbsenceCreate,
    db: Session = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
):
    """
    Log an upcoming absence. The response carries a resume token the parent
    uses to come back and pick a makeup lesson later.
    """
    return log_absence(db, absence_in, notifier=notifier)


@router.get("/{resume_token}", response_model=AbsenceResume)
@limiter.limit("60/minute")
def get_absence(
    request: Request,
    resume_token: str,
    db: Session = Depends(deps.get_db),
):
    """Resume an absence: its state, any active request and bookable makeup lessons."""
    state = resume_absence(db, resume_token)
    return AbsenceResume(
        notice=AbsenceNotice.model_validate(state.notice),
        active_request=(
            MakeupRequestOut.model_validate(state.active_request) if state.active_request else None
        ),
        slots=state.slots,
    )
