from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_scheduler
from app.models.user import User
from app.schemas.conflict import ConflictCheckOut, ConflictCheckRequest, ConflictingPeriodOut
from app.schemas.timetable import PeriodOut
from app.services.conflict_service import ConflictChecker, resolve_candidate, validate_window
from app.services.period_repository import PeriodRepository

router = APIRouter()


@router.post("/check", response_model=ConflictCheckOut)
def check_period(
    payload: ConflictCheckRequest,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> ConflictCheckOut:
    """Dry-run a single period against every stored period; nothing is written."""
    window = validate_window(payload)
    repository = PeriodRepository(db)
    candidate = resolve_candidate(repository, payload, window)
    result = ConflictChecker(repository).check(candidate, exclude_period_id=payload.exclude_period_id)
    if not result.has_conflict:
        return ConflictCheckOut(has_conflict=False)
    return ConflictCheckOut(
        has_conflict=True,
        kind=result.kind.value,
        message=result.message,
        existing=ConflictingPeriodOut.model_validate(result.existing),
    )


@router.get("/teacher/{teacher_id}", response_model=list[PeriodOut])
def list_teacher_periods(
    teacher_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[PeriodOut]:
    repository = PeriodRepository(db)
    teacher = repository.resolve_teacher_profile(teacher_id)
    return [PeriodOut.model_validate(period) for period in repository.list_periods_for_teacher(teacher.id)]
