from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_scheduler
from app.core.config import get_settings
from app.db.transaction import retry_on_persistence_error
from app.models.user import User
from app.schemas.timetable import PeriodIn, PeriodOut, TimetableCreate, TimetableOut, TimetableReplace
from app.services.period_editor import PeriodEditor
from app.services.period_repository import PeriodRepository
from app.services.timetable_assembler import TimetableAssembler

router = APIRouter()


def _with_retry(operation):
    settings = get_settings()
    return retry_on_persistence_error(
        operation,
        attempts=settings.scheduling_retry_attempts,
        backoff_seconds=settings.scheduling_retry_backoff_seconds,
    )


@router.get("", response_model=list[TimetableOut])
def list_timetables(
    term_id: str | None = Query(default=None, alias="termId", max_length=36),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimetableOut]:
    timetables = PeriodRepository(db).list_timetables(term_id=term_id)
    return [TimetableOut.model_validate(timetable) for timetable in timetables]


@router.get("/{timetable_id}", response_model=TimetableOut)
def get_timetable(
    timetable_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TimetableOut:
    return TimetableOut.model_validate(PeriodRepository(db).get_timetable(timetable_id))


@router.post("", response_model=TimetableOut, status_code=status.HTTP_201_CREATED)
def create_timetable(
    payload: TimetableCreate,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> TimetableOut:
    assembler = TimetableAssembler(db, actor=current_user)
    timetable = _with_retry(
        lambda: assembler.assemble(
            term_id=payload.term_id,
            class_group_id=payload.class_group_id,
            class_id=payload.class_id,
            periods=payload.periods,
        )
    )
    return TimetableOut.model_validate(timetable)


@router.put("/{timetable_id}", response_model=TimetableOut)
def replace_timetable(
    timetable_id: str,
    payload: TimetableReplace,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> TimetableOut:
    assembler = TimetableAssembler(db, actor=current_user)
    timetable = _with_retry(lambda: assembler.replace(timetable_id, payload.periods))
    return TimetableOut.model_validate(timetable)


@router.delete("/{timetable_id}")
def delete_timetable(
    timetable_id: str,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> dict:
    TimetableAssembler(db, actor=current_user).delete_timetable(timetable_id)
    return {"success": True}


@router.post("/{timetable_id}/periods", response_model=PeriodOut, status_code=status.HTTP_201_CREATED)
def add_period(
    timetable_id: str,
    payload: PeriodIn,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> PeriodOut:
    editor = PeriodEditor(db, actor=current_user)
    period = _with_retry(lambda: editor.upsert_period(timetable_id, payload))
    return PeriodOut.model_validate(period)


@router.put("/{timetable_id}/periods/{period_id}", response_model=PeriodOut)
def update_period(
    timetable_id: str,
    period_id: str,
    payload: PeriodIn,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> PeriodOut:
    editor = PeriodEditor(db, actor=current_user)
    period = _with_retry(lambda: editor.upsert_period(timetable_id, payload, existing_period_id=period_id))
    return PeriodOut.model_validate(period)


@router.delete("/{timetable_id}/periods/{period_id}")
def delete_period(
    timetable_id: str,
    period_id: str,
    current_user: User = Depends(require_scheduler),
    db: Session = Depends(get_db),
) -> dict:
    PeriodEditor(db, actor=current_user).delete_period(timetable_id, period_id)
    return {"success": True}
