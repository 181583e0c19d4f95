from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.db.transaction import scheduling_transaction
from app.models.timetable import Period
from app.models.user import User
from app.schemas.timetable import PeriodIn
from app.services.audit import log_activity
from app.services.conflict_service import ConflictChecker, conflict_error, resolve_candidate, validate_window
from app.services.period_repository import PeriodRepository

logger = logging.getLogger(__name__)


class PeriodEditor:
    """Adds, edits and removes single periods of an existing timetable."""

    def __init__(self, db: Session, *, actor: User | None = None) -> None:
        self.db = db
        self.actor = actor
        self.repository = PeriodRepository(db)
        self.checker = ConflictChecker(self.repository)

    def upsert_period(
        self,
        timetable_id: str,
        period: PeriodIn,
        existing_period_id: str | None = None,
    ) -> Period:
        window = validate_window(period)
        operation = "update period" if existing_period_id else "add period"

        with scheduling_transaction(self.db, operation=operation):
            timetable = self.repository.get_timetable(timetable_id)
            record = None
            if existing_period_id is not None:
                record = self.repository.get_period(existing_period_id, timetable_id=timetable.id)

            candidate = resolve_candidate(self.repository, period, window)
            # The stored row being edited must not collide with its own previous value.
            result = self.checker.check(candidate, exclude_period_id=existing_period_id)
            if result.has_conflict:
                logger.info(
                    "PERIOD REJECTED | timetable_id=%s | period_id=%s | kind=%s",
                    timetable_id,
                    existing_period_id,
                    result.kind.value,
                )
                raise conflict_error(candidate, result)

            if record is None:
                record = self.repository.create_many(timetable, [candidate])[0]
                action = "period.create"
            else:
                record = self.repository.update(record, candidate)
                action = "period.update"
            log_activity(
                self.db,
                user=self.actor,
                action=action,
                entity_type="period",
                entity_id=record.id,
                details={"timetable_id": timetable.id, **candidate.describe()},
            )

        return record

    def delete_period(self, timetable_id: str, period_id: str) -> None:
        with scheduling_transaction(self.db, operation="delete period"):
            period = self.repository.get_period(period_id, timetable_id=timetable_id)
            self.repository.delete_period(period)
            log_activity(
                self.db,
                user=self.actor,
                action="period.delete",
                entity_type="period",
                entity_id=period_id,
                details={"timetable_id": timetable_id},
            )
