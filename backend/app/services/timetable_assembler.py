"""Create or fully replace a timetable's period set, all-or-nothing.

Assembly walks ``VALIDATING -> PERSISTING -> COMMITTED``; any failure moves it to
``REJECTED`` and rolls the whole transaction back, including the delete phase of a
full replace. Candidates are checked in submission order against the stored periods
of the whole institution plus the periods accepted earlier in the same batch, and the
first failure halts the batch.
"""
from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
import logging

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import AppError, UniquenessError, ValidationError
from app.db.transaction import scheduling_transaction
from app.models.timetable import Timetable
from app.models.user import User
from app.schemas.timetable import PeriodIn
from app.services.audit import log_activity
from app.services.conflict_service import (
    ConflictChecker,
    PendingPeriodIndex,
    PeriodCandidate,
    conflict_error,
    resolve_candidate,
    validate_window,
)
from app.services.period_repository import PeriodRepository

logger = logging.getLogger(__name__)


class AssemblyState(str, Enum):
    validating = "validating"
    persisting = "persisting"
    committed = "committed"
    rejected = "rejected"


class TimetableAssembler:
    def __init__(self, db: Session, *, actor: User | None = None) -> None:
        self.db = db
        self.actor = actor
        self.repository = PeriodRepository(db)
        self.checker = ConflictChecker(self.repository)
        self.state: AssemblyState | None = None

    def assemble(
        self,
        *,
        term_id: str,
        class_group_id: str | None,
        class_id: str | None,
        periods: Sequence[PeriodIn],
    ) -> Timetable:
        self.state = AssemblyState.validating
        # Blank ids mean "no scope" and are stored as NULL.
        class_group_id = (class_group_id or "").strip() or None
        class_id = (class_id or "").strip() or None
        try:
            if class_group_id is None and class_id is None:
                raise ValidationError("A timetable needs a class group, a class, or both", field="classGroupId")
            self._check_batch_size(periods)
            windows = [validate_window(period) for period in periods]

            with scheduling_transaction(self.db, operation="create timetable"):
                self.repository.require_term(term_id)
                if class_group_id is not None:
                    self.repository.require_class_group(class_group_id)
                if class_id is not None:
                    self.repository.require_class(class_id)
                if self.repository.find_timetable(term_id, class_group_id, class_id) is not None:
                    raise UniquenessError(
                        "A timetable already exists for this term, class group and class",
                        details={"termId": term_id, "classGroupId": class_group_id, "classId": class_id},
                    )

                candidates = self._accept_batch(periods, windows)

                self.state = AssemblyState.persisting
                timetable = self.repository.create_timetable(
                    term_id=term_id,
                    class_group_id=class_group_id,
                    class_id=class_id,
                )
                self.repository.create_many(timetable, candidates)
                log_activity(
                    self.db,
                    user=self.actor,
                    action="timetable.create",
                    entity_type="timetable",
                    entity_id=timetable.id,
                    details={"term_id": term_id, "period_count": len(candidates)},
                )
        except AppError as exc:
            self._reject(exc, operation="create", subject_id=term_id)
            raise
        except BaseException:
            self.state = AssemblyState.rejected
            raise

        self.state = AssemblyState.committed
        logger.info(
            "TIMETABLE ASSEMBLED | timetable_id=%s | term_id=%s | periods=%s",
            timetable.id,
            term_id,
            len(candidates),
        )
        return timetable

    def replace(self, timetable_id: str, periods: Sequence[PeriodIn]) -> Timetable:
        """Delete every period of the timetable, then validate and insert the new set, in one transaction."""
        self.state = AssemblyState.validating
        try:
            self._check_batch_size(periods)
            windows = [validate_window(period) for period in periods]

            with scheduling_transaction(self.db, operation="replace timetable"):
                timetable = self.repository.get_timetable(timetable_id)
                removed = self.repository.delete_all_for_timetable(timetable.id)

                candidates = self._accept_batch(periods, windows)

                self.state = AssemblyState.persisting
                self.repository.create_many(timetable, candidates)
                log_activity(
                    self.db,
                    user=self.actor,
                    action="timetable.replace",
                    entity_type="timetable",
                    entity_id=timetable.id,
                    details={"removed": removed, "period_count": len(candidates)},
                )
        except AppError as exc:
            self._reject(exc, operation="replace", subject_id=timetable_id)
            raise
        except BaseException:
            self.state = AssemblyState.rejected
            raise

        self.state = AssemblyState.committed
        logger.info(
            "TIMETABLE REPLACED | timetable_id=%s | removed=%s | periods=%s",
            timetable.id,
            removed,
            len(candidates),
        )
        return timetable

    def delete_timetable(self, timetable_id: str) -> None:
        with scheduling_transaction(self.db, operation="delete timetable"):
            timetable = self.repository.get_timetable(timetable_id)
            period_count = len(timetable.periods)
            self.repository.delete_timetable(timetable)
            log_activity(
                self.db,
                user=self.actor,
                action="timetable.delete",
                entity_type="timetable",
                entity_id=timetable_id,
                details={"period_count": period_count},
            )

    def _check_batch_size(self, periods: Sequence[PeriodIn]) -> None:
        limit = get_settings().max_periods_per_timetable
        if len(periods) > limit:
            raise ValidationError(f"A timetable holds at most {limit} periods, got {len(periods)}", field="periods")

    def _accept_batch(self, periods: Sequence[PeriodIn], windows: Sequence[tuple]) -> list[PeriodCandidate]:
        pending = PendingPeriodIndex()
        accepted: list[PeriodCandidate] = []
        for index, (period, window) in enumerate(zip(periods, windows)):
            candidate = resolve_candidate(self.repository, period, window, batch_index=index)
            result = self.checker.check(candidate, pending=pending)
            if result.has_conflict:
                raise conflict_error(candidate, result)
            pending.add(candidate)
            accepted.append(candidate)
        return accepted

    def _reject(self, exc: AppError, *, operation: str, subject_id: str) -> None:
        self.state = AssemblyState.rejected
        logger.info(
            "TIMETABLE ASSEMBLY REJECTED | operation=%s | id=%s | error=%s | kind=%s",
            operation,
            subject_id,
            exc.__class__.__name__,
            exc.details.get("kind"),
        )
