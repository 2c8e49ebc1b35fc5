"""
SQLAlchemy-backed repositories.

Each operation runs in its own transaction via ``session_scope`` on the
injected session factory, and hands frozen domain objects back out, so no
ORM instance escapes this module.

Invariants enforced:
    - Order saves are compare-and-swap on ``version`` (mapper version
      column); a lost race surfaces as OptimisticLockError.
    - Audit rows are only inserted; a save whose history does not extend
      the stored history is refused.
    - Suggestion removal is a single DELETE; only the caller that deletes
      the row gets it back.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from replenishment_kernel.db.engine import session_scope
from replenishment_kernel.domain.order import Order, OrderStatus
from replenishment_kernel.domain.reporting import ConfidenceReport, SuggestionOutcome
from replenishment_kernel.domain.schedule import ScheduleConfig, ScheduleExecutionLog
from replenishment_kernel.domain.suggestion import ReplenishmentSuggestion
from replenishment_kernel.exceptions import (
    OptimisticLockError,
    OrderAlreadyExistsError,
    OrderNotFoundError,
    ScheduleAlreadyExistsError,
    ScheduleNotFoundError,
    SuggestionAlreadyExistsError,
    SuggestionNotFoundError,
    ValidationError,
)
from replenishment_kernel.logging_config import get_logger
from replenishment_kernel.models.order import OrderAuditEntryModel, OrderModel
from replenishment_kernel.models.schedule import (
    ConfidenceReportModel,
    ScheduleExecutionLogModel,
    ScheduleModel,
    SuggestionOutcomeModel,
)
from replenishment_kernel.models.suggestion import SuggestionModel

logger = get_logger("repositories.sql")


class _SqlRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)


class SqlOrderRepository(_SqlRepository):
    def get(self, order_id: str) -> Order | None:
        with self._scope() as session:
            model = session.get(OrderModel, order_id)
            return model.to_dto() if model is not None else None

    def add(self, order: Order) -> None:
        with self._scope() as session:
            if session.get(OrderModel, order.order_id) is not None:
                raise OrderAlreadyExistsError(order.order_id)
            session.add(OrderModel.from_dto(order))
            for sequence, entry in enumerate(order.audit_history):
                session.add(OrderAuditEntryModel.from_dto(order.order_id, sequence, entry))

    def save(self, order: Order, expected_version: int) -> None:
        try:
            with self._scope() as session:
                model = session.get(OrderModel, order.order_id)
                if model is None:
                    raise OrderNotFoundError(order.order_id)
                if model.version != expected_version:
                    raise OptimisticLockError("Order", order.order_id, expected_version)

                stored = len(model.audit_entries)
                if len(order.audit_history) < stored:
                    raise ValidationError(
                        f"Order {order.order_id}: audit history cannot shrink "
                        f"({stored} stored, {len(order.audit_history)} given)"
                    )
                for sequence in range(stored, len(order.audit_history)):
                    session.add(
                        OrderAuditEntryModel.from_dto(
                            order.order_id, sequence, order.audit_history[sequence]
                        )
                    )
                model.apply_dto(order)
        except StaleDataError:
            logger.warning(
                "order_version_conflict",
                extra={"order_id": order.order_id, "expected_version": expected_version},
            )
            raise OptimisticLockError("Order", order.order_id, expected_version) from None

    def list(
        self, store_id: str | None = None, status: OrderStatus | None = None
    ) -> Sequence[Order]:
        stmt = select(OrderModel).order_by(OrderModel.created_at, OrderModel.order_id)
        if store_id is not None:
            stmt = stmt.where(OrderModel.store_id == store_id)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status.value)
        with self._scope() as session:
            return [m.to_dto() for m in session.scalars(stmt)]


class SqlSuggestionRepository(_SqlRepository):
    def get(self, suggestion_id: str) -> ReplenishmentSuggestion | None:
        with self._scope() as session:
            model = session.get(SuggestionModel, suggestion_id)
            return model.to_dto() if model is not None else None

    def add(self, suggestion: ReplenishmentSuggestion) -> None:
        with self._scope() as session:
            if session.get(SuggestionModel, suggestion.suggestion_id) is not None:
                raise SuggestionAlreadyExistsError(suggestion.suggestion_id)
            session.add(SuggestionModel.from_dto(suggestion))

    def remove(self, suggestion_id: str) -> ReplenishmentSuggestion:
        with self._scope() as session:
            model = session.get(SuggestionModel, suggestion_id)
            if model is None:
                raise SuggestionNotFoundError(suggestion_id)
            dto = model.to_dto()
            result = session.execute(
                delete(SuggestionModel).where(SuggestionModel.suggestion_id == suggestion_id)
            )
            if result.rowcount == 0:
                raise SuggestionNotFoundError(suggestion_id)
            return dto

    def list(self, schedule_id: str | None = None) -> Sequence[ReplenishmentSuggestion]:
        stmt = select(SuggestionModel).order_by(
            SuggestionModel.created_at, SuggestionModel.suggestion_id
        )
        if schedule_id is not None:
            stmt = stmt.where(SuggestionModel.schedule_id == schedule_id)
        with self._scope() as session:
            return [m.to_dto() for m in session.scalars(stmt)]


class SqlScheduleRepository(_SqlRepository):
    def get(self, schedule_id: str) -> ScheduleConfig | None:
        with self._scope() as session:
            model = session.get(ScheduleModel, schedule_id)
            return model.to_dto() if model is not None else None

    def add(self, schedule: ScheduleConfig) -> None:
        with self._scope() as session:
            if session.get(ScheduleModel, schedule.schedule_id) is not None:
                raise ScheduleAlreadyExistsError(schedule.schedule_id)
            session.add(ScheduleModel.from_dto(schedule))

    def save(self, schedule: ScheduleConfig) -> None:
        with self._scope() as session:
            model = session.get(ScheduleModel, schedule.schedule_id)
            if model is None:
                raise ScheduleNotFoundError(schedule.schedule_id)
            model.apply_dto(schedule)

    def delete(self, schedule_id: str) -> bool:
        with self._scope() as session:
            result = session.execute(
                delete(ScheduleModel).where(ScheduleModel.schedule_id == schedule_id)
            )
            return result.rowcount > 0

    def list(self) -> Sequence[ScheduleConfig]:
        with self._scope() as session:
            stmt = select(ScheduleModel).order_by(ScheduleModel.schedule_id)
            return [m.to_dto() for m in session.scalars(stmt)]


def _evict_oldest(session: Session, model, schedule_id: str, retention: int) -> int:
    """Delete the oldest rows (by insertion id) beyond ``retention``."""
    count = session.scalar(
        select(func.count()).select_from(model).where(model.schedule_id == schedule_id)
    )
    excess = (count or 0) - retention
    if excess <= 0:
        return 0
    oldest = session.scalars(
        select(model.id)
        .where(model.schedule_id == schedule_id)
        .order_by(model.id)
        .limit(excess)
    ).all()
    session.execute(delete(model).where(model.id.in_(oldest)))
    return len(oldest)


class SqlExecutionLogRepository(_SqlRepository):
    def append(self, log: ScheduleExecutionLog, retention: int) -> None:
        with self._scope() as session:
            session.add(ScheduleExecutionLogModel.from_dto(log))
            session.flush()
            evicted = _evict_oldest(session, ScheduleExecutionLogModel, log.schedule_id, retention)
        if evicted:
            logger.debug(
                "execution_logs_evicted",
                extra={"schedule_id": log.schedule_id, "evicted_count": evicted},
            )

    def history(
        self, schedule_id: str, limit: int | None = None
    ) -> Sequence[ScheduleExecutionLog]:
        stmt = (
            select(ScheduleExecutionLogModel)
            .where(ScheduleExecutionLogModel.schedule_id == schedule_id)
            .order_by(
                ScheduleExecutionLogModel.executed_at.desc(),
                ScheduleExecutionLogModel.id.desc(),
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._scope() as session:
            return [m.to_dto() for m in session.scalars(stmt)]

    def delete_for(self, schedule_id: str) -> None:
        with self._scope() as session:
            session.execute(
                delete(ScheduleExecutionLogModel).where(
                    ScheduleExecutionLogModel.schedule_id == schedule_id
                )
            )


class SqlOutcomeRepository(_SqlRepository):
    def append(self, outcome: SuggestionOutcome, retention: int) -> None:
        with self._scope() as session:
            session.add(SuggestionOutcomeModel.from_dto(outcome))
            session.flush()
            _evict_oldest(session, SuggestionOutcomeModel, outcome.schedule_id, retention)

    def list_for(self, schedule_id: str) -> Sequence[SuggestionOutcome]:
        stmt = (
            select(SuggestionOutcomeModel)
            .where(SuggestionOutcomeModel.schedule_id == schedule_id)
            .order_by(SuggestionOutcomeModel.id)
        )
        with self._scope() as session:
            return [m.to_dto() for m in session.scalars(stmt)]

    def record_actual(
        self, suggestion_id: str, actual_quantity: int
    ) -> SuggestionOutcome | None:
        with self._scope() as session:
            model = session.scalars(
                select(SuggestionOutcomeModel)
                .where(SuggestionOutcomeModel.suggestion_id == suggestion_id)
                .order_by(SuggestionOutcomeModel.id)
                .limit(1)
            ).first()
            if model is None:
                return None
            model.actual_quantity = actual_quantity
            return model.to_dto()

    def delete_for(self, schedule_id: str) -> None:
        with self._scope() as session:
            session.execute(
                delete(SuggestionOutcomeModel).where(
                    SuggestionOutcomeModel.schedule_id == schedule_id
                )
            )


class SqlReportRepository(_SqlRepository):
    def append(self, report: ConfidenceReport) -> None:
        with self._scope() as session:
            session.add(ConfidenceReportModel.from_dto(report))

    def list(self, schedule_id: str | None = None) -> Sequence[ConfidenceReport]:
        stmt = select(ConfidenceReportModel).order_by(ConfidenceReportModel.id)
        if schedule_id is not None:
            stmt = stmt.where(ConfidenceReportModel.schedule_id == schedule_id)
        with self._scope() as session:
            return [m.to_dto() for m in session.scalars(stmt)]

    def delete_for(self, schedule_id: str) -> None:
        with self._scope() as session:
            session.execute(
                delete(ConfidenceReportModel).where(
                    ConfidenceReportModel.schedule_id == schedule_id
                )
            )
