import asyncio
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError

from camping_gate.constants.constants import (
    CONDITION_WIRE_TAGS,
    REASON_LABELS,
    REASON_WIRE_TAGS,
    ROLE_WIRE_TAGS,
    WIRE_CONDITION_ALIASES,
    EntryCondition,
    ReasonCode,
    RoleType,
)
from camping_gate.entry_control.identity.eligibility import evaluate_dependent, evaluate_person
from camping_gate.entry_control.identity.resolver import DirectoryBackend
from camping_gate.entry_control.shift.manager import ShiftBackend
from camping_gate.entry_control.visits.submitter import VisitBackend
from camping_gate.errors import (
    AlreadyClosedError,
    PeriodNotFoundError,
    ShiftConflictError,
    ValidationError,
)
from camping_gate.utils.logging_config import get_logger

from .database import DatabaseManager
from .models import Person, ShiftPeriod, Visit

logger = get_logger(__name__)

CONFLICT_MESSAGE = "Ya existe un período de caja abierto en este camping."


class LocalBackend(DirectoryBackend, ShiftBackend, VisitBackend):
    """
    本地存储后端.
    按原接口的 JSON 格式返回数据，与 ApiBackend 共用同一套解析；
    所有数据库操作放到 asyncio.to_thread 中执行。
    """

    def __init__(self, db: DatabaseManager, operator_id: Optional[int] = None):
        self.db = db
        self.operator_id = operator_id

    # ------------------------------------------------------------------
    # 身份目录
    # ------------------------------------------------------------------

    async def resolve_by_code(self, code: str) -> Any:
        return await asyncio.to_thread(self._resolve, Person.scan_code == code)

    async def resolve_by_national_id(self, national_id: str) -> Any:
        return await asyncio.to_thread(self._resolve, Person.national_id == national_id)

    def _resolve(self, criterion) -> dict:
        session = self.db.get_session()
        try:
            person = session.query(Person).filter(criterion).one_or_none()
            if person is None:
                data = {
                    "persona": None,
                    "tipos": [],
                    "allowed": False,
                    "reason": REASON_WIRE_TAGS[ReasonCode.PERSON_NOT_FOUND],
                }
            else:
                data = self._verdict_payload(person)
            return {"success": True, "data": data}
        finally:
            session.close()

    @staticmethod
    def _current_guest(person: Person):
        if not person.guests:
            return None
        active = [guest for guest in person.guests if guest.active]
        return (active or person.guests)[-1]

    def _verdict_payload(self, person: Person) -> dict:
        membership = person.membership
        dependent = person.dependent_link
        sponsor = dependent.sponsor if dependent else None
        guest = self._current_guest(person)

        result = evaluate_person(membership=membership, dependent=dependent, sponsor=sponsor, guest=guest)
        data = {
            "persona": person.to_dict(),
            "tipos": [ROLE_WIRE_TAGS[role] for role in result.role_types if role is not RoleType.UNKNOWN],
            "allowed": result.allowed,
            "reason": REASON_WIRE_TAGS.get(result.reason_code, result.reason_code),
        }
        if membership is not None:
            data["afiliado"] = membership.to_dict()
            # 包括已停用的家属，界面上显示为不可选
            data["familiaresDelTitular"] = [item.to_sponsor_entry() for item in membership.dependents]
        if dependent is not None:
            data["familiares"] = [dependent.to_dict()]
        if guest is not None:
            data["invitado"] = guest.to_dict()
        return data

    # ------------------------------------------------------------------
    # 班次
    # ------------------------------------------------------------------

    async def get_active_period(self, venue_id: int) -> Any:
        return await asyncio.to_thread(self._get_active_period, venue_id)

    def _get_active_period(self, venue_id: int) -> dict:
        session = self.db.get_session()
        try:
            period = self._query_open(session, venue_id)
            return {"success": True, "periodo": period.to_dict() if period else None}
        finally:
            session.close()

    @staticmethod
    def _query_open(session, venue_id: int) -> Optional[ShiftPeriod]:
        return (
            session.query(ShiftPeriod)
            .filter(ShiftPeriod.venue_id == venue_id, ShiftPeriod.closed_at.is_(None))
            .first()
        )

    async def open_period(self, venue_id: int, notes: Optional[str]) -> Any:
        return await asyncio.to_thread(self._open_period, venue_id, notes)

    def _open_period(self, venue_id: int, notes: Optional[str]) -> dict:
        session = self.db.get_session()
        try:
            existing = self._query_open(session, venue_id)
            if existing is not None:
                raise ShiftConflictError(CONFLICT_MESSAGE, existing=existing.to_dict())

            period = ShiftPeriod(
                venue_id=venue_id,
                opened_by=self.operator_id,
                opened_at=datetime.now(),
                visit_count=0,
                notes=notes or None,
            )
            session.add(period)
            try:
                session.commit()
            except IntegrityError as e:
                # 并发开启时由唯一索引兜底
                session.rollback()
                existing = self._query_open(session, venue_id)
                raise ShiftConflictError(
                    CONFLICT_MESSAGE, existing=existing.to_dict() if existing else None
                ) from e

            logger.info(f"[LocalBackend] 营地 {venue_id} 开启班次 #{period.id}")
            return {"success": True, "periodo": period.to_dict()}
        finally:
            session.close()

    async def close_period(self, period_id: int, notes: Optional[str]) -> Any:
        return await asyncio.to_thread(self._close_period, period_id, notes)

    def _close_period(self, period_id: int, notes: Optional[str]) -> dict:
        session = self.db.get_session()
        try:
            period = session.get(ShiftPeriod, period_id)
            if period is None:
                raise PeriodNotFoundError("Período de caja no encontrado.")
            if not period.is_open:
                raise AlreadyClosedError("El período de caja ya está cerrado.")

            period.closed_at = datetime.now()
            period.closed_by = self.operator_id
            if notes:
                period.notes = notes
            session.commit()

            logger.info(f"[LocalBackend] 班次 #{period_id} 已关闭")
            return {"success": True, "periodo": period.to_dict()}
        finally:
            session.close()

    async def list_period_visits(self, period_id: int) -> Any:
        return await asyncio.to_thread(self._list_period_visits, period_id)

    def _list_period_visits(self, period_id: int) -> dict:
        session = self.db.get_session()
        try:
            visits = (
                session.query(Visit)
                .filter(Visit.period_id == period_id)
                .order_by(Visit.entered_at.desc(), Visit.id.desc())
                .all()
            )
            return {"success": True, "data": [visit.to_dict() for visit in visits]}
        finally:
            session.close()

    async def period_history(self, venue_id: int, limit: int) -> Any:
        return await asyncio.to_thread(self._period_history, venue_id, limit)

    def _period_history(self, venue_id: int, limit: int) -> dict:
        session = self.db.get_session()
        try:
            periods = (
                session.query(ShiftPeriod)
                .filter(ShiftPeriod.venue_id == venue_id)
                .order_by(ShiftPeriod.opened_at.desc(), ShiftPeriod.id.desc())
                .limit(limit)
                .all()
            )
            return {"success": True, "periodos": [period.to_dict() for period in periods]}
        finally:
            session.close()

    # ------------------------------------------------------------------
    # 入场登记
    # ------------------------------------------------------------------

    async def create_visits_batch(
        self,
        venue_id: int,
        period_id: Optional[int],
        lines: List[dict],
        observations: Optional[str],
    ) -> Any:
        return await asyncio.to_thread(
            self._create_visits_batch, venue_id, period_id, lines, observations
        )

    def _create_visits_batch(self, venue_id, period_id, lines, observations) -> dict:
        if not lines:
            raise ValidationError("No hay personas para registrar.")

        session = self.db.get_session()
        try:
            period = None
            if period_id is not None:
                period = session.get(ShiftPeriod, period_id)
                if period is None:
                    raise PeriodNotFoundError("Período de caja no encontrado.")
                if not period.is_open:
                    raise AlreadyClosedError("El período de caja ya está cerrado.")
                if period.venue_id != venue_id:
                    raise ValidationError("El período de caja no pertenece a este camping.")

            now = datetime.now()
            created = 0
            errors = []
            for line in lines:
                person_id = line.get("persona_id")
                condition, error = self._check_line(session, line)
                if error:
                    logger.warning(f"[LocalBackend] 人员 {person_id} 登记失败: {error}")
                    errors.append({"persona_id": person_id, "error": error})
                    continue
                session.add(Visit(
                    person_id=person_id,
                    venue_id=venue_id,
                    period_id=period_id,
                    entered_at=now,
                    condition=condition,
                    notes=observations or None,
                    operator_id=self.operator_id,
                ))
                created += 1

            if period is not None and created:
                period.visit_count = ShiftPeriod.visit_count + created
            session.commit()

            return {
                "success": True,
                "data": {"created": created, "failed": len(errors), "errors": errors},
            }
        finally:
            session.close()

    @staticmethod
    def _check_line(session, line: dict):
        """返回 (入场条件标签, 错误信息)"""
        tag = str(line.get("condicion_ingreso") or "")
        condition = WIRE_CONDITION_ALIASES.get(tag)
        if condition is None:
            return None, f"Condición de ingreso inválida: {tag or '-'}"

        person_id = line.get("persona_id")
        person = session.get(Person, person_id) if isinstance(person_id, int) else None
        if person is None:
            return None, "Persona no encontrada"

        if condition is EntryCondition.DEPENDENT:
            # 解析和确认之间家属可能已被停用
            dependent = person.dependent_link
            if dependent is None:
                return None, "La persona no es familiar de un afiliado"
            result = evaluate_dependent(dependent, dependent.sponsor)
            if not result.allowed:
                return None, REASON_LABELS.get(result.reason_code, result.reason_code)

        return CONDITION_WIRE_TAGS[condition], None
