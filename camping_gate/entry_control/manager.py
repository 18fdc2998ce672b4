import asyncio
from typing import Optional

from camping_gate.constants.constants import ScannerConfig
from camping_gate.entry_control.identity import EligibilityVerdict, IdentityResolver, LookupQuery
from camping_gate.entry_control.scanner import FrameScanner, ScanState, ScanTask
from camping_gate.entry_control.selection import FamilySelection
from camping_gate.entry_control.shift import ShiftPeriod, ShiftPeriodManager
from camping_gate.entry_control.visits import BatchResult, BatchVisitSubmitter
from camping_gate.errors import (
    AlreadyClosedError,
    CameraError,
    EntryControlError,
    PeriodNotFoundError,
    ShiftConflictError,
    ValidationError,
)
from camping_gate.services.notifier import OperatorNotifier
from camping_gate.utils.config_manager import ConfigManager
from camping_gate.utils.logging_config import get_logger

from .models import EntryControlState, EntryPhase

logger = get_logger(__name__)


class EntryControlManager:
    """
    门岗入场流程编排.

    输入（手动输入或扫码）-> 身份核验 -> 家庭勾选 -> 确认 -> 批量登记 -> 刷新班次计数。
    当前班次和勾选列表等状态都保存在 self.state 中，由本对象独占。
    """

    _instance = None

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = cls.from_config(ConfigManager.get_instance())
        return cls._instance

    @classmethod
    def set_instance(cls, instance: Optional["EntryControlManager"]):
        cls._instance = instance

    def __init__(
        self,
        venue_id: int,
        resolver: IdentityResolver,
        shift_manager: ShiftPeriodManager,
        submitter: BatchVisitSubmitter,
        scanner: Optional[FrameScanner] = None,
        notifier: Optional[OperatorNotifier] = None,
    ):
        self.venue_id = venue_id
        self.resolver = resolver
        self.shift_manager = shift_manager
        self.submitter = submitter
        self.scanner = scanner
        self.notifier = notifier or OperatorNotifier(logger=logger)
        self.state = EntryControlState()
        self._scan_watch: Optional[asyncio.Task] = None
        self._resolve_seq = 0

    @classmethod
    def from_config(cls, config: ConfigManager, backend=None, session=None,
                    notifier: Optional[OperatorNotifier] = None) -> "EntryControlManager":
        venue_id = config.get_config("ENTRY_CONTROL.VENUE_ID")
        if venue_id is None:
            raise ValidationError("Falta configurar ENTRY_CONTROL.VENUE_ID (camping).")

        if backend is None:
            from camping_gate.backends import build_backend

            backend = build_backend(config, session)

        return cls(
            venue_id=int(venue_id),
            resolver=IdentityResolver(backend),
            shift_manager=ShiftPeriodManager(backend),
            submitter=BatchVisitSubmitter(
                backend, allow_off_shift=bool(config.get_config("ENTRY_CONTROL.ALLOW_OFF_SHIFT", False))
            ),
            scanner=FrameScanner.from_config(config),
            notifier=notifier,
        )

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------

    @property
    def selection(self) -> FamilySelection:
        return self.state.selection

    @property
    def period(self) -> Optional[ShiftPeriod]:
        return self.state.period

    @property
    def can_resolve(self) -> bool:
        return self.state.phase is not EntryPhase.SUBMITTING

    @property
    def can_confirm(self) -> bool:
        if self.state.phase is not EntryPhase.VERDICT:
            return False
        if not self.state.selection.confirmed_list():
            return False
        return self.state.period_open or self.submitter.allow_off_shift

    @property
    def scan_state(self) -> ScanState:
        return self.scanner.state if self.scanner else ScanState.IDLE

    def _report(self, level: str, message: str):
        self.state.message = message
        self.notifier.publish(level, message)

    # ------------------------------------------------------------------
    # 班次
    # ------------------------------------------------------------------

    async def refresh_period(self) -> Optional[ShiftPeriod]:
        """重新读取当前班次及其入场记录，以服务端为准"""
        period = await self.shift_manager.get_active(self.venue_id)
        self.state.period = period
        self.state.visits = await self.shift_manager.list_visits(period.id) if period else []
        return period

    async def open_period(self, notes: Optional[str] = None) -> ShiftPeriod:
        try:
            period = await self.shift_manager.open(self.venue_id, notes)
        except ShiftConflictError as e:
            # 把已存在的班次展示给操作员，而不是丢弃
            if e.existing is not None:
                self.state.period = e.existing
            self._report("warning", e.message)
            raise
        except EntryControlError as e:
            self._report("error", e.message)
            raise

        self.state.period = period
        self.state.visits = []
        self._report("info", "Período de caja abierto.")
        return period

    async def close_period(self, notes: Optional[str] = None) -> ShiftPeriod:
        period = self.state.period
        if period is None:
            period = await self.refresh_period()
        if period is None:
            error = PeriodNotFoundError("No hay período de caja abierto.")
            self._report("warning", error.message)
            raise error

        try:
            closed = await self.shift_manager.close(period.id, notes)
        except AlreadyClosedError as e:
            self._report("warning", e.message)
            await self.refresh_period()
            raise
        except EntryControlError as e:
            self._report("error", e.message)
            raise

        self.state.period = None
        self.state.visits = []
        self._report("info", f"Período de caja cerrado. Total de ingresos: {closed.visit_count}.")
        return closed

    async def history(self, limit: int = 20):
        return await self.shift_manager.history(self.venue_id, limit)

    # ------------------------------------------------------------------
    # 核验与勾选
    # ------------------------------------------------------------------

    async def resolve(self, text: str) -> EligibilityVerdict:
        """核验一条输入；新的核验会整体丢弃之前的核验结果和勾选列表"""
        if not self.can_resolve:
            error = ValidationError("Esperá a que termine el registro en curso.")
            self._report("warning", error.message)
            raise error
        try:
            query = LookupQuery.from_text(text)
        except ValidationError as e:
            self._report("warning", e.message)
            raise

        self._resolve_seq += 1
        seq = self._resolve_seq
        self.state.reset_lookup()
        self.state.query_text = query.value
        self.state.phase = EntryPhase.RESOLVING

        try:
            verdict = await self.resolver.resolve(query)
        except EntryControlError as e:
            if seq == self._resolve_seq:
                self.state.phase = EntryPhase.IDLE
                self._report("error", e.message)
            raise

        if seq != self._resolve_seq:
            # 期间已有更新的核验，结果作废
            logger.info(f"[EntryControl] 丢弃过期的核验结果: {query.value}")
            return verdict

        self.state.verdict = verdict
        self.state.selection = FamilySelection.from_verdict(verdict)
        self.state.phase = EntryPhase.VERDICT

        name = verdict.person.display_name if verdict.person else query.value
        if verdict.allowed:
            self._report("info", f"{name}: {verdict.reason_label}")
        else:
            self._report("warning", f"{name}: {verdict.reason_label}")
        return verdict

    def toggle(self, person_id: int) -> bool:
        return self.state.selection.toggle(person_id)

    def cancel(self):
        """放弃当前核验结果"""
        if self.state.phase is EntryPhase.SUBMITTING:
            return
        self._resolve_seq += 1
        self.state.reset_lookup()

    # ------------------------------------------------------------------
    # 确认与登记
    # ------------------------------------------------------------------

    async def confirm(self, observations: Optional[str] = None) -> BatchResult:
        if self.state.phase is EntryPhase.SUBMITTING:
            raise ValidationError("Ya hay un registro en curso.")

        entries = self.state.selection.confirmed_list()
        if not entries:
            error = ValidationError("Seleccioná al menos una persona para registrar el ingreso.")
            self._report("warning", error.message)
            raise error

        self.state.phase = EntryPhase.SUBMITTING
        try:
            if not self.state.period_open:
                # 本地缓存的班次可能已过期，判定前以服务端为准
                await self.refresh_period()
            if not self.state.period_open and not self.submitter.allow_off_shift:
                raise ValidationError("No hay turno abierto. Abrí un turno antes de registrar ingresos.")

            period_id = self.state.period.id if self.state.period_open else None
            result = await self.submitter.submit(self.venue_id, period_id, entries, observations)
        except AlreadyClosedError as e:
            # 班次已在别处关闭
            self.state.phase = EntryPhase.VERDICT
            self.state.period = None
            self._report("error", e.message)
            raise
        except ValidationError as e:
            self.state.phase = EntryPhase.VERDICT
            self._report("warning", e.message)
            raise
        except EntryControlError as e:
            self.state.phase = EntryPhase.VERDICT
            self._report("error", e.message)
            raise

        # 收到结果之后才重置
        if self.state.period is not None:
            self.state.period = self.shift_manager.record_visits(self.state.period, result.created)
        self._resolve_seq += 1
        self.state.reset_lookup()
        self._report("warning" if result.partial else "info", result.summary())

        # 登记已经生效，刷新失败不能让调用方误以为登记失败
        try:
            await self.refresh_period()
        except EntryControlError as e:
            logger.warning(f"[EntryControl] 登记后刷新班次失败，保留本地计数: {e.message}")
            self._report("warning", f"{result.summary()} No se pudo actualizar el período: {e.message}")
        return result

    # ------------------------------------------------------------------
    # 扫码
    # ------------------------------------------------------------------

    async def start_scan(self) -> ScanTask:
        """开始扫码；识别成功后自动按扫码编码核验"""
        if self.scanner is None:
            raise CameraError(ScannerConfig.CAMERA_ERROR_MESSAGE)
        await self._cancel_watch()
        task = self.scanner.start()
        self._scan_watch = asyncio.create_task(self._watch_scan(task))
        return task

    def stop_scan(self):
        if self.scanner:
            self.scanner.stop()

    async def wait_scan(self) -> Optional[EligibilityVerdict]:
        """等待当前扫码结束，返回自动核验的结果（取消或失败时为 None）"""
        if self._scan_watch is None:
            return None
        return await self._scan_watch

    async def _watch_scan(self, task: ScanTask) -> Optional[EligibilityVerdict]:
        try:
            text = await task.wait()
        except CameraError as e:
            # 摄像头不可用时退回手动输入
            self._report("warning", e.message)
            return None

        if not text:
            return None
        try:
            return await self.resolve(text)
        except EntryControlError as e:
            logger.warning(f"[EntryControl] 扫码结果核验失败: {e.message}")
            return None

    async def _cancel_watch(self):
        watch, self._scan_watch = self._scan_watch, None
        if watch is None or watch.done():
            return
        self.stop_scan()
        watch.cancel()
        try:
            await watch
        except asyncio.CancelledError:
            pass

    async def shutdown(self):
        """停止扫码并释放摄像头"""
        self.stop_scan()
        await self._cancel_watch()
        logger.info("[EntryControl] 已关闭")


def get_entry_control_manager():
    return EntryControlManager.get_instance()
