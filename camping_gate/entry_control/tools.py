import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

from camping_gate.errors import EntryControlError, ValidationError
from camping_gate.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Command:
    """操作员命令：name 为命令名，callback 接收参数字典并返回 JSON 字符串"""

    name: str
    description: str
    callback: Callable[[Dict[str, Any]], Awaitable[str]]


def _ok(message: str = "", **data) -> str:
    return json.dumps({"success": True, "message": message, **data}, ensure_ascii=False, default=str)


def _failed(error: EntryControlError) -> str:
    return json.dumps(error.to_dict(), ensure_ascii=False)


def _manager():
    from .manager import get_entry_control_manager
    return get_entry_control_manager()


def _period_dict(period):
    if period is None:
        return None
    return {
        "id": period.id,
        "venue_id": period.venue_id,
        "opened_at": period.opened_at,
        "closed_at": period.closed_at,
        "visit_count": period.visit_count,
        "notes": period.notes,
    }


async def _open_period_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        period = await manager.open_period(arguments.get("notes"))
        return _ok(manager.state.message, period=_period_dict(period))
    except EntryControlError as e:
        logger.warning(f"[Tools] 开启班次失败: {e.message}")
        result = e.to_dict()
        existing = getattr(e, "existing", None)
        if existing is not None:
            result["existing"] = _period_dict(existing)
        return json.dumps(result, ensure_ascii=False, default=str)


async def _close_period_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        period = await manager.close_period(arguments.get("notes"))
        return _ok(manager.state.message, period=_period_dict(period))
    except EntryControlError as e:
        logger.warning(f"[Tools] 关闭班次失败: {e.message}")
        return _failed(e)


async def _refresh_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        period = await manager.refresh_period()
        return _ok(period=_period_dict(period))
    except EntryControlError as e:
        logger.warning(f"[Tools] 刷新班次失败: {e.message}")
        return _failed(e)


async def _lookup_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        await manager.resolve(str(arguments.get("text", "")))
        return _ok(**manager.state.to_dict())
    except EntryControlError as e:
        return _failed(e)


async def _toggle_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        person_id = int(arguments.get("person_id"))
    except (TypeError, ValueError):
        return _failed(ValidationError("person_id inválido."))
    selected = manager.toggle(person_id)
    return _ok(selected=selected, selection=manager.state.to_dict()["selection"])


async def _confirm_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        result = await manager.confirm(arguments.get("observations"))
        return _ok(
            result.summary(),
            created=result.created,
            failed=result.failed,
            errors=result.errors,
            period=_period_dict(manager.period),
        )
    except EntryControlError as e:
        return _failed(e)


async def _cancel_callback(arguments: dict) -> str:
    manager = _manager()
    manager.cancel()
    return _ok("Búsqueda descartada.")


async def _start_scan_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        await manager.start_scan()
        return _ok("Escaneando...", scan_state=manager.scan_state.name)
    except EntryControlError as e:
        return _failed(e)


async def _stop_scan_callback(arguments: dict) -> str:
    manager = _manager()
    manager.stop_scan()
    return _ok(scan_state=manager.scan_state.name)


async def _status_callback(arguments: dict) -> str:
    manager = _manager()
    return _ok(scan_state=manager.scan_state.name, **manager.state.to_dict())


async def _visits_callback(arguments: dict) -> str:
    manager = _manager()
    visits = [
        {
            "id": visit.id,
            "person": visit.display_name,
            "national_id": visit.national_id,
            "condition": visit.condition_label,
            "entered_at": visit.entered_at,
        }
        for visit in manager.state.visits
    ]
    return _ok(visits=visits)


async def _history_callback(arguments: dict) -> str:
    manager = _manager()
    try:
        limit = int(arguments.get("limit", 20))
        periods = await manager.history(limit)
        return _ok(periods=[_period_dict(period) for period in periods])
    except (TypeError, ValueError):
        return _failed(ValidationError("limit inválido."))
    except EntryControlError as e:
        return _failed(e)


def create_tools(add_tool_func: Callable[[Command], None]):
    """创建并注册所有门岗命令"""
    add_tool_func(Command("open", "Abrir período de caja. Args: notes", _open_period_callback))
    add_tool_func(Command("close", "Cerrar período de caja. Args: notes", _close_period_callback))
    add_tool_func(Command("refresh", "Actualizar el período activo.", _refresh_callback))
    add_tool_func(Command("lookup", "Buscar por QR o DNI. Args: text", _lookup_callback))
    add_tool_func(Command("toggle", "Marcar/desmarcar familiar. Args: person_id", _toggle_callback))
    add_tool_func(Command("confirm", "Registrar ingreso. Args: observations", _confirm_callback))
    add_tool_func(Command("cancel", "Descartar la búsqueda actual.", _cancel_callback))
    add_tool_func(Command("scan", "Escanear QR con la cámara.", _start_scan_callback))
    add_tool_func(Command("stop", "Detener el escaneo.", _stop_scan_callback))
    add_tool_func(Command("status", "Estado actual.", _status_callback))
    add_tool_func(Command("visits", "Ingresos del período activo.", _visits_callback))
    add_tool_func(Command("history", "Últimos períodos. Args: limit", _history_callback))
