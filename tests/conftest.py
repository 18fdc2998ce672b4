from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from camping_gate.backends.local import DatabaseManager, LocalBackend
from camping_gate.backends.local.models import Dependent, Guest, Membership, Person
from camping_gate.devices.camera import CameraDevice, Frame
from camping_gate.errors import CameraError


# ----------------------------------------------------------------------
# 原接口格式的样例数据
# ----------------------------------------------------------------------

def member_payload(standing="ACTIVO"):
    """33251654：会员，两个家属，其中 B 已停用"""
    return {
        "success": True,
        "data": {
            "persona": {
                "id": 1,
                "dni": "33251654",
                "apellido": "García",
                "nombres": "Ana",
                "nombre_completo": "García Ana",
                "qr_code": "qr-ana",
            },
            "tipos": ["AFILIADO"],
            "allowed": standing == "ACTIVO",
            "reason": "AFILIADO_ACTIVO" if standing == "ACTIVO" else "AFILIADO_INACTIVO",
            "afiliado": {"id": 10, "situacion_sindicato": standing, "activo": True},
            "familiaresDelTitular": [
                {"id": 20, "persona_id": 2, "dni": "45000001", "nombre_completo": "García Luis",
                 "activo": True, "baja": False},
                {"id": 21, "persona_id": 3, "dni": "45000002", "nombre_completo": "García Sofía",
                 "activo": True, "baja": True},
            ],
        },
    }


def guest_payload(person_id=5, code="abc-123"):
    return {
        "persona": {"id": person_id, "dni": "50111222", "nombre_completo": "Pérez Juan", "qr_code": code},
        "tipos": ["INVITADO"],
        "allowed": True,
        "reason": "INVITADO_VIGENTE",
        "invitado": {"id": 30, "vigente_desde": None, "vigente_hasta": None, "activo": True},
    }


def not_found_payload():
    return {"persona": None, "tipos": [], "allowed": False, "reason": "PERSONA_NO_ENCONTRADA"}


def period_payload(period_id=100, venue_id=1, closed=False, visits=0):
    return {
        "id": period_id,
        "camping_id": venue_id,
        "usuario_apertura_id": 7,
        "fecha_apertura": "2024-01-15T08:00:00",
        "fecha_cierre": "2024-01-15T20:00:00" if closed else None,
        "total_visitas": visits,
        "observaciones": None,
    }


def make_backend():
    """所有后端协议方法都是 AsyncMock 的假后端"""
    backend = MagicMock()
    backend.resolve_by_code = AsyncMock(return_value=not_found_payload())
    backend.resolve_by_national_id = AsyncMock(return_value=not_found_payload())
    backend.get_active_period = AsyncMock(return_value={"success": True, "periodo": None})
    backend.open_period = AsyncMock(return_value={"success": True, "periodo": period_payload()})
    backend.close_period = AsyncMock(return_value={"success": True, "periodo": period_payload(closed=True)})
    backend.list_period_visits = AsyncMock(return_value={"success": True, "data": []})
    backend.period_history = AsyncMock(return_value={"success": True, "periodos": []})
    backend.create_visits_batch = AsyncMock(
        return_value={"success": True, "data": {"created": 1, "failed": 0}}
    )
    return backend


# ----------------------------------------------------------------------
# 本地存储
# ----------------------------------------------------------------------

@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'gate.db'}")
    manager.create_all()
    yield manager
    manager.dispose()


@pytest.fixture
def local_backend(db):
    return LocalBackend(db, operator_id=7)


def add_person(session, national_id, last_name, first_names):
    person = Person(national_id=national_id, last_name=last_name, first_names=first_names)
    session.add(person)
    session.flush()
    return person


@pytest.fixture
def family(db):
    """
    会员 33251654（有效）及两个家属：A 正常，B 已停用；
    另有一个会籍停用的会员、一个担保人停用的家属、一个有效访客和一个过期访客。
    """
    session = db.get_session()
    try:
        sponsor = add_person(session, "33251654", "García", "Ana")
        dep_a = add_person(session, "45000001", "García", "Luis")
        dep_b = add_person(session, "45000002", "García", "Sofía")
        membership = Membership(person_id=sponsor.id, standing="ACTIVO", active=True)
        session.add(membership)
        session.flush()
        session.add_all([
            Dependent(person_id=dep_a.id, membership_id=membership.id, active=True, suspended=False),
            Dependent(person_id=dep_b.id, membership_id=membership.id, active=True, suspended=True),
        ])

        inactive = add_person(session, "20111222", "López", "Marta")
        inactive_membership = Membership(person_id=inactive.id, standing="SUSPENDIDO", active=True)
        session.add(inactive_membership)
        session.flush()
        orphan = add_person(session, "46000001", "López", "Tomás")
        session.add(Dependent(person_id=orphan.id, membership_id=inactive_membership.id,
                              active=True, suspended=False))

        guest = add_person(session, "50111222", "Pérez", "Juan")
        session.add(Guest(person_id=guest.id, active=True,
                          valid_until=datetime.now() + timedelta(days=2)))
        expired = add_person(session, "50111333", "Pérez", "Rosa")
        session.add(Guest(person_id=expired.id, active=True,
                          valid_until=datetime.now() - timedelta(days=1)))
        nobody = add_person(session, "60000000", "Sin", "Rol")
        session.commit()

        return {
            "sponsor": (sponsor.id, sponsor.scan_code),
            "dep_a": (dep_a.id, dep_a.scan_code),
            "dep_b": (dep_b.id, dep_b.scan_code),
            "inactive": (inactive.id, inactive.scan_code),
            "orphan": (orphan.id, orphan.scan_code),
            "guest": (guest.id, guest.scan_code),
            "expired": (expired.id, expired.scan_code),
            "nobody": (nobody.id, nobody.scan_code),
        }
    finally:
        session.close()


# ----------------------------------------------------------------------
# 摄像头
# ----------------------------------------------------------------------

class FakeCamera(CameraDevice):
    """每次读取返回一帧 6x4 的黑图"""

    def __init__(self, fail_open=False):
        self.fail_open = fail_open
        self.open_count = 0
        self.close_count = 0
        self.reads = 0

    async def open(self):
        self.open_count += 1
        if self.fail_open:
            raise CameraError("permiso denegado")

    async def read(self):
        self.reads += 1
        return Frame.from_array(np.zeros((4, 6, 3), dtype=np.uint8))

    def close(self):
        self.close_count += 1
