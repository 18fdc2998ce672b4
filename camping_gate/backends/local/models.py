import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_scan_code() -> str:
    return uuid.uuid4().hex


class Person(Base):
    __tablename__ = 'personas'

    id = Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
    national_id = Column(String(20), nullable=False, unique=True, comment='证件号（DNI）')
    last_name = Column(String(100), comment='姓')
    first_names = Column(String(100), comment='名')
    # 永久二维码，插入时生成一次，之后不再变更
    scan_code = Column(String(64), nullable=False, unique=True, default=_new_scan_code, comment='二维码')
    created_at = Column(DateTime, nullable=False, server_default=func.now(), comment='创建时间')

    membership = relationship('Membership', back_populates='person', uselist=False)
    dependent_link = relationship(
        'Dependent', back_populates='person', uselist=False, foreign_keys='Dependent.person_id'
    )
    guests = relationship('Guest', back_populates='person', order_by='Guest.id')

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.last_name, self.first_names) if part)

    def to_dict(self):
        return {
            "id": self.id,
            "dni": self.national_id,
            "apellido": self.last_name,
            "nombres": self.first_names,
            "nombre_completo": self.display_name,
            "qr_code": self.scan_code,
        }


class Membership(Base):
    __tablename__ = 'afiliados'

    id = Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
    person_id = Column(Integer, ForeignKey('personas.id'), nullable=False, unique=True, comment='人员ID')
    standing = Column(String(20), nullable=False, default='ACTIVO', comment='会籍状态')
    benefit_standing = Column(String(20), comment='医保状态')
    active = Column(Boolean, nullable=False, default=True, comment='是否有效')

    person = relationship('Person', back_populates='membership')
    dependents = relationship('Dependent', back_populates='sponsor', order_by='Dependent.id')

    def to_dict(self):
        return {
            "id": self.id,
            "situacion_sindicato": self.standing,
            "situacion_obra_social": self.benefit_standing,
            "activo": self.active,
        }


class Dependent(Base):
    __tablename__ = 'familiares'

    id = Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
    # 一个人同一时间只能是一个会员的家属
    person_id = Column(Integer, ForeignKey('personas.id'), nullable=False, unique=True, comment='人员ID')
    membership_id = Column(Integer, ForeignKey('afiliados.id'), nullable=False, comment='担保会员ID')
    studying = Column(Boolean, nullable=False, default=False, comment='是否在读')
    disabled = Column(Boolean, nullable=False, default=False, comment='是否残障')
    suspended = Column(Boolean, nullable=False, default=False, comment='是否停用')
    active = Column(Boolean, nullable=False, default=True, comment='是否有效')

    person = relationship('Person', back_populates='dependent_link', foreign_keys=[person_id])
    sponsor = relationship('Membership', back_populates='dependents')

    def to_dict(self):
        return {
            "id": self.id,
            "afiliado_id": self.membership_id,
            "activo": self.active,
            "baja": self.suspended,
        }

    def to_sponsor_entry(self):
        """担保会员核验结果中的家属条目"""
        return {
            "id": self.id,
            "persona_id": self.person_id,
            "dni": self.person.national_id if self.person else "",
            "nombre_completo": self.person.display_name if self.person else "Desconocido",
            "activo": self.active,
            "baja": self.suspended,
        }


class Guest(Base):
    __tablename__ = 'invitados'

    id = Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
    person_id = Column(Integer, ForeignKey('personas.id'), nullable=False, comment='人员ID')
    valid_from = Column(DateTime, comment='生效时间')
    valid_until = Column(DateTime, comment='截止时间，为空表示长期有效')
    applies_to_household = Column(Boolean, nullable=False, default=False, comment='是否适用于全家')
    active = Column(Boolean, nullable=False, default=True, comment='是否有效')

    person = relationship('Person', back_populates='guests')

    def to_dict(self):
        return {
            "id": self.id,
            "vigente_desde": self.valid_from.isoformat() if self.valid_from else None,
            "vigente_hasta": self.valid_until.isoformat() if self.valid_until else None,
            "aplica_a_familia": self.applies_to_household,
            "activo": self.active,
        }


class ShiftPeriod(Base):
    __tablename__ = 'periodos_caja'

    id = Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
    venue_id = Column(Integer, nullable=False, comment='营地ID')
    opened_by = Column(Integer, comment='开启人ID')
    closed_by = Column(Integer, comment='关闭人ID')
    opened_at = Column(DateTime, nullable=False, comment='开启时间')
    closed_at = Column(DateTime, comment='关闭时间，为空表示开启中')
    visit_count = Column(Integer, nullable=False, default=0, comment='入场人次')
    notes = Column(Text, comment='备注')

    visits = relationship('Visit', back_populates='period', order_by='Visit.id')

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "camping_id": self.venue_id,
            "usuario_apertura_id": self.opened_by,
            "usuario_cierre_id": self.closed_by,
            "fecha_apertura": self.opened_at.isoformat() if self.opened_at else None,
            "fecha_cierre": self.closed_at.isoformat() if self.closed_at else None,
            "total_visitas": self.visit_count,
            "observaciones": self.notes,
        }


# 每个营地最多一个未关闭的班次
Index(
    'uq_periodo_abierto_por_camping',
    ShiftPeriod.venue_id,
    unique=True,
    sqlite_where=ShiftPeriod.closed_at.is_(None),
    postgresql_where=ShiftPeriod.closed_at.is_(None),
)


class Visit(Base):
    __tablename__ = 'visitas'

    id = Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
    person_id = Column(Integer, ForeignKey('personas.id'), nullable=False, comment='人员ID')
    venue_id = Column(Integer, nullable=False, comment='营地ID')
    period_id = Column(Integer, ForeignKey('periodos_caja.id'), comment='班次ID，允许班次外登记时为空')
    entered_at = Column(DateTime, nullable=False, comment='入场时间')
    condition = Column(String(20), nullable=False, comment='入场条件')
    notes = Column(Text, comment='备注')
    operator_id = Column(Integer, comment='登记人ID')

    person = relationship('Person')
    period = relationship('ShiftPeriod', back_populates='visits')

    def to_dict(self):
        return {
            "id": self.id,
            "persona_id": self.person_id,
            "camping_id": self.venue_id,
            "periodo_caja_id": self.period_id,
            "fecha_ingreso": self.entered_at.isoformat() if self.entered_at else None,
            "condicion_ingreso": self.condition,
            "observaciones": self.notes,
            "persona": self.person.to_dict() if self.person else None,
        }
