from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradschool.db import Base


class UserRole(str, Enum):
    STUDENT = 'student'
    FACULTY = 'faculty'
    COORDINATOR = 'coordinator'
    AA = 'aa'
    DEAN = 'dean'


class WorkflowState(str, Enum):
    PENDING = 'pending'
    ADVISER_REVIEW = 'adviser-review'
    COORDINATOR_REVIEW = 'coordinator-review'
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    REVISION_PENDING = 'revision-pending'
    CANCELLED = 'cancelled'


class ApprovalStatus(str, Enum):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'


class AaStatus(str, Enum):
    PENDING = 'pending'
    READY_FOR_FINANCE = 'ready_for_finance'
    IN_PROGRESS = 'in_progress'
    PAID = 'paid'
    COMPLETED = 'completed'


class DefenseType(str, Enum):
    PROPOSAL = 'Proposal'
    PRE_FINAL = 'Pre-final'
    FINAL = 'Final'


class ProgramLevel(str, Enum):
    MASTERAL = 'Masteral'
    DOCTORATE = 'Doctorate'

    @property
    def category(self) -> str:
        return 'Doctorate' if self is ProgramLevel.DOCTORATE else 'Masters'


class CommitteeRole(str, Enum):
    ADVISER = 'Adviser'
    PANEL_CHAIR = 'Panel Chair'
    PANEL_MEMBER_1 = 'Panel Member 1'
    PANEL_MEMBER_2 = 'Panel Member 2'
    PANEL_MEMBER_3 = 'Panel Member 3'
    PANEL_MEMBER_4 = 'Panel Member 4'


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180))
    email: Mapped[str] = mapped_column(String(255), default='', index=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.STUDENT.value, index=True)
    program: Mapped[str] = mapped_column(String(255), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AdviserCoordinator(Base):
    __tablename__ = 'adviser_coordinators'
    __table_args__ = (
        UniqueConstraint('adviser_id', 'coordinator_id', name='uq_adviser_coordinators_pair'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    adviser_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    coordinator_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AdviserStudent(Base):
    __tablename__ = 'adviser_students'
    __table_args__ = (
        UniqueConstraint('adviser_id', 'student_id', name='uq_adviser_students_pair'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    adviser_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    requested_by: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Panelist(Base):
    __tablename__ = 'panelists'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180), index=True)
    email: Mapped[str] = mapped_column(String(255), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class DefenseRequest(Base):
    __tablename__ = 'defense_requests'
    __table_args__ = (
        Index('ix_defense_requests_state_type', 'workflow_state', 'defense_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    submitted_by: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(120), default='')
    middle_name: Mapped[str] = mapped_column(String(120), default='')
    last_name: Mapped[str] = mapped_column(String(120), default='')
    school_id: Mapped[str] = mapped_column(String(40), index=True)
    program: Mapped[str] = mapped_column(String(255))
    thesis_title: Mapped[str] = mapped_column(Text, default='')
    defense_type: Mapped[str] = mapped_column(String(20))
    defense_mode: Mapped[str] = mapped_column(String(20), default='face-to-face')
    defense_venue: Mapped[str] = mapped_column(String(255), default='')
    workflow_state: Mapped[str] = mapped_column(String(30), default=WorkflowState.PENDING.value, index=True)
    adviser_status: Mapped[str] = mapped_column(String(20), default=ApprovalStatus.PENDING.value)
    coordinator_status: Mapped[str] = mapped_column(String(20), default=ApprovalStatus.PENDING.value)
    adviser_comments: Mapped[str] = mapped_column(Text, default='')
    coordinator_comments: Mapped[str] = mapped_column(Text, default='')
    defense_adviser: Mapped[str] = mapped_column(String(180), default='')
    adviser_user_id: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    coordinator_user_id: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    defense_chairperson: Mapped[str] = mapped_column(String(180), default='')
    defense_panelist1: Mapped[str] = mapped_column(String(180), default='')
    defense_panelist2: Mapped[str] = mapped_column(String(180), default='')
    defense_panelist3: Mapped[str] = mapped_column(String(180), default='')
    defense_panelist4: Mapped[str] = mapped_column(String(180), default='')
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    scheduled_time: Mapped[str] = mapped_column(String(10), default='')
    amount: Mapped[float] = mapped_column(Float, default=0)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    or_number: Mapped[str] = mapped_column(String(60), default='')
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_status_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_status_updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    workflow_entries: Mapped[list['DefenseWorkflowEntry']] = relationship(
        'DefenseWorkflowEntry',
        back_populates='defense_request',
        order_by='DefenseWorkflowEntry.id',
        cascade='all, delete-orphan',
    )
    aa_verification: Mapped['AaPaymentVerification | None'] = relationship(
        'AaPaymentVerification',
        back_populates='defense_request',
        uselist=False,
    )
    honorarium_payments: Mapped[list['HonorariumPayment']] = relationship(
        'HonorariumPayment',
        back_populates='defense_request',
        order_by='HonorariumPayment.id',
    )

    @property
    def student_name(self) -> str:
        parts = (self.first_name, self.middle_name, self.last_name)
        return ' '.join(part.strip() for part in parts if part and part.strip())

    def committee_slots(self) -> list[tuple[CommitteeRole, str]]:
        """Filled committee slots, in payout order."""
        slots = [
            (CommitteeRole.ADVISER, self.defense_adviser),
            (CommitteeRole.PANEL_CHAIR, self.defense_chairperson),
            (CommitteeRole.PANEL_MEMBER_1, self.defense_panelist1),
            (CommitteeRole.PANEL_MEMBER_2, self.defense_panelist2),
            (CommitteeRole.PANEL_MEMBER_3, self.defense_panelist3),
            (CommitteeRole.PANEL_MEMBER_4, self.defense_panelist4),
        ]
        return [(role, name.strip()) for role, name in slots if name and name.strip()]


class DefenseWorkflowEntry(Base):
    __tablename__ = 'defense_workflow_entries'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    defense_request_id: Mapped[int] = mapped_column(ForeignKey('defense_requests.id'), index=True)
    action: Mapped[str] = mapped_column(String(40))
    from_state: Mapped[str] = mapped_column(String(30), default='')
    to_state: Mapped[str] = mapped_column(String(30), default='')
    comment: Mapped[str] = mapped_column(Text, default='')
    actor_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    defense_request: Mapped['DefenseRequest'] = relationship('DefenseRequest', back_populates='workflow_entries')


class AaPaymentVerification(Base):
    __tablename__ = 'aa_payment_verifications'
    __table_args__ = (
        UniqueConstraint('defense_request_id', name='uq_aa_payment_verifications_defense_request'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    defense_request_id: Mapped[int] = mapped_column(ForeignKey('defense_requests.id'), index=True)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True)
    status: Mapped[str] = mapped_column(String(30), default=AaStatus.PENDING.value, index=True)
    remarks: Mapped[str] = mapped_column(Text, default='')
    honoraria_materialized_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    defense_request: Mapped['DefenseRequest'] = relationship('DefenseRequest', back_populates='aa_verification')


class PaymentRate(Base):
    __tablename__ = 'payment_rates'
    __table_args__ = (
        UniqueConstraint('program_level', 'defense_type', 'role', name='uq_payment_rates_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_level: Mapped[str] = mapped_column(String(20), index=True)
    defense_type: Mapped[str] = mapped_column(String(20), index=True)
    role: Mapped[str] = mapped_column(String(40))
    amount: Mapped[float] = mapped_column(Float, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class HonorariumPayment(Base):
    __tablename__ = 'honorarium_payments'
    __table_args__ = (
        UniqueConstraint('defense_request_id', 'role', name='uq_honorarium_payments_request_role'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    defense_request_id: Mapped[int] = mapped_column(ForeignKey('defense_requests.id'), index=True)
    # Not a hard FK: the panelist row may be deleted after payment.
    panelist_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    panelist_name: Mapped[str] = mapped_column(String(180))
    role: Mapped[str] = mapped_column(String(40))
    amount: Mapped[float] = mapped_column(Float, default=0)
    payment_status: Mapped[str] = mapped_column(String(20), default='pending')
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    defense_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    student_name: Mapped[str] = mapped_column(String(255), default='')
    program: Mapped[str] = mapped_column(String(255), default='')
    defense_type: Mapped[str] = mapped_column(String(20), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    defense_request: Mapped['DefenseRequest'] = relationship('DefenseRequest', back_populates='honorarium_payments')


class ProgramRecord(Base):
    __tablename__ = 'program_records'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    program: Mapped[str] = mapped_column(String(60), default='')
    category: Mapped[str] = mapped_column(String(20), default='Masters')
    program_level: Mapped[str] = mapped_column(String(20), default=ProgramLevel.MASTERAL.value)
    date_edited: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    students: Mapped[list['StudentRecord']] = relationship('StudentRecord', back_populates='program_record')
    panelists: Mapped[list['PanelistRecord']] = relationship('PanelistRecord', back_populates='program_record')


class StudentRecord(Base):
    __tablename__ = 'student_records'
    __table_args__ = (
        UniqueConstraint('defense_request_id', name='uq_student_records_defense_request'),
        Index('ix_student_records_student_defense', 'student_id', 'defense_request_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[str] = mapped_column(String(40), index=True)
    defense_request_id: Mapped[int] = mapped_column(ForeignKey('defense_requests.id'))
    program_record_id: Mapped[int] = mapped_column(ForeignKey('program_records.id'), index=True)
    first_name: Mapped[str] = mapped_column(String(120), default='')
    middle_name: Mapped[str] = mapped_column(String(120), default='')
    last_name: Mapped[str] = mapped_column(String(120), default='')
    program: Mapped[str] = mapped_column(String(255), default='')
    school_year: Mapped[str] = mapped_column(String(9), default='')
    defense_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    defense_type: Mapped[str] = mapped_column(String(20), default='')
    or_number: Mapped[str] = mapped_column(String(60), default='')
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    program_record: Mapped['ProgramRecord'] = relationship('ProgramRecord', back_populates='students')
    panelist_links: Mapped[list['PanelistStudentRecord']] = relationship('PanelistStudentRecord', back_populates='student_record')
    payments: Mapped[list['PaymentRecord']] = relationship('PaymentRecord', back_populates='student_record')


class PanelistRecord(Base):
    __tablename__ = 'panelist_records'
    __table_args__ = (
        UniqueConstraint('name', 'program_record_id', name='uq_panelist_records_name_program'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_record_id: Mapped[int] = mapped_column(ForeignKey('program_records.id'), index=True)
    name: Mapped[str] = mapped_column(String(180))
    received_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    program_record: Mapped['ProgramRecord'] = relationship('ProgramRecord', back_populates='panelists')
    student_links: Mapped[list['PanelistStudentRecord']] = relationship('PanelistStudentRecord', back_populates='panelist_record')
    payments: Mapped[list['PaymentRecord']] = relationship('PaymentRecord', back_populates='panelist_record')


class PanelistStudentRecord(Base):
    __tablename__ = 'panelist_student_records'
    __table_args__ = (
        UniqueConstraint('panelist_record_id', 'student_record_id', name='uq_panelist_student_records_pair'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    panelist_record_id: Mapped[int] = mapped_column(ForeignKey('panelist_records.id'), index=True)
    student_record_id: Mapped[int] = mapped_column(ForeignKey('student_records.id'), index=True)
    role: Mapped[str] = mapped_column(String(40))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    panelist_record: Mapped['PanelistRecord'] = relationship('PanelistRecord', back_populates='student_links')
    student_record: Mapped['StudentRecord'] = relationship('StudentRecord', back_populates='panelist_links')


class PaymentRecord(Base):
    __tablename__ = 'payment_records'
    __table_args__ = (
        UniqueConstraint(
            'student_record_id',
            'panelist_record_id',
            'defense_request_id',
            name='uq_payment_records_student_panelist_request',
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_record_id: Mapped[int] = mapped_column(ForeignKey('student_records.id'), index=True)
    panelist_record_id: Mapped[int] = mapped_column(ForeignKey('panelist_records.id'), index=True)
    defense_request_id: Mapped[int] = mapped_column(ForeignKey('defense_requests.id'), index=True)
    school_year: Mapped[str] = mapped_column(String(9), default='')
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    defense_status: Mapped[str] = mapped_column(String(20), default='completed')
    amount: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student_record: Mapped['StudentRecord'] = relationship('StudentRecord', back_populates='payments')
    panelist_record: Mapped['PanelistRecord'] = relationship('PanelistRecord', back_populates='payments')
