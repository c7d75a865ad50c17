from sqlalchemy import Column, ForeignKey, Index, Integer, Table, Text, UniqueConstraint, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Organizations(Base):
    __tablename__ = 'organizations'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    professionals = relationship('Professionals', back_populates='organization')
    clients = relationship('Clients', back_populates='organization')
    services = relationship('Services', back_populates='organization')


class Professionals(Base):
    __tablename__ = 'professionals'

    id = Column(Integer, primary_key=True)
    organization_id = Column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    email = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    organization = relationship('Organizations', back_populates='professionals')
    work_schedules = relationship('WorkSchedules', back_populates='professional')
    vacation_requests = relationship('VacationRequests', back_populates='professional')
    appointments = relationship('Appointments', back_populates='professional')
    group_activities = relationship('GroupActivities', back_populates='professional')
    google_token = relationship('ProfessionalGoogleTokens', back_populates='professional', uselist=False)


class Clients(Base):
    __tablename__ = 'clients'

    id = Column(Integer, primary_key=True)
    organization_id = Column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    phone = Column(Text)
    email = Column(Text)

    organization = relationship('Organizations', back_populates='clients')
    appointments = relationship('Appointments', back_populates='client')


class Services(Base):
    __tablename__ = 'services'

    id = Column(Integer, primary_key=True)
    organization_id = Column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    organization = relationship('Organizations', back_populates='services')
    appointments = relationship('Appointments', back_populates='service')


t_professional_services = Table(
    'professional_services', metadata,
    Column('professional_id', ForeignKey('professionals.id', ondelete='CASCADE'), primary_key=True),
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), primary_key=True),
)


class WorkSchedules(Base):
    __tablename__ = 'work_schedules'

    id = Column(Integer, primary_key=True)
    professional_id = Column(ForeignKey('professionals.id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(Integer)  # 0 = Sunday, 1 = Monday .. 6 = Saturday; NULL for exceptions
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    is_exception = Column(Integer, nullable=False, server_default=text('0'))
    date_exception = Column(Text)  # "YYYY-MM-DD" when is_exception
    version = Column(Integer, nullable=False, server_default=text('1'))  # bumped on every ORM update

    professional = relationship('Professionals', back_populates='work_schedules')
    breaks = relationship('WorkScheduleBreaks', back_populates='work_schedule', order_by='WorkScheduleBreaks.start_time')

    __mapper_args__ = {'version_id_col': version}


class WorkScheduleBreaks(Base):
    __tablename__ = 'work_schedule_breaks'

    id = Column(Integer, primary_key=True)
    work_schedule_id = Column(ForeignKey('work_schedules.id', ondelete='CASCADE'), nullable=False)
    break_name = Column(Text)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    version = Column(Integer, nullable=False, server_default=text('1'))

    work_schedule = relationship('WorkSchedules', back_populates='breaks')

    __mapper_args__ = {'version_id_col': version}


class VacationRequests(Base):
    __tablename__ = 'vacation_requests'

    id = Column(Integer, primary_key=True)
    professional_id = Column(ForeignKey('professionals.id', ondelete='CASCADE'), nullable=False)
    type = Column(Text, nullable=False, server_default=text("'vacation'"))
    start_date = Column(Text, nullable=False)
    end_date = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    reason = Column(Text)

    professional = relationship('Professionals', back_populates='vacation_requests')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        # Backstop against double booking: one live appointment per start time.
        Index(
            'uq_appointments_live_slot',
            'professional_id', 'date', 'start_time',
            unique=True,
            sqlite_where=text("status <> 'cancelled'"),
            postgresql_where=text("status <> 'cancelled'"),
        ),
        Index('ix_appointments_professional_date', 'professional_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    organization_id = Column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    professional_id = Column(ForeignKey('professionals.id', ondelete='CASCADE'), nullable=False)
    client_id = Column(ForeignKey('clients.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    consultation_id = Column(Integer)
    date = Column(Text, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    duration = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    notes = Column(Text)
    is_group_activity = Column(Integer, nullable=False, server_default=text('0'))
    google_calendar_event_id = Column(Text)
    synced_with_google = Column(Integer, nullable=False, server_default=text('0'))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    professional = relationship('Professionals', back_populates='appointments')
    client = relationship('Clients', back_populates='appointments')
    service = relationship('Services', back_populates='appointments')


class GroupActivities(Base):
    __tablename__ = 'group_activities'

    id = Column(Integer, primary_key=True)
    organization_id = Column(ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    professional_id = Column(ForeignKey('professionals.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    date = Column(Text, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    max_participants = Column(Integer, nullable=False, server_default=text('1'))
    status = Column(Text, nullable=False, server_default=text("'active'"))

    professional = relationship('Professionals', back_populates='group_activities')


class BookingDayLocks(Base):
    __tablename__ = 'booking_day_locks'

    professional_id = Column(ForeignKey('professionals.id', ondelete='CASCADE'), primary_key=True)
    date = Column(Text, primary_key=True)
    version = Column(Integer, nullable=False, server_default=text('0'))


class ProfessionalGoogleTokens(Base):
    __tablename__ = 'professional_google_tokens'
    __table_args__ = (
        UniqueConstraint('professional_id'),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(ForeignKey('professionals.id', ondelete='CASCADE'), nullable=False)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(Text)  # "YYYY-MM-DD HH:MM:SS", UTC
    calendar_id = Column(Text, nullable=False, server_default=text("'primary'"))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    professional = relationship('Professionals', back_populates='google_token')
