from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    Time,
    UniqueConstraint,
    false,
    func,
    text,
    true,
)
from sqlalchemy.orm import declarative_base, relationship

from ..money import cents_to_decimal

Base = declarative_base()
metadata = Base.metadata

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")
TRANSACTION_TYPES = ("payment", "payout", "add_funds", "refund")
TRANSACTION_STATUSES = ("pending", "completed", "failed")


class Users(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    external_id = Column(Text, nullable=False, unique=True)  # identity provider id
    email = Column(Text)
    name = Column(Text, nullable=False, server_default=text("'User'"))
    role = Column(Enum('seeker', 'provider', 'admin', name='user_role'))
    # Derived cache of completed transactions, see services.wallet
    balance_cents = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Boolean, nullable=False, server_default=true())
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider_profile = relationship('ProviderProfiles', uselist=False, back_populates='user')
    ledger_transactions = relationship('LedgerTransactions', back_populates='user')

    __table_args__ = (
        CheckConstraint('balance_cents >= 0', name='users_balance_check'),
    )

    @property
    def balance(self):
        return cents_to_decimal(self.balance_cents)


class ProviderProfiles(Base):
    __tablename__ = 'provider_profiles'

    id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    title = Column(Text, nullable=False)
    category = Column(Text, nullable=False, server_default=text("'general'"))
    bio = Column(Text)
    credentials = Column(Text)
    experience = Column(Text)
    rate_per_15min_cents = Column(Integer, nullable=False)
    is_verified = Column(Boolean, nullable=False, server_default=false())
    # Denormalized aggregates, recomputed by services.ratings / booking_ledger
    average_rating = Column(Float, nullable=False, server_default=text('0'))
    total_reviews = Column(Integer, nullable=False, server_default=text('0'))
    total_sessions = Column(Integer, nullable=False, server_default=text('0'))
    # Bumped under the booking transaction to serialize writers per provider
    booking_seq = Column(Integer, nullable=False, server_default=text('0'))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship('Users', back_populates='provider_profile')

    __table_args__ = (
        CheckConstraint('rate_per_15min_cents >= 0', name='provider_rate_check'),
    )

    @property
    def rate_per_15min(self):
        return cents_to_decimal(self.rate_per_15min_cents)


class WeeklyAvailabilityRules(Base):
    __tablename__ = 'weekly_availability_rules'

    id = Column(Integer, primary_key=True)
    provider_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=true())
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='rules_day_check'),
        CheckConstraint('start_time < end_time', name='rules_time_check'),
        Index('rules_provider_day_idx', 'provider_id', 'day_of_week'),
    )


class BlockedDates(Base):
    __tablename__ = 'blocked_dates'

    id = Column(Integer, primary_key=True)
    provider_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    blocked_date = Column(Date, nullable=False)
    reason = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('provider_id', 'blocked_date', name='uq_blocked_dates_provider_date'),
    )


class SessionPolicies(Base):
    __tablename__ = 'session_policies'

    provider_id = Column(ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    buffer_minutes = Column(Integer, nullable=False, server_default=text('15'))
    max_advance_days = Column(Integer, nullable=False, server_default=text('30'))
    min_advance_hours = Column(Integer, nullable=False, server_default=text('24'))
    auto_accept = Column(Boolean, nullable=False, server_default=true())
    timezone = Column(Text, nullable=False, server_default=text("'UTC'"))
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Bookings(Base):
    __tablename__ = 'bookings'

    id = Column(Integer, primary_key=True)
    seeker_id = Column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    provider_id = Column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    scheduled_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    # Frozen at creation; later rate changes never touch it
    total_amount_cents = Column(Integer, nullable=False)
    status = Column(Enum(*BOOKING_STATUSES, name='booking_status'), nullable=False)
    notes = Column(Text)
    cancel_reason = Column(Text)
    cancelled_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    seeker = relationship('Users', foreign_keys=[seeker_id])
    provider = relationship('Users', foreign_keys=[provider_id])
    ledger_transactions = relationship('LedgerTransactions', back_populates='booking')
    review = relationship('Reviews', uselist=False, back_populates='booking')

    __table_args__ = (
        CheckConstraint(
            'duration_minutes > 0 AND duration_minutes % 15 = 0',
            name='bookings_duration_check',
        ),
        CheckConstraint('total_amount_cents >= 0', name='bookings_amount_check'),
        # At most one live booking per provider start time
        Index(
            'uq_bookings_active_slot',
            'provider_id', 'scheduled_date', 'start_time',
            unique=True,
            sqlite_where=text("status <> 'cancelled'"),
            postgresql_where=text("status <> 'cancelled'"),
        ),
        Index('bookings_provider_date_idx', 'provider_id', 'scheduled_date'),
        Index('bookings_seeker_idx', 'seeker_id'),
    )

    @property
    def total_amount(self):
        return cents_to_decimal(self.total_amount_cents)


class LedgerTransactions(Base):
    __tablename__ = 'ledger_transactions'

    id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    booking_id = Column(ForeignKey('bookings.id', ondelete='SET NULL'))
    type = Column(Enum(*TRANSACTION_TYPES, name='transaction_type'), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    status = Column(Enum(*TRANSACTION_STATUSES, name='transaction_status'), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship('Users', back_populates='ledger_transactions')
    booking = relationship('Bookings', back_populates='ledger_transactions')

    __table_args__ = (
        CheckConstraint('amount_cents >= 0', name='transactions_amount_check'),
        Index('transactions_user_idx', 'user_id'),
        Index('transactions_booking_idx', 'booking_id'),
    )

    @property
    def amount(self):
        return cents_to_decimal(self.amount_cents)


class Reviews(Base):
    __tablename__ = 'reviews'

    id = Column(Integer, primary_key=True)
    booking_id = Column(ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, unique=True)
    seeker_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    provider_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship('Bookings', back_populates='review')

    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='reviews_rating_check'),
        Index('reviews_provider_idx', 'provider_id'),
    )


class VerificationRequests(Base):
    __tablename__ = 'verification_requests'

    id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    professional_title = Column(Text, nullable=False)
    category = Column(Text, nullable=False, server_default=text("'general'"))
    credentials = Column(Text, nullable=False)
    experience_years = Column(Integer, nullable=False, server_default=text('0'))
    bio = Column(Text)
    portfolio_url = Column(Text)
    linkedin_url = Column(Text)
    status = Column(
        Enum('pending', 'approved', 'rejected', name='verification_status'),
        nullable=False,
        server_default=text("'pending'"),
    )
    feedback = Column(Text)
    reviewed_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    reviewed_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship('Users', foreign_keys=[user_id])
