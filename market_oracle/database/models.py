"""
Database Models
Competitions, AI model stats, picks, calibrations, the 90-day challenge and the credit ledger
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
import uuid

from sqlalchemy import (
    MetaData,
    Column, String, Integer, Numeric, Float,
    DateTime, ForeignKey, Boolean, Text,
    CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.dialects.postgresql import UUID, ARRAY
from sqlalchemy.orm import DeclarativeBase, relationship



# === Naming Convention for Constraints (Standard) ===
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all models"""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)



# === Enums (values match the stored strings) ===

class CompetitionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


class PickCategory(str, Enum):
    REGULAR = "regular"
    PENNY = "penny"
    CRYPTO = "crypto"


class PickDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    HOLD = "HOLD"


class PickStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class PickResult(str, Enum):
    WIN = "win"
    LOSS = "loss"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class CreditTransactionType(str, Enum):
    MILESTONE_REWARD = "milestone_reward"
    CHALLENGE_PRIZE = "challenge_prize"
    AI_USAGE = "ai_usage"


# === Pick cycle ===

class Competition(Base):
    """A bounded window grouping picks for scoring"""
    __tablename__ = "competitions"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'ended')", name="status_valid"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    status = Column(String(16), default=CompetitionStatus.ACTIVE.value, nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    picks = relationship("StockPick", back_populates="competition")


class AIModel(Base):
    """A text-generation provider competing with aggregate win/loss stats"""
    __tablename__ = "ai_models"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(64), unique=True, nullable=False)
    display_name = Column(String(128), nullable=True)
    provider = Column(String(32), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    total_picks = Column(Integer, default=0, nullable=False)
    total_wins = Column(Integer, default=0, nullable=False)
    total_losses = Column(Integer, default=0, nullable=False)
    win_rate = Column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    total_profit_loss = Column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    # positive = consecutive wins, negative = consecutive losses
    current_streak = Column(Integer, default=0, nullable=False)
    best_win_streak = Column(Integer, default=0, nullable=False)
    worst_loss_streak = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    picks = relationship("StockPick", back_populates="ai_model")


class StockPick(Base):
    """One ticker recommendation by one model for one category/week"""
    __tablename__ = "stock_picks"
    __table_args__ = (
        CheckConstraint("confidence >= 0 AND confidence <= 100", name="confidence_range"),
        CheckConstraint("status IN ('active', 'expired')", name="status_valid"),
        CheckConstraint("result IS NULL OR result IN ('win', 'loss')", name="result_valid"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    competition_id = Column(UUID(as_uuid=True), ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True)
    ai_model_id = Column(UUID(as_uuid=True), ForeignKey("ai_models.id"), nullable=False, index=True)

    ticker = Column(String(16), nullable=False, index=True)
    category = Column(String(16), nullable=False)
    direction = Column(String(8), default=PickDirection.UP.value, nullable=False)
    confidence = Column(Integer, nullable=False)

    entry_price = Column(Numeric(20, 8), nullable=False)
    target_price = Column(Numeric(20, 8), nullable=False)
    stop_loss = Column(Numeric(20, 8), nullable=True)
    reasoning = Column(Text, nullable=True)

    week_number = Column(Integer, nullable=False)
    pick_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False, index=True)

    status = Column(String(16), default=PickStatus.ACTIVE.value, nullable=False, index=True)
    result = Column(String(8), nullable=True)
    profit_loss_percent = Column(Float, nullable=True)
    closed_price = Column(Numeric(20, 8), nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    # live tracking, refreshed by the price updater
    current_price = Column(Numeric(20, 8), nullable=True)
    price_change = Column(Numeric(20, 8), nullable=True)
    price_change_pct = Column(Float, nullable=True)
    last_price_update = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    competition = relationship("Competition", back_populates="picks")
    ai_model = relationship("AIModel", back_populates="picks")


class AICallLog(Base):
    """One provider call made by the pick generator"""
    __tablename__ = "ai_call_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ai_name = Column(String(64), nullable=False)
    category = Column(String(16), nullable=False)
    success = Column(Boolean, nullable=False)
    model_used = Column(String(128), nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ModelCalibration(Base):
    """Weekly calibration snapshot of one model over its recent resolved picks"""
    __tablename__ = "model_calibrations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ai_model_id = Column(UUID(as_uuid=True), ForeignKey("ai_models.id", ondelete="CASCADE"), nullable=False, index=True)
    calibration_date = Column(DateTime, nullable=False)

    total_picks = Column(Integer, nullable=False)
    wins = Column(Integer, nullable=False)
    losses = Column(Integer, nullable=False)
    win_rate = Column(Float, nullable=False)  # 0..1
    avg_return = Column(Float, nullable=False)
    avg_confidence = Column(Float, nullable=False)
    confidence_accuracy_correlation = Column(Float, nullable=False)
    overconfidence_score = Column(Float, nullable=False)

    best_categories = Column(ARRAY(String), default=list, nullable=False)
    worst_categories = Column(ARRAY(String), default=list, nullable=False)
    key_learnings = Column(ARRAY(Text), default=list, nullable=False)
    adjustments = Column(ARRAY(Text), default=list, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    ai_model = relationship("AIModel")


# === 90-day challenge ===

class Challenge(Base):
    """A 90-day paper-trading season"""
    __tablename__ = "challenges"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(String(16), default="active", nullable=False, index=True)
    prize_pool = Column(Integer, default=10000, nullable=False)
    participant_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    enrollments = relationship("ChallengeEnrollment", back_populates="challenge")


class ChallengeEnrollment(Base):
    """A user's paper-trading account inside one challenge"""
    __tablename__ = "challenge_enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_enrollment_user_challenge"),
        CheckConstraint("status IN ('active', 'completed', 'abandoned')", name="status_valid"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    challenge_id = Column(UUID(as_uuid=True), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    starting_balance = Column(Numeric(12, 2), default=Decimal("10000"), nullable=False)
    current_balance = Column(Numeric(12, 2), default=Decimal("10000"), nullable=False)
    total_return_percent = Column(Float, default=0.0, nullable=False)
    total_trades = Column(Integer, default=0, nullable=False)
    winning_trades = Column(Integer, default=0, nullable=False)
    current_day = Column(Integer, default=1, nullable=False)

    status = Column(String(16), default=EnrollmentStatus.ACTIVE.value, nullable=False)
    milestones_achieved = Column(ARRAY(String), default=list, nullable=False)
    final_rank = Column(Integer, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    challenge = relationship("Challenge", back_populates="enrollments")
    trades = relationship("ChallengeTrade", back_populates="enrollment")


class ChallengeTrade(Base):
    """A simulated buy/sell inside an enrollment"""
    __tablename__ = "challenge_trades"
    __table_args__ = (
        CheckConstraint("action IN ('buy', 'sell')", name="action_valid"),
        CheckConstraint("shares > 0", name="shares_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(UUID(as_uuid=True), ForeignKey("challenge_enrollments.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)
    ticker = Column(String(16), nullable=False)
    action = Column(String(8), nullable=False)
    shares = Column(Numeric(12, 4), nullable=False)
    price = Column(Numeric(12, 4), nullable=False)
    total_value = Column(Numeric(12, 2), nullable=False)
    ai_model_id = Column(UUID(as_uuid=True), ForeignKey("ai_models.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    enrollment = relationship("ChallengeEnrollment", back_populates="trades")


# === Credits ===

class UserCredits(Base):
    """Cached credit balance; moves only together with a CreditTransaction"""
    __tablename__ = "user_credits"

    user_id = Column(String(64), primary_key=True)
    balance = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CreditTransaction(Base):
    """Append-only credit ledger"""
    __tablename__ = "credit_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String(32), nullable=False)
    description = Column(Text, nullable=True)
    balance_after = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserSubscription(Base):
    """Plan tier used for feature gating"""
    __tablename__ = "user_subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    plan_id = Column(String(32), default="free", nullable=False)
    status = Column(String(16), default="active", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
