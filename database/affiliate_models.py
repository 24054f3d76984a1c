# Affiliate Commerce Database Models
# Merchants, their affiliates, attributed orders and the outbox tables
# that carry payouts and notifications out of the request transaction.

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Enum, Boolean, Numeric, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
import enum

# Use the same Base from existing models
from database.models import Base, generate_uuid


# ============================================================================
# ENUMS
# ============================================================================

class PayoutStatusDB(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class TaskStatusDB(str, enum.Enum):
    PENDING = "pending"       # Waiting for the worker (or a retry)
    COMPLETED = "completed"
    FAILED = "failed"         # Retries exhausted


class MessageStatusDB(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# ============================================================================
# MERCHANTS
# ============================================================================

class Merchant(Base):
    """A storefront that pays commission on referred orders."""
    __tablename__ = "merchants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    domain = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)

    # Captured from configuration at registration, read by ingestion
    default_commission_rate = Column(Numeric(5, 4), nullable=False)
    turn_customers_into_affiliates = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="merchant")
    affiliates = relationship("Affiliate", back_populates="merchant")
    orders = relationship("Order", back_populates="merchant")


# ============================================================================
# AFFILIATES
# ============================================================================

class Affiliate(Base):
    """A user earning commission on orders referred to one merchant."""
    __tablename__ = "affiliates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    merchant_id = Column(String(36), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False)

    commission_rate = Column(Numeric(5, 4), nullable=False)  # Fraction, 0.1 = 10%
    discount_code = Column(String(100))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "merchant_id", name="uq_affiliates_user_merchant"),
    )

    # Relationships
    user = relationship("User", back_populates="affiliates")
    merchant = relationship("Merchant", back_populates="affiliates")
    orders = relationship("Order", back_populates="affiliate")


# ============================================================================
# ORDERS
# ============================================================================

class Order(Base):
    """An ingested storefront order. The external order id is the primary key."""
    __tablename__ = "orders"

    id = Column(String(100), primary_key=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    affiliate_id = Column(String(36), ForeignKey("affiliates.id", ondelete="SET NULL"), nullable=True, index=True)

    # Frozen at ingestion
    subtotal = Column(Numeric(12, 2), nullable=False)
    commission_owed = Column(Numeric(12, 2), nullable=False, default=0)

    payout_status = Column(
        Enum(PayoutStatusDB, values_callable=lambda x: [e.value for e in x], name="payoutstatusdb"),
        nullable=False,
        default=PayoutStatusDB.UNPAID
    )
    paid_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
    )

    # Relationships
    merchant = relationship("Merchant", back_populates="orders")
    affiliate = relationship("Affiliate", back_populates="orders")
    payout_task = relationship("PayoutTask", back_populates="order", uselist=False)


# ============================================================================
# OUTBOX: PAYOUT TASKS
# ============================================================================

class PayoutTask(Base):
    """One scheduled payout per order. The unique order_id is the in-flight marker."""
    __tablename__ = "payout_tasks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(100), ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    status = Column(
        Enum(TaskStatusDB, values_callable=lambda x: [e.value for e in x], name="taskstatusdb"),
        nullable=False,
        default=TaskStatusDB.PENDING,
        index=True
    )
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_error = Column(Text)
    completed_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    order = relationship("Order", back_populates="payout_task")


# ============================================================================
# OUTBOX: NOTIFICATIONS
# ============================================================================

class OutboundMessage(Base):
    """Email queued for delivery after the transaction that produced it."""
    __tablename__ = "outbound_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    affiliate_id = Column(String(36), ForeignKey("affiliates.id", ondelete="SET NULL"), nullable=True)
    message_type = Column(String(50), nullable=False)

    recipient_email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)

    status = Column(
        Enum(MessageStatusDB, values_callable=lambda x: [e.value for e in x], name="messagestatusdb"),
        nullable=False,
        default=MessageStatusDB.PENDING,
        index=True
    )
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_error = Column(Text)
    sent_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    affiliate = relationship("Affiliate")
