# Database Models for the Affiliate Service
# Users are shared by merchants and affiliates; one role per email.

from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import uuid
import enum

Base = declarative_base()

def generate_uuid():
    return str(uuid.uuid4())

# Enums
class UserType(str, enum.Enum):
    MERCHANT = "merchant"
    AFFILIATE = "affiliate"


# Models
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    # Unique across roles: an email is either a merchant or an affiliate
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255))  # Null for affiliates created from an order
    name = Column(String(255))
    user_type = Column(
        Enum(UserType, values_callable=lambda x: [e.value for e in x], name="usertype"),
        nullable=False
    )
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    merchant = relationship("Merchant", back_populates="user", uselist=False)
    affiliates = relationship("Affiliate", back_populates="user")

    @property
    def is_merchant(self):
        return self.user_type == UserType.MERCHANT
