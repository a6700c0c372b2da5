"""Tenant model - onboarded business unit owning work items"""

from sqlalchemy import Boolean, Column, DateTime, Integer, Text
from sqlalchemy.orm import validates

from .base import Base, utcnow


class Tenant(Base):
    """
    Tenant model - an onboarded business unit.

    Tenants are provisioned administratively and only referenced by the
    ingestion core. The api_key doubles as the shared secret the boundary
    authentication filter resolves tenants by.
    """
    __tablename__ = "tenant"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    api_key = Column(Text, nullable=True, unique=True)
    endpoint = Column(Text, nullable=True)
    erp_database_name = Column(Text, nullable=True)
    is_test = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @validates('name')
    def validate_name(self, key, value):
        """
        Ensure tenant name is not empty and within length limits.

        Raises:
            ValueError: If name is empty/whitespace or exceeds 200 characters
        """
        if not value or len(value.strip()) == 0:
            raise ValueError("Tenant name cannot be empty")
        if len(value) > 200:
            raise ValueError("Tenant name cannot exceed 200 characters")
        return value.strip()

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}')>"
