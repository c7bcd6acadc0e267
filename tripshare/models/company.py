"""
Trip-owning companies and the operator linkage table.

Operators become linked to a company through two onboarding paths: creating
or owning the company record, or selecting the company on their own profile.
Both paths write a `CompanyMembership` row, so authorization is a single
lookup against one table.
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint

from tripshare.db.base import Base, TimestampMixin


class MembershipSource(str, enum.Enum):
    OWNER = "owner"
    CREATOR = "creator"
    PROFILE = "profile"


class Company(Base, TimestampMixin):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    logo = Column(String(500), nullable=True)
    owner_id = Column(String(128), nullable=True, index=True)
    created_by = Column(String(128), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name})>"


class CompanyMembership(Base, TimestampMixin):
    __tablename__ = "company_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    source = Column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_membership_user_company"),
        CheckConstraint("source IN ('owner', 'creator', 'profile')", name="check_membership_source"),
    )

    def __repr__(self) -> str:
        return f"<CompanyMembership(user={self.user_id}, company={self.company_id}, source={self.source})>"
