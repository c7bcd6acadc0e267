"""
Operator authorization against the company linkage table.

Company onboarding (owner/creator of the company record) and profile
onboarding (operator selects their company) both call
`link_user_to_company`; every operator check reads only `company_memberships`.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.core.exceptions import AuthorizationError, NotFound
from tripshare.core.logging import get_logger
from tripshare.models.company import Company, CompanyMembership, MembershipSource

logger = get_logger(__name__)


async def link_user_to_company(
    db: AsyncSession,
    user_id: str,
    company_id: int,
    source: MembershipSource,
) -> CompanyMembership:
    """Record that `user_id` operates `company_id`. Idempotent per pair."""
    result = await db.execute(
        select(CompanyMembership).where(
            CompanyMembership.user_id == user_id,
            CompanyMembership.company_id == company_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership:
        return membership

    membership = CompanyMembership(user_id=user_id, company_id=company_id, source=source.value)
    db.add(membership)
    await db.flush()
    logger.info("company_link_created", user_id=user_id, company_id=company_id, source=source.value)
    return membership


async def register_company(
    db: AsyncSession,
    name: str,
    owner_id: Optional[str] = None,
    created_by: Optional[str] = None,
    logo: Optional[str] = None,
) -> Company:
    """Create a company record and link its owner and creator."""
    company = Company(name=name, owner_id=owner_id, created_by=created_by, logo=logo)
    db.add(company)
    await db.flush()

    if owner_id:
        await link_user_to_company(db, owner_id, company.id, MembershipSource.OWNER)
    if created_by and created_by != owner_id:
        await link_user_to_company(db, created_by, company.id, MembershipSource.CREATOR)
    return company


async def get_linked_company_ids(db: AsyncSession, user_id: str) -> list[int]:
    result = await db.execute(
        select(CompanyMembership.company_id)
        .where(CompanyMembership.user_id == user_id)
        .order_by(CompanyMembership.company_id)
    )
    return list(result.scalars().all())


async def require_linked_company_ids(db: AsyncSession, user_id: str) -> list[int]:
    company_ids = await get_linked_company_ids(db, user_id)
    if not company_ids:
        raise NotFound("لم يتم العثور على شركة مرتبطة بحسابك")
    return company_ids


async def ensure_company_operator(db: AsyncSession, user_id: str, company_id: int) -> Company:
    """Return the company if `user_id` may act for it, else raise."""
    company = await db.get(Company, company_id)
    if company is None:
        raise NotFound("الشركة غير موجودة")

    if company_id not in await get_linked_company_ids(db, user_id):
        logger.warning("operator_forbidden", user_id=user_id, company_id=company_id)
        raise AuthorizationError("ليس لديك صلاحية لإدارة حجوزات هذه الشركة")
    return company


def operator_recipient(company: Company) -> Optional[str]:
    """Identity that receives operator-facing booking notifications."""
    return company.owner_id or company.created_by
