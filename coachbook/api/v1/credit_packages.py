from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.api.deps import get_current_user
from coachbook.core.errors import ConflictError, NotFoundError
from coachbook.db.models.credit import CreditPackage, CreditPurchase
from coachbook.db.models.user import User
from coachbook.db.session import get_db
from coachbook.schemas.catalog import CreditPackageCreate, CreditPackagePublic
from coachbook.schemas.common import Envelope, OkEnvelope
from coachbook.schemas.user import PurchaseRecord

router = APIRouter(prefix="/credit-package", tags=["credit-packages"])


@router.get("", response_model=Envelope[list[CreditPackagePublic]])
async def list_packages(db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(CreditPackage).order_by(CreditPackage.created_at))
    return Envelope(data=[CreditPackagePublic.model_validate(p) for p in res.scalars().all()])


@router.post("", response_model=Envelope[CreditPackagePublic])
async def create_package(body: CreditPackageCreate, db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(CreditPackage).where(CreditPackage.name == body.name))
    if res.scalar_one_or_none() is not None:
        raise ConflictError()

    package = CreditPackage(name=body.name, credit_amount=body.credit_amount, price=body.price)
    db.add(package)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError()
    await db.refresh(package)
    return Envelope(data=CreditPackagePublic.model_validate(package))


@router.delete("/{credit_package_id}", response_model=OkEnvelope)
async def delete_package(credit_package_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        res = await db.execute(delete(CreditPackage).where(CreditPackage.id == credit_package_id))
        await db.commit()
    except IntegrityError:
        # Purchases are immutable ledger rows and keep their package.
        await db.rollback()
        raise ConflictError("組合包已被購買，無法刪除")

    if res.rowcount == 0:
        raise NotFoundError("id 不存在")
    return OkEnvelope()


@router.post(
    "/{credit_package_id}",
    response_model=Envelope[PurchaseRecord],
    status_code=status.HTTP_201_CREATED,
)
async def purchase_package(
    credit_package_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    package = await db.get(CreditPackage, credit_package_id)
    if package is None:
        raise NotFoundError("ID錯誤")

    purchase = CreditPurchase(
        user_id=current_user.id,
        credit_package_id=package.id,
        purchased_credits=package.credit_amount,
        price_paid=package.price,
        purchase_at=datetime.now(timezone.utc),
    )
    db.add(purchase)
    await db.commit()

    return Envelope(
        data=PurchaseRecord(
            name=package.name,
            purchased_credits=purchase.purchased_credits,
            price_paid=purchase.price_paid,
            purchase_at=purchase.purchase_at,
        )
    )
