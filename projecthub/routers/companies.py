from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from projecthub.db.session import get_db
from projecthub.models.work import Company
from projecthub.routers.common import Pagination, get_or_404, paginate, pagination
from projecthub.schemas.common import Message, Page
from projecthub.schemas.work import CompanyIn, CompanyOut, CompanyUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/company", tags=["companies"])


@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(body: CompanyIn, db: Session = Depends(get_db)) -> Company:
    company = Company(name=body.name.strip(), address=body.address)
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info("Company created id=%s", company.id)
    return company


@router.get("", response_model=Page[CompanyOut])
def list_companies(
    search: str | None = Query(default=None),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[CompanyOut]:
    stmt = select(Company).order_by(Company.name)
    if search:
        stmt = stmt.where(Company.name.ilike(f"%{search}%"))
    rows, total = paginate(db, stmt, paging)
    return Page.build([CompanyOut.model_validate(c) for c in rows], total, paging.page, paging.limit)


@router.get("/{company_id}", response_model=CompanyOut)
def get_company(company_id: int, db: Session = Depends(get_db)) -> Company:
    return get_or_404(db, Company, company_id, "Company")


@router.put("/{company_id}", response_model=CompanyOut)
def update_company(company_id: int, body: CompanyUpdate, db: Session = Depends(get_db)) -> Company:
    company = get_or_404(db, Company, company_id, "Company")
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(company, key, value)
    db.commit()
    db.refresh(company)
    return company


@router.delete("/{company_id}", response_model=Message)
def delete_company(company_id: int, db: Session = Depends(get_db)) -> Message:
    company = get_or_404(db, Company, company_id, "Company")
    for project in company.projects:
        project.company_id = None
    db.delete(company)
    db.commit()
    logger.info("Company deleted id=%s", company_id)
    return Message(message="Company deleted successfully")
