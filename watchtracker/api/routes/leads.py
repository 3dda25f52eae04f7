"""
Sales lead endpoints.
"""
import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import func

from watchtracker.core.auth_dependency import get_db, get_current_user
from watchtracker.db.models.user import User
from watchtracker.db.models.lead import Lead, LEAD_STATUSES
from watchtracker.db.models.contact import Contact
from watchtracker.schemas.lead import (
    LeadCreate,
    LeadStatusUpdate,
    LeadResponse,
    LeadStats,
    LeadListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["Leads"])


def get_owned_lead(db: Session, user: User, lead_id: int) -> Lead:
    lead = db.query(Lead).filter(Lead.id == lead_id, Lead.user_id == user.id).first()
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead


def check_contact(db: Session, user: User, contact_id: Optional[int]) -> None:
    if contact_id is None:
        return
    if not db.query(Contact.id).filter(Contact.id == contact_id, Contact.user_id == user.id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid contact selected")


def lead_response(lead: Lead) -> LeadResponse:
    response = LeadResponse.model_validate(lead)
    response.contact_name = lead.contact.display_name if lead.contact else None
    return response


@router.get("", response_model=LeadListResponse)
def list_leads(
    status_filter: Optional[str] = Query(None, alias="status"),
    contact_id: Optional[int] = Query(None),
    has_reminder: Optional[bool] = Query(None),
    overdue: Optional[bool] = Query(None, description="Only leads whose reminder date has passed"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        query = db.query(Lead).filter(Lead.user_id == user.id)

        if status_filter:
            query = query.filter(Lead.status == status_filter)
        if contact_id is not None:
            query = query.filter(Lead.contact_id == contact_id)
        if has_reminder is True:
            query = query.filter(Lead.reminder_date.isnot(None))
        elif has_reminder is False:
            query = query.filter(Lead.reminder_date.is_(None))
        if overdue:
            query = query.filter(Lead.reminder_date < date.today())

        total = query.count()
        leads = (
            query.order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return LeadListResponse(
            leads=[lead_response(lead) for lead in leads],
            pagination={
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if total else 0,
            },
        )

    except Exception as e:
        logger.error(f"Failed to list leads: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch leads"
        )


@router.get("/stats", response_model=LeadStats)
def lead_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Counts per status plus overdue, due-today and next-seven-days reminders."""
    today = date.today()
    base = db.query(Lead).filter(Lead.user_id == user.id)

    by_status = {lead_status: 0 for lead_status in LEAD_STATUSES}
    rows = (
        db.query(Lead.status, func.count(Lead.id))
        .filter(Lead.user_id == user.id)
        .group_by(Lead.status)
        .all()
    )
    for lead_status, count in rows:
        by_status[lead_status] = count

    return LeadStats(
        total=base.count(),
        by_status=by_status,
        overdue_reminders=base.filter(Lead.reminder_date < today).count(),
        today_reminders=base.filter(Lead.reminder_date == today).count(),
        upcoming_reminders=base.filter(Lead.reminder_date > today).count(),
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=LeadResponse)
def create_lead(
    lead_data: LeadCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    check_contact(db, user, lead_data.contact_id)

    try:
        lead = Lead(user_id=user.id, **lead_data.model_dump())
        db.add(lead)
        db.commit()
        db.refresh(lead)

        logger.info(f"Lead created: lead_id={lead.id}, user_id={user.id}")

        return lead_response(lead)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create lead: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create lead"
        )


@router.get("/{lead_id}", response_model=LeadResponse)
def get_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return lead_response(get_owned_lead(db, user, lead_id))


@router.put("/{lead_id}", response_model=LeadResponse)
def update_lead(
    lead_id: int,
    lead_data: LeadCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    lead = get_owned_lead(db, user, lead_id)
    check_contact(db, user, lead_data.contact_id)

    try:
        for field, value in lead_data.model_dump().items():
            setattr(lead, field, value)
        db.commit()
        db.refresh(lead)

        logger.info(f"Lead updated: lead_id={lead.id}, user_id={user.id}")

        return lead_response(lead)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update lead: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update lead"
        )


@router.patch("/{lead_id}/status", response_model=LeadResponse)
def update_lead_status(
    lead_id: int,
    payload: LeadStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    lead = get_owned_lead(db, user, lead_id)

    try:
        lead.status = payload.status
        db.commit()
        db.refresh(lead)

        logger.info(f"Lead status changed: lead_id={lead.id}, status={lead.status}")

        return lead_response(lead)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update lead status: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update lead status"
        )


@router.delete("/{lead_id}")
def delete_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    lead = get_owned_lead(db, user, lead_id)

    try:
        db.delete(lead)
        db.commit()

        logger.info(f"Lead deleted: lead_id={lead_id}, user_id={user.id}")

        return {"message": "Lead deleted successfully"}

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete lead: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete lead"
        )
