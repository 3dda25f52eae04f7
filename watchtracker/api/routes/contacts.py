"""
Contact (CRM) endpoints, including display-only cards and the watches a
contact has bought or sold.
"""
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_

from watchtracker.core.auth_dependency import get_db, get_current_user
from watchtracker.db.models.user import User
from watchtracker.db.models.contact import Contact, Card
from watchtracker.db.models.watch import Watch
from watchtracker.schemas.contact import (
    ContactCreate,
    ContactResponse,
    ContactDetailResponse,
    CardCreate,
    CardResponse,
)
from watchtracker.schemas.watch import WatchResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["Contacts"])

SORTABLE_COLUMNS = {
    "first_name": Contact.first_name,
    "last_name": Contact.last_name,
    "email": Contact.email,
    "business_name": Contact.business_name,
    "contact_type": Contact.contact_type,
    "created_at": Contact.created_at,
}


def get_owned_contact(db: Session, user: User, contact_id: int) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id, Contact.user_id == user.id).first()
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return contact


@router.get("")
def list_contacts(
    contact_type: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = Query(None, description="Search name, email and business"),
    sort_by: str = Query("first_name"),
    sort_order: str = Query("asc"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        query = db.query(Contact).filter(Contact.user_id == user.id)

        if contact_type:
            query = query.filter(Contact.contact_type == contact_type)

        if search:
            term = f"%{search}%"
            query = query.filter(
                or_(
                    Contact.first_name.ilike(term),
                    Contact.last_name.ilike(term),
                    Contact.email.ilike(term),
                    Contact.business_name.ilike(term),
                )
            )

        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by, Contact.first_name)
        ordering = column.desc() if sort_order.lower() == "desc" else column.asc()
        contacts = query.order_by(ordering, Contact.id).offset((page - 1) * limit).limit(limit).all()

        return {
            "contacts": [ContactResponse.model_validate(contact) for contact in contacts],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if total else 0,
            },
        }

    except Exception as e:
        logger.error(f"Failed to list contacts: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch contacts"
        )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ContactResponse)
def create_contact(
    contact_data: ContactCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        contact = Contact(user_id=user.id, **contact_data.model_dump())
        db.add(contact)
        db.commit()
        db.refresh(contact)

        logger.info(f"Contact created: contact_id={contact.id}, user_id={user.id}")

        return ContactResponse.model_validate(contact)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create contact: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create contact"
        )


@router.get("/{contact_id}", response_model=ContactDetailResponse)
def get_contact(
    contact_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ContactDetailResponse.model_validate(get_owned_contact(db, user, contact_id))


@router.put("/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    contact_data: ContactCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contact = get_owned_contact(db, user, contact_id)

    try:
        for field, value in contact_data.model_dump().items():
            setattr(contact, field, value)
        db.commit()
        db.refresh(contact)

        logger.info(f"Contact updated: contact_id={contact.id}, user_id={user.id}")

        return ContactResponse.model_validate(contact)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update contact: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update contact"
        )


@router.delete("/{contact_id}")
def delete_contact(
    contact_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a contact. Its cards go with it; watches and leads keep their rows with the link cleared."""
    contact = get_owned_contact(db, user, contact_id)

    try:
        db.delete(contact)
        db.commit()

        logger.info(f"Contact deleted: contact_id={contact_id}, user_id={user.id}")

        return {"message": "Contact deleted successfully"}

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete contact: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete contact"
        )


@router.get("/{contact_id}/watches")
def get_contact_watches(
    contact_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Watches bought from (contact was seller) and sold to (contact was buyer) this contact."""
    contact = get_owned_contact(db, user, contact_id)

    base = db.query(Watch).filter(Watch.user_id == user.id)
    bought = base.filter(Watch.seller_contact_id == contact.id).order_by(Watch.in_date.desc()).all()
    sold = base.filter(Watch.buyer_contact_id == contact.id).order_by(Watch.date_sold.desc()).all()

    return {
        "bought": [WatchResponse.model_validate(watch) for watch in bought],
        "sold": [WatchResponse.model_validate(watch) for watch in sold],
    }


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------

@router.get("/{contact_id}/cards")
def list_cards(
    contact_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contact = get_owned_contact(db, user, contact_id)
    return {"cards": [CardResponse.model_validate(card) for card in contact.cards]}


@router.post("/{contact_id}/cards", status_code=status.HTTP_201_CREATED, response_model=CardResponse)
def add_card(
    contact_id: int,
    card_data: CardCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    contact = get_owned_contact(db, user, contact_id)

    try:
        card = Card(
            user_id=user.id,
            contact_id=contact.id,
            cardholder_name=card_data.cardholder_name,
            last4=card_data.last4,
            expiry_month=card_data.expiry_month,
            expiry_year=card_data.expiry_year,
        )
        db.add(card)
        db.commit()
        db.refresh(card)

        logger.info(f"Card added: card_id={card.id}, contact_id={contact.id}, user_id={user.id}")

        return CardResponse.model_validate(card)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to add card: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add card"
        )


@router.delete("/{contact_id}/cards/{card_id}")
def delete_card(
    contact_id: int,
    card_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    card = (
        db.query(Card)
        .filter(Card.id == card_id, Card.contact_id == contact_id, Card.user_id == user.id)
        .first()
    )
    if not card:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Card not found")

    try:
        db.delete(card)
        db.commit()

        logger.info(f"Card deleted: card_id={card_id}, contact_id={contact_id}, user_id={user.id}")

        return {"message": "Card deleted successfully"}

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete card: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete card"
        )
