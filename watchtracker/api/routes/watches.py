"""
Watch inventory endpoints.

CRUD over the authenticated user's watches, change history, profit metrics,
100K goal progress and spreadsheet import.
"""
import json
import logging
import math
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File, Form
from sqlalchemy.orm import Session
from sqlalchemy import or_

from watchtracker.core.auth_dependency import get_db, get_current_user
from watchtracker.db.models.user import User
from watchtracker.db.models.watch import Watch, WatchHistory
from watchtracker.db.models.contact import Contact
from watchtracker.schemas.watch import (
    WatchCreate,
    WatchResponse,
    WatchListResponse,
    Pagination,
    BulkDeleteRequest,
    WatchHistoryEntry,
    WatchMetrics,
    GoalProgress,
)
from watchtracker.services import import_service
from watchtracker.services.import_service import ImportFileError
from watchtracker.services.metrics_service import summarize_metrics, goal_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/watches", tags=["Watches"])

SORTABLE_COLUMNS = {
    "in_date": Watch.in_date,
    "date_sold": Watch.date_sold,
    "brand": Watch.brand,
    "model": Watch.model,
    "reference_number": Watch.reference_number,
    "purchase_price": Watch.purchase_price,
    "price_sold": Watch.price_sold,
    "created_at": Watch.created_at,
    "updated_at": Watch.updated_at,
}

PREVIEW_ROWS = 10


def get_owned_watch(db: Session, user: User, watch_id: int) -> Watch:
    watch = db.query(Watch).filter(Watch.id == watch_id, Watch.user_id == user.id).first()
    if not watch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Watch not found")
    return watch


def check_contact_ownership(db: Session, user: User, data: WatchCreate) -> None:
    """Buyer and seller must be contacts of the same user."""
    for contact_id in (data.buyer_contact_id, data.seller_contact_id):
        if contact_id is None:
            continue
        owned = db.query(Contact.id).filter(Contact.id == contact_id, Contact.user_id == user.id).first()
        if not owned:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid contact selected")


def _history_value(value) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


@router.get("", response_model=WatchListResponse)
def list_watches(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    sort_by: str = Query("in_date"),
    sort_order: str = Query("desc"),
    brand: Optional[str] = Query(None, description="Case-insensitive brand substring"),
    status_filter: Optional[str] = Query(None, alias="status", description="sold | unsold"),
    search: Optional[str] = Query(None, description="Search brand, model, reference, serial and notes"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the user's watches with filtering, sorting and pagination."""
    try:
        query = db.query(Watch).filter(Watch.user_id == user.id)

        if brand:
            query = query.filter(Watch.brand.ilike(f"%{brand}%"))

        if status_filter == "sold":
            query = query.filter(Watch.date_sold.isnot(None))
        elif status_filter == "unsold":
            query = query.filter(Watch.date_sold.is_(None))

        if search:
            term = f"%{search}%"
            query = query.filter(
                or_(
                    Watch.brand.ilike(term),
                    Watch.model.ilike(term),
                    Watch.reference_number.ilike(term),
                    Watch.serial_number.ilike(term),
                    Watch.notes.ilike(term),
                )
            )

        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by, Watch.in_date)
        ordering = column.asc() if sort_order.lower() == "asc" else column.desc()
        watches = (
            query.order_by(ordering, Watch.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        logger.debug(f"Watches listed: user_id={user.id}, total={total}, page={page}")

        return WatchListResponse(
            watches=[WatchResponse.model_validate(watch) for watch in watches],
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                totalPages=math.ceil(total / limit) if total else 0,
            ),
        )

    except Exception as e:
        logger.error(f"Failed to list watches: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch watches"
        )


@router.post("/bulk-delete")
def bulk_delete_watches(
    payload: BulkDeleteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete several watches at once. IDs belonging to other users are ignored."""
    try:
        deleted = (
            db.query(Watch)
            .filter(Watch.user_id == user.id, Watch.id.in_(payload.watchIds))
            .delete(synchronize_session=False)
        )
        db.commit()

        logger.info(f"Watches bulk-deleted: user_id={user.id}, requested={len(payload.watchIds)}, deleted={deleted}")

        return {
            "message": f"Successfully deleted {deleted} watch(es)",
            "deletedCount": deleted,
        }

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to bulk delete watches: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete watches"
        )


@router.get("/metrics", response_model=WatchMetrics)
def get_metrics(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Total and average profit plus average hold time over sold watches."""
    watches = db.query(Watch).filter(Watch.user_id == user.id).all()
    return WatchMetrics(**summarize_metrics(watches))


@router.get("/goal", response_model=GoalProgress)
def get_goal_progress(
    year: Optional[int] = Query(None, ge=1900, le=2100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Progress toward the 100K yearly profit goal."""
    watches = (
        db.query(Watch)
        .filter(Watch.user_id == user.id, Watch.date_sold.isnot(None))
        .all()
    )
    return GoalProgress(**goal_progress(watches, year=year))


# ---------------------------------------------------------------------------
# Spreadsheet import
# ---------------------------------------------------------------------------

def _read_upload(file: UploadFile, mapping: Optional[str]):
    content = file.file.read(import_service.MAX_FILE_SIZE + 1)
    try:
        sheet = import_service.parse_upload(file.filename, content)
    except ImportFileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    overrides = None
    if mapping:
        try:
            overrides = json.loads(mapping)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid mapping JSON")
        if not isinstance(overrides, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid mapping JSON")

    return sheet, overrides


@router.post("/import/preview")
def preview_import(
    file: UploadFile = File(...),
    mapping: Optional[str] = Form(None, description="JSON object of column -> field overrides"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Parse an uploaded CSV/XLSX and report what an import would do.

    Nothing is written. Returns the column mapping, the first valid rows,
    every error and warning, and duplicates of existing reference numbers.
    """
    sheet, overrides = _read_upload(file, mapping)
    mappings, result = import_service.build_preview(db, user, sheet, overrides)

    logger.info(
        f"Import preview: user_id={user.id}, file={sheet.file_name}, rows={len(sheet.rows)}, "
        f"valid={len(result.valid_rows)}"
    )

    return {
        "fileName": sheet.file_name,
        "headers": sheet.headers,
        "mappings": [m.model_dump() for m in mappings],
        "preview": [
            {"row": row.row, "duplicateOf": row.duplicate_of, **row.values}
            for row in result.valid_rows[:PREVIEW_ROWS]
        ],
        "errors": [issue.model_dump() for issue in result.errors],
        "duplicates": [dup.model_dump() for dup in result.duplicates],
        "summary": result.summary(len(sheet.rows)),
    }


@router.post("/import")
def import_watches(
    file: UploadFile = File(...),
    mapping: Optional[str] = Form(None),
    skip_duplicates: bool = Form(True),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Import every valid row of an uploaded spreadsheet in a single transaction."""
    sheet, overrides = _read_upload(file, mapping)
    _, result = import_service.build_preview(db, user, sheet, overrides)

    if not result.valid_rows:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "No valid rows to import",
                "errors": [issue.model_dump() for issue in result.errors],
                "summary": result.summary(len(sheet.rows)),
            },
        )

    try:
        outcome = import_service.commit_import(db, user, result, skip_duplicates=skip_duplicates)
    except Exception as e:
        logger.error(f"Watch import failed for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import watches"
        )

    return {
        "success": True,
        "message": f"Successfully imported {outcome['importedCount']} watch(es)",
        **outcome,
        "errors": [issue.model_dump() for issue in result.errors],
        "summary": result.summary(len(sheet.rows)),
    }


# ---------------------------------------------------------------------------
# Single watch
# ---------------------------------------------------------------------------

@router.post("", status_code=status.HTTP_201_CREATED, response_model=WatchResponse)
def create_watch(
    watch_data: WatchCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    check_contact_ownership(db, user, watch_data)

    try:
        watch = Watch(user_id=user.id, **watch_data.model_dump())
        db.add(watch)
        db.flush()
        db.add(WatchHistory(watch_id=watch.id, user_id=user.id, action="created"))
        db.commit()
        db.refresh(watch)

        logger.info(f"Watch created: watch_id={watch.id}, user_id={user.id}, reference={watch.reference_number}")

        return WatchResponse.model_validate(watch)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create watch: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create watch"
        )


@router.get("/{watch_id}", response_model=WatchResponse)
def get_watch(
    watch_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return WatchResponse.model_validate(get_owned_watch(db, user, watch_id))


@router.put("/{watch_id}", response_model=WatchResponse)
def update_watch(
    watch_id: int,
    watch_data: WatchCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace every editable field. One ``updated`` history row is written per changed field."""
    watch = get_owned_watch(db, user, watch_id)
    check_contact_ownership(db, user, watch_data)

    try:
        changes: List[WatchHistory] = []
        for field, new_value in watch_data.model_dump().items():
            old_value = getattr(watch, field)
            if old_value != new_value:
                changes.append(WatchHistory(
                    watch_id=watch.id,
                    user_id=user.id,
                    action="updated",
                    field_name=field,
                    old_value=_history_value(old_value),
                    new_value=_history_value(new_value),
                ))
                setattr(watch, field, new_value)

        db.add_all(changes)
        db.commit()
        db.refresh(watch)

        logger.info(f"Watch updated: watch_id={watch.id}, user_id={user.id}, changed_fields={len(changes)}")

        return WatchResponse.model_validate(watch)

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update watch: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update watch"
        )


@router.delete("/{watch_id}")
def delete_watch(
    watch_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    watch = get_owned_watch(db, user, watch_id)

    try:
        db.delete(watch)
        db.commit()

        logger.info(f"Watch deleted: watch_id={watch_id}, user_id={user.id}")

        return {"message": "Watch deleted successfully"}

    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete watch: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete watch"
        )


@router.get("/{watch_id}/history")
def get_watch_history(
    watch_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    watch = get_owned_watch(db, user, watch_id)
    history = (
        db.query(WatchHistory)
        .filter(WatchHistory.watch_id == watch.id, WatchHistory.user_id == user.id)
        .order_by(WatchHistory.changed_at.desc(), WatchHistory.id.desc())
        .all()
    )
    return {
        "watch": WatchResponse.model_validate(watch),
        "history": [WatchHistoryEntry.model_validate(entry) for entry in history],
    }
