import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..auth import get_admin_permissions, get_current_user, require_permission, require_roles
from ..constants import (
    APPT_COMPLETED,
    REVIEW_APPROVED,
    REVIEW_PENDING,
    ROLE_PET_OWNER,
    ROLE_PROVIDER,
)
from ..database import get_db
from ..models import Appointment, ProviderProfile, Review, User
from ..schemas import (
    MessageResponse,
    ReviewCreate,
    ReviewModeration,
    ReviewResponse,
    ReviewResponseCreate,
    ReviewUpdate,
)
from ..services.audit_service import log_admin_action
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def recompute_provider_rating(db: Session, profile_id: int) -> None:
    """Refresh average_rating and number_of_reviews from approved reviews (caller commits)"""
    count, average = (
        db.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.provider_profile_id == profile_id, Review.moderation_status == REVIEW_APPROVED)
        .one()
    )
    profile = db.query(ProviderProfile).filter(ProviderProfile.id == profile_id).first()
    if profile:
        profile.number_of_reviews = count or 0
        profile.average_rating = round(float(average), 1) if average is not None else None
        logger.info(f"📊 Profile {profile_id} rating {profile.average_rating} over {profile.number_of_reviews} reviews")


def _get_review(db: Session, review_id: int) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    data: ReviewCreate,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    """Review a completed appointment; the review waits for moderation"""
    appointment = db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    if appointment.pet_owner_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only review your own appointments")
    if appointment.status != APPT_COMPLETED:
        raise HTTPException(status_code=400, detail="Only completed appointments can be reviewed")
    if db.query(Review.id).filter(Review.appointment_id == appointment.id).first():
        raise HTTPException(status_code=400, detail="This appointment has already been reviewed")

    review = Review(
        reviewer_id=current_user.id,
        provider_profile_id=appointment.provider_profile_id,
        appointment_id=appointment.id,
        rating=data.rating,
        comment=sanitize_string(data.comment),
        moderation_status=REVIEW_PENDING,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info(f"✅ Review {review.id} submitted for appointment {appointment.id}")
    return review


@router.get("/provider/{profile_id}", response_model=list[ReviewResponse])
async def get_provider_reviews(profile_id: int, db: Session = Depends(get_db)):
    if not db.query(ProviderProfile.id).filter(ProviderProfile.id == profile_id).first():
        raise HTTPException(status_code=404, detail="Provider profile not found")
    return (
        db.query(Review)
        .options(joinedload(Review.reviewer))
        .filter(Review.provider_profile_id == profile_id, Review.moderation_status == REVIEW_APPROVED)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


@router.get("/my-reviews", response_model=list[ReviewResponse])
async def get_my_reviews(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(Review)
        .filter(Review.reviewer_id == current_user.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


@router.get("/pending", response_model=list[ReviewResponse])
async def get_pending_reviews(
    current_user: User = Depends(require_permission("reviews:moderate")),
    db: Session = Depends(get_db),
):
    return (
        db.query(Review)
        .options(joinedload(Review.reviewer))
        .filter(Review.moderation_status == REVIEW_PENDING)
        .order_by(Review.created_at.asc(), Review.id.asc())
        .all()
    )


@router.put("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: int,
    data: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Edits go back to the moderation queue"""
    review = _get_review(db, review_id)
    if review.reviewer_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only edit your own reviews")

    was_approved = review.moderation_status == REVIEW_APPROVED
    if data.rating is not None:
        review.rating = data.rating
    if data.comment is not None:
        review.comment = sanitize_string(data.comment)
    review.moderation_status = REVIEW_PENDING
    db.flush()
    if was_approved:
        recompute_provider_rating(db, review.provider_profile_id)
    db.commit()
    db.refresh(review)
    return review


@router.put("/{review_id}/moderate", response_model=ReviewResponse)
async def moderate_review(
    review_id: int,
    data: ReviewModeration,
    current_user: User = Depends(require_permission("reviews:moderate")),
    db: Session = Depends(get_db),
):
    review = _get_review(db, review_id)
    previous = review.moderation_status
    review.moderation_status = data.status
    review.moderator_notes = sanitize_string(data.moderator_notes)
    db.flush()
    if REVIEW_APPROVED in (previous, data.status):
        recompute_provider_rating(db, review.provider_profile_id)
    db.commit()
    db.refresh(review)

    log_admin_action(
        db,
        current_user,
        "ReviewContent",
        review.reviewer_id,
        review.moderator_notes,
        {"review_id": review.id, "status": data.status},
    )
    return review


@router.post("/{review_id}/respond", response_model=ReviewResponse)
async def respond_to_review(
    review_id: int,
    data: ReviewResponseCreate,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    review = _get_review(db, review_id)
    if review.provider_profile.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only respond to reviews of your own profile")
    if review.moderation_status != REVIEW_APPROVED:
        raise HTTPException(status_code=400, detail="Only approved reviews can receive a response")

    review.provider_response_comment = sanitize_string(data.response_comment)
    review.provider_response_date = datetime.utcnow()
    db.commit()
    db.refresh(review)
    return review


@router.delete("/{review_id}", response_model=MessageResponse)
async def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Reviewers delete their own reviews; moderators delete any review"""
    review = _get_review(db, review_id)
    is_moderator = "reviews:moderate" in get_admin_permissions(current_user)
    if review.reviewer_id != current_user.id and not is_moderator:
        raise HTTPException(status_code=403, detail="You can only delete your own reviews")

    profile_id = review.provider_profile_id
    reviewer_id = review.reviewer_id
    was_approved = review.moderation_status == REVIEW_APPROVED
    db.delete(review)
    db.flush()
    if was_approved:
        recompute_provider_rating(db, profile_id)
    db.commit()

    if is_moderator and reviewer_id != current_user.id:
        log_admin_action(db, current_user, "DeleteContent", reviewer_id, None, {"review_id": review_id})
    return {"message": "Review deleted"}
