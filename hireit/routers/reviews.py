from fastapi import APIRouter, HTTPException, Depends, status
from typing import Any, Dict, List
from uuid import UUID
from loguru import logger

from hireit.models.schemas import Party, PartyRole, Review, ReviewCreate, ReviewEligibility, TransactionStatus
from hireit.db.firebase_ops import get_firestore_ops_instance, FirestoreBaseModel
from hireit.db.records import id_query_values, load_transaction_record
from hireit.core.roles import ids_match, resolve_roles
from hireit.core.security import get_current_user_id

router = APIRouter(prefix="/reviews", tags=["Reviews"])

REVIEWS_COLLECTION = "reviews"
REVIEWABLE_STATUSES = (TransactionStatus.RECEIVED, TransactionStatus.COMPLETED)

def _has_reviewed(firestore_ops: FirestoreBaseModel, application_id: str, reviewer_id: Any) -> bool:
    # One review per (application, reviewer); query by application and filter the reviewer here.
    existing_reviews = firestore_ops.query(
        collection_name=REVIEWS_COLLECTION,
        field="application_id",
        operator="==",
        value=application_id
    )
    return any(ids_match(rev.get("reviewer_id"), reviewer_id) for rev in existing_reviews)

def _reviews_by(firestore_ops: FirestoreBaseModel, field: str, user_id: Any) -> List[Review]:
    """Reviews whose ``field`` (reviewer_id or reviewee_id) is ``user_id``, in either stored id type."""
    combined: Dict[UUID, Review] = {}
    for value in id_query_values(user_id):
        for review in firestore_ops.query(
            collection_name=REVIEWS_COLLECTION,
            field=field,
            operator="==",
            value=value,
            pydantic_model=Review
        ):
            combined[review.review_id] = review
    reviews = list(combined.values())
    reviews.sort(key=lambda rev: rev.review_date, reverse=True)
    return reviews

def _update_average_rating(firestore_ops: FirestoreBaseModel, freelancer: Party, review_id: UUID):
    # Same review can come back from both the int and the str lookup.
    combined: Dict[Any, Dict[str, Any]] = {}
    for value in id_query_values(freelancer.id):
        for review_data in firestore_ops.query(
            collection_name=REVIEWS_COLLECTION,
            field="reviewee_id",
            operator="==",
            value=value
        ):
            combined[review_data.get("review_id") or review_data.get("id")] = review_data
    if not combined:
        return

    total_rating = sum(r.get("rating", 0) for r in combined.values())
    new_average_rating = round(total_rating / len(combined), 2)

    profile_update_success = firestore_ops.update(
        collection_name="freelancer_profiles",
        document_id=str(freelancer.id),
        updates={"average_rating": new_average_rating}
    )
    if not profile_update_success:
        logger.warning(f"Review {review_id} saved, but failed to update average rating for freelancer {freelancer.id}.")

@router.get("/eligibility/{application_id}", response_model=ReviewEligibility)
async def check_review_eligibility(application_id: str, current_user_id: str = Depends(get_current_user_id)):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()

    record = load_transaction_record(firestore_ops, application_id)
    if not record:
        return ReviewEligibility(eligible=False, error="Transaction details not found")

    resolved = resolve_roles(record, current_user_id)

    if not record.has_status(*REVIEWABLE_STATUSES):
        return ReviewEligibility(
            eligible=False,
            error=f"Transaction must be completed (current status: {record.status}). You can only review completed transactions."
        )

    if _has_reviewed(firestore_ops, application_id, current_user_id):
        return ReviewEligibility(eligible=False, error="You have already submitted a review for this application")

    return ReviewEligibility(
        eligible=True,
        # The stored role hint is replaced by the resolved role.
        transaction=record.model_copy(update={"user_role": resolved.current_user_role}),
        user_role=resolved.current_user_role,
        reviewee=resolved.reviewee,
    )

@router.post("/", response_model=Review, status_code=status.HTTP_201_CREATED)
async def submit_review(review_in: ReviewCreate, current_user_id: str = Depends(get_current_user_id)):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()

    record = load_transaction_record(firestore_ops, review_in.application_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    # The reviewee always comes from the transaction, never from the request.
    resolved = resolve_roles(record, current_user_id)
    reviewer = record.party(resolved.current_user_role)
    reviewee = resolved.reviewee

    if not record.has_status(*REVIEWABLE_STATUSES):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Transaction is not completed (current status: {record.status}). You can only review completed transactions."
        )

    if _has_reviewed(firestore_ops, review_in.application_id, current_user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You have already submitted a review for this application.")

    review_to_save = Review(
        **review_in.model_dump(),
        reviewer_id=reviewer.id,
        reviewer_role=reviewer.role,
        reviewer_name=reviewer.name,
        reviewee_id=reviewee.id,
        reviewee_role=reviewee.role,
        reviewee_name=reviewee.name,
        service_title=record.service_title,
    )

    saved_review_doc_id = firestore_ops.save(
        collection_name=REVIEWS_COLLECTION,
        data_model=review_to_save.model_dump(mode="json"),
        document_id=str(review_to_save.review_id)
    )
    if not saved_review_doc_id:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save review.")

    logger.info(
        f"Review {review_to_save.review_id} on application {review_in.application_id}: "
        f"{reviewer.role.value} {reviewer.id} rated {reviewee.role.value} {reviewee.id} {review_in.rating}/5"
    )

    if reviewee.role is PartyRole.FREELANCER:
        _update_average_rating(firestore_ops, reviewee, review_to_save.review_id)

    return review_to_save

@router.get("/received", response_model=List[Review])
async def get_received_reviews(current_user_id: str = Depends(get_current_user_id)):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()
    return _reviews_by(firestore_ops, "reviewee_id", current_user_id)

@router.get("/user", response_model=List[Review])
async def get_my_reviews(current_user_id: str = Depends(get_current_user_id)):
    """Reviews the current user has written."""
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()
    return _reviews_by(firestore_ops, "reviewer_id", current_user_id)

@router.get("/user/{user_id}", response_model=List[Review])
async def get_reviews_for_user(user_id: str):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()
    return _reviews_by(firestore_ops, "reviewee_id", user_id)

# Declared last so "/received" and "/user" are matched first.
@router.get("/{review_id}", response_model=Review)
async def get_review(review_id: UUID):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()

    review = firestore_ops.get(collection_name=REVIEWS_COLLECTION, document_id=str(review_id), pydantic_model=Review)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review
