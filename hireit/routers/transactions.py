from fastapi import APIRouter, HTTPException, Depends, status
from typing import List
from loguru import logger

from hireit.models.schemas import (
    Notification, PartyRole, PaymentMethod, StatusUpdate, TransactionDetail,
    TransactionRecord, TransactionStatus, TransactionSummary,
)
from hireit.db.firebase_ops import get_firestore_ops_instance, FirestoreBaseModel
from hireit.db.records import TRANSACTIONS_COLLECTION, load_transaction_record, normalize_transaction_record
from hireit.core.exceptions import MalformedRecordError, NotAPartyError, SelfReviewError
from hireit.core.roles import ids_match, resolve_roles
from hireit.core.security import get_current_user_id

router = APIRouter(prefix="/transactions", tags=["Transactions"])

FACE_TO_FACE_REFERENCE = "Face to Face Payment"

def build_transaction_detail(record: TransactionRecord, current_user_id: str) -> TransactionDetail:
    resolved = resolve_roles(record, current_user_id)
    if record.user_role and record.user_role is not resolved.current_user_role:
        logger.warning(
            f"Transaction {record.application_id}: backend hinted role '{record.user_role.value}' "
            f"but user {current_user_id} resolves to '{resolved.current_user_role.value}'"
        )
    return TransactionDetail(
        transaction=record,
        user_role=resolved.current_user_role,
        counter_party=resolved.reviewee,
        payer=record.client,
        payee=record.freelancer,
        can_pay=resolved.current_user_role is PartyRole.CLIENT and record.has_status(TransactionStatus.PENDING),
    )

def _application_sort_key(summary: TransactionSummary):
    application_id = summary.transaction.application_id or ""
    return (application_id.isdigit(), int(application_id) if application_id.isdigit() else application_id)

@router.get("/history", response_model=List[TransactionSummary])
async def get_transaction_history(current_user_id: str = Depends(get_current_user_id)):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()

    # Party ids are stored under several field names, so filter after normalizing.
    raw_transactions = firestore_ops.get_all(collection_name=TRANSACTIONS_COLLECTION)

    summaries: List[TransactionSummary] = []
    for raw in raw_transactions:
        try:
            record = normalize_transaction_record(raw, application_id=raw.get("id"))
            resolved = resolve_roles(record, current_user_id)
        except NotAPartyError:
            continue
        except (SelfReviewError, MalformedRecordError) as e:
            logger.error(f"Skipping transaction {raw.get('id')} in history of user {current_user_id}: {e.message}")
            continue

        existing_reviews = firestore_ops.query(
            collection_name="reviews",
            field="application_id",
            operator="==",
            value=record.application_id
        )
        has_reviewed = any(ids_match(rev.get("reviewer_id"), current_user_id) for rev in existing_reviews)

        summaries.append(TransactionSummary(
            transaction=record,
            user_role=resolved.current_user_role,
            counter_party=resolved.reviewee,
            has_reviewed=has_reviewed,
        ))

    summaries.sort(key=_application_sort_key, reverse=True)
    return summaries

@router.get("/{application_id}", response_model=TransactionDetail)
async def get_transaction(application_id: str, current_user_id: str = Depends(get_current_user_id)):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()

    record = load_transaction_record(firestore_ops, application_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    return build_transaction_detail(record, current_user_id)

def _notify_payment_sent(firestore_ops: FirestoreBaseModel, record: TransactionRecord):
    title = record.service_title or "your service"
    notifications = [
        Notification(
            user_id=record.client_id,
            message=f'Payment sent for service "{title}"',
            type="PAYMENT_SENT",
            details="Your payment has been recorded and is being processed",
        ),
        Notification(
            user_id=record.freelancer_id,
            message=f'New payment received for service "{title}"',
            type="PAYMENT_RECEIVED",
            details="You have received a new payment for your service",
        ),
    ]
    for notification in notifications:
        saved = firestore_ops.save(
            collection_name="notifications",
            data_model=notification.model_dump(mode="json"),
            document_id=str(notification.notification_id)
        )
        if not saved:
            # The payment itself is already recorded.
            logger.warning(f"Could not store {notification.type} notification for user {notification.user_id}")

@router.patch("/{application_id}/status", response_model=TransactionDetail)
async def update_transaction_status(
    application_id: str,
    status_update: StatusUpdate,
    current_user_id: str = Depends(get_current_user_id)
):
    firestore_ops: FirestoreBaseModel = get_firestore_ops_instance()

    record = load_transaction_record(firestore_ops, application_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    resolved = resolve_roles(record, current_user_id)

    if status_update.status == TransactionStatus.SENT.value:
        if resolved.current_user_role is not PartyRole.CLIENT:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the client can record a payment.")
        if not record.has_status(TransactionStatus.PENDING):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Payment can only be recorded for pending transactions (current status: {record.status})."
            )
        if status_update.payment_method is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select a payment method.")
        if status_update.payment_method is PaymentMethod.GCASH and not status_update.reference_number:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter your GCash reference number.")

        updates = {
            "status": TransactionStatus.SENT.value,
            "payment_method": status_update.payment_method.value,
            "reference_number": (
                status_update.reference_number
                if status_update.payment_method is PaymentMethod.GCASH
                else FACE_TO_FACE_REFERENCE
            ),
        }
    else:
        if resolved.current_user_role is not PartyRole.FREELANCER:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the freelancer can confirm receipt of payment.")
        if not record.has_status(TransactionStatus.SENT):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Payment has not been sent yet (current status: {record.status})."
            )
        updates = {"status": TransactionStatus.RECEIVED.value}

    if not firestore_ops.update(collection_name=TRANSACTIONS_COLLECTION, document_id=application_id, updates=updates):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update transaction status.")

    logger.info(f"Transaction {application_id} marked {updates['status']} by user {current_user_id}")

    if updates["status"] == TransactionStatus.SENT.value:
        _notify_payment_sent(firestore_ops, record)

    return build_transaction_detail(record.model_copy(update=updates), current_user_id)
