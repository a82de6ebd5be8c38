from typing import Any, Dict, List, Optional, Sequence

from hireit.core.exceptions import MalformedRecordError
from hireit.models.schemas import PartyRole, PostType, TransactionRecord, TransactionStatus

TRANSACTIONS_COLLECTION = "transactions"

# Canonical snake_case key first; the rest are the names older endpoints wrote.
FIELD_SYNONYMS: Dict[str, Sequence[str]] = {
    "client_id": ("client_id", "clientId", "ClientId", "ApplicantId"),
    "client_name": ("client_name", "clientName", "ClientName", "ApplicantName"),
    "freelancer_id": ("freelancer_id", "freelancerId", "FreelancerId", "ServiceOwnerId"),
    "freelancer_name": ("freelancer_name", "freelancerName", "FreelancerName", "ServiceOwnerName"),
    "post_type": ("post_type", "postType", "PostType"),
    "user_role": ("user_role", "userRole", "UserRole"),
    "application_id": ("application_id", "applicationId", "ApplicationId"),
    "transaction_id": ("transaction_id", "transactionId", "TransactionId"),
    "service_title": ("service_title", "serviceTitle", "ServiceTitle"),
    "amount": ("amount", "Amount", "ServicePrice", "price"),
    "status": ("status", "Status", "TransactionStatus"),
    "payment_method": ("payment_method", "paymentMethod", "PaymentMethod"),
    "reference_number": ("reference_number", "referenceNumber", "ReferenceNumber"),
}

def _first_present(raw: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None

def normalize_transaction_record(raw: Dict[str, Any], application_id: Optional[str] = None) -> TransactionRecord:
    """
    Map a raw transaction payload onto the canonical TransactionRecord.

    ``application_id`` (usually the Firestore document id) is used when the
    payload does not carry one itself.
    """
    values = {field: _first_present(raw, keys) for field, keys in FIELD_SYNONYMS.items()}

    missing = [field for field in ("client_id", "freelancer_id") if values[field] is None]
    if missing:
        raise MalformedRecordError(
            f"Transaction {values['application_id'] or application_id or raw.get('id')} is missing {', '.join(missing)}"
        )

    post_type = str(values["post_type"] or PostType.FREELANCER.value).lower()
    values["post_type"] = post_type if post_type in {p.value for p in PostType} else PostType.FREELANCER.value

    user_role = str(values["user_role"] or "").lower()
    values["user_role"] = user_role if user_role in {r.value for r in PartyRole} else None

    if values["application_id"] is None:
        values["application_id"] = application_id or raw.get("id")
    if values["application_id"] is not None:
        values["application_id"] = str(values["application_id"])

    if values["status"] is None:
        values["status"] = TransactionStatus.PENDING.value

    return TransactionRecord(**values)

def load_transaction_record(firestore_ops, application_id: str) -> Optional[TransactionRecord]:
    """Fetch and normalize the transaction stored under ``application_id``; None when absent."""
    raw = firestore_ops.get(collection_name=TRANSACTIONS_COLLECTION, document_id=str(application_id))
    if not raw:
        return None
    return normalize_transaction_record(raw, application_id=str(application_id))

def id_query_values(user_id: Any) -> List[Any]:
    """Firestore equality is type-sensitive, so a numeric id is looked up both as int and as str."""
    values = [user_id]
    text = str(user_id)
    if isinstance(user_id, str) and text.isdigit():
        values.append(int(text))
    elif isinstance(user_id, int):
        values.append(text)
    return values
