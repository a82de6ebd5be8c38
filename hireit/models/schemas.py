from typing import Optional, Literal, Union
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4

# Party ids are integers upstream but may arrive string-encoded (token subjects, some endpoints).
PartyId = Union[int, str]

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class PartyRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"

    @property
    def other(self) -> "PartyRole":
        return PartyRole.FREELANCER if self is PartyRole.CLIENT else PartyRole.CLIENT

class PostType(str, Enum):
    CLIENT = "client" # a client posted a job request, a freelancer applied
    FREELANCER = "freelancer" # a freelancer posted a service, a client bought it

class TransactionStatus(str, Enum):
    PENDING = "Pending"
    SENT = "Sent"
    RECEIVED = "Received"
    COMPLETED = "Completed" # legacy synonym of Received
    FAILED = "Failed"

class PaymentMethod(str, Enum):
    GCASH = "GCash"
    FACE_TO_FACE = "Face to Face"

class Party(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: PartyId
    name: Optional[str] = None
    role: PartyRole

class TransactionRecord(BaseModel):
    """Canonical transaction shape, produced once at the Firestore boundary."""
    model_config = ConfigDict(frozen=True)

    post_type: PostType = PostType.FREELANCER
    client_id: PartyId
    client_name: Optional[str] = None
    freelancer_id: PartyId
    freelancer_name: Optional[str] = None
    user_role: Optional[PartyRole] = None # backend hint, never authoritative

    application_id: Optional[str] = None
    transaction_id: Optional[PartyId] = None
    service_title: Optional[str] = None
    amount: Optional[float] = None
    status: str = TransactionStatus.PENDING.value
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None

    @property
    def client(self) -> Party:
        return Party(id=self.client_id, name=self.client_name, role=PartyRole.CLIENT)

    @property
    def freelancer(self) -> Party:
        return Party(id=self.freelancer_id, name=self.freelancer_name, role=PartyRole.FREELANCER)

    def party(self, role: PartyRole) -> Party:
        return self.client if role is PartyRole.CLIENT else self.freelancer

    def has_status(self, *statuses: TransactionStatus) -> bool:
        return (self.status or "").lower() in {s.value.lower() for s in statuses}

class ResolvedRoleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_user_role: PartyRole
    reviewee: Party

class TransactionDetail(BaseModel):
    transaction: TransactionRecord
    user_role: PartyRole
    counter_party: Party
    payer: Party # the client pays
    payee: Party # the freelancer is paid
    can_pay: bool = False

class TransactionSummary(BaseModel):
    transaction: TransactionRecord
    user_role: PartyRole
    counter_party: Party
    has_reviewed: bool = False

class StatusUpdate(BaseModel):
    status: Literal["Sent", "Received"]
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = None

class ReviewBase(BaseModel):
    rating: int = Field(ge=1, le=5)
    review_text: Optional[str] = None

class ReviewCreate(ReviewBase):
    application_id: str

class Review(ReviewBase):
    review_id: UUID = Field(default_factory=uuid4)
    application_id: str
    reviewer_id: PartyId
    reviewer_role: PartyRole
    reviewer_name: Optional[str] = None
    reviewee_id: PartyId
    reviewee_role: PartyRole
    reviewee_name: Optional[str] = None
    service_title: Optional[str] = None
    review_date: datetime = Field(default_factory=utcnow)

class ReviewEligibility(BaseModel):
    eligible: bool
    error: Optional[str] = None
    transaction: Optional[TransactionRecord] = None
    user_role: Optional[PartyRole] = None
    reviewee: Optional[Party] = None

class NotificationBase(BaseModel):
    message: str
    type: Literal["PAYMENT_SENT", "PAYMENT_RECEIVED"]
    details: Optional[str] = None
    action_link: Optional[str] = "/transaction-history"
    read_status: bool = False

class Notification(NotificationBase):
    notification_id: UUID = Field(default_factory=uuid4)
    user_id: PartyId
    creation_date: datetime = Field(default_factory=utcnow)

