"""
Party role resolution for transactions.

Given a canonical TransactionRecord and the current user's id, work out which
role the user plays (client or freelancer) and who the counter-party is. The
client/freelancer assignment is already baked into ``client_id`` and
``freelancer_id``; ``post_type`` and the backend ``user_role`` hint never take
part in the decision.
"""

from typing import Any, Optional

from hireit.core.exceptions import NotAPartyError, SelfReviewError
from hireit.models.schemas import PartyId, PartyRole, ResolvedRoleResult, TransactionRecord


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def ids_match(left: Any, right: Any) -> bool:
    """Numeric equality first, then string equality (upstream mixes 42, "42" and "042")."""
    if left is None or right is None:
        return False
    left_number, right_number = _as_int(left), _as_int(right)
    if left_number is not None and left_number == right_number:
        return True
    return left == right or str(left) == str(right)


def resolve_roles(record: TransactionRecord, current_user_id: PartyId) -> ResolvedRoleResult:
    """
    Resolve the current user's role and the reviewee for ``record``.

    Raises NotAPartyError when the user matches neither party and
    SelfReviewError when no distinct counter-party exists.
    """
    if ids_match(current_user_id, record.client_id):
        role = PartyRole.CLIENT
    elif ids_match(current_user_id, record.freelancer_id):
        role = PartyRole.FREELANCER
    else:
        raise NotAPartyError()

    reviewee = record.party(role.other)

    # Both ids point at the caller: try the other assignment once, then give up.
    if ids_match(reviewee.id, current_user_id):
        role = role.other
        reviewee = record.party(role.other)
        if ids_match(reviewee.id, current_user_id):
            raise SelfReviewError()

    return ResolvedRoleResult(current_user_role=role, reviewee=reviewee)
