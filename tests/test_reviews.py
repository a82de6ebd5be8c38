import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from uuid import UUID, uuid4
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from hireit.main import app # FastAPI application
from hireit.core.security import create_access_token
from hireit.models.schemas import Review

client = TestClient(app)

CLIENT_USER_ID = "1"
FREELANCER_USER_ID = "2"

def auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}

@pytest.fixture
def mock_firestore_ops_reviews(monkeypatch):
    mock_ops = MagicMock()
    mock_ops.get.return_value = None
    mock_ops.query.return_value = []
    mock_ops.save.side_effect = lambda collection_name, data_model, document_id: document_id
    mock_ops.update.return_value = True
    monkeypatch.setattr("hireit.routers.reviews.get_firestore_ops_instance", lambda: mock_ops)
    return mock_ops

# Helper functions
def create_mock_transaction_doc_reviews(status="Completed", post_type="client", **overrides) -> Dict[str, Any]:
    doc = {
        "ClientId": 1,
        "ClientName": "Alice",
        "FreelancerId": 2,
        "FreelancerName": "Bob",
        "PostType": post_type,
        "ServiceTitle": "Essay proofreading",
        "Status": status,
    }
    doc.update(overrides)
    return doc

def create_mock_review_reviews(
    review_id: Optional[UUID] = None,
    reviewee_id=2,
    reviewer_id=1,
    rating: int = 5,
    review_date: Optional[datetime] = None
):
    return Review(
        review_id=review_id if review_id else uuid4(),
        application_id="7",
        rating=rating,
        review_text="Excellent work!",
        reviewer_id=reviewer_id,
        reviewer_role="client",
        reviewee_id=reviewee_id,
        reviewee_role="freelancer",
        review_date=review_date if review_date else datetime.now(timezone.utc),
    )

# --- Tests for GET /reviews/eligibility/{application_id} ---

def test_eligibility_for_client(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()

    response = client.get("/reviews/eligibility/7", headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 200
    data = response.json()
    assert data["eligible"] is True
    assert data["error"] is None
    assert data["user_role"] == "client"
    assert data["reviewee"] == {"id": 2, "name": "Bob", "role": "freelancer"}
    assert data["transaction"]["post_type"] == "client"

def test_eligibility_for_freelancer_on_received_payment(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(status="received", post_type="freelancer")

    response = client.get("/reviews/eligibility/7", headers=auth_headers(FREELANCER_USER_ID))

    assert response.status_code == 200
    data = response.json()
    assert data["eligible"] is True
    assert data["user_role"] == "freelancer"
    assert data["reviewee"] == {"id": 1, "name": "Alice", "role": "client"}

def test_eligibility_requires_completed_transaction(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(status="Pending")

    response = client.get("/reviews/eligibility/7", headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 200
    data = response.json()
    assert data["eligible"] is False
    assert "current status: Pending" in data["error"]
    assert data["reviewee"] is None

def test_eligibility_after_review_submitted(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()
    mock_firestore_ops_reviews.query.return_value = [{"id": "r1", "application_id": "7", "reviewer_id": 1}]

    response = client.get("/reviews/eligibility/7", headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 200
    assert response.json() == {
        "eligible": False,
        "error": "You have already submitted a review for this application",
        "transaction": None,
        "user_role": None,
        "reviewee": None,
    }

def test_eligibility_missing_transaction(mock_firestore_ops_reviews):
    response = client.get("/reviews/eligibility/7", headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 200
    assert response.json()["eligible"] is False
    assert response.json()["error"] == "Transaction details not found"

def test_eligibility_not_a_party(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()

    response = client.get("/reviews/eligibility/7", headers=auth_headers("99"))

    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have permission to review this transaction"

def test_eligibility_self_review_hides_internal_error(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(ClientId=5, FreelancerId=5)

    response = client.get("/reviews/eligibility/7", headers=auth_headers("5"))

    assert response.status_code == 500
    assert response.json()["detail"] == "Something went wrong, please contact support"

# --- Tests for POST /reviews/ (Submit Review) ---

def test_submit_review_client_reviews_freelancer_success(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()
    mock_firestore_ops_reviews.query.side_effect = [
        [], # No existing review by this client on this application
        [{"review_id": "a", "rating": 5}, {"review_id": "b", "rating": 4}, {"review_id": "c", "rating": 4}], # reviewee_id == 2
        [], # reviewee_id == "2"
    ]

    response = client.post(
        "/reviews/",
        json={"application_id": "7", "rating": 5, "review_text": "Great job!"},
        headers=auth_headers(CLIENT_USER_ID),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["reviewer_id"] == 1
    assert data["reviewer_role"] == "client"
    assert data["reviewer_name"] == "Alice"
    assert data["reviewee_id"] == 2
    assert data["reviewee_role"] == "freelancer"
    assert data["reviewee_name"] == "Bob"
    assert data["service_title"] == "Essay proofreading"
    assert data["rating"] == 5

    save_kwargs = mock_firestore_ops_reviews.save.call_args.kwargs
    assert save_kwargs["collection_name"] == "reviews"
    assert save_kwargs["document_id"] == data["review_id"]
    mock_firestore_ops_reviews.update.assert_called_once_with(
        collection_name="freelancer_profiles",
        document_id="2",
        updates={"average_rating": 4.33}
    )

def test_submit_review_freelancer_reviews_client(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(post_type="freelancer")

    response = client.post(
        "/reviews/",
        json={"application_id": "7", "rating": 4},
        headers=auth_headers(FREELANCER_USER_ID),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["reviewer_role"] == "freelancer"
    assert data["reviewee_id"] == 1
    assert data["reviewee_role"] == "client"
    mock_firestore_ops_reviews.update.assert_not_called() # Only freelancer ratings are aggregated

def test_submit_review_ignores_reviewee_from_request(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()

    response = client.post(
        "/reviews/",
        json={"application_id": "7", "rating": 3, "reviewee_id": 1, "reviewee_role": "client"},
        headers=auth_headers(CLIENT_USER_ID),
    )

    assert response.status_code == 201
    assert response.json()["reviewee_id"] == 2

def test_submit_review_average_rating_failure_keeps_review(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()
    mock_firestore_ops_reviews.query.side_effect = [[], [{"review_id": "a", "rating": 5}], []]
    mock_firestore_ops_reviews.update.return_value = False

    response = client.post("/reviews/", json={"application_id": "7", "rating": 5}, headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 201

def test_submit_review_average_rating_counts_both_id_forms(mock_firestore_ops_reviews):
    # Older review stored reviewee_id as int, the transaction now carries the freelancer id as str.
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(FreelancerId="2")
    stored = {
        "2": [{"review_id": "new", "rating": 5, "reviewee_id": "2"}],
        2: [{"review_id": "old", "rating": 1, "reviewee_id": 2}],
    }

    def query(collection_name, field, operator, value, pydantic_model=None):
        if field == "reviewee_id":
            return stored.get(value, [])
        return []
    mock_firestore_ops_reviews.query.side_effect = query

    response = client.post("/reviews/", json={"application_id": "7", "rating": 5}, headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 201
    mock_firestore_ops_reviews.update.assert_called_once_with(
        collection_name="freelancer_profiles",
        document_id="2",
        updates={"average_rating": 3.0}
    )

def test_eligibility_replaces_stored_role_hint(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(UserRole="freelancer")

    response = client.get("/reviews/eligibility/7", headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 200
    data = response.json()
    assert data["user_role"] == "client"
    assert data["transaction"]["user_role"] == "client"

def test_submit_review_duplicate(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()
    mock_firestore_ops_reviews.query.return_value = [{"id": "r1", "application_id": "7", "reviewer_id": "1"}]

    response = client.post("/reviews/", json={"application_id": "7", "rating": 5}, headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 400
    assert response.json()["detail"] == "You have already submitted a review for this application."
    mock_firestore_ops_reviews.save.assert_not_called()

def test_submit_review_transaction_not_completed(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews(status="Sent")

    response = client.post("/reviews/", json={"application_id": "7", "rating": 5}, headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 403
    assert "current status: Sent" in response.json()["detail"]

def test_submit_review_transaction_not_found(mock_firestore_ops_reviews):
    response = client.post("/reviews/", json={"application_id": "404", "rating": 5}, headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 404
    assert response.json()["detail"] == "Transaction not found"

def test_submit_review_not_a_party(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()

    response = client.post("/reviews/", json={"application_id": "7", "rating": 5}, headers=auth_headers("99"))

    assert response.status_code == 403
    mock_firestore_ops_reviews.save.assert_not_called()

@pytest.mark.parametrize("rating", [0, 6])
def test_submit_review_rating_out_of_range(mock_firestore_ops_reviews, rating):
    response = client.post("/reviews/", json={"application_id": "7", "rating": rating}, headers=auth_headers(CLIENT_USER_ID))
    assert response.status_code == 422

def test_submit_review_save_failure(mock_firestore_ops_reviews):
    mock_firestore_ops_reviews.get.return_value = create_mock_transaction_doc_reviews()
    mock_firestore_ops_reviews.save.side_effect = None
    mock_firestore_ops_reviews.save.return_value = None

    response = client.post("/reviews/", json={"application_id": "7", "rating": 5}, headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 500
    assert response.json()["detail"] == "Could not save review."

def test_submit_review_requires_token():
    response = client.post("/reviews/", json={"application_id": "7", "rating": 5})
    assert response.status_code == 401

# --- Tests for GET /reviews/received and /reviews/user/{user_id} ---

def test_get_received_reviews_merges_id_forms(mock_firestore_ops_reviews):
    now = datetime.now(timezone.utc)
    older = create_mock_review_reviews(review_date=now - timedelta(days=2))
    newer = create_mock_review_reviews(review_date=now)

    # Looked up once as "2" and once as 2; the same review may come back from both.
    mock_firestore_ops_reviews.query.side_effect = [[older], [older, newer]]

    response = client.get("/reviews/received", headers=auth_headers(FREELANCER_USER_ID))

    assert response.status_code == 200
    assert [r["review_id"] for r in response.json()] == [str(newer.review_id), str(older.review_id)]
    queried_values = [c.kwargs["value"] for c in mock_firestore_ops_reviews.query.call_args_list]
    assert queried_values == ["2", 2]

def test_get_reviews_for_user(mock_firestore_ops_reviews):
    review = create_mock_review_reviews()
    mock_firestore_ops_reviews.query.side_effect = [[], [review]]

    response = client.get("/reviews/user/2")

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["reviewee_id"] == 2
    assert data[0]["review_text"] == "Excellent work!"

def test_get_reviews_for_user_without_reviews(mock_firestore_ops_reviews):
    response = client.get("/reviews/user/abc")

    assert response.status_code == 200
    assert response.json() == []

def test_get_my_reviews_queries_reviewer_id(mock_firestore_ops_reviews):
    written = create_mock_review_reviews(reviewer_id=1)
    mock_firestore_ops_reviews.query.side_effect = [[written], [written]]

    response = client.get("/reviews/user", headers=auth_headers(CLIENT_USER_ID))

    assert response.status_code == 200
    assert [r["review_id"] for r in response.json()] == [str(written.review_id)]
    calls = mock_firestore_ops_reviews.query.call_args_list
    assert {c.kwargs["field"] for c in calls} == {"reviewer_id"}
    assert [c.kwargs["value"] for c in calls] == ["1", 1]

def test_get_my_reviews_requires_token():
    response = client.get("/reviews/user")
    assert response.status_code == 401

# --- Tests for GET /reviews/{review_id} ---

def test_get_review_by_id(mock_firestore_ops_reviews):
    review = create_mock_review_reviews()
    mock_firestore_ops_reviews.get.return_value = review

    response = client.get(f"/reviews/{review.review_id}")

    assert response.status_code == 200
    assert response.json()["review_id"] == str(review.review_id)
    mock_firestore_ops_reviews.get.assert_called_once_with(
        collection_name="reviews",
        document_id=str(review.review_id),
        pydantic_model=Review
    )

def test_get_review_by_id_not_found(mock_firestore_ops_reviews):
    response = client.get(f"/reviews/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Review not found"

def test_get_review_by_id_rejects_non_uuid(mock_firestore_ops_reviews):
    response = client.get("/reviews/not-a-uuid")
    assert response.status_code == 422
