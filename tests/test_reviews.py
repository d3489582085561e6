import pytest
from bson import ObjectId

from database import create_document
from schemas import Listings, Location


@pytest.fixture
def listing(db):
    return create_document(db, "listings", Listings(
        name="Garden Cottage", description="Quiet street", property_type=ObjectId(),
        location=Location(longitude=3.4, latitude=6.5), price=800,
    ))


def review_payload(listing, rating=4, comment="Lovely stay"):
    return {"user": str(ObjectId()), "listing": str(listing["_id"]), "rating": rating, "comment": comment}


def test_create_review_updates_listing_rating(client, db, listing, user_headers):
    r = client.post("/review", json=review_payload(listing, 4), headers=user_headers)
    assert r.status_code == 201
    assert r.json()["rating"] == 4
    client.post("/review", json=review_payload(listing, 5), headers=user_headers)
    assert db["listings"].find_one({"_id": listing["_id"]})["rating"] == 4.5


@pytest.mark.parametrize("rating", [0, 6])
def test_review_rating_out_of_bounds(client, db, listing, user_headers, rating):
    r = client.post("/review", json=review_payload(listing, rating), headers=user_headers)
    assert r.status_code == 400
    assert db["review"].count_documents({}) == 0


def test_review_with_invalid_ids(client, listing, user_headers):
    payload = {**review_payload(listing), "user": "abc"}
    r = client.post("/review", json=payload, headers=user_headers)
    assert r.status_code == 400


def test_review_for_missing_listing(client, user_headers):
    payload = {"user": str(ObjectId()), "listing": str(ObjectId()), "rating": 3, "comment": "?"}
    r = client.post("/review", json=payload, headers=user_headers)
    assert r.status_code == 404


def test_get_reviews_for_listing(client, listing, user_headers):
    r = client.get(f"/review/{listing['_id']}")
    assert r.status_code == 404
    client.post("/review", json=review_payload(listing), headers=user_headers)
    r = client.get(f"/review/{listing['_id']}")
    assert r.status_code == 200
    assert [rv["comment"] for rv in r.json()] == ["Lovely stay"]

    assert client.get("/review/not-an-id").status_code == 400


def test_delete_review(client, db, listing, user_headers):
    review = client.post("/review", json=review_payload(listing, 2), headers=user_headers).json()
    r = client.delete(f"/review/{review['_id']}", headers=user_headers)
    assert r.status_code == 200
    assert db["review"].count_documents({}) == 0
    assert db["listings"].find_one({"_id": listing["_id"]})["rating"] == 0

    r = client.delete(f"/review/{review['_id']}", headers=user_headers)
    assert r.status_code == 404
