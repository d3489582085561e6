import pytest
from bson import ObjectId


@pytest.fixture
def user_id():
    return str(ObjectId())


def favourite(user_id, listing_id):
    return {"userId": user_id, "listingId": listing_id}


def remove(client, headers, user_id, listing_id):
    return client.request("DELETE", "/favorites", json=favourite(user_id, listing_id), headers=headers)


def test_add_favourite_creates_document(client, db, user_id, user_headers):
    listing_id = str(ObjectId())
    r = client.post("/favorites", json=favourite(user_id, listing_id), headers=user_headers)
    assert r.status_code == 200
    stored = db["favourites"].find_one({"user": ObjectId(user_id)})
    assert stored["listing"] == [ObjectId(listing_id)]


def test_add_same_listing_twice_conflicts(client, db, user_id, user_headers):
    listing_id = str(ObjectId())
    client.post("/favorites", json=favourite(user_id, listing_id), headers=user_headers)
    r = client.post("/favorites", json=favourite(user_id, listing_id), headers=user_headers)
    assert r.status_code == 409
    assert r.json()["message"] == "Listing already in favorites"
    assert db["favourites"].find_one({"user": ObjectId(user_id)})["listing"] == [ObjectId(listing_id)]


def test_remove_non_last_favourite_keeps_rest(client, db, user_id, user_headers):
    first, second = str(ObjectId()), str(ObjectId())
    client.post("/favorites", json=favourite(user_id, first), headers=user_headers)
    client.post("/favorites", json=favourite(user_id, second), headers=user_headers)

    r = remove(client, user_headers, user_id, first)
    assert r.status_code == 200
    assert r.json()["message"] == "Listing removed from favorites"
    assert db["favourites"].find_one({"user": ObjectId(user_id)})["listing"] == [ObjectId(second)]


def test_remove_last_favourite_deletes_document(client, db, user_id, user_headers):
    listing_id = str(ObjectId())
    client.post("/favorites", json=favourite(user_id, listing_id), headers=user_headers)
    r = remove(client, user_headers, user_id, listing_id)
    assert r.status_code == 200
    assert r.json()["message"] == "Favorites list removed"
    assert db["favourites"].count_documents({}) == 0


def test_remove_from_missing_favourites(client, user_id, user_headers):
    r = remove(client, user_headers, user_id, str(ObjectId()))
    assert r.status_code == 404


def test_remove_listing_not_in_favourites(client, user_id, user_headers):
    client.post("/favorites", json=favourite(user_id, str(ObjectId())), headers=user_headers)
    r = remove(client, user_headers, user_id, str(ObjectId()))
    assert r.status_code == 400
    assert r.json()["message"] == "Listing not found in favorites"


def test_get_favourites(client, user_id, user_headers):
    assert client.get(f"/favorites/{user_id}", headers=user_headers).status_code == 404
    listing_id = str(ObjectId())
    client.post("/favorites", json=favourite(user_id, listing_id), headers=user_headers)
    r = client.get(f"/favorites/{user_id}", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["data"]["listing"] == [listing_id]
