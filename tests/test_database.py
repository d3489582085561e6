from datetime import datetime, timedelta

import pytest
from bson import ObjectId
from fastapi import HTTPException

from database import clear_expired_otps, create_document, serialize, to_object_id, update_document


def test_create_document_stamps_times(db):
    doc = create_document(db, "propertytype", {"name": "Duplex"})
    stored = db["propertytype"].find_one({"_id": doc["_id"]})
    assert stored["createdAt"] == stored["updatedAt"]


def test_update_document_bumps_updated_at(db):
    doc = create_document(db, "propertytype", {"name": "Duplex"})
    db["propertytype"].update_one({"_id": doc["_id"]}, {"$set": {"updatedAt": datetime(2020, 1, 1)}})
    updated = update_document(db, "propertytype", doc["_id"], {"name": "Bungalow"})
    assert updated["name"] == "Bungalow"
    assert updated["updatedAt"] > datetime(2020, 1, 1)


def test_clear_expired_otps_only_touches_stale_codes(db):
    now = datetime(2026, 10, 19, 12, 0)
    stale = create_document(db, "user", {"email": "a@mail.com", "otp": "12345", "otpExpiresAt": now - timedelta(seconds=1)})
    fresh = create_document(db, "user", {"email": "b@mail.com", "otp": "54321", "otpExpiresAt": now + timedelta(minutes=1)})
    create_document(db, "user", {"email": "c@mail.com", "otp": None, "otpExpiresAt": None})

    assert clear_expired_otps(db, now=now) == 1
    assert db["user"].find_one({"_id": stale["_id"]})["otp"] is None
    assert db["user"].find_one({"_id": fresh["_id"]})["otp"] == "54321"


def test_serialize_nested_ids():
    oid = ObjectId()
    doc = {"_id": oid, "amenities": [{"_id": oid}], "price": 10}
    assert serialize(doc) == {"_id": str(oid), "amenities": [{"_id": str(oid)}], "price": 10}


def test_to_object_id():
    oid = ObjectId()
    assert to_object_id(str(oid)) == oid
    assert to_object_id(oid) is oid
    with pytest.raises(HTTPException) as exc:
        to_object_id("nope", "Invalid user ID")
    assert exc.value.status_code == 400
    assert exc.value.detail == "Invalid user ID"
