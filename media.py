"""
Media attachments stored on Cloudinary.

An attachment is uploaded first, then recorded as its own document
(amenityicon / listingsimg); only then is its id linked into the owning
entity. On delete the remote asset goes first and the local document is
removed only once the host confirms.
"""

import logging
from typing import Any, BinaryIO, Dict, Iterable, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from bson import ObjectId
from fastapi import Request, UploadFile
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from database import create_document
from schemas import Attachment

logger = logging.getLogger(__name__)

AMENITY_ICON_FOLDER = "AmenityIcon"
LISTING_FOLDER = "Listing"

DESTROYED_RESULTS = {"ok", "not found"}


class MediaError(Exception):
    pass


class UploadError(MediaError):
    pass


class DeleteError(MediaError):
    pass


class MediaStore:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, root_folder: str = ""):
        self.root_folder = root_folder
        # passed on every call so nothing lands in cloudinary's global config
        self._options = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "secure": True,
        }

    def upload(self, fileobj: BinaryIO, folder: str, filename: Optional[str] = None) -> Dict[str, Any]:
        if self.root_folder:
            folder = f"{self.root_folder}/{folder}"
        try:
            return cloudinary.uploader.upload(
                fileobj, folder=folder, filename_override=filename, **self._options
            )
        except cloudinary.exceptions.Error as exc:
            logger.exception("Upload to %s failed", folder)
            raise UploadError(str(exc)) from exc

    def destroy(self, public_id: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(public_id, **self._options)
        except cloudinary.exceptions.Error as exc:
            logger.exception("Delete of %s failed", public_id)
            raise DeleteError(str(exc)) from exc
        # "not found": the asset was already removed
        return result.get("result") in DESTROYED_RESULTS


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media


async def attach(db: Database, store: MediaStore, collection: str, upload: UploadFile, folder: str) -> ObjectId:
    """Upload a file and persist its attachment document; returns the document id."""
    result = await run_in_threadpool(store.upload, upload.file, folder, upload.filename)
    attachment = Attachment(
        file_url=result["secure_url"],
        file_type=result.get("format") or "",
        file_name=upload.filename or result.get("original_filename") or "",
        public_id=result["public_id"],
    )
    doc = await run_in_threadpool(create_document, db, collection, attachment)
    return doc["_id"]


async def detach(db: Database, store: MediaStore, collection: str, attachment_id: ObjectId) -> None:
    doc = await run_in_threadpool(db[collection].find_one, {"_id": attachment_id})
    if doc is None:
        return
    deleted = await run_in_threadpool(store.destroy, doc["publicId"])
    if not deleted:
        raise DeleteError(f"Failed to delete {doc['publicId']} from the media store")
    await run_in_threadpool(db[collection].delete_one, {"_id": attachment_id})


async def discard(db: Database, store: MediaStore, collection: str, attachment_ids: Iterable[ObjectId]) -> None:
    """Undo attachments whose owner was never saved."""
    for attachment_id in attachment_ids:
        try:
            await detach(db, store, collection, attachment_id)
        except MediaError:
            logger.warning("Could not clean up attachment %s in %s", attachment_id, collection)
