import asyncio
import contextlib
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import jwt
from bson import ObjectId
from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Response, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

import media
import notifications
from database import (
    Mongo,
    clear_expired_otps,
    create_document,
    get_db,
    get_documents,
    now_utc,
    serialize,
    to_object_id,
    update_document,
)
from media import MediaStore, get_media_store
from notifications import Notification, Notifier, get_notifier
from schemas import (
    PROFILE_UPDATE_FIELDS,
    ROLES_LIST,
    Amenities,
    ChangePasswordRequest,
    FavouriteRequest,
    Favourites,
    ForgotPasswordRequest,
    Listings,
    Location,
    LoginRequest,
    Profile,
    ProfileCreate,
    ProfileUpdate,
    PropertyType,
    PropertyTypeCreate,
    ResetPasswordRequest,
    Review,
    ReviewCreate,
    SignupRequest,
    Transaction,
    TransactionCreate,
    User,
)
from security import (
    clear_session_cookie,
    create_session_token,
    create_verification_token,
    decode_verification_token,
    get_current_user,
    hash_password,
    set_session_cookie,
    verify_password,
    verify_roles,
)
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

MAX_LISTING_IMAGES = 2
OTP_SWEEP_SECONDS = 30

admin_only = verify_roles(ROLES_LIST["Admin"])


async def sweep_otps(db: Database, interval: float = OTP_SWEEP_SECONDS):
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(clear_expired_otps, db)
        except PyMongoError:
            logger.exception("OTP sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    mongo = Mongo(settings.database_url, settings.database_name)
    app.state.db = mongo.connect()
    app.state.media = MediaStore(
        settings.cloudinary_cloud_name,
        settings.cloudinary_api_key,
        settings.cloudinary_api_secret,
        root_folder=settings.cloudinary_folder,
    )
    app.state.notifier = Notifier(settings.novu_api_key, settings.novu_api_url)
    sweeper = asyncio.create_task(sweep_otps(app.state.db))
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        app.state.notifier.close()
        mongo.close()


app = FastAPI(title="Kora Service API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error rendering ----------

@app.exception_handler(StarletteHTTPException)
async def http_error(request, exc: StarletteHTTPException):
    body = dict(exc.detail) if isinstance(exc.detail, dict) else {"message": exc.detail}
    body.setdefault("status", exc.status_code)
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request, exc: RequestValidationError):
    return JSONResponse(
        {"message": "Invalid request", "status": 400, "errors": jsonable_encoder(exc.errors())},
        status_code=400,
    )


@app.exception_handler(media.UploadError)
async def upload_error(request, exc: media.UploadError):
    return JSONResponse({"message": "File upload error", "error": str(exc), "status": 400}, status_code=400)


@app.exception_handler(media.DeleteError)
async def media_delete_error(request, exc: media.DeleteError):
    return JSONResponse({"message": str(exc), "status": 500}, status_code=500)


@app.exception_handler(notifications.NotificationError)
async def notification_error(request, exc: notifications.NotificationError):
    return JSONResponse({"message": "Server error", "status": 500}, status_code=500)


@app.exception_handler(DuplicateKeyError)
async def duplicate_key(request, exc: DuplicateKeyError):
    return JSONResponse({"message": "Resource already exists", "status": 409}, status_code=409)


@app.exception_handler(Exception)
async def server_error(request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Server error", "status": 500}, status_code=500)


# ---------- Helpers ----------

def public_user(doc: dict) -> dict:
    hidden = {"password", "otp", "otpExpiresAt"}
    return serialize({k: v for k, v in doc.items() if k not in hidden})


def verification_notice(user: dict, settings: Settings) -> Notification:
    token = create_verification_token(str(user["_id"]), settings)
    return Notification(
        template=notifications.VERIFY_ACCOUNT,
        subscriber_id=str(user["_id"]),
        email=user["email"],
        payload={"LINK": f"{settings.backend_url}/auth/user/verify-account/{token}"},
    )


def find_user(db: Database, user_id: ObjectId) -> dict:
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def populate_amenity(db: Database, amenity: dict) -> dict:
    icon = db["amenityicon"].find_one({"_id": amenity.get("icon")}, {"fileUrl": 1, "fileType": 1})
    return serialize({**amenity, "icon": icon})


def populate_listing(db: Database, listing: dict) -> dict:
    amenities = []
    for amenity in db["amenities"].find({"_id": {"$in": listing.get("amenities", [])}}):
        icon = db["amenityicon"].find_one({"_id": amenity.get("icon")}, {"fileUrl": 1})
        amenities.append({**amenity, "icon": icon})
    images = list(db["listingsimg"].find({"_id": {"$in": listing.get("listingImg", [])}}, {"fileUrl": 1}))
    property_type = db["propertytype"].find_one({"_id": listing.get("propertyType")}, {"name": 1})
    return serialize({**listing, "amenities": amenities, "listingImg": images, "propertyType": property_type})


def refresh_listing_rating(db: Database, listing_id: ObjectId) -> None:
    ratings = [r["rating"] for r in db["review"].find({"listing": listing_id})]
    average = round(sum(ratings) / len(ratings), 1) if ratings else 0
    db["listings"].update_one({"_id": listing_id}, {"$set": {"rating": average}})


@app.get("/")
def root():
    return {"message": "Kora Service API running"}


# ---------- Auth ----------

@app.post("/auth/user/signup", status_code=201)
def signup(
    payload: SignupRequest,
    db: Database = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=409, detail="User already exists")
    user = User(email=email, password=hash_password(payload.password), phone_no=payload.phone_no)
    try:
        saved = create_document(db, "user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="User already exists")
    logger.info("Registered user %s", saved["_id"])
    notifier.dispatch(verification_notice(saved, settings))
    return {"user": public_user(saved), "message": "Sign-up completed"}


@app.get("/auth/user/verify-account/{token}")
def verify_account(token: str, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    try:
        user_id = decode_verification_token(token, settings)
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected verification token: %s", exc)
        raise HTTPException(status_code=500, detail="Server error")
    user = find_user(db, to_object_id(user_id, "Invalid user ID"))
    update_document(db, "user", user["_id"], {"isVerified": True})
    return RedirectResponse(f"{settings.frontend_url}/login", status_code=302)


@app.post("/auth/user/login")
def login(
    payload: LoginRequest,
    response: Response,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid email or password")
    if not user.get("isVerified"):
        raise HTTPException(status_code=403, detail="Account not verified")
    if user.get("accountDisabled"):
        raise HTTPException(status_code=403, detail="Account disabled")
    if not verify_password(payload.password, user["password"]):
        raise HTTPException(status_code=400, detail="Invalid email or password")

    token = create_session_token(str(user["_id"]), user.get("roles", {}).values(), settings)
    set_session_cookie(response, token, settings)
    logger.info("User %s logged in", user["_id"])
    return {"message": "Login successful", "accessToken": token, "user": public_user(user)}


@app.get("/auth/user/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logout successful"}


@app.post("/auth/user/forgotpassword")
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Database = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    code = str(10000 + secrets.randbelow(90000))
    expires = now_utc() + timedelta(minutes=settings.otp_expire_minutes)
    update_document(db, "user", user["_id"], {"otp": code, "otpExpiresAt": expires})
    notifier.dispatch(Notification(
        template=notifications.FORGOT_PASSWORD,
        subscriber_id=str(user["_id"]),
        email=user["email"],
        payload={"OTP": code},
    ))
    return {"message": "password reset token sent"}


@app.post("/auth/user/resetpassword")
def reset_password(payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid email")
    expires = user.get("otpExpiresAt")
    if not user.get("otp") or payload.otp != user["otp"] or (expires and expires <= now_utc()):
        raise HTTPException(status_code=400, detail="Invalid otp")
    update_document(db, "user", user["_id"], {
        "password": hash_password(payload.new_password),
        "otp": None,
        "otpExpiresAt": None,
    })
    return {"message": "Password has been changed successfully."}


@app.patch("/auth/user/changepassword", dependencies=[Depends(get_current_user)])
def change_password(
    payload: ChangePasswordRequest,
    db: Database = Depends(get_db),
):
    user = find_user(db, ObjectId(payload.user_id))
    if not verify_password(payload.current_password, user["password"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    update_document(db, "user", user["_id"], {"password": hash_password(payload.new_password)})
    return {"message": "Password updated successfully"}


# ---------- Property types ----------

@app.get("/property-types")
def list_property_types(db: Database = Depends(get_db)):
    items = get_documents(db, "propertytype")
    if not items:
        raise HTTPException(status_code=404, detail="No Property Types found")
    return serialize(items)


@app.post("/property-types", status_code=201, dependencies=[Depends(admin_only)])
def create_property_type(payload: PropertyTypeCreate, db: Database = Depends(get_db)):
    conflict = HTTPException(status_code=409, detail="Property Type already exists")
    if db["propertytype"].find_one({"name": payload.name}):
        raise conflict
    try:
        saved = create_document(db, "propertytype", PropertyType(name=payload.name))
    except DuplicateKeyError:
        raise conflict
    return {"PropertyType": serialize(saved), "message": "Property Type created successfully"}


@app.delete("/property-types/{type_id}", dependencies=[Depends(admin_only)])
def delete_property_type(type_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(type_id, "Invalid property type ID")
    if db["propertytype"].delete_one({"_id": oid}).deleted_count == 0:
        raise HTTPException(status_code=404, detail="Property Type not found")
    logger.info("Deleted property type %s", oid)
    return {"message": "Property Type deleted successfully", "status": 200}


# ---------- Profile ----------

@app.post("/profile", status_code=201, dependencies=[Depends(get_current_user)])
def create_profile(
    payload: ProfileCreate,
    db: Database = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    user_id = ObjectId(payload.user)
    if db["profile"].find_one({"user": user_id}):
        raise HTTPException(status_code=409, detail="User profile already exists")
    user = find_user(db, user_id)
    profile = Profile(
        user=user_id,
        property_type=[ObjectId(pt) for pt in payload.property_type],
        bedrooms=payload.bedrooms,
        pets=payload.pets,
        min_price=payload.min_price,
        max_price=payload.max_price,
        location=payload.location,
    )
    saved = create_document(db, "profile", profile)
    notifier.dispatch(verification_notice(user, settings))
    return {"message": "Profile created successfully", "profile": serialize(saved)}


@app.get("/profile", dependencies=[Depends(admin_only)])
def list_profiles(db: Database = Depends(get_db)):
    items = get_documents(db, "profile")
    if not items:
        raise HTTPException(status_code=404, detail="No Profiles found")
    return serialize(items)


@app.get("/profile/{user_id}", dependencies=[Depends(get_current_user)])
def get_profile(user_id: str, db: Database = Depends(get_db)):
    profile = db["profile"].find_one({"user": to_object_id(user_id, "Invalid user ID")})
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"profile": serialize(profile)}


@app.patch("/profile/{user_id}", dependencies=[Depends(get_current_user)])
def update_profile(
    user_id: str,
    updates: Dict[str, Any] = Body(...),
    db: Database = Depends(get_db),
):
    invalid = [key for key in updates if key not in PROFILE_UPDATE_FIELDS]
    if invalid:
        raise HTTPException(status_code=400, detail={"message": "Invalid updates", "invalidFields": invalid})
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    try:
        changes = ProfileUpdate.model_validate(updates).model_dump(by_alias=True, exclude_unset=True)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())
    if "propertyType" in changes:
        changes["propertyType"] = [ObjectId(pt) for pt in changes["propertyType"]]

    profile = db["profile"].find_one({"user": to_object_id(user_id, "Invalid user ID")})
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    updated = update_document(db, "profile", profile["_id"], changes)
    return {"message": "Profile updated successfully", "profile": serialize(updated)}


# ---------- Users ----------

@app.get("/user", dependencies=[Depends(admin_only)])
def list_users(db: Database = Depends(get_db)):
    users = get_documents(db, "user")
    if not users:
        raise HTTPException(status_code=404, detail="No User found")
    return [public_user(u) for u in users]


@app.get("/user/{user_id}", dependencies=[Depends(get_current_user)])
def get_user(user_id: str, db: Database = Depends(get_db)):
    user = find_user(db, to_object_id(user_id, "Invalid user ID"))
    return {"user": public_user(user)}


@app.delete("/user/{user_id}", dependencies=[Depends(admin_only)])
def delete_user(user_id: str, db: Database = Depends(get_db)):
    user = find_user(db, to_object_id(user_id, "Invalid user ID"))
    db["profile"].delete_one({"user": user["_id"]})
    db["favourites"].delete_one({"user": user["_id"]})
    db["user"].delete_one({"_id": user["_id"]})
    logger.info("Deleted user %s", user["_id"])
    return {"message": "User and associated profile deleted successfully", "status": 200}


# ---------- Amenities ----------

@app.post("/amenities", status_code=201, dependencies=[Depends(admin_only)])
async def create_amenity(
    name: str = Form(..., min_length=1),
    icon: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    conflict = HTTPException(status_code=409, detail="Amenity already exists")
    if icon is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if db["amenities"].find_one({"name": name}):
        raise conflict

    icon_id = await media.attach(db, store, "amenityicon", icon, media.AMENITY_ICON_FOLDER)
    try:
        saved = create_document(db, "amenities", Amenities(name=name, icon=icon_id))
    except DuplicateKeyError:
        await media.discard(db, store, "amenityicon", [icon_id])
        raise conflict
    except Exception:
        await media.discard(db, store, "amenityicon", [icon_id])
        raise
    return {"message": "Amenity created successfully", "amenity": populate_amenity(db, saved)}


@app.get("/amenities")
def list_amenities(db: Database = Depends(get_db)):
    amenities = get_documents(db, "amenities")
    if not amenities:
        raise HTTPException(status_code=404, detail="No Amenities found")
    return [populate_amenity(db, a) for a in amenities]


@app.delete("/amenities/{amenity_id}", dependencies=[Depends(admin_only)])
async def delete_amenity(
    amenity_id: str,
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    oid = to_object_id(amenity_id, "Invalid amenity ID")
    amenity = db["amenities"].find_one({"_id": oid})
    if not amenity:
        raise HTTPException(status_code=404, detail="Amenity not found")

    await media.detach(db, store, "amenityicon", amenity["icon"])
    db["amenities"].delete_one({"_id": oid})
    db["listings"].update_many({"amenities": oid}, {"$pull": {"amenities": oid}})
    logger.info("Deleted amenity %s", oid)
    return {"message": "Amenity and associated icon deleted successfully", "status": 200}


# ---------- Listings ----------

@app.post("/listings", status_code=201, dependencies=[Depends(admin_only)])
async def create_listing(
    name: str = Form(...),
    description: str = Form(...),
    property_type: str = Form(..., alias="propertyType"),
    price: float = Form(...),
    longitude: float = Form(...),
    latitude: float = Form(...),
    amenities: List[str] = Form([]),
    listing_img: Optional[List[UploadFile]] = File(None, alias="listingImg"),
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    files = listing_img or []
    if len(files) > MAX_LISTING_IMAGES:
        raise HTTPException(status_code=400, detail=f"You can upload a maximum of {MAX_LISTING_IMAGES} images.")
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    conflict = HTTPException(status_code=409, detail="Listing already exists")
    if db["listings"].find_one({"name": name}):
        raise conflict
    property_type_id = to_object_id(property_type, "Invalid property type ID")
    amenity_ids = [to_object_id(a, "Invalid amenity ID") for a in amenities]

    uploaded: List[ObjectId] = []
    try:
        for upload in files:
            uploaded.append(await media.attach(db, store, "listingsimg", upload, media.LISTING_FOLDER))
        listing = Listings(
            name=name,
            description=description,
            amenities=amenity_ids,
            property_type=property_type_id,
            location=Location(longitude=longitude, latitude=latitude),
            price=price,
            listing_img=uploaded,
        )
        saved = create_document(db, "listings", listing)
    except DuplicateKeyError:
        await media.discard(db, store, "listingsimg", uploaded)
        raise conflict
    except Exception:
        await media.discard(db, store, "listingsimg", uploaded)
        raise
    return {"message": "Listing created successfully", "Listing": populate_listing(db, saved)}


@app.get("/listings")
def list_listings(db: Database = Depends(get_db)):
    listings = get_documents(db, "listings")
    if not listings:
        raise HTTPException(status_code=404, detail="No Listings found")
    return [populate_listing(db, listing) for listing in listings]


@app.delete("/listings/{listing_id}", dependencies=[Depends(admin_only)])
async def delete_listing(
    listing_id: str,
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    oid = to_object_id(listing_id, "Invalid listing ID")
    listing = db["listings"].find_one({"_id": oid})
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")

    images = list(db["listingsimg"].find({"_id": {"$in": listing.get("listingImg", [])}}))
    results = await asyncio.gather(
        *(run_in_threadpool(store.destroy, img["publicId"]) for img in images),
        return_exceptions=True,
    )
    deleted = [img["_id"] for img, ok in zip(images, results) if ok is True]
    if deleted:
        db["listingsimg"].delete_many({"_id": {"$in": deleted}})
    if len(deleted) < len(images):
        remaining = [i for i in listing.get("listingImg", []) if i not in deleted]
        update_document(db, "listings", oid, {"listingImg": remaining})
        raise media.DeleteError(f"Failed to delete {len(images) - len(deleted)} listing image(s)")

    db["listings"].delete_one({"_id": oid})
    logger.info("Deleted listing %s with %d image(s)", oid, len(deleted))
    return {"message": "Listing and associated images deleted successfully"}


# ---------- Reviews ----------

@app.post("/review", status_code=201, dependencies=[Depends(get_current_user)])
def create_review(payload: ReviewCreate, db: Database = Depends(get_db)):
    listing_id = ObjectId(payload.listing)
    if not db["listings"].find_one({"_id": listing_id}):
        raise HTTPException(status_code=404, detail="Listing not found")
    review = Review(user=ObjectId(payload.user), listing=listing_id, rating=payload.rating, comment=payload.comment)
    saved = create_document(db, "review", review)
    refresh_listing_rating(db, listing_id)
    return serialize(saved)


@app.get("/review/{listing_id}")
def list_reviews(listing_id: str, db: Database = Depends(get_db)):
    reviews = get_documents(db, "review", {"listing": to_object_id(listing_id, "Invalid listing ID")})
    if not reviews:
        raise HTTPException(status_code=404, detail="No reviews found for this listing")
    return serialize(reviews)


@app.delete("/review/{review_id}", dependencies=[Depends(get_current_user)])
def delete_review(review_id: str, db: Database = Depends(get_db)):
    review = db["review"].find_one_and_delete({"_id": to_object_id(review_id, "Invalid review ID")})
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    refresh_listing_rating(db, review["listing"])
    return {"message": "Review deleted successfully"}


# ---------- Favourites ----------

@app.post("/favorites", dependencies=[Depends(get_current_user)])
def add_favourite(payload: FavouriteRequest, db: Database = Depends(get_db)):
    user_id, listing_id = ObjectId(payload.user_id), ObjectId(payload.listing_id)
    favourites = db["favourites"].find_one({"user": user_id})
    if not favourites:
        create_document(db, "favourites", Favourites(user=user_id, listing=[listing_id]))
    else:
        if listing_id in favourites["listing"]:
            raise HTTPException(status_code=409, detail="Listing already in favorites")
        update_document(db, "favourites", favourites["_id"], {"listing": favourites["listing"] + [listing_id]})
    return {"message": "Listing successfully added to favorites"}


@app.delete("/favorites", dependencies=[Depends(get_current_user)])
def remove_favourite(payload: FavouriteRequest, db: Database = Depends(get_db)):
    user_id, listing_id = ObjectId(payload.user_id), ObjectId(payload.listing_id)
    favourites = db["favourites"].find_one({"user": user_id})
    if not favourites:
        raise HTTPException(status_code=404, detail="No favorites found for this user")
    if listing_id not in favourites["listing"]:
        raise HTTPException(status_code=400, detail="Listing not found in favorites")

    remaining = [fav for fav in favourites["listing"] if fav != listing_id]
    if not remaining:
        db["favourites"].delete_one({"_id": favourites["_id"]})
        return {"message": "Favorites list removed"}
    updated = update_document(db, "favourites", favourites["_id"], {"listing": remaining})
    return {"message": "Listing removed from favorites", "favourites": serialize(updated)}


@app.get("/favorites/{user_id}", dependencies=[Depends(get_current_user)])
def get_favourites(user_id: str, db: Database = Depends(get_db)):
    favourites = db["favourites"].find_one({"user": to_object_id(user_id, "Invalid user ID")})
    if not favourites:
        raise HTTPException(status_code=404, detail="No favourites found")
    return {"data": serialize(favourites)}


# ---------- Transactions ----------

@app.post("/transaction", status_code=201, dependencies=[Depends(get_current_user)])
def create_transaction(
    payload: TransactionCreate,
    db: Database = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    if not payload.user or not payload.listing:
        raise HTTPException(status_code=400, detail="Missing userId or ListingId")
    user = db["user"].find_one({"_id": to_object_id(payload.user, "Invalid user ID")})
    if not user:
        raise HTTPException(status_code=400, detail="User not found")
    listing = db["listings"].find_one({"_id": to_object_id(payload.listing, "Invalid listing ID")})
    if not listing:
        raise HTTPException(status_code=400, detail="Listing not found")

    saved = create_document(db, "transaction", Transaction(user=user["_id"], listing=listing["_id"]))
    notifier.dispatch(Notification(
        template=notifications.TRANSACTION,
        subscriber_id=str(user["_id"]),
        email=user["email"],
        payload={
            "reservation_id": str(saved["_id"]),
            "user_email": user["email"],
            "listing_name": listing["name"],
            "listing_address": payload.location or "null",
            "amount": listing["price"],
            "billed_date": notifications.billed_date(date.today()),
        },
    ))
    return {"message": "transaction created successfully", "data": serialize(saved)}


@app.get("/transaction/{user_id}", dependencies=[Depends(get_current_user)])
def list_transactions(user_id: str, db: Database = Depends(get_db)):
    items = get_documents(db, "transaction", {"user": to_object_id(user_id, "Invalid user ID")})
    if not items:
        raise HTTPException(status_code=404, detail="No transactions found")
    return {"data": serialize(items)}


@app.get("/transaction/{user_id}/{listing_id}", dependencies=[Depends(get_current_user)])
def get_transaction(user_id: str, listing_id: str, db: Database = Depends(get_db)):
    transaction = db["transaction"].find_one({
        "user": to_object_id(user_id, "Invalid user ID"),
        "listing": to_object_id(listing_id, "Invalid listing ID"),
    })
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return {"data": serialize(transaction)}


if __name__ == "__main__":
    import os

    import uvicorn

    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", 5500))
    uvicorn.run(app, host="0.0.0.0", port=port)
