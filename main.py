import logging
import os
from datetime import date
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from auth import Identity, generate_access_token, hash_password, resolve_identity, verify_password
from database import create_document, ensure_indexes, get_db, migrate_hearts
from feed import FeedParams, day_range, list_thoughts, project_thought
from schemas import (
    MESSAGE_MAX_LENGTH,
    MESSAGE_MIN_LENGTH,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    Thought,
    User,
    check_email_length,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Happy Thoughts API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Utilities ----------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid id: {id_str}")


def not_found(id_str: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Thought with id {id_str} not found")


# ---------- Dependencies ----------

def require_db(db: Optional[Database] = Depends(get_db)) -> Database:
    if db is None:
        raise HTTPException(503, "Database not available")
    return db


def current_identity(authorization: Optional[str] = Header(None),
                     db: Optional[Database] = Depends(get_db)) -> Identity:
    return resolve_identity(db, authorization)


def require_identity(identity: Identity = Depends(current_identity)) -> Identity:
    if not identity.is_authenticated:
        raise HTTPException(401, detail={"message": "Authentication required", "loggedOut": True})
    return identity


# ---------- Schemas (API layer) ----------

class MessagePayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(..., min_length=MESSAGE_MIN_LENGTH, max_length=MESSAGE_MAX_LENGTH)


class SignupPayload(BaseModel):
    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: EmailStr
    password: str = Field(..., min_length=1)

    email_length = field_validator("email")(check_email_length)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginPayload(BaseModel):
    email: str
    password: str


# ---------- Errors ----------

@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "Invalid input", "errors": errors})


@app.exception_handler(ConnectionFailure)
async def database_unavailable(request: Request, exc: ConnectionFailure):
    logger.exception("Database unreachable during %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Database not available"})


@app.exception_handler(PyMongoError)
async def database_error(request: Request, exc: PyMongoError):
    logger.exception("Database error during %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# ---------- Startup ----------

@app.on_event("startup")
async def on_start():
    db = get_db()
    if db is None:
        return
    try:
        ensure_indexes(db)
        migrated = migrate_hearts(db)
        if migrated:
            logger.info("Migrated %d legacy hearts counters to like-records", migrated)
    except PyMongoError:
        logger.exception("Startup database maintenance failed")


# ---------- Basic ----------

@app.get("/")
def root():
    endpoints = [
        {"path": r.path, "methods": sorted(r.methods)}
        for r in app.routes
        if isinstance(r, APIRoute)
    ]
    return {"message": "Welcome to the Happy Thoughts API", "endpoints": endpoints}


@app.get("/test")
def test_database(db: Optional[Database] = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected"
            response["collections"] = db.list_collection_names()
    except PyMongoError as e:
        response["database"] = f"⚠️ {str(e)[:80]}"
    return response


# ---------- Thoughts feed ----------

@app.get("/thoughts")
def get_thoughts(
    min_likes: Optional[str] = Query(None, alias="minLikes"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort: Optional[str] = None,
    order: Optional[str] = None,
    page: Optional[str] = None,
    identity: Identity = Depends(current_identity),
    db: Database = Depends(require_db),
):
    params = FeedParams.from_query(
        minLikes=min_likes, fromDate=from_date, sortBy=sort_by, sort=sort, order=order, page=page,
    )
    return list_thoughts(db, params, identity)


@app.get("/thoughts/liked")
def liked_thoughts(identity: Identity = Depends(require_identity), db: Database = Depends(require_db)):
    items = db["thought"].find({"hearts.userId": identity.user_id}).sort([("createdAt", -1)])
    return [project_thought(t, identity) for t in items]


@app.get("/thoughts/id/{thought_id}")
def get_thought(thought_id: str, identity: Identity = Depends(current_identity),
                db: Database = Depends(require_db)):
    t = db["thought"].find_one({"_id": oid(thought_id)})
    if not t:
        raise not_found(thought_id)
    return project_thought(t, identity)


@app.get("/thoughts/date/{day}")
def get_thoughts_on_date(day: str, identity: Identity = Depends(current_identity),
                         db: Database = Depends(require_db)):
    try:
        wanted = date.fromisoformat(day)
    except ValueError:
        raise HTTPException(400, f"Invalid date: {day}")
    start, end = day_range(wanted)
    items = db["thought"].find({"createdAt": {"$gte": start, "$lt": end}}).sort([("createdAt", -1)])
    return [project_thought(t, identity) for t in items]


# ---------- Thought mutations ----------

@app.post("/thoughts", status_code=201)
def create_thought(payload: MessagePayload, identity: Identity = Depends(current_identity),
                   db: Database = Depends(require_db)):
    thought = Thought(message=payload.message, userId=identity.user_id)
    doc = create_document(db, "thought", thought)
    return project_thought(doc, identity)


@app.delete("/thoughts/id/{thought_id}")
def delete_thought(thought_id: str, identity: Identity = Depends(current_identity),
                   db: Database = Depends(require_db)):
    t = db["thought"].find_one_and_delete({"_id": oid(thought_id)})
    if not t:
        raise not_found(thought_id)
    return project_thought(t, identity)


@app.patch("/thoughts/id/{thought_id}/message")
def update_message(thought_id: str, payload: MessagePayload, identity: Identity = Depends(current_identity),
                   db: Database = Depends(require_db)):
    t = db["thought"].find_one_and_update(
        {"_id": oid(thought_id)},
        {"$set": {"message": payload.message}},
        return_document=ReturnDocument.AFTER,
    )
    if not t:
        raise not_found(thought_id)
    return project_thought(t, identity)


@app.patch("/thoughts/id/{thought_id}/like")
def like_thought(thought_id: str, identity: Identity = Depends(current_identity),
                 db: Database = Depends(require_db)):
    # every call adds a like, repeated likes from one user all count
    t = db["thought"].find_one_and_update(
        {"_id": oid(thought_id)},
        {"$push": {"hearts": {"userId": identity.user_id}}},
        return_document=ReturnDocument.AFTER,
    )
    if not t:
        raise not_found(thought_id)
    return project_thought(t, identity)


# ---------- Users ----------

@app.post("/users/signup", status_code=201)
def signup(payload: SignupPayload, db: Database = Depends(require_db)):
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(400, "Email already registered")

    user = User(
        name=payload.name,
        email=payload.email,
        password=hash_password(payload.password),
        accessToken=generate_access_token(),
    )
    try:
        doc = create_document(db, "user", user)
    except DuplicateKeyError:
        raise HTTPException(400, "Email already registered")

    return {
        "success": True,
        "message": "User created successfully",
        "id": str(doc["_id"]),
        "accessToken": doc["accessToken"],
        "name": doc["name"],
    }


@app.post("/users/login")
@app.post("/sessions")
def login(payload: LoginPayload, db: Database = Depends(require_db)):
    user = db["user"].find_one({"email": payload.email.strip()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(401, "Invalid user credentials")

    return {
        "success": True,
        "message": "Login success",
        "userId": str(user["_id"]),
        "accessToken": user["accessToken"],
        "name": user["name"],
    }


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=port)
