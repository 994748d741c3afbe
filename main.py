import logging
import os
import base64
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import gemini
import mailer
from database import create_document, db, ensure_indexes, get_documents, now_utc
from schemas import (
    AccountStatus,
    OTP_RE,
    Subtask,
    Task as TaskSchema,
    TaskStatus,
    User as UserSchema,
    check_date_format,
    check_name,
    check_not_past,
    check_password_strength,
    check_time_format,
)
from security import (
    create_token_pair,
    decode_token,
    generate_otp,
    hash_otp,
    hash_password,
    is_otp_expired,
    otp_expiry,
    verify_otp,
    verify_password,
)
from tasklogic import add_subtask, compute_stats, derive_status, progress, remove_subtask, toggle_subtask
from urls import get_user_slug, profile_query_params, task_links

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Settings
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
ENABLE_DEBUG_ROUTES = os.getenv("ENABLE_DEBUG_ROUTES", "false").lower() in ("1", "true", "yes")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
MAX_AVATAR_BYTES = 2 * 1024 * 1024


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_indexes()
    yield


app = FastAPI(title="Karthavya Task Manager API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handling

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = str(err.get("msg", "")).removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return JSONResponse(status_code=400, content={"detail": f"Validation failed: {', '.join(messages)}"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Utilities
class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class CurrentUser(BaseModel):
    id: str
    email: EmailStr
    name: str
    avatar: Optional[str] = None
    is_email_verified: bool
    account_status: AccountStatus
    slug: str


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _lower_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def get_user_by_email(email: str) -> Optional[dict]:
    return db["users"].find_one({"email": email})


def get_user_by_id(user_id: str) -> Optional[dict]:
    oid = _object_id(user_id)
    if oid is None:
        return None
    return db["users"].find_one({"_id": oid})


def _object_id(value) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _current_user_from_doc(user: dict) -> CurrentUser:
    return CurrentUser(
        id=str(user["_id"]),
        email=user["email"],
        name=user.get("name", ""),
        avatar=user.get("avatar"),
        is_email_verified=user.get("is_email_verified", False),
        account_status=user.get("account_status", "pending"),
        slug=get_user_slug(user.get("name"), user["email"]),
    )


def get_current_user(authorization: Optional[str] = Header(default=None)) -> CurrentUser:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization header")
    payload = decode_token(authorization.split(" ", 1)[1].strip(), "access")
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    # Fresh lookup so name, avatar and verification state are never stale
    user = get_user_by_id(payload.get("sub"))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if user.get("account_status") == "suspended":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account has been suspended. Please contact support.")
    return _current_user_from_doc(user)


def _issue_otp(user: dict) -> str:
    """Store a fresh hashed code on the user and return the plain one for mailing."""
    otp = generate_otp()
    db["users"].update_one(
        {"_id": user["_id"]},
        {"$set": {
            "email_verification_otp": hash_otp(otp),
            "email_verification_otp_expiry": otp_expiry(),
            "updated_at": now_utc(),
        }},
    )
    logger.info("Issued verification code for %s", user["email"])
    return otp


# Auth Routes
class SignupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=15)

    strip_name = field_validator("name", mode="before")(_strip)
    normalize_email = field_validator("email", mode="before")(_lower_email)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return check_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)

class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str

    normalize_email = field_validator("email", mode="before")(_lower_email)

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v: str) -> str:
        if not OTP_RE.match(v):
            raise ValueError("OTP must be a 6-digit number.")
        return v

class EmailRequest(BaseModel):
    email: EmailStr

    normalize_email = field_validator("email", mode="before")(_lower_email)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    normalize_email = field_validator("email", mode="before")(_lower_email)

class GoogleAuthRequest(BaseModel):
    id_token: str

class RefreshRequest(BaseModel):
    refresh_token: str


@app.post("/api/users/signup", status_code=201)
def signup(payload: SignupRequest, response: Response):
    existing = get_user_by_email(payload.email)
    if existing:
        if not existing.get("is_email_verified", False):
            otp = _issue_otp(existing)
            if not mailer.send_otp_email(payload.email, existing.get("name", ""), otp):
                raise HTTPException(status_code=500, detail="Failed to send verification email. Please try again.")
            response.status_code = status.HTTP_200_OK
            return {"message": "A new verification code has been sent to your email.", "email": payload.email}
        raise HTTPException(status_code=409, detail="User already exists. Please login or use a different email.")

    otp = generate_otp()
    user = UserSchema(
        name=payload.name,
        email=payload.email,
        password=hash_password(payload.password),
        auth_provider="credentials",
        is_email_verified=False,
        email_verification_otp=hash_otp(otp),
        email_verification_otp_expiry=otp_expiry(),
        account_status="pending",
    )
    try:
        create_document("users", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="User already exists. Please login or use a different email.")

    if not mailer.send_otp_email(payload.email, payload.name, otp):
        db["users"].delete_one({"email": payload.email})
        raise HTTPException(status_code=500, detail="Failed to send verification email. Please try again.")
    logger.info("Created account for %s, verification pending", payload.email)
    return {
        "message": "Account created successfully. Please check your email for the verification code.",
        "email": payload.email,
    }


@app.post("/api/auth/verify")
def verify_email(payload: VerifyOTPRequest):
    user = get_user_by_email(payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    if user.get("is_email_verified", False):
        raise HTTPException(status_code=400, detail="Email already verified. Please login.")
    hashed = user.get("email_verification_otp")
    expiry = user.get("email_verification_otp_expiry")
    if not hashed or not expiry:
        raise HTTPException(status_code=400, detail="No verification code found. Please request a new one.")
    if is_otp_expired(expiry):
        logger.info("Expired verification code submitted for %s", payload.email)
        raise HTTPException(status_code=400, detail="Verification code has expired. Please request a new one.")
    if not verify_otp(payload.otp, hashed):
        logger.info("Invalid verification code submitted for %s", payload.email)
        raise HTTPException(status_code=400, detail="Invalid verification code. Please try again.")

    db["users"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"is_email_verified": True, "account_status": "active", "updated_at": now_utc()},
            "$unset": {"email_verification_otp": "", "email_verification_otp_expiry": ""},
        },
    )
    logger.info("Email verified for %s", payload.email)
    return {"message": "Email verified successfully! You can now login.", "success": True}


@app.post("/api/auth/resend-otp")
def resend_otp(payload: EmailRequest):
    user = get_user_by_email(payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    if user.get("is_email_verified", False):
        raise HTTPException(status_code=400, detail="Email already verified. Please login.")
    otp = _issue_otp(user)
    if not mailer.send_otp_email(payload.email, user.get("name", ""), otp):
        raise HTTPException(status_code=500, detail="Failed to send verification email. Please try again.")
    return {"message": "A new verification code has been sent to your email.", "success": True}


@app.post("/api/auth/login", response_model=Token)
def login(payload: LoginRequest):
    user = get_user_by_email(payload.email)
    if not user:
        raise HTTPException(status_code=401, detail="No user found with this email.")
    if not user.get("is_email_verified", False):
        raise HTTPException(
            status_code=403,
            detail="Please verify your email before logging in. Check your inbox for the verification code.",
        )
    if user.get("account_status") == "suspended":
        raise HTTPException(status_code=403, detail="Your account has been suspended. Please contact support.")
    if not user.get("password"):
        raise HTTPException(status_code=400, detail="This account uses Google sign-in.")
    if not verify_password(payload.password, user["password"]):
        raise HTTPException(status_code=401, detail="Incorrect password.")
    return Token(**create_token_pair(str(user["_id"]), user["email"]))


async def fetch_google_profile(id_token: str) -> Optional[dict]:
    """Verify a Google ID token with Google's tokeninfo endpoint."""
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
    except httpx.HTTPError:
        logger.warning("Google tokeninfo request failed", exc_info=True)
        return None
    if r.status_code != 200:
        return None
    info = r.json()
    if GOOGLE_CLIENT_ID and info.get("aud") != GOOGLE_CLIENT_ID:
        return None
    return info


def _sign_in_google_user(email: str, name: str) -> dict:
    user = get_user_by_email(email)
    if not user:
        # First Google sign-in provisions a verified account
        try:
            create_document("users", UserSchema(
                name=name,
                email=email,
                auth_provider="google",
                is_email_verified=True,
                account_status="active",
            ))
            logger.info("Provisioned Google account for %s", email)
        except DuplicateKeyError:
            # a concurrent first sign-in won the insert
            pass
        user = get_user_by_email(email)
    if user.get("account_status") == "suspended":
        raise HTTPException(status_code=403, detail="Your account has been suspended. Please contact support.")
    if not user.get("is_email_verified", False):
        db["users"].update_one(
            {"_id": user["_id"]},
            {
                "$set": {"is_email_verified": True, "account_status": "active", "updated_at": now_utc()},
                "$unset": {"email_verification_otp": "", "email_verification_otp_expiry": ""},
            },
        )
    return user


@app.post("/api/auth/google", response_model=Token)
async def auth_google(payload: GoogleAuthRequest):
    info = await fetch_google_profile(payload.id_token)
    if info is None:
        raise HTTPException(status_code=401, detail="Invalid Google token")
    email = _lower_email(info.get("email") or "")
    if not email:
        raise HTTPException(status_code=400, detail="Google account email not available")
    name = info.get("name") or info.get("given_name") or email.split("@")[0]

    user = await run_in_threadpool(_sign_in_google_user, email, name)
    return Token(**create_token_pair(str(user["_id"]), email))


@app.post("/api/auth/refresh-token", response_model=Token)
def refresh_token(payload: RefreshRequest):
    decoded = decode_token(payload.refresh_token, "refresh")
    if decoded is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = get_user_by_id(decoded.get("sub"))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return Token(**create_token_pair(str(user["_id"]), user["email"]))


@app.post("/api/auth/logout")
def logout(_: CurrentUser = Depends(get_current_user)):
    # Stateless JWT: client discards tokens
    return {"message": "Logged out"}


@app.get("/api/auth/session")
def session(user: CurrentUser = Depends(get_current_user)):
    return {
        "user": user,
        "links": {
            "dashboard": f"/dashboard/{user.slug}",
            "tasks": f"/tasks/{user.slug}",
            "edit_profile": f"/profile{profile_query_params('editing', 'name')}",
            "change_password": f"/profile{profile_query_params('changePassword')}",
        },
    }


@app.post("/api/auth/check-user")
def check_user(payload: EmailRequest):
    if not ENABLE_DEBUG_ROUTES:
        raise HTTPException(status_code=404, detail="Not Found")
    user = get_user_by_email(payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    return {
        "message": "User data retrieved",
        "user": {
            "id": str(user["_id"]),
            "name": user.get("name"),
            "email": user["email"],
            "is_email_verified": user.get("is_email_verified", False),
            "has_otp": bool(user.get("email_verification_otp")),
            "otp_expiry": user.get("email_verification_otp_expiry"),
            "account_status": user.get("account_status"),
            "auth_provider": user.get("auth_provider"),
        },
    }


# Healthcheck
@app.get("/api/healthcheck")
def healthcheck():
    return {"status": "ok", "time": now_utc().isoformat()}


# Task Routes
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field("", max_length=500)
    due_date: str
    status: TaskStatus = "pending"
    subtasks: List[Subtask] = []

    strip_text = field_validator("title", "description", mode="before")(_strip)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str) -> str:
        return check_not_past(v)

class TaskUpdate(BaseModel):
    # Past due dates are allowed here so overdue tasks stay editable
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    due_date: Optional[str] = None
    status: Optional[TaskStatus] = None
    subtasks: Optional[List[Subtask]] = None

    strip_text = field_validator("title", "description", mode="before")(_strip)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: Optional[str]) -> Optional[str]:
        return check_date_format(v) if v is not None else v

class SubtaskCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=100)
    due_date: Optional[str] = None
    due_time: Optional[str] = None

    strip_title = field_validator("title", mode="before")(_strip)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: Optional[str]) -> Optional[str]:
        return check_date_format(v) if v else None

    @field_validator("due_time")
    @classmethod
    def validate_due_time(cls, v: Optional[str]) -> Optional[str]:
        return check_time_format(v) if v else None

class ParseRequest(BaseModel):
    input: str

    @field_validator("input")
    @classmethod
    def validate_input(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Input is required and must be a string")
        return v


def serialize_task(task: dict, user: CurrentUser) -> dict:
    task = dict(task)
    task_id = str(task.pop("_id"))
    task["id"] = task_id
    task.setdefault("subtasks", [])
    task["progress"] = progress(task["subtasks"])
    task["links"] = task_links(user.slug, task_id)
    return task


def _get_owned_task(task_id: str, user: CurrentUser) -> dict:
    oid = _object_id(task_id)
    task = db["tasks"].find_one({"_id": oid, "user_id": user.email}) if oid else None
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _update_owned_task(task_id: str, user: CurrentUser, update: dict) -> dict:
    oid = _object_id(task_id)
    update["updated_at"] = now_utc()
    task = None
    if oid:
        task = db["tasks"].find_one_and_update(
            {"_id": oid, "user_id": user.email},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _save_subtasks(task: dict, user: CurrentUser, subtasks: List[dict]) -> dict:
    updated = _update_owned_task(str(task["_id"]), user, {"subtasks": subtasks, "status": derive_status(subtasks)})
    return {"task": serialize_task(updated, user)}


@app.get("/api/tasks")
def list_tasks(user: CurrentUser = Depends(get_current_user)):
    tasks = get_documents("tasks", {"user_id": user.email}, sort=[("created_at", -1), ("_id", -1)])
    return {"tasks": [serialize_task(t, user) for t in tasks]}


@app.post("/api/tasks", status_code=201)
def create_task(payload: TaskCreate, user: CurrentUser = Depends(get_current_user)):
    task = TaskSchema(
        user_id=user.email,
        title=payload.title,
        description=payload.description or "",
        due_date=payload.due_date,
        status=payload.status,
        subtasks=payload.subtasks,
    )
    tid = create_document("tasks", task)
    logger.info("Task %s created for %s", tid, user.email)
    return {"task": serialize_task(db["tasks"].find_one({"_id": ObjectId(tid)}), user)}


@app.post("/api/tasks/parse")
async def parse_task(payload: ParseRequest, user: CurrentUser = Depends(get_current_user)):
    if not gemini.api_key():
        raise HTTPException(status_code=500, detail="Gemini API key is not configured")
    try:
        text = await gemini.generate_text(gemini.task_prompt(payload.input))
        parsed = gemini.parse_task_json(text)
    except gemini.ParseError as e:
        logger.warning("Failed to parse Gemini response for %s: %r", user.email, e.raw)
        return JSONResponse(status_code=500, content={"detail": "Failed to parse AI response", "raw_response": e.raw})
    except (gemini.GeminiError, httpx.HTTPError):
        logger.exception("Error parsing task with Gemini")
        raise HTTPException(status_code=500, detail="Failed to parse task. Please try again.")

    task = gemini.normalize_task(parsed)
    if not task["title"]:
        raise HTTPException(status_code=400, detail="Could not extract a task title from the input")
    warnings = gemini.missing_field_warnings(task)
    return {"success": True, "task": task, "warnings": warnings, "requires_confirmation": bool(warnings)}


@app.get("/api/tasks/insights")
async def task_insights(user: CurrentUser = Depends(get_current_user)):
    if not gemini.api_key():
        raise HTTPException(status_code=500, detail="Gemini API key is not configured")
    try:
        tasks = await run_in_threadpool(get_documents, "tasks", {"user_id": user.email})
        stats = compute_stats(tasks)
        insight = (await gemini.generate_text(gemini.insight_prompt(stats))).strip()
    except Exception:
        # Insights are decorative; degrade to a canned message
        logger.exception("Error generating task insights for %s", user.email)
        return {"success": False, "detail": "Failed to generate insights", "insight": gemini.FALLBACK_INSIGHT}
    return {"success": True, "insight": insight, "stats": stats}


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, user: CurrentUser = Depends(get_current_user)):
    return {"task": serialize_task(_get_owned_task(task_id, user), user)}


@app.put("/api/tasks/{task_id}")
def update_task(task_id: str, payload: TaskUpdate, user: CurrentUser = Depends(get_current_user)):
    update = payload.model_dump(exclude_none=True)
    return {"task": serialize_task(_update_owned_task(task_id, user, update), user)}


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, user: CurrentUser = Depends(get_current_user)):
    oid = _object_id(task_id)
    res = db["tasks"].delete_one({"_id": oid, "user_id": user.email}) if oid else None
    if res is None or res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"message": "Task deleted successfully"}


# Subtasks
@app.post("/api/tasks/{task_id}/subtasks", status_code=201)
def create_subtask(task_id: str, payload: SubtaskCreate, user: CurrentUser = Depends(get_current_user)):
    task = _get_owned_task(task_id, user)
    subtasks = add_subtask(task.get("subtasks", []), payload.title, payload.due_date, payload.due_time)
    return _save_subtasks(task, user, subtasks)


@app.patch("/api/tasks/{task_id}/subtasks/{subtask_id}")
def toggle_subtask_route(task_id: str, subtask_id: str, user: CurrentUser = Depends(get_current_user)):
    task = _get_owned_task(task_id, user)
    subtasks = toggle_subtask(task.get("subtasks", []), subtask_id)
    if subtasks is None:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return _save_subtasks(task, user, subtasks)


@app.delete("/api/tasks/{task_id}/subtasks/{subtask_id}")
def delete_subtask(task_id: str, subtask_id: str, user: CurrentUser = Depends(get_current_user)):
    task = _get_owned_task(task_id, user)
    subtasks = remove_subtask(task.get("subtasks", []), subtask_id)
    if subtasks is None:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return _save_subtasks(task, user, subtasks)


# Profile Routes
class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)

    strip_name = field_validator("name", mode="before")(_strip)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=15)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


@app.put("/api/profile/update")
def update_profile(payload: ProfileUpdate, user: CurrentUser = Depends(get_current_user)):
    if user.name == payload.name:
        return {"message": "No changes made", "user": {"name": user.name, "email": user.email}}

    new_slug = get_user_slug(payload.name, user.email)
    same_name = db["users"].find({"name": payload.name, "email": {"$ne": user.email}})
    if any(get_user_slug(u.get("name"), u["email"]) == new_slug for u in same_name):
        raise HTTPException(
            status_code=409,
            detail="This name combined with your email creates a username that's already taken. Please try a different name.",
        )

    updated = db["users"].find_one_and_update(
        {"email": user.email},
        {"$set": {"name": payload.name, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    return {
        "message": "Profile updated successfully",
        "user": {"name": updated["name"], "email": updated["email"], "slug": new_slug},
    }


@app.post("/api/profile/change-password")
def change_password(payload: ChangePasswordRequest, user: CurrentUser = Depends(get_current_user)):
    db_user = get_user_by_id(user.id)
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")
    if not db_user.get("password"):
        raise HTTPException(status_code=400, detail="Cannot change password for OAuth accounts")
    if not verify_password(payload.current_password, db_user["password"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    db["users"].update_one(
        {"_id": db_user["_id"]},
        {"$set": {"password": hash_password(payload.new_password), "updated_at": now_utc()}},
    )
    return {"message": "Password changed successfully"}


@app.post("/api/profile/upload-avatar")
async def upload_avatar(avatar: UploadFile = File(...), user: CurrentUser = Depends(get_current_user)):
    # read at most one byte past the limit
    contents = await avatar.read(MAX_AVATAR_BYTES + 1)
    if len(contents) > MAX_AVATAR_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 2MB")
    mime = avatar.content_type or ""
    if not mime.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    data_url = f"data:{mime};base64,{base64.b64encode(contents).decode('ascii')}"
    res = await run_in_threadpool(
        db["users"].update_one,
        {"email": user.email},
        {"$set": {"avatar": data_url, "updated_at": now_utc()}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Avatar updated successfully", "avatar": data_url}


@app.delete("/api/profile/delete")
def delete_account(user: CurrentUser = Depends(get_current_user)):
    # cascade: tasks are keyed by owner email
    removed = db["tasks"].delete_many({"user_id": user.email}).deleted_count
    deleted = db["users"].find_one_and_delete({"email": user.email})
    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Deleted account %s and %d tasks", user.email, removed)
    return {"message": "Account deleted successfully"}


# Root
@app.get("/")
def read_root():
    return {"message": "Karthavya Task Manager API"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
