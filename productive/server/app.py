"""
REST backend for the Remote Store.

Every route lives under /api and speaks JSON. Errors are reported as
{"error": message}; request bodies that fail validation get a 400 with
{"errors": [...]}. Data routes require a bearer token issued by
/auth/register or /auth/login.

Usage:
    from productive.server.app import create_app

    app = create_app(load_server_config())
    uvicorn.run(app, host="0.0.0.0", port=5000)
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from productive.lib.config import ServerConfig
from productive.lib.constants import DATA_TYPES
from productive.lib.timestamps import now_iso, parse_ts
from productive.server.auth import TokenError, TokenSigner, hash_password, verify_password
from productive.server.rate_limit import RateLimiter
from productive.store.remote import DuplicateUser, RemoteStore
from productive.sync.engine import reconcile

logger = logging.getLogger(__name__)

DataType = Literal["habits", "crm", "calendar", "settings"]

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ApiProblem(Exception):
    """Rendered as {"error": message} with the given status."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


# Request bodies

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    email: str
    password: str = Field(min_length=6)

    @field_validator("username")
    @classmethod
    def _strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL.match(v):
            raise ValueError("Invalid email address")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL.match(v):
            raise ValueError("Invalid email address")
        return v


class SaveRequest(BaseModel):
    dataType: DataType
    data: Any

    @field_validator("data")
    @classmethod
    def _not_empty(cls, v: Any) -> Any:
        if v is None or v == "":
            raise ValueError("data must not be empty")
        return v


class SyncRequest(BaseModel):
    dataType: DataType
    data: Any = None
    lastSync: str | None = None

    @field_validator("lastSync")
    @classmethod
    def _valid_timestamp(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        parse_ts(v)  # ValueError surfaces as a 400
        return v


def _public_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "username": user["username"],
        "email": user["email"],
        "createdAt": user["created_at"],
        "lastLogin": user["last_login"],
    }


def create_app(
    config: ServerConfig,
    store: RemoteStore | None = None,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the API. A store passed in is left open on shutdown."""
    owns_store = store is None
    store = store or RemoteStore(config.database_path)
    signer = TokenSigner(config.jwt_secret, config.jwt_ttl_days)
    limiter = limiter or RateLimiter(config.rate_limit, config.rate_window_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_store:
            store.close()

    app = FastAPI(title="Productive Cloud", lifespan=lifespan)
    app.state.store = store
    app.state.signer = signer

    # Error rendering

    @app.exception_handler(ApiProblem)
    async def _api_problem(request: Request, exc: ApiProblem):
        return JSONResponse(status_code=exc.status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.middleware("http")
    async def _rate_limit(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            client_ip = request.client.host if request.client else "unknown"
            if not limiter.allow(client_ip):
                logger.warning(f"[API] Rate limit exceeded for {client_ip}")
                return JSONResponse(
                    status_code=429,
                    content={"error": "Too many requests, please try again later"},
                    headers={"Retry-After": str(limiter.retry_after(client_ip))},
                )
        return await call_next(request)

    # Auth

    def current_user(request: Request) -> dict:
        header = request.headers.get("Authorization", "")
        parts = header.split(" ")
        token = parts[1] if len(parts) > 1 else ""
        if not token:
            raise ApiProblem(401, "Access token required")
        try:
            user_id = signer.verify(token)
        except TokenError:
            raise ApiProblem(403, "Invalid token") from None
        user = store.get_user(user_id)
        if user is None:
            raise ApiProblem(401, "Invalid token")
        return user

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "OK", "message": "Productive Cloud Backend is running!"}

    @app.post("/api/auth/register", status_code=201)
    def register(body: RegisterRequest) -> dict:
        if store.user_exists(body.username, body.email):
            raise ApiProblem(400, "Username or email already exists")
        try:
            user = store.create_user(body.username, body.email, hash_password(body.password), now_iso())
        except DuplicateUser as e:
            raise ApiProblem(400, str(e)) from None
        logger.info(f"[API] Registered user {user['id']} ({user['username']})")
        return {
            "message": "User created successfully!",
            "token": signer.issue(user["id"]),
            "user": _public_user(user),
        }

    @app.post("/api/auth/login")
    def login(body: LoginRequest) -> dict:
        user = store.find_user_by_email(body.email)
        if user is None or not verify_password(body.password, user["password_hash"]):
            raise ApiProblem(401, "Invalid credentials")
        store.touch_login(user["id"], now_iso())
        user = store.get_user(user["id"])
        logger.info(f"[API] Login for user {user['id']}")
        return {
            "message": "Login successful!",
            "token": signer.issue(user["id"]),
            "user": _public_user(user),
        }

    @app.get("/api/auth/profile")
    def profile(user: dict = Depends(current_user)) -> dict:
        return {"user": _public_user(user)}

    # Data

    @app.post("/api/data/save")
    def save_data(body: SaveRequest, user: dict = Depends(current_user)) -> dict:
        stamp = now_iso()
        doc = store.put_document(user["id"], body.dataType, body.data, stamp)
        logger.info(f"[API] Saved {body.dataType} for user {user['id']} (version {doc.version})")
        return {"message": "Data saved successfully!", "data": doc.to_dict(), "timestamp": stamp}

    @app.post("/api/data/sync")
    def sync_data(body: SyncRequest, user: dict = Depends(current_user)) -> dict:
        outcome = reconcile(store, user["id"], body.dataType, body.data, body.lastSync)
        return outcome.to_response()

    @app.get("/api/data")
    def get_all_data(user: dict = Depends(current_user)) -> dict:
        docs = store.list_documents(user["id"])
        data = {
            doc.data_type: {"data": doc.data, "lastModified": doc.last_modified, "version": doc.version}
            for doc in docs
        }
        return {"data": data, "totalTypes": len(docs)}

    @app.get("/api/data/{data_type}")
    def get_data(data_type: str, user: dict = Depends(current_user)) -> dict:
        doc = store.get_document(user["id"], data_type)
        if doc is None:
            return {"data": None, "message": "No data found"}
        return {"data": doc.data, "lastModified": doc.last_modified, "version": doc.version}

    @app.delete("/api/data/{data_type}")
    def delete_data(data_type: str, user: dict = Depends(current_user)) -> dict:
        if not store.delete_document(user["id"], data_type):
            raise ApiProblem(404, "Data not found")
        logger.info(f"[API] Deleted {data_type} for user {user['id']}")
        return {"message": "Data deleted successfully!"}

    logger.info(f"[API] App created (data types: {', '.join(DATA_TYPES)})")
    return app
