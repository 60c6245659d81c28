from contextlib import asynccontextmanager
from typing import Any, List

import uvicorn
from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from config import CORS_ORIGINS, DATABASE_URL, HOST, PORT
from database import Base, create_db_engine, create_session_factory, get_db
from errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    UserDirectoryError,
    ValidationError,
)
from logger import logger
from schemas import Message, UserCreatedResponse, UserRead, UserUpdatedResponse
from services import UPDATABLE_FIELDS, UserDirectory

BANNER = "User CRUD API is up! Use the /users endpoint"

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StorageError: 500,
}

router = APIRouter()


def get_directory(db: Session = Depends(get_db)) -> UserDirectory:
    return UserDirectory(db)


def _json_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


@router.get("/", response_class=PlainTextResponse)
def root():
    return BANNER


@router.post("/users", status_code=201, response_model=UserCreatedResponse)
def create_user(
    payload: Any = Body(None),
    directory: UserDirectory = Depends(get_directory),
):
    """
    Register a user.

    Payload:
        {"name": "...", "email": "...", "secret": "...", "phone": "..."}
    """
    body = _json_object(payload)
    user = directory.create(
        name=body.get("name"),
        email=body.get("email"),
        secret=body.get("secret"),
        phone=body.get("phone"),
    )
    return {"message": "User created successfully", "user": user}


@router.get("/users", response_model=List[UserRead])
def list_users(directory: UserDirectory = Depends(get_directory)):
    return directory.list_users()


@router.get("/users/{user_id}", response_model=UserRead)
def get_user(user_id: str, directory: UserDirectory = Depends(get_directory)):
    return directory.get(user_id)


@router.put("/users/{user_id}", response_model=UserUpdatedResponse)
def update_user(
    user_id: str,
    payload: Any = Body(None),
    directory: UserDirectory = Depends(get_directory),
):
    """
    Partially update name, email and/or phone. A field that is missing
    or falsy (null, "", 0, false) is left as stored. The secret cannot be
    changed here.
    """
    body = _json_object(payload)
    changes = {
        field: body[field]
        for field in UPDATABLE_FIELDS
        if body.get(field)
    }
    user = directory.update(user_id, changes)
    return {"message": "User updated successfully", "user": user}


@router.delete("/users/{user_id}", response_model=Message)
def delete_user(user_id: str, directory: UserDirectory = Depends(get_directory)):
    directory.delete(user_id)
    return {"message": "User deleted successfully"}


def _error_handler(status_code: int):
    async def handler(request: Request, exc: UserDirectoryError):
        return JSONResponse({"message": exc.message}, status_code=status_code)

    return handler


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed request to %s", request.url.path)
    return JSONResponse({"message": "Invalid request body."}, status_code=400)


def create_app(database_url: str = DATABASE_URL) -> FastAPI:
    """
    Build the application. The engine (and its connection pool) is created
    when the app starts and disposed when it shuts down.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(database_url)
        # Create tables on startup (simple dev setup)
        Base.metadata.create_all(bind=engine)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        logger.info("Database engine ready (%s)", engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            engine.dispose()
            logger.info("Database engine disposed")

    app = FastAPI(title="User Directory", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for exc_type, status_code in ERROR_STATUS.items():
        app.add_exception_handler(exc_type, _error_handler(status_code))
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    logger.info("Server listening on port %s", PORT)
    uvicorn.run(app, host=HOST, port=PORT)
