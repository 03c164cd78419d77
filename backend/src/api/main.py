import logging
from typing import List, Optional

from fastapi import APIRouter, FastAPI, Depends, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.api import notes as note_store
from src.api import users as user_store
from src.api.auth import (
    TokenService,
    get_current_user_id,
    get_password_hash,
    get_token_service,
    pwd_context,
    verify_password,
)
from src.api.config import Settings, load_settings
from src.api.database import build_engine, build_session_factory, get_db
from src.api.errors import InvalidCredentialsError, NotFoundError, NotesAppError
from src.api.models import Base
from src.api.schemas import (
    LoginRequest,
    MessageResponse,
    NoteCreateRequest,
    NoteResponse,
    NoteUpdateRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# PUBLIC_INTERFACE
@router.get("/", tags=["Health"], summary="Health Check")
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON object indicating service status.
    """
    return {"message": "Healthy"}


# -------- Auth Routes --------

# PUBLIC_INTERFACE
@router.post(
    "/auth/register",
    response_model=TokenResponse,
    tags=["Auth"],
    summary="Register a new user",
)
def register_user(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Register a new user and log them in.

    Body:
        name: display name
        email: valid email address, unique regardless of case
        password: plaintext password, at least 6 characters

    Returns:
        TokenResponse carrying a bearer token for the new user.

    Raises:
        400 if the email is already registered.
    """
    user = user_store.create_user(
        db, payload.name, payload.email, get_password_hash(payload.password)
    )
    return TokenResponse(token=tokens.issue(user.id))


# PUBLIC_INTERFACE
@router.post(
    "/auth/login",
    response_model=TokenResponse,
    tags=["Auth"],
    summary="Login and obtain JWT access token",
)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Exchange email and password for a bearer token.

    Raises:
        400 "Invalid credentials" for an unknown email or a wrong password alike.
    """
    user = user_store.find_by_email(db, payload.email)
    if user is None:
        # keep the timing close to the wrong-password path
        pwd_context.dummy_verify()
        raise InvalidCredentialsError()
    if not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for user %s", user.id)
        raise InvalidCredentialsError()
    return TokenResponse(token=tokens.issue(user.id))


# -------- Profile Routes --------

# PUBLIC_INTERFACE
@router.get("/profile", response_model=UserResponse, tags=["Profile"], summary="Get own profile")
def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Return the authenticated user's profile without the password hash."""
    user = user_store.find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# PUBLIC_INTERFACE
@router.put("/profile", response_model=UserResponse, tags=["Profile"], summary="Update own profile")
def update_profile(
    payload: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Update name and/or email. Other body keys are ignored.

    Raises:
        400 if the new email belongs to another account.
    """
    return user_store.update_user(db, user_id, payload.model_dump(exclude_unset=True))


# -------- Notes Routes --------

# PUBLIC_INTERFACE
@router.get(
    "/notes",
    response_model=List[NoteResponse],
    tags=["Notes"],
    summary="List notes with search and tag filter",
)
def list_notes(
    q: Optional[str] = Query(None, description="Search query for title/body"),
    tag: Optional[str] = Query(None, description="Only notes carrying this tag"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Maximum number of notes"),
    offset: int = Query(0, ge=0, description="Number of notes to skip"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    List notes belonging to the current user, most recently updated first.

    Query params:
        q: optional text to match in title or body, case-insensitive
        tag: optional exact tag
        limit, offset: optional paging; without limit every match is returned
    """
    return note_store.list_notes(db, user_id, q=q, tag=tag, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.post("/notes", response_model=NoteResponse, tags=["Notes"], summary="Create a new note")
def create_note(
    payload: NoteCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create a new note for the authenticated user.

    Body:
        title: note title
        body: note body, defaults to ""
        tags: list of tags, defaults to []
    """
    return note_store.create_note(db, user_id, payload.title, payload.body, payload.tags)


# PUBLIC_INTERFACE
@router.get("/notes/{note_id}", response_model=NoteResponse, tags=["Notes"], summary="Get a note by ID")
def get_note(
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Retrieve a single note by ID. Only the owner can access it.
    """
    return note_store.get_note(db, user_id, note_id)


# PUBLIC_INTERFACE
@router.put("/notes/{note_id}", response_model=NoteResponse, tags=["Notes"], summary="Update a note by ID")
def update_note(
    note_id: str,
    payload: NoteUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Update a note. Only the owner can modify it; updatedAt is always set by the server.
    """
    return note_store.update_note(db, user_id, note_id, payload.model_dump(exclude_unset=True))


# PUBLIC_INTERFACE
@router.delete("/notes/{note_id}", response_model=MessageResponse, tags=["Notes"], summary="Delete a note by ID")
def delete_note(
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Delete a note. Only the owner can delete it.
    """
    note_store.delete_note(db, user_id, note_id)
    return MessageResponse(msg="Deleted")


# -------- Error handlers --------

def handle_app_error(request: Request, exc: NotesAppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Server error"},
    )


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application around one engine and one token service.

    Settings default to the process environment; a missing SECRET_KEY aborts
    here with ConfigurationError.
    """
    if settings is None:
        settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Notes API",
        description="Notes application backend API with JWT auth and CRUD for personal notes.",
        version="1.0.0",
        openapi_tags=[
            {"name": "Health", "description": "Service health and status."},
            {"name": "Auth", "description": "User registration and authentication."},
            {"name": "Profile", "description": "Read and update the caller's profile."},
            {"name": "Notes", "description": "CRUD operations for notes."},
        ],
    )

    engine = build_engine(settings.database_url)
    # Initialize database tables
    Base.metadata.create_all(bind=engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.token_service = TokenService(
        settings.secret_key, settings.access_token_expire_minutes
    )
    logger.info("Using database %s", make_url(settings.database_url).render_as_string(hide_password=True))

    # CORS setup - allow frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NotesAppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_unexpected_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)
    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn on the configured port."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
