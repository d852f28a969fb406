import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Security
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from booktracker import database
from booktracker.auth import AuthService, Session
from booktracker.config import Settings, settings as default_settings
from booktracker.errors import LibraryError, Unauthorized
from booktracker.library import Library
from booktracker.logging_setup import configure_logging

logger = logging.getLogger(__name__)


# --- Models ---
class CredentialsModel(BaseModel):
    username: str | None = None
    password: str | None = None


class SessionModel(BaseModel):
    id: str
    username: str
    token: str


class UserModel(BaseModel):
    id: str
    username: str
    createdAt: str | None = None


class BorrowInfoModel(BaseModel):
    name: str | None = None
    department: str | None = None
    section: str | None = None
    borrowDate: str | None = Field(default=None, description="YYYY-MM-DD")


class BookModel(BaseModel):
    id: str
    title: str
    author: str
    genre: str | None = None
    description: str | None = None
    year: int | None = None
    available: bool
    borrowInfo: BorrowInfoModel | None = None
    createdAt: str | None = None
    updatedAt: str | None = None


class BookDraftModel(BaseModel):
    title: str | None = None
    author: str | None = None
    genre: str | None = None
    description: str | None = None
    year: int | None = None


class BookUpdateModel(BookDraftModel):
    available: bool | None = None
    borrowInfo: BorrowInfoModel | None = None


class BorrowRequestModel(BaseModel):
    borrowInfo: BorrowInfoModel | None = None


class ReturnRequestModel(BaseModel):
    returnDate: str | None = Field(default=None, description="Defaults to today")


class BookMutationModel(BaseModel):
    message: str
    book: BookModel


class ReturnResponseModel(BookMutationModel):
    fine: int = 0
    daysBorrowed: int | None = None


class StatsModel(BaseModel):
    total_books: int
    available_books: int
    borrowed_books: int


# --- Dependencies ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_library(request: Request) -> Library:
    return request.app.state.library


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> Session:
    """Resolve the bearer token of the request into a Session, or answer 401."""
    if credentials is None:
        raise Unauthorized("Not authorized, no token")
    return auth.authenticate(credentials.credentials)


def get_list_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[Session]:
    """Listing books is public unless the deployment turns that off."""
    if request.app.state.settings.public_book_list:
        return None
    return get_session(credentials, auth)


# --- Routes ---
router = APIRouter()


@router.post("/auth/register", response_model=SessionModel, status_code=201)
def register(payload: CredentialsModel, auth: AuthService = Depends(get_auth_service)):
    """Create an account and return a session token for it."""
    user = auth.register(payload.username, payload.password)
    return auth.open_session(user).to_dict()


@router.post("/auth/login", response_model=SessionModel)
def login(payload: CredentialsModel, auth: AuthService = Depends(get_auth_service)):
    return auth.login(payload.username, payload.password).to_dict()


@router.get("/auth/me", response_model=UserModel)
def current_user(session: Session = Depends(get_session), auth: AuthService = Depends(get_auth_service)):
    return auth.get_user(session.user_id).public_view()


@router.get("/books", response_model=List[BookModel])
def list_books(
    q: Optional[str] = Query(None, description="Filter by title, author or genre"),
    library: Library = Depends(get_library),
    session: Optional[Session] = Depends(get_list_session),
):
    return [book.to_dict() for book in library.list_books(q)]


@router.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, library: Library = Depends(get_library), session: Session = Depends(get_session)):
    return library.get_book(book_id).to_dict()


@router.post("/books", response_model=BookMutationModel, status_code=201)
def add_book(payload: BookDraftModel, library: Library = Depends(get_library),
             session: Session = Depends(get_session)):
    return library.add_book(payload.model_dump()).to_dict()


@router.put("/books/{book_id}", response_model=BookMutationModel)
def update_book(book_id: str, payload: BookUpdateModel, library: Library = Depends(get_library),
                session: Session = Depends(get_session)):
    """Overwrite the provided fields of a book; omitted fields keep their value."""
    return library.edit_book(book_id, payload.model_dump(exclude_unset=True)).to_dict()


@router.delete("/books/{book_id}", response_model=BookMutationModel)
def delete_book(book_id: str, library: Library = Depends(get_library), session: Session = Depends(get_session)):
    return library.delete_book(book_id).to_dict()


@router.put("/books/{book_id}/borrow", response_model=BookMutationModel)
def borrow_book(book_id: str, payload: BorrowRequestModel, library: Library = Depends(get_library),
                session: Session = Depends(get_session)):
    borrower = payload.borrowInfo.model_dump() if payload.borrowInfo else None
    return library.borrow_book(book_id, borrower).to_dict()


@router.put("/books/{book_id}/return", response_model=ReturnResponseModel)
def return_book(book_id: str, payload: Optional[ReturnRequestModel] = None,
                library: Library = Depends(get_library), session: Session = Depends(get_session)):
    """Return a borrowed book. Without a returnDate the book is returned today."""
    return_date: Any = payload.returnDate if payload and payload.returnDate else date.today()
    return library.return_book(book_id, return_date).to_dict()


@router.get("/stats", response_model=StatsModel)
def get_stats(library: Library = Depends(get_library)):
    return library.get_statistics()


# --- Error handlers ---
async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status_code), content={"message": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request body", "errors": jsonable_encoder(exc.errors())},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "API Endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """Build the API with its own Library and AuthService bound to ``config``."""
    config = config or default_settings
    configure_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("%s %s started (db=%s)", config.app_name, config.app_version, config.database_file)
        yield
        logger.info("%s stopped", config.app_name)

    app = FastAPI(title=config.app_name, version=config.app_version, debug=config.debug, lifespan=lifespan)
    app.state.settings = config
    app.state.library = Library(db_file=config.database_file, config=config)
    app.state.auth = AuthService(db_file=config.database_file, config=config)

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        if "/auth/" in request.url.path:
            response.headers["Cache-Control"] = "no-store"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    app.add_exception_handler(LibraryError, library_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.get("/")
    def read_root():
        return {"message": "Book Management API is running!"}

    @app.get("/health")
    def health():
        """Lightweight health check: database reachability and book count."""
        db_ok = database.ping(config.database_file)
        return {
            "status": "healthy" if db_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "db": db_ok,
            "total_books": app.state.library.repository.count() if db_ok else None,
        }

    app.include_router(router)
    # The browser client talks to the /api prefixed paths.
    app.include_router(router, prefix="/api", include_in_schema=False)
    return app
