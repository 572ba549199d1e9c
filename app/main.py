import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Tuple

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from . import crud
from .config import Settings, get_settings
from .db import Database, get_db
from .errors import (
    AccountNotFound,
    ConnectionFailed,
    DuplicateAccount,
    InvalidAccountIdentifier,
    RegistryError,
    TooManyUsernamesForPlatform,
    UnsupportedPlatform,
)
from .form import PGN_NOTE, FormController, Submitter, simulated_submitter
from .schemas import AccountCreate, AccountResponse, UsernameAdd, UsernameKeystroke
from .sessions import SESSION_COOKIE, FormSessionStore
from .sources import SOURCES, parse_source

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

ERROR_STATUS = {
    InvalidAccountIdentifier: 422,
    UnsupportedPlatform: 422,
    AccountNotFound: 404,
    DuplicateAccount: 409,
    TooManyUsernamesForPlatform: 409,
    ConnectionFailed: 503,
}

router = APIRouter()


# ─────────────────────────────────────────────────────────────
# Form session plumbing
# ─────────────────────────────────────────────────────────────

def get_form(request: Request) -> Tuple[str, FormController]:
    forms: FormSessionStore = request.app.state.forms
    return forms.get_or_create(request.cookies.get(SESSION_COOKIE))


def _with_cookie(response, session_id: str):
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


def render_form(request: Request, session_id: str, form: FormController):
    sources = [
        {
            "value": source.value,
            "left": form.counters.left(source),
            "shows_remaining": info.shows_remaining,
            "selected": form.selected_source is source,
            "disabled": form.counters.is_exhausted(source),
        }
        for source, info in SOURCES.items()
    ]
    context = {
        "form": form.view(),
        "sources": sources,
        "pgn_note": PGN_NOTE,
    }
    response = templates.TemplateResponse(request, "form.html", context)
    return _with_cookie(response, session_id)


# ─────────────────────────────────────────────────────────────
# HTML form
# ─────────────────────────────────────────────────────────────

@router.get("/")
def show_form(request: Request, session=Depends(get_form)):
    session_id, form = session
    return render_form(request, session_id, form)


async def keep_typed_fields(request: Request, form: FormController) -> None:
    """Apply whatever the visitor typed, whichever button posted the form."""
    data = await request.form()
    if "username" in data:
        form.change_username(data["username"])
    if "pgn_text" in data:
        form.set_game_record_text(data["pgn_text"])


@router.post("/source")
async def choose_source(
    request: Request,
    source: str = Form(...),
    session=Depends(get_form),
):
    session_id, form = session
    await keep_typed_fields(request, form)
    target = parse_source(source)
    if target is None:
        raise HTTPException(422, f"Unknown source: {source}")

    form.select_source(target)
    return render_form(request, session_id, form)


@router.post("/import")
async def import_pgn(
    request: Request,
    pgn_file: Optional[UploadFile] = File(None),
    session=Depends(get_form),
):
    session_id, form = session
    await keep_typed_fields(request, form)
    if pgn_file is not None and pgn_file.filename:
        await form.import_file(pgn_file)
    return render_form(request, session_id, form)


@router.post("/")
async def submit_form(request: Request, session=Depends(get_form)):
    session_id, form = session
    await keep_typed_fields(request, form)
    await form.submit()
    return render_form(request, session_id, form)


# ─────────────────────────────────────────────────────────────
# JSON form state
# ─────────────────────────────────────────────────────────────

@router.get("/api/form")
def form_state(session=Depends(get_form)):
    session_id, form = session
    return _with_cookie(JSONResponse(form.view()), session_id)


@router.post("/api/form/username")
def form_keystroke(payload: UsernameKeystroke, session=Depends(get_form)):
    session_id, form = session
    form.change_username(payload.username)
    return _with_cookie(JSONResponse(form.view()), session_id)


# ─────────────────────────────────────────────────────────────
# Accounts
# ─────────────────────────────────────────────────────────────

@router.post("/accounts", status_code=201, response_model=AccountResponse)
def create_account(payload: AccountCreate, db: Session = Depends(get_db)):
    account = crud.create_account(
        db,
        payload.email,
        chess_usernames=payload.chess_usernames,
        lichess_usernames=payload.lichess_usernames,
    )
    return AccountResponse.from_account(account)


@router.get("/accounts/{email}", response_model=AccountResponse)
def read_account(email: str, db: Session = Depends(get_db)):
    account = crud.get_account(db, email)
    if account is None:
        raise AccountNotFound(f"No account for {email}")
    return AccountResponse.from_account(account)


@router.post("/accounts/{email}/usernames", response_model=AccountResponse)
def add_username(email: str, payload: UsernameAdd, db: Session = Depends(get_db)):
    account = crud.add_username(db, email, payload.platform, payload.username)
    return AccountResponse.from_account(account)


@router.get("/health")
def health():
    return {"status": "ok"}


# ─────────────────────────────────────────────────────────────
# App factory
# ─────────────────────────────────────────────────────────────

async def registry_error_handler(request: Request, exc: RegistryError):
    status = ERROR_STATUS.get(type(exc), 500)
    if status >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def create_app(
    settings: Optional[Settings] = None,
    submitter: Optional[Submitter] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        logging.basicConfig(level=resolved.log_level)

        database = Database(resolved.database_url, pool_size=resolved.pool_size)
        form_submitter = submitter or simulated_submitter(resolved.submit_delay)

        app.state.settings = resolved
        app.state.database = database
        app.state.forms = FormSessionStore(
            lambda: FormController(form_submitter),
            max_sessions=resolved.max_form_sessions,
        )
        logger.info("Username registry started")
        try:
            yield
        finally:
            database.dispose()
            logger.info("Username registry stopped")

    app = FastAPI(title="Chess Username Registry", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RegistryError, registry_error_handler)
    app.include_router(router)
    return app


app = create_app()
