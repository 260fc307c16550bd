from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from config import get_settings
from contact_store import ContactStore
from db_models import FinalResponse, IdentifyRequest, ResetResponse
from db_setup import get_db_connection, init_db
from errors import IdentityError
from logging_setup import get_logger, setup_logging
from resolver import IdentityResolver

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)
    init_db(settings.database_path)
    logger.info("service_started", service=settings.service_name, database=settings.database_path)
    yield


app = FastAPI(
    title="Bitespeed Contact Reconciliation API",
    version="1.0.0",
    lifespan=lifespan,
)


def get_store():
    conn = get_db_connection()
    try:
        yield ContactStore(conn)
    finally:
        conn.close()


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        location = [str(part) for part in error["loc"] if part != "body"]
        field = location[0] if location else "body"
        errors.setdefault(field, []).append(error["msg"].removeprefix("Value error, "))
    return JSONResponse(
        status_code=400,
        content={"errors": errors, "message": "The data was not properly provided."},
    )


@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.get("/")
async def root():
    return {"message": "Bitespeed API is up"}


@app.post("/identify", response_model=FinalResponse)
def identify(request: IdentifyRequest, store: ContactStore = Depends(get_store)):
    contact = IdentityResolver(store).identify(request.phoneNumber, request.email)
    return FinalResponse(contact=contact)


@app.post("/reset", response_model=ResetResponse)
def reset(store: ContactStore = Depends(get_store)):
    """Delete every contact."""
    if not get_settings().enable_reset:
        return JSONResponse(status_code=403, content={"message": "Reset is disabled"})

    with store.transaction():
        deleted = store.delete_many()
    logger.warning("contacts_reset", deleted=deleted)

    noun = "contact" if deleted == 1 else "contacts"
    return ResetResponse(message=f"Contacts reset. {deleted} {noun} deleted.")


@app.get("/reset")
async def reset_redirect():
    return RedirectResponse(url="/")


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
