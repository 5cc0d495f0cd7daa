import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from resort_ledger.app.api.v1.router import router as v1_router
from resort_ledger.app.core.config import get_settings
from resort_ledger.app.core.logging import configure_logging
from resort_ledger.services.exceptions import LedgerError

configure_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Resort Stock Ledger", version="0.1.0")


@app.exception_handler(LedgerError)
def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # payload mal formé = erreur de validation métier (400), pas 422
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


app.include_router(v1_router, prefix="/v1")
