"""
Gestionnaires d'exceptions.
- CheckoutError (taxonomie storefront.errors) -> {"detail", "code"} avec son statut HTTP.
- Validation du corps de requête -> 400 invalid_input (au lieu du 422 FastAPI).
- HTTPException -> réponse JSON FastAPI standard.
- Exception inattendue -> 500 journalisé, sans fuite du détail interne.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.errors import CheckoutError, SettlementPersistenceError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        if isinstance(exc, SettlementPersistenceError):
            logger.error("settlement requires reconciliation session_id=%s path=%s", exc.session_id, request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": jsonable_encoder(exc.errors()), "code": "invalid_input"},
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Erreur inattendue sur %s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Erreur interne", "code": "internal_error"})
