import structlog
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from adapters.meta.exceptions import MetaAPIError
from exceptions.custom_exceptions import BaseAppException, PipelineException
from utils.response_helpers import error_response

logger = structlog.get_logger(__name__)

def setup_exception_handlers(app):

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning("http_exception", path=request.url.path, detail=exc.detail)
        return error_response(exc.detail, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("request_validation_failed", path=request.url.path, errors=exc.errors())
        return JSONResponse(
            content={
                "success": False,
                "data": None,
                "error": "Invalid or missing request fields",
                "details": jsonable_errors(exc),
            },
            status_code=422
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
        return error_response("Something went wrong on the server", status_code=500)

    @app.exception_handler(MetaAPIError)
    async def meta_api_exception_handler(request: Request, exc: MetaAPIError):
        logger.warning("meta_api_error", path=request.url.path, status=exc.status_code)
        return error_response(exc.message, status_code=502)

    @app.exception_handler(PipelineException)
    async def pipeline_exception_handler(request: Request, exc: PipelineException):
        return error_response(exc.message, status_code=exc.status_code, data=exc.partial)

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException):
        logger.warning("app_exception", path=request.url.path, error=exc.message, status=exc.status_code)
        return error_response(exc.message, status_code=exc.status_code)


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances which JSONResponse cannot encode
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
