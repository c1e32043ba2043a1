from typing import Any

from fastapi.responses import JSONResponse

def success_response(data: Any, status_code: int = 200):
    return JSONResponse(
        content={"success": True, "data": data, "error": None},
        status_code=status_code
    )

def error_response(message: str, status_code: int = 500, data: Any = None):
    return JSONResponse(
        content={"success": False, "data": data, "error": message},
        status_code=status_code
    )
