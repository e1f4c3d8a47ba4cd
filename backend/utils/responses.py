from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data, status_code: int = 200):
    """Return JSONResponse with no-store caching headers (credentials must not be cached)."""
    return JSONResponse(content=jsonable_encoder(data), status_code=status_code, headers=NO_STORE_HEADERS)

def error_json(payload: dict, status_code: int, headers: dict = None):
    """Error envelope: {"error": ..., ["code"], ["remainingSeconds"]}."""
    return JSONResponse(content=payload, status_code=status_code, headers=headers)
