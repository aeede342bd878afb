from fastapi import HTTPException


def error_body(message: str, code: str) -> dict:
    return {"ok": False, "error": {"code": code, "message": message}}


def err(message: str, code: str = "bad_request", status: int = 400):
    # always raises, so routes can use it to short-circuit
    raise HTTPException(status_code=status, detail=error_body(message, code))
