from fastapi import APIRouter

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/version")
def version():
    from ..api import APP_NAME, APP_VERSION
    return {"app": APP_NAME, "version": APP_VERSION}
