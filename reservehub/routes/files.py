from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse
import jwt

from ..storage.local_provider import LocalStorageProvider

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/local")
def download_local(token: str = Query(...)):
    """Serve an object from local storage for a signed URL minted by LocalStorageProvider"""
    try:
        path = LocalStorageProvider().resolve_signed_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=403, detail="Link expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=403, detail="Invalid link")
    if not path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, filename=path.name)
