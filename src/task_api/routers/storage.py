from __future__ import annotations

import mimetypes

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from ..errors import ObjectNotFoundError
from ..storage import PUBLIC_PREFIX, ObjectStore, get_object_store

router = APIRouter(prefix=PUBLIC_PREFIX, tags=["storage"])


# PUBLIC_INTERFACE
@router.get(
    "/{bucket}/{path:path}",
    summary="Get Public Object",
    description="Serve a public object so that image URLs minted by the memory/local stores resolve.",
    responses={
        200: {"description": "Object bytes"},
        404: {"description": "Unknown bucket or object"},
    },
)
def get_public_object(bucket: str, path: str, store: ObjectStore = Depends(get_object_store)) -> Response:
    if bucket != store.bucket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Object not found")
    try:
        content = store.download(path)
    except ObjectNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Object not found")
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=content, media_type=media_type)
