from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from app.database import get_session
from app.schemas.orders_schemas import LibraryResponse
from app.schemas.user_schemas import Principal
from app.services.delivery import fetch
from app.services.entitlements import list_library
from app.services.file_store import FileStore, get_file_store
from app.utils.token import get_current_principal

router = APIRouter()


@router.get("", response_model=LibraryResponse)
def my_library(
    session: Session = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
):
    # Not cached: ownership can change between requests
    items = list_library(session, principal.user_id)
    return LibraryResponse(total=len(items), items=items)


@router.get("/{book_id}/download")
def download_ebook(
    book_id: int,
    session: Session = Depends(get_session),
    files: FileStore = Depends(get_file_store),
    principal: Principal = Depends(get_current_principal),
):
    handle = fetch(session, principal, book_id, files=files)

    return StreamingResponse(
        handle.iter_bytes(),
        media_type=handle.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{handle.filename}"',
            "Content-Length": str(handle.size),
        },
    )
