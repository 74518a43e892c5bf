from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.constants.order_status import PAID
from app.database import get_session
from app.schemas.orders_schemas import PurchaseResponse
from app.schemas.user_schemas import Principal
from app.services.entitlements import purchase
from app.services.file_store import FileStore, get_file_store
from app.utils.token import get_current_principal

router = APIRouter()


@router.post("/{book_id}/purchase", response_model=PurchaseResponse)
def purchase_ebook(
    book_id: int,
    session: Session = Depends(get_session),
    files: FileStore = Depends(get_file_store),
    principal: Principal = Depends(get_current_principal),
):
    # Payment is simulated: the order is PAID as soon as it is recorded
    order_id = purchase(session, principal, book_id, files=files)

    return PurchaseResponse(
        order_id=order_id,
        book_id=book_id,
        status=PAID,
        download_url=f"/library/{book_id}/download",
        message="Purchase complete. Your copy is ready.",
    )
