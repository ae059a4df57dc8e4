from fastapi import APIRouter, Depends, HTTPException

from app.dependencies.services import get_storage
from app.exceptions import ConflictError, InvalidRequestError
from app.schemas.admin_schemas import TransferRequest, TransferResponse, WalletResponse
from app.services.wallet_service import transfer_to_bank, wallet_summary
from app.storage.base import LedgerStore

router = APIRouter()


@router.get("", response_model=WalletResponse)
def get_wallet(store: LedgerStore = Depends(get_storage)):
    return wallet_summary(store)


@router.post("/transfer", response_model=TransferResponse)
def transfer(payload: TransferRequest, store: LedgerStore = Depends(get_storage)):
    try:
        entry = transfer_to_bank(store, payload.amount, payload.bank_account_info)
    except (InvalidRequestError, ConflictError) as e:
        raise HTTPException(400, str(e))

    return {"success": True, "transaction": entry}
