import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog import CatalogService
from .config import settings
from .errors import UserNotFoundError
from .logging_config import setup_logging
from .models import (
    AccountTypeUpdate,
    ActionResult,
    AddCreditRequest,
    AppSettings,
    EarningsUpdate,
    PayoutRateUpdate,
    PlatformFinancials,
    PriceUpdate,
    ProcessWithdrawalRequest,
    RegisterUserRequest,
    RoleUpdate,
    Song,
    SubscriptionGrant,
    User,
    WalletSummary,
    Withdrawal,
    WithdrawalForm,
)
from .service import WalletService
from .storage import RecordStore

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "ValidationError": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "UserNotFound": status.HTTP_404_NOT_FOUND,
    "NotFound": status.HTTP_404_NOT_FOUND,
    "InsufficientBalance": status.HTTP_400_BAD_REQUEST,
    "BelowMinimum": status.HTTP_400_BAD_REQUEST,
    "PermissionDenied": status.HTTP_403_FORBIDDEN,
    "InvalidStateTransition": status.HTTP_409_CONFLICT,
    "PersistenceError": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

router = APIRouter()


def get_wallet(request: Request) -> WalletService:
    return request.app.state.wallet


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_caller(
    request: Request,
    x_user_id: str = Header(..., description="Id of the user making the request"),
) -> User:
    caller = request.app.state.store.find_user(x_user_id)
    if not caller:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown caller")
    return caller


def get_admin(caller: User = Depends(get_caller)) -> User:
    if not caller.is_admin():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return caller


def get_super_admin(caller: User = Depends(get_caller)) -> User:
    if not caller.is_super_admin():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super Admin access required")
    return caller


def respond(result: ActionResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    code = success_status if result.success else ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


def ensure_self_or_admin(caller: User, user_id: str) -> None:
    if caller.id != user_id and not caller.is_admin():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this account")


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "music-wallet"}


# Wallet

@router.get("/users/{user_id}/wallet", response_model=WalletSummary, tags=["Wallet"])
def get_user_wallet(
    user_id: str,
    caller: User = Depends(get_caller),
    wallet: WalletService = Depends(get_wallet),
) -> WalletSummary:
    ensure_self_or_admin(caller, user_id)
    try:
        return wallet.get_wallet_summary(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


@router.post("/users/{user_id}/withdrawals", response_model=ActionResult, tags=["Wallet"])
def request_withdrawal(
    user_id: str,
    form: WithdrawalForm,
    caller: User = Depends(get_caller),
    wallet: WalletService = Depends(get_wallet),
):
    if caller.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Withdrawals can only be requested by the account owner")
    result = wallet.request_withdrawal(user_id, form.amount, form.upi_id, form.upi_name)
    return respond(result, status.HTTP_201_CREATED)


@router.get("/admin/withdrawals", response_model=list[Withdrawal], tags=["Admin"])
def list_withdrawals(
    admin: User = Depends(get_admin),
    wallet: WalletService = Depends(get_wallet),
) -> list[Withdrawal]:
    return wallet.list_withdrawals()


@router.post("/admin/withdrawals/{withdrawal_id}/status", response_model=ActionResult, tags=["Admin"])
def process_withdrawal(
    withdrawal_id: str,
    body: ProcessWithdrawalRequest,
    admin: User = Depends(get_admin),
    wallet: WalletService = Depends(get_wallet),
):
    return respond(wallet.process_withdrawal(withdrawal_id, admin.id, body.status))


@router.post("/admin/users/{user_id}/credits", response_model=ActionResult, tags=["Admin"])
def add_credit(
    user_id: str,
    body: AddCreditRequest,
    admin: User = Depends(get_admin),
    wallet: WalletService = Depends(get_wallet),
):
    return respond(wallet.add_credit(user_id, admin.id, body.amount, body.note), status.HTTP_201_CREATED)


@router.get("/admin/financials", response_model=PlatformFinancials, tags=["Admin"])
def platform_financials(
    admin: User = Depends(get_super_admin),
    wallet: WalletService = Depends(get_wallet),
) -> PlatformFinancials:
    return wallet.get_platform_financials()


# Users

@router.post("/users", response_model=ActionResult, tags=["Users"])
def register_user(body: RegisterUserRequest, catalog: CatalogService = Depends(get_catalog)):
    return respond(catalog.register_user(body.name, body.email), status.HTTP_201_CREATED)


@router.get("/users/{user_id}", response_model=User, tags=["Users"])
def get_user(
    user_id: str,
    caller: User = Depends(get_caller),
    catalog: CatalogService = Depends(get_catalog),
) -> User:
    ensure_self_or_admin(caller, user_id)
    try:
        return catalog.get_user(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


@router.get("/users/{user_id}/subscription-price", tags=["Users"])
def subscription_price(
    user_id: str,
    caller: User = Depends(get_caller),
    catalog: CatalogService = Depends(get_catalog),
) -> dict[str, Decimal]:
    ensure_self_or_admin(caller, user_id)
    try:
        return {"price": catalog.subscription_price(user_id)}
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


@router.get("/admin/users", response_model=list[User], tags=["Admin"])
def list_users(admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog)) -> list[User]:
    return catalog.list_users()


@router.put("/admin/users/{user_id}/role", response_model=ActionResult, tags=["Admin"])
def update_user_role(
    user_id: str, body: RoleUpdate,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.update_user_role(user_id, body.role, admin.id))


@router.put("/admin/users/{user_id}/account-type", response_model=ActionResult, tags=["Admin"])
def update_user_account_type(
    user_id: str, body: AccountTypeUpdate,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.update_user_account_type(user_id, body.account_type, admin.id))


@router.put("/admin/users/{user_id}/payout-rate", response_model=ActionResult, tags=["Admin"])
def update_payout_rate(
    user_id: str, body: PayoutRateUpdate,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.update_payout_rate(user_id, body.rate, admin.id))


@router.post("/admin/users/{user_id}/subscription", response_model=ActionResult, tags=["Admin"])
def grant_subscription(
    user_id: str, body: SubscriptionGrant,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.grant_subscription(user_id, body.months, admin.id))


@router.delete("/admin/users/{user_id}/subscription", response_model=ActionResult, tags=["Admin"])
def revoke_subscription(
    user_id: str,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.revoke_subscription(user_id, admin.id))


# Songs

@router.get("/users/{user_id}/songs", response_model=list[Song], tags=["Songs"])
def songs_for_user(
    user_id: str,
    caller: User = Depends(get_caller),
    catalog: CatalogService = Depends(get_catalog),
) -> list[Song]:
    ensure_self_or_admin(caller, user_id)
    return catalog.songs_for_user(user_id)


@router.post("/users/{user_id}/songs", response_model=ActionResult, tags=["Songs"])
def submit_song(
    user_id: str,
    body: dict[str, Any] = Body(...),
    caller: User = Depends(get_caller),
    catalog: CatalogService = Depends(get_catalog),
):
    ensure_self_or_admin(caller, user_id)
    return respond(catalog.submit_song(user_id, body), status.HTTP_201_CREATED)


@router.post("/users/{user_id}/songs/paid", response_model=ActionResult, tags=["Songs"])
def submit_paid_song(
    user_id: str,
    body: dict[str, Any] = Body(...),
    caller: User = Depends(get_caller),
    catalog: CatalogService = Depends(get_catalog),
):
    ensure_self_or_admin(caller, user_id)
    return respond(catalog.submit_paid_song(user_id, body), status.HTTP_201_CREATED)


@router.get("/admin/songs/pending", response_model=list[Song], tags=["Admin"])
def pending_songs(admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog)) -> list[Song]:
    return catalog.pending_songs()


@router.get("/admin/songs/approved", response_model=list[Song], tags=["Admin"])
def approved_songs(admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog)) -> list[Song]:
    return catalog.approved_songs()


@router.post("/admin/songs/{song_id}/approve", response_model=ActionResult, tags=["Admin"])
def approve_song(song_id: str, admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog)):
    return respond(catalog.approve_song(song_id, admin.id))


@router.post("/admin/songs/{song_id}/decline", response_model=ActionResult, tags=["Admin"])
def decline_song(song_id: str, admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog)):
    return respond(catalog.decline_song(song_id, admin.id))


@router.put("/admin/songs/{song_id}/earnings", response_model=ActionResult, tags=["Admin"])
def update_song_earnings(
    song_id: str, body: EarningsUpdate,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.update_song_earnings(song_id, body.earnings, admin.id))


# Settings

@router.get("/settings", response_model=AppSettings, tags=["Settings"])
def get_settings(catalog: CatalogService = Depends(get_catalog)) -> AppSettings:
    return catalog.get_settings()


@router.put("/admin/settings/prices", response_model=ActionResult, tags=["Admin"])
def update_prices(
    body: PriceUpdate,
    admin: User = Depends(get_admin), catalog: CatalogService = Depends(get_catalog),
):
    return respond(catalog.update_prices(body.prices, admin.id))


def create_app(store: Optional[RecordStore] = None) -> FastAPI:
    app = FastAPI(
        title="Music Wallet API",
        description="Artist earnings, credits and withdrawal payouts for a music submission platform",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = store or RecordStore(settings.DATA_FILE, seed=settings.SEED_DATA)
    app.state.store = store
    app.state.wallet = WalletService(
        store,
        min_withdrawal=settings.MIN_WITHDRAWAL_AMOUNT,
        default_payout_rate=settings.DEFAULT_PAYOUT_RATE,
    )
    app.state.catalog = CatalogService(store)
    app.include_router(router)
    logger.info(f"Record store: {store.path or 'in-memory'}")
    return app


setup_logging(settings.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
