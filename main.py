import calendar
import logging
from datetime import datetime, timedelta
from typing import Callable, Literal, Optional, Dict, Any

from fastapi import APIRouter, FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic import ValidationError as SchemaValidationError
from jose import jwt, JWTError
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import DEFAULT_JWT_SECRET, Settings, configure_logging
from database import ConcurrentUpdateError, JournalStore, connect, oid_str
from errors import NotFoundError, ValidationError
from goals import apply_progress, set_status
from outcome import Direction, Result, derive_trade
from schemas import (
    Goal, GoalType, GoalUnit, Trade, TradeDetails, User as UserSchema,
)
from stats import aggregate_stats

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer()

router = APIRouter()


# Models
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: Optional[str] = None
    trading_experience: Literal['beginner', 'intermediate', 'advanced', 'expert'] = 'beginner'


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TradeCreateRequest(TradeDetails):
    symbol: str = Field(..., min_length=1)
    direction: Direction
    entry_price: float = Field(..., gt=0, allow_inf_nan=False)
    exit_price: float = Field(..., gt=0, allow_inf_nan=False)
    shares: int = Field(..., ge=1)
    date: Optional[datetime] = None


class TradeUpdateRequest(TradeDetails):
    symbol: Optional[str] = Field(None, min_length=1)
    direction: Optional[Direction] = None
    entry_price: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    exit_price: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    shares: Optional[int] = Field(None, ge=1)
    date: Optional[datetime] = None


class GoalCreateRequest(BaseModel):
    title: str
    description: Optional[str] = None
    type: GoalType
    target_value: float
    current_value: float = 0.0
    unit: GoalUnit
    target_date: Optional[datetime] = None
    start_date: Optional[datetime] = None


class GoalUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[GoalType] = None
    target_value: Optional[float] = None
    unit: Optional[GoalUnit] = None
    target_date: Optional[datetime] = None
    status: Optional[Literal['active', 'paused', 'failed']] = None


class ProgressRequest(BaseModel):
    current_value: float
    note: Optional[str] = Field(None, max_length=500)


class SettingItemRequest(BaseModel):
    name: str

    @field_validator('name')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


# Dependencies
def get_store(request: Request) -> JournalStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


# Auth helpers
def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
    store: JournalStore = Depends(get_store),
) -> dict:
    token = credentials.credentials
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = store.get_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def build_trade(fields: Dict[str, Any]) -> Trade:
    """Derive profit/loss and result, then validate the full record."""
    try:
        return Trade.model_validate(derive_trade(fields))
    except SchemaValidationError as e:
        raise ValidationError(str(e)) from e


def one_month_before(now: datetime) -> datetime:
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def range_start(date_range: str, now: datetime) -> datetime:
    if date_range == 'today':
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == 'week':
        return now - timedelta(days=7)
    return one_month_before(now)


# Routes
@router.get("/")
def read_root():
    return {"message": "Trade Journal Backend running"}


@router.get("/health")
def health(request: Request):
    db: Database = request.app.state.db
    response = {"backend": "running", "database": "unavailable"}
    try:
        db.command("ping")
        response["database"] = "connected"
    except PyMongoError as e:
        logger.warning("Database ping failed: %s", e)
        response["database"] = f"error: {str(e)[:80]}"
    return response


# Auth endpoints
@router.post("/auth/signup", response_model=TokenResponse)
def signup(body: SignupRequest, store: JournalStore = Depends(get_store), settings: Settings = Depends(get_settings)):
    email = body.email.lower()
    if store.find_user_by_email(email):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = UserSchema(
        email=email,
        password_hash=get_password_hash(body.password),
        name=body.name,
        trading_experience=body.trading_experience,
    )
    uid = store.add_user(user)
    logger.info("User %s signed up", uid)
    return TokenResponse(access_token=create_access_token({"sub": uid}, settings))


@router.post("/auth/login", response_model=TokenResponse)
def login(body: LoginRequest, store: JournalStore = Depends(get_store), settings: Settings = Depends(get_settings)):
    user = store.find_user_by_email(body.email.lower())
    if not user or not verify_password(body.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return TokenResponse(access_token=create_access_token({"sub": oid_str(user["_id"])}, settings))


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return {
        "id": oid_str(user["_id"]),
        "email": user.get("email"),
        "name": user.get("name"),
        "trading_experience": user.get("trading_experience", "beginner"),
    }


# Trades CRUD
@router.post("/trades", status_code=201)
def create_trade(
    body: TradeCreateRequest,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    fields = body.model_dump()
    fields.update(user_id=oid_str(user["_id"]), date=body.date or now, created_at=now, updated_at=now)
    trade = build_trade(fields)
    return {"trade": store.add_trade(trade)}


@router.get("/trades")
def list_trades(
    symbol: Optional[str] = None,
    result: Optional[Result] = None,
    direction: Optional[Direction] = None,
    date_range: Optional[Literal['today', 'week', 'month']] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    if date_range:
        start = range_start(date_range, clock())
    trades = store.find_trades(
        oid_str(user["_id"]), symbol=symbol, result=result, direction=direction, start=start, end=end,
    )
    return {"count": len(trades), "trades": trades}


@router.get("/trades/stats/overview")
def trade_stats(
    rounded: bool = False,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
):
    stats = aggregate_stats(store.load_trades(oid_str(user["_id"])))
    return {"stats": stats.rounded() if rounded else stats}


@router.get("/trades/{trade_id}")
def get_trade(trade_id: str, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    return {"trade": store.get_trade(oid_str(user["_id"]), trade_id)}


@router.put("/trades/{trade_id}")
def update_trade(
    trade_id: str,
    body: TradeUpdateRequest,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    uid = oid_str(user["_id"])
    existing = store.get_trade(uid, trade_id)
    existing.pop("id")
    update = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    merged = {**existing, **update, "user_id": uid, "updated_at": clock()}
    trade = build_trade(merged)
    return {"trade": store.replace_trade(uid, trade_id, trade)}


@router.delete("/trades/{trade_id}")
def delete_trade(trade_id: str, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    store.delete_trade(oid_str(user["_id"]), trade_id)
    return {"ok": True}


# Goals
@router.get("/goals")
def list_goals(user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    goals = store.find_goals(oid_str(user["_id"]))
    return {"count": len(goals), "goals": goals}


@router.post("/goals", status_code=201)
def create_goal(
    body: GoalCreateRequest,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    fields = body.model_dump()
    fields.update(user_id=oid_str(user["_id"]), start_date=body.start_date or now, created_at=now, updated_at=now)
    try:
        goal = Goal.model_validate(fields)
    except SchemaValidationError as e:
        raise ValidationError(str(e)) from e
    return {"goal": store.add_goal(goal)}


@router.get("/goals/{goal_id}")
def get_goal(goal_id: str, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    goal = store.load_goal(oid_str(user["_id"]), goal_id)
    return {"goal": {"id": goal_id, **goal.model_dump()}}


@router.put("/goals/{goal_id}")
def update_goal(
    goal_id: str,
    body: GoalUpdateRequest,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    goal = store.load_goal(oid_str(user["_id"]), goal_id)
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    status = changes.pop("status", None)
    try:
        goal = Goal.model_validate({**goal.model_dump(exclude={"progress"}), **changes, "updated_at": clock()})
    except SchemaValidationError as e:
        raise ValidationError(str(e)) from e
    if status:
        set_status(goal, status)
    return {"goal": store.save_goal(goal_id, goal)}


@router.patch("/goals/{goal_id}/progress")
def update_goal_progress(
    goal_id: str,
    body: ProgressRequest,
    user: dict = Depends(get_current_user),
    store: JournalStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    goal = store.load_goal(oid_str(user["_id"]), goal_id)
    apply_progress(goal, body.current_value, clock(), note=body.note)
    return {"goal": store.save_goal(goal_id, goal)}


@router.delete("/goals/{goal_id}")
def delete_goal(goal_id: str, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    store.delete_goal(oid_str(user["_id"]), goal_id)
    return {"ok": True, "message": "Goal deleted"}


# Settings
@router.get("/settings")
def read_settings(user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    return {"settings": store.get_settings(oid_str(user["_id"]))}


@router.post("/settings/models")
def add_model(body: SettingItemRequest, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    return {"settings": store.add_setting_item(oid_str(user["_id"]), "custom_models", body.name)}


@router.delete("/settings/models/{name}")
def remove_model(name: str, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    return {"settings": store.remove_setting_item(oid_str(user["_id"]), "custom_models", name)}


@router.post("/settings/mistake-tags")
def add_mistake_tag(body: SettingItemRequest, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    return {"settings": store.add_setting_item(oid_str(user["_id"]), "custom_mistake_tags", body.name)}


@router.delete("/settings/mistake-tags/{name}")
def remove_mistake_tag(name: str, user: dict = Depends(get_current_user), store: JournalStore = Depends(get_store)):
    return {"settings": store.remove_setting_item(oid_str(user["_id"]), "custom_mistake_tags", name)}


# Error mapping
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def conflict_handler(request: Request, exc: ConcurrentUpdateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set, using the development default")

    app = FastAPI(title="Trade Journal")
    app.state.settings = settings
    app.state.db = db if db is not None else connect(settings)
    app.state.store = JournalStore(app.state.db)
    app.state.clock = clock or datetime.utcnow

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ConcurrentUpdateError, conflict_handler)
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
