"""
Database Schemas for the Trade Journal

Each Pydantic model maps to a MongoDB collection (lowercased class name).
Derived trade fields (profit_loss, result) are filled in by
``outcome.derive_trade`` on the write path, never by the client.
"""
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, EmailStr, computed_field, field_validator
from datetime import datetime

from outcome import Direction, Result

Session = Literal['pre-market', 'morning', 'midday', 'afternoon', 'power-hour', 'after-hours']
EmotionBefore = Literal['confident', 'anxious', 'excited', 'fearful', 'calm', 'greedy', 'disciplined', 'impulsive', 'neutral']
EmotionAfter = Literal['satisfied', 'disappointed', 'regretful', 'proud', 'frustrated', 'relieved', 'angry', 'neutral']
MarketCondition = Literal['trending', 'ranging', 'volatile', 'calm']

GoalType = Literal['profit', 'winRate', 'consistency', 'drawdown', 'custom']
GoalUnit = Literal['dollar', 'percent', 'days', 'trades']
GoalStatus = Literal['active', 'completed', 'paused', 'failed']


def goal_progress(current_value: float, target_value: float) -> float:
    """Percentage of the target reached, capped at 100."""
    return min(current_value / target_value * 100, 100.0)


class User(BaseModel):
    email: EmailStr = Field(..., description="Unique email")
    password_hash: str = Field(..., description="BCrypt password hash")
    name: Optional[str] = Field(None, description="Display name")
    trading_experience: Literal['beginner', 'intermediate', 'advanced', 'expert'] = 'beginner'
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TradeDetails(BaseModel):
    """Optional journal fields stored alongside a trade."""
    trading_day: Optional[str] = Field(None, description="e.g. 'Day 45'")
    session: Optional[Session] = None
    model: Optional[str] = Field(None, description="Strategy / setup name")
    risk_reward_ratio: Optional[str] = Field(None, description="e.g. '1:2'")
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    risk_amount: Optional[float] = None
    confidence_level: Optional[int] = Field(None, ge=1, le=10)
    emotion_before: Optional[EmotionBefore] = None
    emotion_after: Optional[EmotionAfter] = None
    mistake_tags: List[str] = Field(default_factory=list)
    what_went_right: Optional[str] = Field(None, max_length=2000)
    what_went_wrong: Optional[str] = Field(None, max_length=2000)
    pre_trade_notes: Optional[str] = Field(None, max_length=2000)
    post_trade_notes: Optional[str] = Field(None, max_length=2000)
    market_condition: Optional[MarketCondition] = None
    screenshots: List[str] = Field(default_factory=list, description="URLs to uploaded screenshots")
    tags: List[str] = Field(default_factory=list)


class Trade(TradeDetails):
    user_id: str = Field(..., description="Owner user id (stringified ObjectId)")
    symbol: str = Field(..., description="Symbol, e.g., AAPL")
    direction: Direction
    entry_price: float = Field(..., gt=0, allow_inf_nan=False)
    exit_price: float = Field(..., gt=0, allow_inf_nan=False)
    shares: int = Field(..., ge=1)
    date: datetime = Field(default_factory=datetime.utcnow)
    profit_loss: float = Field(..., allow_inf_nan=False)
    result: Result
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('symbol')
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty")
        return v


class Milestone(BaseModel):
    value: float
    date: datetime
    note: Optional[str] = None


class Goal(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=500)
    type: GoalType
    target_value: float = Field(..., allow_inf_nan=False)
    current_value: float = Field(0.0, allow_inf_nan=False)
    unit: GoalUnit
    target_date: Optional[datetime] = None
    status: GoalStatus = 'active'
    start_date: datetime = Field(default_factory=datetime.utcnow)
    completed_date: Optional[datetime] = None
    milestones: List[Milestone] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('title')
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v

    @field_validator('target_value')
    @classmethod
    def nonzero_target(cls, v: float) -> float:
        if v == 0:
            raise ValueError("target_value must not be zero")
        return v

    @computed_field
    @property
    def progress(self) -> float:
        return goal_progress(self.current_value, self.target_value)


class UserSettings(BaseModel):
    user_id: str
    custom_models: List[str] = Field(default_factory=list)
    custom_mistake_tags: List[str] = Field(default_factory=list)
