"""
MongoDB access for the Trade Journal.

Every query made through ``JournalStore`` is filtered by the owning user id;
a record owned by someone else looks exactly like a missing one.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import Settings
from errors import NotFoundError
from schemas import Goal, Trade, User, UserSettings

logger = logging.getLogger(__name__)


class ConcurrentUpdateError(Exception):
    """The record changed between read and write."""


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url)
    return client[settings.database_name]


def oid_str(value: Any) -> str:
    return str(value)


def to_object_id(value: str, kind: str = "Record") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{kind} not found") from None


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Replace Mongo's ``_id`` with a string ``id``."""
    doc = dict(doc)
    doc["id"] = oid_str(doc.pop("_id"))
    return doc


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    res = db[collection_name].insert_one(dict(data))
    return oid_str(res.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


class JournalStore:
    """Owner-scoped persistence for users, trades, goals and settings."""

    def __init__(self, db: Database):
        self.db = db

    # ---------- users ----------
    def add_user(self, user: User) -> str:
        return create_document(self.db, "user", user)

    def find_user_by_email(self, email: str) -> Optional[dict]:
        return self.db["user"].find_one({"email": email})

    def get_user(self, user_id: str) -> Optional[dict]:
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        return self.db["user"].find_one({"_id": oid})

    # ---------- trades ----------
    def add_trade(self, trade: Trade) -> dict:
        tid = create_document(self.db, "trade", trade)
        logger.info("Trade %s created for user %s (%s %s)", tid, trade.user_id, trade.result, trade.profit_loss)
        return {"id": tid, **trade.model_dump()}

    def find_trades(
        self,
        user_id: str,
        symbol: Optional[str] = None,
        result: Optional[str] = None,
        direction: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[dict]:
        q: Dict[str, Any] = {"user_id": user_id}
        if symbol:
            q["symbol"] = symbol.strip().upper()
        if result:
            q["result"] = result
        if direction:
            q["direction"] = direction
        if start or end:
            q["date"] = {}
            if start:
                q["date"]["$gte"] = start
            if end:
                q["date"]["$lte"] = end
        return [serialize(t) for t in self.db["trade"].find(q).sort("date", -1)]

    def load_trades(self, user_id: str) -> List[Trade]:
        return [Trade.model_validate(t) for t in get_documents(self.db, "trade", {"user_id": user_id})]

    def get_trade(self, user_id: str, trade_id: str) -> dict:
        t = self.db["trade"].find_one({"_id": to_object_id(trade_id, "Trade"), "user_id": user_id})
        if not t:
            raise NotFoundError("Trade not found")
        return serialize(t)

    def replace_trade(self, user_id: str, trade_id: str, trade: Trade) -> dict:
        res = self.db["trade"].replace_one(
            {"_id": to_object_id(trade_id, "Trade"), "user_id": user_id}, trade.model_dump()
        )
        if res.matched_count == 0:
            raise NotFoundError("Trade not found")
        logger.info("Trade %s updated for user %s (%s %s)", trade_id, user_id, trade.result, trade.profit_loss)
        return {"id": trade_id, **trade.model_dump()}

    def delete_trade(self, user_id: str, trade_id: str) -> None:
        res = self.db["trade"].delete_one({"_id": to_object_id(trade_id, "Trade"), "user_id": user_id})
        if res.deleted_count == 0:
            raise NotFoundError("Trade not found")
        logger.info("Trade %s deleted for user %s", trade_id, user_id)

    # ---------- goals ----------
    def add_goal(self, goal: Goal) -> dict:
        gid = create_document(self.db, "goal", goal.model_dump(exclude={"progress"}))
        return {"id": gid, **goal.model_dump()}

    def find_goals(self, user_id: str) -> List[dict]:
        goals = self.db["goal"].find({"user_id": user_id}).sort("created_at", -1)
        return [{"id": oid_str(g["_id"]), **Goal.model_validate(g).model_dump()} for g in goals]

    def load_goal(self, user_id: str, goal_id: str) -> Goal:
        g = self.db["goal"].find_one({"_id": to_object_id(goal_id, "Goal"), "user_id": user_id})
        if not g:
            raise NotFoundError("Goal not found")
        return Goal.model_validate(g)

    def save_goal(self, goal_id: str, goal: Goal) -> dict:
        """Persist ``goal`` if nobody else wrote it since it was loaded."""
        expected = goal.version
        doc = goal.model_dump(exclude={"progress"})
        doc["version"] = expected + 1
        oid = to_object_id(goal_id, "Goal")
        res = self.db["goal"].update_one(
            {"_id": oid, "user_id": goal.user_id, "version": expected}, {"$set": doc}
        )
        if res.matched_count == 0:
            if self.db["goal"].count_documents({"_id": oid, "user_id": goal.user_id}) == 0:
                raise NotFoundError("Goal not found")
            raise ConcurrentUpdateError("Goal was modified concurrently, reload and retry")
        goal.version = expected + 1
        return {"id": goal_id, **goal.model_dump()}

    def delete_goal(self, user_id: str, goal_id: str) -> None:
        res = self.db["goal"].delete_one({"_id": to_object_id(goal_id, "Goal"), "user_id": user_id})
        if res.deleted_count == 0:
            raise NotFoundError("Goal not found")
        logger.info("Goal %s deleted for user %s", goal_id, user_id)

    # ---------- settings ----------
    def get_settings(self, user_id: str) -> UserSettings:
        s = self.db["usersettings"].find_one({"user_id": user_id})
        if not s:
            settings = UserSettings(user_id=user_id)
            create_document(self.db, "usersettings", settings)
            return settings
        return UserSettings.model_validate(s)

    def add_setting_item(self, user_id: str, field: str, value: str) -> UserSettings:
        self.db["usersettings"].update_one(
            {"user_id": user_id},
            {"$addToSet": {field: value}},
            upsert=True,
        )
        return self.get_settings(user_id)

    def remove_setting_item(self, user_id: str, field: str, value: str) -> UserSettings:
        self.db["usersettings"].update_one({"user_id": user_id}, {"$pull": {field: value}})
        return self.get_settings(user_id)
