"""
Feed query pipeline: filter, sort, paginate and project thoughts.

Filtering, sorting, counting and paging run in MongoDB as an aggregation;
this module builds the stages and turns the resulting documents into their
public form. Query parameters are parsed permissively: anything malformed is
treated as absent rather than rejected.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from auth import ANONYMOUS, Identity

PAGE_SIZE = 10
SORT_FIELDS = ("date", "likes")
PRIVATE_FIELDS = frozenset({"_id", "editToken", "userId", "likesCount", "__v"})


# ---------- Parameters ----------

def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO date or datetime into an aware UTC datetime, or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def as_utc(dt: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_store(dt: datetime) -> datetime:
    """Naive UTC, the form MongoDB stores and compares dates in."""
    return as_utc(dt).replace(tzinfo=None)


@dataclass(frozen=True)
class FeedParams:
    min_likes: Optional[int] = None
    from_date: Optional[datetime] = None
    sort_by: Optional[str] = None
    order: str = "desc"
    page: int = 1

    @classmethod
    def from_query(cls, minLikes=None, fromDate=None, sortBy=None, sort=None, order=None, page=None):
        min_likes = _parse_int(minLikes)
        if min_likes is not None and min_likes < 0:
            min_likes = None

        sort_by = sortBy or sort
        if sort_by not in SORT_FIELDS:
            sort_by = None

        page_num = _parse_int(page)
        if page_num is None or page_num < 1:
            page_num = 1

        return cls(
            min_likes=min_likes,
            from_date=parse_datetime(fromDate),
            sort_by=sort_by,
            order="asc" if order == "asc" else "desc",
            page=page_num,
        )


# ---------- Derived fields ----------

def like_count(thought: dict) -> int:
    if "likesCount" in thought:
        return max(int(thought["likesCount"]), 0)
    hearts = thought.get("hearts")
    if isinstance(hearts, list):
        return len(hearts)
    # legacy counter documents
    if isinstance(hearts, (int, float)) and not isinstance(hearts, bool):
        return max(int(hearts), 0)
    return 0


def is_creator(thought: dict, identity: Identity) -> bool:
    owner = thought.get("userId")
    return identity.is_authenticated and owner is not None and owner == identity.user_id


def project_thought(thought: dict, identity: Identity = ANONYMOUS) -> dict:
    """Public view of a thought: no secrets, no owner or liker ids."""
    d = {}
    if "_id" in thought:
        d["id"] = str(thought["_id"])
    for k, v in thought.items():
        if k in PRIVATE_FIELDS:
            continue
        if isinstance(v, datetime):
            v = as_utc(v).isoformat()
        d[k] = v
    d["hearts"] = like_count(thought)
    d["isCreator"] = is_creator(thought, identity)
    return d


# ---------- Store query ----------

def match_stage(params: FeedParams) -> dict:
    match = {}
    if params.min_likes is not None:
        match["likesCount"] = {"$gte": params.min_likes}
    if params.from_date is not None:
        match["createdAt"] = {"$gte": to_store(params.from_date)}
    return match


def sort_stage(params: FeedParams) -> dict:
    direction = ASCENDING if params.order == "asc" else DESCENDING
    if params.sort_by == "date":
        return {"createdAt": direction}
    if params.sort_by == "likes":
        # newest first among equal like counts, whichever direction likes go
        return {"likesCount": direction, "createdAt": DESCENDING}
    return {"createdAt": DESCENDING}


def filter_pipeline(params: FeedParams) -> list:
    stages = [{"$addFields": {"likesCount": {"$size": {"$ifNull": ["$hearts", []]}}}}]
    match = match_stage(params)
    if match:
        stages.append({"$match": match})
    return stages


def page_pipeline(params: FeedParams, page_size: int = PAGE_SIZE) -> list:
    return filter_pipeline(params) + [
        {"$sort": sort_stage(params)},
        {"$skip": (params.page - 1) * page_size},
        {"$limit": page_size},
        {"$project": {"editToken": 0, "hearts": 0}},
    ]


def envelope(page: int, total: int, results: list, page_size: int = PAGE_SIZE) -> dict:
    return {
        "page": page,
        "numOfPages": math.ceil(total / page_size),
        "numOfTotalMessages": total,
        "pageResults": results,
    }


def list_thoughts(db: Database, params: FeedParams, identity: Identity = ANONYMOUS) -> dict:
    counted = list(db["thought"].aggregate(filter_pipeline(params) + [{"$count": "total"}]))
    total = counted[0]["total"] if counted else 0
    docs = db["thought"].aggregate(page_pipeline(params))
    return envelope(params.page, total, [project_thought(t, identity) for t in docs])


def day_range(day: date) -> Tuple[datetime, datetime]:
    """Store-side bounds [start, end) of a UTC calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)
