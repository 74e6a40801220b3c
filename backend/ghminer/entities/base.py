from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from ghminer.utils.datetime import parse_datetime


def _to_str(value: Any) -> Any:
    return str(value) if isinstance(value, ObjectId) else value


PyObjectId = Annotated[str, BeforeValidator(_to_str)]


class BaseEntity(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[PyObjectId] = Field(None, alias="_id")

    def to_mongo(self) -> Dict[str, Any]:
        """Document for insertion; the store assigns ``_id``."""
        return self.model_dump(by_alias=True, exclude={"id"})


def naive_utc(value: Any) -> Optional[datetime]:
    return parse_datetime(value, default_now=False)


class TimestampedEntity(BaseEntity):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _naive_utc(cls, value: Any) -> Optional[datetime]:
        return naive_utc(value)
