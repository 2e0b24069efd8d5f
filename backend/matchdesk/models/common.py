"""
backend/matchdesk/models/common.py

Purpose:
    BSON ObjectId bridge for Pydantic V2 models of Mongo-backed predictions
    and tickets, plus id coercion used at the repository boundary.

Dependencies:
    - bson.ObjectId
    - pydantic_core.core_schema
"""

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema


def to_object_id(value: Any) -> ObjectId:
    """Coerce a str/ObjectId into ObjectId. Raises bson InvalidId on garbage."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise InvalidId(f"{value!r} is not a valid ObjectId")
    return ObjectId(value)


class PyObjectId(str):
    """Accepts ObjectId or its hex string; always serializes to the hex string."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.json_or_python_schema(
            json_schema=core_schema.no_info_after_validator_function(
                to_object_id, core_schema.str_schema()
            ),
            python_schema=core_schema.no_info_plain_validator_function(to_object_id),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )
