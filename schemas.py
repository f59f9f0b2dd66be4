"""
Database Schemas

Each Pydantic model represents a collection in MongoDB.
Model name lowercased is the collection name (SubCategory -> "subcategory").
"""

import re
from typing import Annotated, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

PASSWORD_MIN_LENGTH = 8


def check_password_strength(value: str) -> str:
    if (
        len(value) < PASSWORD_MIN_LENGTH
        or not re.search(r"[a-z]", value)
        or not re.search(r"[A-Z]", value)
        or not re.search(r"\d", value)
        or not re.search(r"[^A-Za-z0-9]", value)
    ):
        raise ValueError(
            "Password must be at least 8 characters and contain an uppercase letter, "
            "a lowercase letter, a number and a symbol"
        )
    return value


class _Document(BaseModel):
    # references are stored as real ObjectIds
    model_config = ConfigDict(arbitrary_types_allowed=True)


class User(_Document):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="BCrypt hashed password")
    image_url: Optional[str] = Field(None, description="Gravatar URL")
    is_admin: bool = False
    is_super_admin: bool = False


class SubCategory(_Document):
    name: str
    description: str


class Category(_Document):
    name: str
    description: str
    sub_categories: List[ObjectId] = Field(default_factory=list, description="SubCategory _ids")


class Product(_Document):
    title: str
    description: str
    image_url: str
    brand: str
    price: float = Field(..., ge=0, allow_inf_nan=False)
    quantity: int = Field(..., ge=0)
    category: ObjectId
    sub_category: ObjectId
    user: ObjectId = Field(..., description="Owner User _id")
