import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import get_current_user
from database import create_document, find_by_id, get_db, get_documents, serialize_doc
from envelope import Envelope, success
from schemas import Category as CategorySchema, NonEmptyStr, SubCategory as SubCategorySchema

logger = logging.getLogger(__name__)

category_router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryIn(BaseModel):
    name: NonEmptyStr
    description: NonEmptyStr


def populate_sub_categories(db: Database, categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace each category's sub-category ids with the sub-category documents."""
    ids = {sid for c in categories for sid in c.get("sub_categories", [])}
    subs = {s["_id"]: s for s in db["subcategory"].find({"_id": {"$in": list(ids)}})} if ids else {}
    populated = []
    for c in categories:
        c = dict(c)
        c["sub_categories"] = [subs[sid] for sid in c.get("sub_categories", []) if sid in subs]
        populated.append(c)
    return populated


@category_router.post("", status_code=201, response_model=Envelope)
def create_category(payload: CategoryIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    category = CategorySchema(name=payload.name, description=payload.description)
    try:
        category_id = create_document(db, "category", category)
    except DuplicateKeyError:
        raise HTTPException(status_code=401, detail="Category is already exists!")
    logger.info("Category %s created by %s", category_id, current_user["_id"])
    created = db["category"].find_one({"_id": category_id})
    return success(serialize_doc(created), "New Category is Created!")


@category_router.post("/{category_id}", status_code=201, response_model=Envelope)
def create_sub_category(category_id: str, payload: CategoryIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    category = find_by_id(db, "category", category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category is not exists!")
    sub = SubCategorySchema(name=payload.name, description=payload.description)
    try:
        sub_id = create_document(db, "subcategory", sub)
    except DuplicateKeyError:
        raise HTTPException(status_code=401, detail="SubCategory is already exists!")
    try:
        db["category"].update_one(
            {"_id": category["_id"]},
            {"$push": {"sub_categories": sub_id}, "$set": {"updated_at": datetime.now(timezone.utc)}},
        )
    except PyMongoError:
        # an unlinked sub-category would keep its name reserved
        db["subcategory"].delete_one({"_id": sub_id})
        raise
    logger.info("SubCategory %s added to category %s", sub_id, category["_id"])
    updated = db["category"].find_one({"_id": category["_id"]})
    return success(serialize_doc(populate_sub_categories(db, [updated])[0]), "Sub Category is Created!")


@category_router.get("", response_model=Envelope)
def list_categories(db: Database = Depends(get_db)):
    categories = populate_sub_categories(db, get_documents(db, "category"))
    return success(serialize_doc(categories), "Categories found")
