import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import get_current_user
from database import create_document, find_by_id, get_db, get_documents, serialize_doc, to_object_id
from envelope import Envelope, success
from schemas import NonEmptyStr, Product as ProductSchema

logger = logging.getLogger(__name__)

product_router = APIRouter(prefix="/products", tags=["products"])

# product field -> collection it references
REFERENCES = {"user": "user", "category": "category", "sub_category": "subcategory"}


class ProductIn(BaseModel):
    title: NonEmptyStr
    description: NonEmptyStr
    image_url: NonEmptyStr
    brand: NonEmptyStr
    price: float = Field(..., ge=0, allow_inf_nan=False)
    quantity: int = Field(..., ge=0)
    category_id: NonEmptyStr
    sub_category_id: NonEmptyStr


def populate_products(db: Database, products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Expand the user, category and sub_category references of each product."""
    cache: Dict[str, Dict[Any, Dict[str, Any]]] = {}
    for field, collection in REFERENCES.items():
        ids = list({p[field] for p in products if p.get(field) is not None})
        projection = {"password": 0} if collection == "user" else None
        cache[field] = {d["_id"]: d for d in db[collection].find({"_id": {"$in": ids}}, projection)} if ids else {}
    populated = []
    for p in products:
        p = dict(p)
        for field in REFERENCES:
            p[field] = cache[field].get(p.get(field))
        populated.append(p)
    return populated


def _build_product(db: Database, data: ProductIn, owner: Dict[str, Any]) -> ProductSchema:
    category = find_by_id(db, "category", data.category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category is not exists!")
    sub_category = find_by_id(db, "subcategory", data.sub_category_id)
    if not sub_category:
        raise HTTPException(status_code=404, detail="SubCategory is not exists!")
    return ProductSchema(
        title=data.title,
        description=data.description,
        image_url=data.image_url,
        brand=data.brand,
        price=data.price,
        quantity=data.quantity,
        category=category["_id"],
        sub_category=sub_category["_id"],
        user=owner["_id"],
    )


def _get_populated_or_404(db: Database, product_id: str) -> Dict[str, Any]:
    product = find_by_id(db, "product", product_id)
    if not product:
        raise HTTPException(status_code=404, detail="The product is not found")
    return populate_products(db, [product])[0]


@product_router.post("", status_code=201, response_model=Envelope)
def create_product(data: ProductIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    product = _build_product(db, data, current_user)
    try:
        product_id = create_document(db, "product", product)
    except DuplicateKeyError:
        raise HTTPException(status_code=401, detail="The Product is already exists!")
    logger.info("Product %s created by %s", product_id, current_user["_id"])
    created = db["product"].find_one({"_id": product_id})
    return success(serialize_doc(created), "Product is Created Successfully!")


@product_router.put("/{product_id}", response_model=Envelope)
def update_product(product_id: str, data: ProductIn, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    existing = find_by_id(db, "product", product_id)
    if not existing:
        raise HTTPException(status_code=404, detail="The Product is not exists!")
    product = _build_product(db, data, current_user)
    update_dict = product.model_dump()
    update_dict["updated_at"] = datetime.now(timezone.utc)
    try:
        updated = db["product"].find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": update_dict},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=401, detail="The Product is already exists!")
    if not updated:
        raise HTTPException(status_code=404, detail="The Product is not exists!")
    return success(serialize_doc(updated), "Product is Updated Successfully!")


@product_router.get("", response_model=Envelope)
def list_products(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    products = populate_products(db, get_documents(db, "product"))
    return success(serialize_doc(products), "")


@product_router.get("/categories/{category_id}", response_model=Envelope)
def list_products_by_category(category_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    obj_id = to_object_id(category_id)
    products = get_documents(db, "product", {"category": obj_id}) if obj_id else []
    return success(serialize_doc(populate_products(db, products)), "")


@product_router.get("/{product_id}", response_model=Envelope)
def get_product(product_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    product = _get_populated_or_404(db, product_id)
    return success(serialize_doc(product), "")


@product_router.delete("/{product_id}", response_model=Envelope)
def delete_product(product_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    product = _get_populated_or_404(db, product_id)
    res = db["product"].delete_one({"_id": product["_id"]})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="The product is not found")
    logger.info("Product %s deleted by %s", product["_id"], current_user["_id"])
    return success(serialize_doc(product), "The Product is deleted!")
