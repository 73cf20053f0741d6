"""
Products and product categories.

Products go through draft -> (pending review) -> publish. Publishing is
refused while required content is missing; SEO gaps only produce warnings.
Public product pages are built from published, publicly visible products.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo import ReturnDocument

from auth import get_current_user
from categories import CategoryService, category_names, category_router, check_categories_exist
from database import (
    collection,
    create_document,
    delete_document,
    find_paginated,
    is_object_id,
    to_object_id,
    update_document,
    utcnow,
)
from errors import ConflictError, NotFoundError, ValidationError
from helpers import (
    extract_youtube_id,
    generate_slug,
    is_valid_slug,
    is_valid_youtube_url,
    normalize_slug,
    sanitize_html,
    search_filter,
    unique_slug,
    youtube_embed_url,
)
from responses import created, no_content, paginated, success
from schemas import (
    AccordionSection,
    BeforeAfterImage,
    DocumentLink,
    HeroSettings,
    Product,
    ProductPublishType,
    ProductVariant,
    PurchaseInfo,
    QaItem,
    Seo,
    TechSpec,
    Visibility,
    object_id_list,
)

logger = logging.getLogger(__name__)

COLLECTION = "product"

product_categories = CategoryService("category", COLLECTION, "Category")
categories_router = category_router("/api/categories", product_categories, "products")

router = APIRouter(prefix="/api/products", tags=["products"])
navigation_router = APIRouter(prefix="/api", tags=["products"])

PUBLIC = {"publish_type": "publish", "visibility": "public"}

RICH_TEXT_FIELDS = ("description", "product_description", "hidden_description")

SORT_OPTIONS = ("created_at", "-created_at", "title", "-title", "published_at", "-published_at")


class ProductUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=1500)
    product_description: Optional[str] = None
    hidden_description: Optional[str] = None
    benefits: Optional[List[str]] = None
    certifications: Optional[List[str]] = None
    treatments: Optional[List[str]] = None
    product_images: Optional[List[str]] = None
    overview_image: Optional[str] = None
    before_after_images: Optional[List[BeforeAfterImage]] = None
    tech_specifications: Optional[List[TechSpec]] = None
    documentation: Optional[List[DocumentLink]] = None
    purchase_info: Optional[PurchaseInfo] = None
    seo: Optional[Seo] = None
    categories: Optional[List[str]] = None
    primary_category: Optional[str] = None
    qa: Optional[List[QaItem]] = None
    youtube_url: Optional[str] = None
    rubric: Optional[str] = Field(None, max_length=200)
    hero_settings: Optional[HeroSettings] = None
    product_variants: Optional[List[ProductVariant]] = None
    accordion_sections: Optional[List[AccordionSection]] = None
    visibility: Optional[Visibility] = None

    @field_validator("categories")
    @classmethod
    def category_ids(cls, v):
        return object_id_list(v) if v is not None else v

    @field_validator("primary_category")
    @classmethod
    def primary_category_id(cls, v):
        if not v:
            return None
        if not is_object_id(v):
            raise ValueError("Invalid primary category ID")
        return v


# -----------------
# Publishing rules
# -----------------

def publish_checks(product: dict) -> List[dict]:
    """Validate a stored product for publishing; entries carry ``type`` error or warning."""
    results = []

    def add(field, message, kind="error"):
        results.append({"field": field, "message": message, "type": kind})

    if not (product.get("title") or "").strip():
        add("title", "Title is required for publishing")
    slug = product.get("slug") or ""
    if not slug.strip():
        add("slug", "Slug is required for publishing")
    elif not is_valid_slug(slug):
        add("slug", "Slug must be lowercase, alphanumeric with hyphens only")
    if not (product.get("short_description") or "").strip():
        add("short_description", "Short Description is required for publishing")
    if not (product.get("product_description") or "").strip():
        add("product_description", "Description is required for publishing")
    if not product.get("product_images"):
        add("product_images", "At least one product image is required for publishing")

    for i, spec in enumerate(product.get("tech_specifications") or []):
        if not (spec.get("title") or "").strip():
            add(f"tech_specifications[{i}].title", f"Tech specification {i + 1} requires a title")
        if not (spec.get("description") or "").strip():
            add(f"tech_specifications[{i}].description", f"Tech specification {i + 1} requires a description")
    for i, doc in enumerate(product.get("documentation") or []):
        if not (doc.get("title") or "").strip():
            add(f"documentation[{i}].title", f"Documentation {i + 1} requires a title")
        if not (doc.get("url") or "").strip():
            add(f"documentation[{i}].url", f"Documentation {i + 1} requires a URL")
    for i, item in enumerate(product.get("qa") or []):
        if not (item.get("question") or "").strip():
            add(f"qa[{i}].question", f"Q&A {i + 1} requires a question")
        if not (item.get("answer") or "").strip():
            add(f"qa[{i}].answer", f"Q&A {i + 1} requires an answer")
    if product.get("youtube_url") and not is_valid_youtube_url(product["youtube_url"]):
        add("youtube_url", "Invalid YouTube URL format")

    seo = product.get("seo") or {}
    if not (seo.get("title") or "").strip():
        add("seo.title", "SEO title is recommended for better search visibility", "warning")
    if not (seo.get("description") or "").strip():
        add("seo.description", "SEO description is recommended for better search visibility", "warning")
    return results


def slug_taken(slug: str, exclude_id: Optional[str] = None) -> bool:
    query = {"slug": slug}
    if exclude_id:
        query["_id"] = {"$ne": to_object_id(exclude_id)}
    return collection(COLLECTION).find_one(query) is not None


def get_product(product_id: str) -> dict:
    doc = collection(COLLECTION).find_one({"_id": to_object_id(product_id, "Invalid product ID format")})
    if not doc:
        raise NotFoundError("Product not found")
    return doc


def _sanitize(values: dict) -> dict:
    for field in RICH_TEXT_FIELDS:
        if values.get(field) is not None:
            values[field] = sanitize_html(values[field])
    if values.get("purchase_info") and values["purchase_info"].get("description"):
        values["purchase_info"]["description"] = sanitize_html(values["purchase_info"]["description"])
    for section in values.get("accordion_sections") or []:
        section["content"] = sanitize_html(section.get("content"))
    return values


def _check_primary(values: dict) -> None:
    primary = values.get("primary_category")
    if primary:
        check_categories_exist(product_categories, [primary])
        cats = values.get("categories")
        if cats is not None and primary not in cats:
            cats.insert(0, primary)


def _set_publish_type(product_id: str, publish_type: str, user: dict) -> dict:
    get_product(product_id)
    return update_document(COLLECTION, product_id, {"publish_type": publish_type, "last_edited_by": str(user["_id"])})


def public_view(product: dict) -> dict:
    """Strip editor-only fields and resolve references for the product page."""
    product.pop("hidden_description", None)
    product.pop("last_edited_by", None)
    product["qa"] = [q for q in product.get("qa") or [] if q.get("visible", True)]
    product["categories"] = category_names(product_categories, product.get("categories") or [])
    primary = product.get("primary_category")
    product["primary_category"] = (category_names(product_categories, [primary]) or [None])[0] if primary else None
    video_id = extract_youtube_id(product.get("youtube_url"))
    product["youtube_embed_url"] = youtube_embed_url(video_id) if video_id else None
    return product


def primary_category_slug(product: dict, by_id: Dict[str, dict], fallback: Optional[str] = None) -> Optional[str]:
    """Slug used in the product URL: the primary category, else the first category."""
    for cid in [product.get("primary_category")] + list(product.get("categories") or []):
        if cid and cid in by_id:
            return by_id[cid].get("slug")
    return fallback


# -----------------
# Public
# -----------------

@router.get("/public")
def list_public_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = Query("-published_at", pattern="^-?(created_at|title|published_at)$"),
):
    query = dict(PUBLIC)
    if category:
        cat = product_categories.coll.find_one({"slug": category}) or (
            product_categories.coll.find_one({"_id": to_object_id(category)}) if is_object_id(category) else None
        )
        if not cat:
            raise NotFoundError("Category not found")
        query["categories"] = str(cat["_id"])
    text = search_filter(search, ["title", "short_description", "treatments", "certifications"])
    if text:
        query.update(text)
    projection = {"title": 1, "slug": 1, "short_description": 1, "product_images": 1, "overview_image": 1,
                  "categories": 1, "primary_category": 1, "treatments": 1, "certifications": 1,
                  "rubric": 1, "published_at": 1, "like_count": 1}
    result = find_paginated(COLLECTION, query, page, limit, sort, projection)
    by_id = product_categories.by_id_map()
    for p in result["data"]:
        p["primary_category_slug"] = primary_category_slug(p, by_id)
    return paginated(result, "Products retrieved successfully")


@router.get("/public/{slug}")
def get_public_product(slug: str):
    product = collection(COLLECTION).find_one({"slug": slug, **PUBLIC})
    if not product:
        raise NotFoundError("Product not found")
    return success(public_view(product))


@router.post("/{product_id}/like")
def like_product(product_id: str):
    oid = to_object_id(product_id, "Invalid product ID format")
    doc = collection(COLLECTION).find_one_and_update(
        {"_id": oid, **PUBLIC}, {"$inc": {"like_count": 1}}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFoundError("Product not found")
    return success({"like_count": doc.get("like_count", 0)})


@router.delete("/{product_id}/like")
def unlike_product(product_id: str):
    oid = to_object_id(product_id, "Invalid product ID format")
    coll = collection(COLLECTION)
    # Only decrement while positive so concurrent unlikes cannot go below zero
    doc = coll.find_one_and_update(
        {"_id": oid, **PUBLIC, "like_count": {"$gt": 0}}, {"$inc": {"like_count": -1}}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        doc = coll.find_one({"_id": oid, **PUBLIC})
        if not doc:
            raise NotFoundError("Product not found")
    return success({"like_count": doc.get("like_count", 0)})


@navigation_router.get("/navigation")
def navigation():
    """Active categories with their published products, for the navbar dropdown."""
    categories = sorted(
        product_categories.all(active_only=True),
        key=lambda c: (c.get("order") or 0, (c.get("name") or "").lower()),
    )
    by_id = product_categories.by_id_map()
    products = list(
        collection(COLLECTION)
        .find(PUBLIC, {"title": 1, "slug": 1, "categories": 1, "primary_category": 1})
        .sort("title", 1)
    )
    nav = []
    for cat in categories:
        cat_id = str(cat["_id"])
        items = [
            {
                "id": str(p["_id"]),
                "title": p.get("title"),
                "slug": p.get("slug"),
                "primary_category_slug": primary_category_slug(p, by_id, cat.get("slug")),
            }
            for p in products if cat_id in (p.get("categories") or [])
        ]
        if items:
            nav.append({"id": cat_id, "name": cat.get("name"), "slug": cat.get("slug"), "products": items})
    return success({"categories": nav}, "Navigation retrieved successfully")


# -----------------
# Dashboard
# -----------------

@router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    publish_type: Optional[ProductPublishType] = None,
    visibility: Optional[Visibility] = None,
    sort: str = Query("-created_at", pattern="^-?(created_at|title|published_at)$"),
    user: dict = Depends(get_current_user),
):
    query = {}
    if category:
        query["categories"] = category
    if publish_type:
        query["publish_type"] = publish_type.value
    if visibility:
        query["visibility"] = visibility.value
    text = search_filter(search, ["title", "slug", "short_description"])
    if text:
        query.update(text)
    projection = {"title": 1, "slug": 1, "publish_type": 1, "visibility": 1, "categories": 1,
                  "product_images": 1, "published_at": 1, "created_at": 1, "updated_at": 1, "like_count": 1}
    result = find_paginated(COLLECTION, query, page, limit, sort, projection)
    return paginated(result, "Products retrieved successfully")


@router.get("/stats")
def product_stats(user: dict = Depends(get_current_user)):
    coll = collection(COLLECTION)
    counts = {t.value: coll.count_documents({"publish_type": t.value}) for t in ProductPublishType}
    return success({
        "total": coll.count_documents({}),
        "published": counts["publish"],
        "draft": counts["draft"],
        "pending": counts["pending"],
        "private": counts["private"],
        "hidden": coll.count_documents({"visibility": "hidden"}),
    })


@router.get("/treatments")
def all_treatments():
    return success(sorted(t for t in collection(COLLECTION).distinct("treatments", PUBLIC) if t))


@router.get("/certifications")
def all_certifications():
    return success(sorted(c for c in collection(COLLECTION).distinct("certifications", PUBLIC) if c))


@router.post("")
def create_product(payload: Product, user: dict = Depends(get_current_user)):
    values = payload.model_dump()
    if values.get("slug"):
        slug = normalize_slug(values["slug"])
        if slug_taken(slug):
            raise ConflictError(f'Slug "{slug}" already exists')
    else:
        slug = unique_slug(generate_slug(values["title"]), slug_taken)
    check_categories_exist(product_categories, values["categories"])
    _check_primary(values)
    values.update(
        slug=slug,
        # Products are always created as drafts
        publish_type="draft",
        published_at=None,
        like_count=0,
        last_edited_by=str(user["_id"]),
    )
    product_id = create_document(COLLECTION, _sanitize(values))
    logger.info("Product created: %s (%s)", product_id, slug)
    return created(get_product(product_id), "Product created successfully")


@router.get("/{product_id}")
def get_product_admin(product_id: str, user: dict = Depends(get_current_user)):
    return success(get_product(product_id))


@router.put("/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, user: dict = Depends(get_current_user)):
    product = get_product(product_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("slug"):
        slug = normalize_slug(changes["slug"])
        if slug != product.get("slug") and slug_taken(slug, product_id):
            raise ConflictError(f'Slug "{slug}" already exists')
        changes["slug"] = slug
    elif "slug" in changes:
        changes.pop("slug")
    if changes.get("categories"):
        check_categories_exist(product_categories, changes["categories"])
    if "primary_category" in changes:
        if changes["primary_category"] and "categories" not in changes:
            changes["categories"] = list(product.get("categories") or [])
        _check_primary(changes)
    changes["last_edited_by"] = str(user["_id"])
    doc = update_document(COLLECTION, product_id, _sanitize(changes))
    logger.info("Product updated: %s %s", product_id, sorted(changes))
    return success(doc, "Product updated successfully")


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: str, user: dict = Depends(get_current_user)):
    product = get_product(product_id)
    delete_document(COLLECTION, product["_id"])
    logger.info("Product deleted: %s (%s)", product_id, product.get("title"))
    return no_content()


@router.get("/{product_id}/validate")
def preview_validation(product_id: str, user: dict = Depends(get_current_user)):
    checks = publish_checks(get_product(product_id))
    errors = [c for c in checks if c["type"] == "error"]
    return success({
        "can_publish": not errors,
        "errors": errors,
        "warnings": [c for c in checks if c["type"] == "warning"],
    })


@router.post("/{product_id}/publish")
def publish_product(product_id: str, user: dict = Depends(get_current_user)):
    product = get_product(product_id)
    checks = publish_checks(product)
    errors = [c for c in checks if c["type"] == "error"]
    warnings = [c for c in checks if c["type"] == "warning"]
    if errors:
        missing = ", ".join(e["field"] for e in errors)
        raise ValidationError(f"Please fill in the following required fields: {missing}", errors=errors)
    changes = {"publish_type": "publish", "last_edited_by": str(user["_id"])}
    if not product.get("published_at"):
        changes["published_at"] = utcnow()
    doc = update_document(COLLECTION, product_id, changes)
    logger.info("Product published: %s (%d warnings)", product_id, len(warnings))
    return success({"product": doc, "warnings": warnings}, "Product published successfully")


@router.post("/{product_id}/unpublish")
def unpublish_product(product_id: str, user: dict = Depends(get_current_user)):
    doc = _set_publish_type(product_id, "draft", user)
    logger.info("Product unpublished: %s", product_id)
    return success(doc, "Product unpublished successfully")


@router.post("/{product_id}/submit-for-review")
def submit_for_review(product_id: str, user: dict = Depends(get_current_user)):
    doc = _set_publish_type(product_id, "pending", user)
    logger.info("Product submitted for review: %s", product_id)
    return success(doc, "Product submitted for review")


@router.post("/{product_id}/private")
def make_private(product_id: str, user: dict = Depends(get_current_user)):
    return success(_set_publish_type(product_id, "private", user), "Product set to private")


@router.post("/{product_id}/duplicate")
def duplicate_product(product_id: str, user: dict = Depends(get_current_user)):
    source = get_product(product_id)
    copy = {k: v for k, v in source.items() if k not in ("_id", "created_at", "updated_at")}
    base = f"{source.get('slug') or generate_slug(source.get('title'))}-copy"
    copy.update(
        title=f"{source.get('title', '')} (Copy)",
        slug=unique_slug(base, slug_taken),
        publish_type="draft",
        published_at=None,
        like_count=0,
        last_edited_by=str(user["_id"]),
    )
    seo = dict(copy.get("seo") or {})
    seo["canonical_url"] = None
    copy["seo"] = seo
    new_id = create_document(COLLECTION, copy)
    logger.info("Product %s duplicated as %s", product_id, new_id)
    return created(get_product(new_id), "Product duplicated successfully")
