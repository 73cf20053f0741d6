"""
Blog ("Nyheter")

Editors write posts as drafts and publish them once the required fields are
filled in. The public site only ever sees posts with publish_type
"publish".
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator

from auth import get_current_user
from categories import CategoryService, category_names, category_router, check_categories_exist
from database import collection, create_document, find_paginated, to_object_id, update_document, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from helpers import (
    generate_slug,
    is_valid_object_id,
    is_valid_slug,
    normalize_slug,
    reading_time,
    sanitize_html,
    search_filter,
    unique_slug,
)
from responses import created, no_content, paginated, success
from schemas import BlogPost, HeaderImage, ImageRef, PostPublishType, Seo, clean_tag_list, object_id_list

logger = logging.getLogger(__name__)

COLLECTION = "blogpost"

blog_categories = CategoryService("blogcategory", COLLECTION, "Blog category")
categories_router = category_router("/api/blog-categories", blog_categories, "blog")

router = APIRouter(prefix="/api/blog-posts", tags=["blog"])

PUBLISHED = {"publish_type": "publish"}

# Fields the public site needs for list views
LIST_PROJECTION = {
    "title": 1, "slug": 1, "excerpt": 1, "featured_image": 1, "author": 1, "author_id": 1,
    "categories": 1, "tags": 1, "published_at": 1, "created_at": 1, "updated_at": 1,
}


class BlogPostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=250)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: Optional[str] = None
    featured_image: Optional[ImageRef] = None
    header_image: Optional[HeaderImage] = None
    author: Optional[str] = Field(None, max_length=100)
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    seo: Optional[Seo] = None
    publish_type: Optional[PostPublishType] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return clean_tag_list(v) if v is not None else v

    @field_validator("categories")
    @classmethod
    def category_ids(cls, v):
        return object_id_list(v) if v is not None else v


# -----------------
# Publishing rules
# -----------------

def publish_checks(post: dict) -> List[dict]:
    """Blocking errors and advisory warnings for publishing ``post``."""
    results = []

    def add(field, message, kind="error"):
        results.append({"field": field, "message": message, "type": kind})

    if not (post.get("title") or "").strip():
        add("title", "Title is required for publishing")
    slug = post.get("slug") or ""
    if not slug.strip():
        add("slug", "Slug is required for publishing")
    elif not is_valid_slug(slug):
        add("slug", "Slug must be lowercase, alphanumeric with hyphens only")
    if not (post.get("content") or "").strip():
        add("content", "Content is required for publishing")

    if not (post.get("excerpt") or "").strip():
        add("excerpt", "Excerpt is recommended for better SEO and social sharing", "warning")
    if not (post.get("featured_image") or {}).get("url"):
        add("featured_image", "Featured image is recommended for better visibility", "warning")
    seo = post.get("seo") or {}
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


def get_post(post_id: str) -> dict:
    doc = collection(COLLECTION).find_one({"_id": to_object_id(post_id, "Invalid post ID format")})
    if not doc:
        raise NotFoundError("Blog post not found")
    return doc


def publish_post(post_id: str):
    post = get_post(post_id)
    checks = publish_checks(post)
    errors = [c for c in checks if c["type"] == "error"]
    warnings = [c for c in checks if c["type"] == "warning"]
    if errors:
        missing = ", ".join(e["field"] for e in errors)
        raise ValidationError(f"Please fill in the following required fields: {missing}", errors=errors)
    changes = {"publish_type": "publish"}
    if not post.get("published_at"):
        changes["published_at"] = utcnow()
    doc = update_document(COLLECTION, post_id, changes)
    logger.info("Blog post published: %s (%d warnings)", post_id, len(warnings))
    return doc, warnings


def with_categories(posts: List[dict]) -> List[dict]:
    """Replace category ids with ``{id, name, slug}`` for display."""
    for post in posts:
        post["categories"] = category_names(blog_categories, post.get("categories") or [])
    return posts


# -----------------
# Public
# -----------------

@router.get("/public")
def list_published(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "-published_at",
):
    query = dict(PUBLISHED)
    if category:
        cat = blog_categories.coll.find_one({"slug": category})
        if not cat:
            return paginated({"data": [], "total": 0, "page": page, "limit": limit, "total_pages": 0})
        query["categories"] = str(cat["_id"])
    if tag:
        query["tags"] = tag
    text = search_filter(search, ["title", "excerpt"])
    if text:
        query.update(text)
    result = find_paginated(COLLECTION, query, page, limit, sort, LIST_PROJECTION)
    return paginated(result, "Posts retrieved successfully", with_categories(result["data"]))


@router.get("/public/tags")
def all_tags():
    tags = sorted(t for t in collection(COLLECTION).distinct("tags", PUBLISHED) if t)
    return success(tags)


@router.get("/public/slug/{slug}")
def get_published_by_slug(slug: str):
    post = collection(COLLECTION).find_one({"slug": slug, **PUBLISHED})
    if not post:
        raise NotFoundError("Blog post not found")
    related = related_posts(post)
    post["reading_time"] = reading_time(post.get("content"))
    with_categories([post])
    return success({"post": post, "related": related})


@router.get("/public/category/{slug}")
def published_by_category(slug: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    cat = blog_categories.get_by_slug(slug)
    query = {**PUBLISHED, "categories": str(cat["_id"])}
    result = find_paginated(COLLECTION, query, page, limit, "-published_at", LIST_PROJECTION)
    return paginated(result, "Posts retrieved successfully", with_categories(result["data"]))


@router.get("/public/tag/{tag}")
def published_by_tag(tag: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    query = {**PUBLISHED, "tags": tag}
    result = find_paginated(COLLECTION, query, page, limit, "-published_at", LIST_PROJECTION)
    return paginated(result, "Posts retrieved successfully", with_categories(result["data"]))


@router.get("/public/author/{author}")
def published_by_author(author: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    """``author`` is either the author's user id or the slug of their display name."""
    if is_valid_object_id(author):
        query = {**PUBLISHED, "author_id": author}
    else:
        names = [n for n in collection(COLLECTION).distinct("author", PUBLISHED) if n and generate_slug(n) == author]
        query = {**PUBLISHED, "author": {"$in": names}}
    result = find_paginated(COLLECTION, query, page, limit, "-published_at", LIST_PROJECTION)
    return paginated(result, "Posts retrieved successfully", with_categories(result["data"]))


def related_posts(post: dict, limit: int = 3) -> List[dict]:
    """Other published posts sharing at least one category, newest first."""
    cats = post.get("categories") or []
    if not cats:
        return []
    cursor = collection(COLLECTION).find(
        {**PUBLISHED, "_id": {"$ne": post["_id"]}, "categories": {"$in": cats}}, LIST_PROJECTION
    ).sort("published_at", -1).limit(limit)
    return list(cursor)


# -----------------
# Dashboard
# -----------------

@router.get("")
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    author: Optional[str] = None,
    publish_type: Optional[PostPublishType] = None,
    sort: str = "-created_at",
    user: dict = Depends(get_current_user),
):
    query = {}
    if publish_type:
        query["publish_type"] = publish_type.value
    if category:
        query["categories"] = category
    if tag:
        query["tags"] = tag
    if author:
        query["author_id"] = author
    text = search_filter(search, ["title", "excerpt", "slug"])
    if text:
        query.update(text)
    result = find_paginated(COLLECTION, query, page, limit, sort, LIST_PROJECTION | {"publish_type": 1})
    return paginated(result, "Posts retrieved successfully")


@router.get("/stats")
def post_stats(user: dict = Depends(get_current_user)):
    coll = collection(COLLECTION)
    stats = {t.value: coll.count_documents({"publish_type": t.value}) for t in PostPublishType}
    return success({
        "total": coll.count_documents({}),
        "published": stats["publish"],
        "draft": stats["draft"],
        "private": stats["private"],
    })


@router.get("/recent")
def recently_updated(limit: int = Query(5, ge=1, le=20), user: dict = Depends(get_current_user)):
    cursor = collection(COLLECTION).find({}, LIST_PROJECTION | {"publish_type": 1}).sort("updated_at", -1).limit(limit)
    return success(list(cursor))


@router.post("")
def create_post(payload: BlogPost, user: dict = Depends(get_current_user)):
    values = payload.model_dump()
    if values.get("slug"):
        slug = normalize_slug(values["slug"])
        if slug_taken(slug):
            raise ConflictError(f'Slug "{slug}" already exists')
    else:
        slug = unique_slug(generate_slug(values["title"]), slug_taken)
    check_categories_exist(blog_categories, values["categories"])
    values.update(
        slug=slug,
        content=sanitize_html(values.get("content")),
        author=values.get("author") or user.get("name"),
        author_id=str(user["_id"]),
        # New posts always start as drafts; publishing runs the checks
        publish_type="draft" if values["publish_type"] == "publish" else values["publish_type"],
        published_at=None,
    )
    post_id = create_document(COLLECTION, values)
    logger.info("Blog post created: %s (%s)", post_id, slug)
    return created(get_post(post_id), "Blog post created successfully")


@router.get("/{post_id}")
def get_post_admin(post_id: str, user: dict = Depends(get_current_user)):
    return success(get_post(post_id))


@router.put("/{post_id}")
def update_post(post_id: str, payload: BlogPostUpdate, user: dict = Depends(get_current_user)):
    post = get_post(post_id)
    changes = payload.model_dump(exclude_unset=True)
    publish_requested = changes.pop("publish_type", None)
    if changes.get("slug"):
        slug = normalize_slug(changes["slug"])
        if slug != post.get("slug") and slug_taken(slug, post_id):
            raise ConflictError(f'Slug "{slug}" already exists')
        changes["slug"] = slug
    if changes.get("categories"):
        check_categories_exist(blog_categories, changes["categories"])
    if "content" in changes:
        changes["content"] = sanitize_html(changes["content"])
    doc = update_document(COLLECTION, post_id, changes) if changes else post
    logger.info("Blog post updated: %s %s", post_id, sorted(changes))

    warnings = []
    if publish_requested == "publish" and post.get("publish_type") != "publish":
        doc, warnings = publish_post(post_id)
    elif publish_requested and publish_requested != "publish":
        doc = update_document(COLLECTION, post_id, {"publish_type": publish_requested})
    data = {"post": doc, "warnings": warnings} if warnings else doc
    return success(data, "Blog post updated successfully")


@router.delete("/{post_id}", status_code=204)
def delete_post(post_id: str, user: dict = Depends(get_current_user)):
    post = get_post(post_id)
    collection(COLLECTION).delete_one({"_id": post["_id"]})
    removed = collection("blogcomment").delete_many({"post_id": post_id}).deleted_count
    logger.info("Blog post deleted: %s (%d comments removed)", post_id, removed)
    return no_content()


@router.post("/{post_id}/publish")
def publish(post_id: str, user: dict = Depends(get_current_user)):
    doc, warnings = publish_post(post_id)
    return success({"post": doc, "warnings": warnings}, "Blog post published successfully")


@router.delete("/{post_id}/publish")
def unpublish(post_id: str, user: dict = Depends(get_current_user)):
    get_post(post_id)
    doc = update_document(COLLECTION, post_id, {"publish_type": "draft"})
    logger.info("Blog post unpublished: %s", post_id)
    return success(doc, "Blog post unpublished successfully")
