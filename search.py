"""
Site-wide search over products, blog posts and product categories.
"""

import logging

from fastapi import APIRouter, Query

from blog import blog_categories
from categories import category_names
from database import collection
from helpers import search_filter, text_content, truncate
from products import product_categories
from responses import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])

MIN_QUERY_LENGTH = 2


def empty_results(query: str) -> dict:
    return {
        "products": {"data": [], "total": 0},
        "posts": {"data": [], "total": 0},
        "categories": {"data": [], "total": 0},
        "total_results": 0,
        "query": query,
    }


def search_products(term: str, page: int, limit: int) -> dict:
    query = {"publish_type": "publish", "visibility": "public",
             **search_filter(term, ["title", "short_description", "treatments", "rubric"])}
    coll = collection("product")
    cursor = coll.find(query, {"title": 1, "slug": 1, "short_description": 1, "product_images": 1,
                               "categories": 1, "primary_category": 1})
    data = []
    for p in cursor.sort("title", 1).skip((page - 1) * limit).limit(limit):
        p["categories"] = category_names(product_categories, p.get("categories") or [])
        primary = p.get("primary_category")
        p["primary_category"] = (category_names(product_categories, [primary]) or [None])[0] if primary else None
        data.append(p)
    return {"data": data, "total": coll.count_documents(query)}


def search_posts(term: str, page: int, limit: int) -> dict:
    query = {"publish_type": "publish", **search_filter(term, ["title", "excerpt", "tags"])}
    coll = collection("blogpost")
    cursor = coll.find(query, {"title": 1, "slug": 1, "excerpt": 1, "featured_image": 1,
                               "published_at": 1, "categories": 1, "content": 1})
    data = []
    for post in cursor.sort("published_at", -1).skip((page - 1) * limit).limit(limit):
        post["categories"] = category_names(blog_categories, post.get("categories") or [])
        content = post.pop("content", None)
        if not post.get("excerpt"):
            post["excerpt"] = truncate(text_content(content))
        data.append(post)
    return {"data": data, "total": coll.count_documents(query)}


def search_categories(term: str, limit: int) -> dict:
    query = {"is_active": True, **search_filter(term, ["name", "description"])}
    coll = product_categories.coll
    products = collection("product")
    data = []
    for c in coll.find(query, {"name": 1, "slug": 1, "description": 1}).sort("name", 1).limit(limit):
        c["product_count"] = products.count_documents(
            {"categories": str(c["_id"]), "publish_type": "publish", "visibility": "public"}
        )
        data.append(c)
    return {"data": data, "total": coll.count_documents(query)}


@router.get("/search")
def search(
    q: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    products: bool = True,
    posts: bool = True,
    categories: bool = True,
):
    term = q.strip()
    if len(term) < MIN_QUERY_LENGTH:
        return success(empty_results(term), "Search completed")

    results = empty_results(term)
    if products:
        results["products"] = search_products(term, page, limit)
    if posts:
        results["posts"] = search_posts(term, page, limit)
    if categories:
        results["categories"] = search_categories(term, limit)
    results["total_results"] = sum(results[k]["total"] for k in ("products", "posts", "categories"))
    logger.debug("Search %r: %d results", term, results["total_results"])
    return success(results, "Search completed")
