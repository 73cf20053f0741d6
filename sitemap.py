"""
XML sitemaps for search engines.

``/sitemap.xml`` is an index pointing at one sitemap per content type.
"""

import logging
from datetime import date, datetime
from html import escape as xml_escape
from typing import Iterable, List, Optional, Union

from fastapi import APIRouter
from fastapi.responses import Response

import config
from database import as_utc, collection, utcnow
from helpers import generate_slug

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sitemap"])

PRIORITY = {
    "homepage": 1.0,
    "main_listing": 0.9,
    "important": 0.8,
    "product": 0.8,
    "blog_post": 0.7,
    "category": 0.7,
    "product_category": 0.7,
    "blog_category": 0.6,
    "tag": 0.5,
    "author": 0.5,
    "legal": 0.3,
}

CHANGE_FREQ = {
    "homepage": "daily",
    "listing": "daily",
    "product": "weekly",
    "blog_post": "monthly",
    "category": "weekly",
    "tag": "monthly",
    "author": "monthly",
    "legal": "yearly",
}

SITEMAPS = ("pages", "posts", "blog-categories", "blog-tags", "authors", "products", "product-categories")

# Static pages: (path, change frequency key, priority key)
STATIC_PAGES = (
    ("", "homepage", "homepage"),
    ("/kontakt", "category", "important"),
    ("/om-oss", "category", "important"),
    ("/utbildningar", "category", "important"),
    ("/starta-eget", "category", "category"),
    ("/faq", "category", "category"),
    ("/integritetspolicy", "legal", "legal"),
)

# Served while the product category collection is still empty
FALLBACK_PRODUCT_CATEGORIES = (
    ("Hårborttagning", "harborttagning"),
    ("Tatueringsborttagning", "tatueringsborttagning"),
    ("Hudföryngring", "hudforyngring"),
    ("CO2 Laser", "co2laser"),
    ("Kropp, muskler & fett", "kropp-muskler-fett"),
    ("Ansiktsbehandlingar", "ansiktsbehandlingar"),
    ("Pigmentfläckar", "pigmentflackar"),
    ("Akne", "akne"),
    ("Ytliga blodkärl & angiom", "ytliga-blodkarl-angiom"),
    ("Kirurgisk utrustning", "kirurgisk-utrustning"),
)

URLSET_OPEN = (
    '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"\n'
    '        xmlns:image="http://www.google.com/schemas/sitemap-image/1.1">'
)


def absolute(path: str) -> str:
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{config.SITE_URL}{path if path.startswith('/') else '/' + path}"


def lastmod(value: Optional[Union[datetime, date]] = None) -> str:
    """``YYYY-MM-DD``; today when no date is known."""
    if value is None:
        value = utcnow()
    if isinstance(value, datetime):
        value = as_utc(value)
    return value.strftime("%Y-%m-%d")


def url_entry(loc: str, modified: str, changefreq: str, priority: float, images: Iterable[dict] = ()) -> str:
    lines = [
        "  <url>",
        f"    <loc>{xml_escape(loc)}</loc>",
        f"    <lastmod>{modified}</lastmod>",
        f"    <changefreq>{changefreq}</changefreq>",
        f"    <priority>{priority:.1f}</priority>",
    ]
    for image in images:
        lines.append("    <image:image>")
        lines.append(f"      <image:loc>{xml_escape(image['loc'])}</image:loc>")
        if image.get("title"):
            lines.append(f"      <image:title>{xml_escape(image['title'])}</image:title>")
        lines.append("    </image:image>")
    lines.append("  </url>")
    return "\n".join(lines)


def urlset(entries: List[str]) -> str:
    return "\n".join(['<?xml version="1.0" encoding="UTF-8"?>', URLSET_OPEN, *entries, "</urlset>"])


def xml_response(body: str) -> Response:
    return Response(
        content=body,
        media_type="application/xml",
        headers={"Cache-Control": f"public, max-age={config.SITEMAP_CACHE_SECONDS}"},
    )


def published_posts() -> List[dict]:
    return list(
        collection("blogpost")
        .find({"publish_type": "publish"}, {"slug": 1, "title": 1, "featured_image": 1, "author": 1,
                                             "tags": 1, "updated_at": 1, "published_at": 1})
        .sort("published_at", -1)
    )


# -----------------
# Routes
# -----------------

@router.get("/sitemap.xml")
def sitemap_index():
    today = lastmod()
    entries = [
        f"  <sitemap>\n    <loc>{xml_escape(absolute(f'/sitemap/{name}.xml'))}</loc>\n"
        f"    <lastmod>{today}</lastmod>\n  </sitemap>"
        for name in SITEMAPS
    ]
    body = "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        *entries,
        "</sitemapindex>",
    ])
    return xml_response(body)


@router.get("/sitemap/pages.xml")
def pages_sitemap():
    today = lastmod()
    entries = [
        url_entry(absolute(path) if path else config.SITE_URL, today, CHANGE_FREQ[freq], PRIORITY[prio])
        for path, freq, prio in STATIC_PAGES
    ]
    return xml_response(urlset(entries))


@router.get("/sitemap/posts.xml")
def posts_sitemap():
    entries = [url_entry(absolute("/nyheter"), lastmod(), CHANGE_FREQ["listing"], PRIORITY["main_listing"])]
    for post in published_posts():
        image = post.get("featured_image") or {}
        images = [{"loc": absolute(image["url"]), "title": image.get("alt") or post.get("title")}] \
            if image.get("url") else []
        entries.append(url_entry(
            absolute(f"/nyheter/{post['slug']}"),
            lastmod(post.get("updated_at") or post.get("published_at")),
            CHANGE_FREQ["blog_post"],
            PRIORITY["blog_post"],
            images,
        ))
    return xml_response(urlset(entries))


@router.get("/sitemap/blog-categories.xml")
def blog_categories_sitemap():
    entries = [
        url_entry(absolute(f"/nyheter/category/{c['slug']}"), lastmod(c.get("updated_at")),
                  CHANGE_FREQ["category"], PRIORITY["blog_category"])
        for c in collection("blogcategory").find({"is_active": True}).sort("slug", 1)
    ]
    return xml_response(urlset(entries))


@router.get("/sitemap/blog-tags.xml")
def blog_tags_sitemap():
    slugs = sorted({generate_slug(tag) for post in published_posts() for tag in post.get("tags") or []} - {""})
    today = lastmod()
    entries = [url_entry(absolute(f"/nyheter/tag/{s}"), today, CHANGE_FREQ["tag"], PRIORITY["tag"]) for s in slugs]
    return xml_response(urlset(entries))


@router.get("/sitemap/authors.xml")
def authors_sitemap():
    slugs = sorted({generate_slug(post.get("author")) for post in published_posts() if post.get("author")} - {""})
    today = lastmod()
    entries = [
        url_entry(absolute(f"/nyheter/author/{s}"), today, CHANGE_FREQ["author"], PRIORITY["author"]) for s in slugs
    ]
    return xml_response(urlset(entries))


@router.get("/sitemap/products.xml")
def products_sitemap():
    by_id = {str(c["_id"]): c for c in collection("category").find({}, {"slug": 1})}
    entries = [url_entry(absolute("/products"), lastmod(), CHANGE_FREQ["listing"], PRIORITY["main_listing"])]
    products = collection("product").find(
        {"publish_type": "publish", "visibility": "public"},
        {"slug": 1, "title": 1, "product_images": 1, "categories": 1, "primary_category": 1,
         "updated_at": 1, "created_at": 1},
    ).sort("title", 1)
    for product in products:
        category_slug = "uncategorized"
        for cid in [product.get("primary_category")] + list(product.get("categories") or []):
            if cid in by_id:
                category_slug = by_id[cid]["slug"]
                break
        images = [
            {"loc": absolute(img), "title": product.get("title")}
            for img in product.get("product_images") or [] if img and img.strip()
        ]
        entries.append(url_entry(
            absolute(f"/products/category/{category_slug}/{product['slug']}"),
            lastmod(product.get("updated_at") or product.get("created_at")),
            CHANGE_FREQ["product"],
            PRIORITY["product"],
            images,
        ))
    return xml_response(urlset(entries))


@router.get("/sitemap/product-categories.xml")
def product_categories_sitemap():
    categories = list(collection("category").find({"is_active": True}).sort("slug", 1))
    entries = []
    if categories:
        for c in categories:
            images = [{"loc": absolute(c["image"]), "title": c.get("name")}] if c.get("image") else []
            entries.append(url_entry(absolute(f"/products/category/{c['slug']}"), lastmod(c.get("updated_at")),
                                     CHANGE_FREQ["category"], PRIORITY["product_category"], images))
    else:
        logger.info("No product categories stored, using fallback list for sitemap")
        today = lastmod()
        entries = [
            url_entry(absolute(f"/products/category/{slug}"), today, CHANGE_FREQ["category"],
                      PRIORITY["product_category"])
            for _, slug in FALLBACK_PRODUCT_CATEGORIES
        ]
    return xml_response(urlset(entries))
