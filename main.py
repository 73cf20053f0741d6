import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

import auth
import blog
import callback
import comments
import config
import database
import inquiries
import pages
import products
import search
import sitemap
from auth import get_current_user
from database import collection, create_document
from errors import install_error_handlers
from logging_setup import setup_logging
from responses import success
from schemas import BlogPost, Category, BlogCategory, Product

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)
    if database.db is not None:
        try:
            database.ensure_indexes()
        except Exception as e:
            logger.error("Could not create indexes: %s", e)
    else:
        logger.warning("DATABASE_URL/DATABASE_NAME not set, database routes will fail")
    logger.info("%s %s ready", config.APP_NAME, config.APP_VERSION)
    yield


app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

app.include_router(auth.router)
app.include_router(inquiries.router)
app.include_router(callback.router)
app.include_router(blog.categories_router)
app.include_router(comments.post_comments_router)
app.include_router(blog.router)
app.include_router(comments.router)
app.include_router(products.categories_router)
app.include_router(products.navigation_router)
app.include_router(products.router)
app.include_router(search.router)
app.include_router(sitemap.router)
# Matches /api/{page}-page, keep last
app.include_router(pages.router)

# -----------------
# Basic routes
# -----------------
@app.get("/")
def read_root():
    return {"message": f"{config.APP_NAME} running"}

# -----------------
# Dashboard
# -----------------
@app.get("/api/dashboard")
def dashboard(user: dict = Depends(get_current_user)):
    submissions = collection(inquiries.COLLECTION)
    posts = collection(blog.COLLECTION)
    items = collection(products.COLLECTION)
    recent = submissions.find(
        {}, {"type": 1, "full_name": 1, "email": 1, "status": 1, "product_name": 1, "created_at": 1}
    ).sort("created_at", -1).limit(5)
    stats = {
        "inquiries": {
            "total": submissions.count_documents({}),
            "new": submissions.count_documents({"status": "new"}),
            "read": submissions.count_documents({"status": "read"}),
            "archived": submissions.count_documents({"status": "archived"}),
        },
        "comments": {"pending": collection(comments.COLLECTION).count_documents({"status": "pending"})},
        "products": {
            "total": items.count_documents({}),
            "published": items.count_documents({"publish_type": "publish"}),
            "draft": items.count_documents({"publish_type": "draft"}),
            "pending": items.count_documents({"publish_type": "pending"}),
        },
        "posts": {
            "total": posts.count_documents({}),
            "published": posts.count_documents({"publish_type": "publish"}),
            "draft": posts.count_documents({"publish_type": "draft"}),
        },
        "recent_inquiries": list(recent),
    }
    return success({"welcome": f"Välkommen, {user.get('name', '')}", "stats": stats})

# -----------------
# Seed sample content (idempotent)
# -----------------
SAMPLE_BLOG_CATEGORIES = [
    {"name": "Nyheter", "slug": "nyheter", "order": 0},
    {"name": "Behandlingar", "slug": "behandlingar", "order": 1},
]

SAMPLE_PRODUCT_CATEGORIES = [
    {"name": "Hårborttagning", "slug": "harborttagning", "order": 0},
    {"name": "Hudföryngring", "slug": "hudforyngring", "order": 1},
]

SAMPLE_POSTS = [
    {
        "title": "Så väljer du rätt laser för kliniken",
        "slug": "sa-valjer-du-ratt-laser-for-kliniken",
        "excerpt": "Våglängd, effekt och service: det här ska du titta på innan du investerar.",
        "content": "<p>Att köpa en laser är en stor investering. Börja med behandlingarna du vill erbjuda.</p>",
        "author": "Synos Medical",
        "tags": ["Laser", "Klinikutrustning"],
        "category": "nyheter",
    },
    {
        "title": "Eftervård efter laserbehandling",
        "slug": "eftervard-efter-laserbehandling",
        "excerpt": "Råd att ge dina kunder efter en behandling.",
        "content": "<p>Undvik sol och värme de första dagarna och använd solskydd.</p>",
        "author": "Synos Medical",
        "tags": ["Eftervård", "Hudvård"],
        "category": "behandlingar",
    },
]

SAMPLE_PRODUCTS = [
    {
        "title": "Motus AX",
        "slug": "motus-ax",
        "short_description": "Alexandritlaser för snabb och skonsam hårborttagning.",
        "product_description": "<p>Moveo-tekniken ger nästan smärtfria behandlingar på alla hudtyper.</p>",
        "product_images": ["/storage/products/motus-ax.png"],
        "treatments": ["Hårborttagning", "Pigmentfläckar"],
        "certifications": ["CE", "FDA"],
        "category": "harborttagning",
    },
    {
        "title": "Again Pro",
        "slug": "again-pro",
        "short_description": "Radiofrekvens för hudföryngring och åtstramning.",
        "product_description": "<p>Behandlar ansikte och kropp utan återhämtningstid.</p>",
        "product_images": ["/storage/products/again-pro.png"],
        "treatments": ["Hudföryngring"],
        "certifications": ["CE"],
        "category": "hudforyngring",
    },
]


def _seed_categories(name, samples, model):
    ids, created = {}, 0
    for sample in samples:
        existing = collection(name).find_one({"slug": sample["slug"]})
        if existing:
            ids[sample["slug"]] = str(existing["_id"])
            continue
        ids[sample["slug"]] = create_document(name, model(**sample))
        created += 1
    return ids, created


@app.post("/api/seed")
def seed_content():
    blog_ids, created = _seed_categories("blogcategory", SAMPLE_BLOG_CATEGORIES, BlogCategory)
    product_ids, n = _seed_categories("category", SAMPLE_PRODUCT_CATEGORIES, Category)
    created += n
    now = database.utcnow()
    for s in SAMPLE_POSTS:
        if not collection(blog.COLLECTION).find_one({"slug": s["slug"]}):
            data = {k: v for k, v in s.items() if k != "category"}
            post = BlogPost(**data, categories=[blog_ids[s["category"]]], publish_type="publish", published_at=now)
            create_document(blog.COLLECTION, post)
            created += 1
    for s in SAMPLE_PRODUCTS:
        if not collection(products.COLLECTION).find_one({"slug": s["slug"]}):
            data = {k: v for k, v in s.items() if k != "category"}
            category_id = product_ids[s["category"]]
            product = Product(**data, categories=[category_id], primary_category=category_id,
                              publish_type="publish", published_at=now)
            create_document(products.COLLECTION, product)
            created += 1
    logger.info("Seed finished, %d documents created", created)
    return {"status": "ok", "created": created}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
