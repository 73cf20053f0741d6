"""
CMS pages

Every editable page of the public site is a single document in the
``cmspage`` collection, keyed by ``page``. Reading a page that was never
saved creates it from the defaults of its model. Updates are partial: only
the fields sent are written, nested sections are merged and lists are
replaced as a whole.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument

from auth import get_current_user
from database import collection, utcnow
from errors import NotFoundError, validation_error_from
from helpers import sanitize_html
from responses import success
from schemas import SiteSettings

logger = logging.getLogger(__name__)

COLLECTION = "cmspage"
SETTINGS_COLLECTION = "sitesettings"

router = APIRouter(prefix="/api", tags=["pages"])


def flags(*names, off=()):
    """Default factory for a section visibility block."""
    return Field(default_factory=lambda: {**{n: True for n in names}, **{n: False for n in off}})


# -----------------
# Shared blocks
# -----------------

class Block(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CtaButton(Block):
    text: Optional[str] = None
    href: Optional[str] = None
    variant: str = "primary"


class PageSeo(Block):
    title: Optional[str] = Field(None, max_length=70)
    description: Optional[str] = Field(None, max_length=160)
    keywords: List[str] = []
    og_image: Optional[str] = None


class Hero(Block):
    badge: Optional[str] = None
    title: Optional[str] = None
    title_highlight: Optional[str] = None
    subtitle: Optional[str] = None
    background_image: Optional[str] = None
    primary_cta: Optional[CtaButton] = Field(default_factory=CtaButton)
    secondary_cta: Optional[CtaButton] = Field(default_factory=CtaButton)


class Card(Block):
    icon: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    href: Optional[str] = None


class Stat(Block):
    value: Optional[str] = None
    label: Optional[str] = None
    suffix: Optional[str] = None


class QuestionAnswer(Block):
    question: Optional[str] = None
    answer: Optional[str] = None
    category: Optional[str] = None
    order: int = 0


class GalleryImage(Block):
    src: Optional[str] = None
    alt: Optional[str] = None
    caption: Optional[str] = None


class Section(Block):
    badge: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    content: Optional[str] = None


class CardSection(Section):
    items: List[Card] = []


class Step(Block):
    number: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class StepSection(Section):
    steps: List[Step] = []


class FaqSection(Section):
    items: List[QuestionAnswer] = []


class GallerySection(Section):
    images: List[GalleryImage] = []


class Page(Block):
    seo: PageSeo = Field(default_factory=PageSeo)
    rich_content: Optional[str] = None


# -----------------
# Page models
# -----------------

class Testimonial(Block):
    quote: Optional[str] = None
    author: Optional[str] = None
    role: Optional[str] = None
    company: Optional[str] = None
    image: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)


class ShowcaseProduct(Block):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    image: Optional[str] = None
    href: Optional[str] = None


class ShowcaseSection(Section):
    cta_text: Optional[str] = None
    cta_href: Optional[str] = None
    products: List[ShowcaseProduct] = []


class AboutSection(Section):
    image: Optional[str] = None
    benefits: List[str] = []
    primary_cta: Optional[CtaButton] = Field(default_factory=CtaButton)
    secondary_cta: Optional[CtaButton] = Field(default_factory=CtaButton)


class HomePage(Page):
    section_visibility: Dict[str, bool] = flags(
        "hero", "features", "product_showcase", "image_gallery", "process_steps", "about",
        "testimonials", "cta", off=("rich_content",),
    )
    hero: Hero = Field(default_factory=lambda: Hero(
        badge="Sveriges ledande leverantör",
        title="Professionell klinikutrustning",
        title_highlight="klinikutrustning",
        subtitle="Vi hjälper kliniker att växa med certifierad utrustning, utbildning och service.",
        primary_cta=CtaButton(text="Se våra produkter", href="/produkter"),
        secondary_cta=CtaButton(text="Kontakta oss", href="/kontakt", variant="secondary"),
    ))
    features: List[Card] = []
    product_showcase: ShowcaseSection = Field(default_factory=ShowcaseSection)
    image_gallery: GallerySection = Field(default_factory=GallerySection)
    process_steps: StepSection = Field(default_factory=StepSection)
    about: AboutSection = Field(default_factory=AboutSection)
    testimonials: List[Testimonial] = []
    cta: Section = Field(default_factory=Section)


class KontaktPage(Page):
    section_visibility: Dict[str, bool] = flags(
        "hero", "contact_cards", "form_section", "office_section", "faq_section", off=("rich_content",),
    )
    hero: Hero = Field(default_factory=lambda: Hero(
        badge="Kontakt", title="Kontakta oss", subtitle="Vi svarar normalt inom en arbetsdag.",
    ))
    phone_card: Card = Field(default_factory=lambda: Card(icon="Phone", title="010-205 15 01"))
    email_card: Card = Field(default_factory=lambda: Card(icon="Mail", title="info@synos.se"))
    social_card: Card = Field(default_factory=lambda: Card(icon="Share2", title="Följ oss"))
    form_section: Section = Field(default_factory=Section)
    office_section: Section = Field(default_factory=Section)
    opening_hours: Optional[str] = None
    faq_section: FaqSection = Field(default_factory=FaqSection)


class ResellerPage(Page):
    section_visibility: Dict[str, bool] = flags("hero", "benefits", "form")
    hero: Hero = Field(default_factory=lambda: Hero(
        badge="Partnerskap", title="Bli vår återförsäljare", title_highlight="återförsäljare",
    ))
    benefits: CardSection = Field(default_factory=CardSection)
    form_section: Section = Field(default_factory=Section)
    success_message: Optional[str] = None


class Partner(Block):
    name: Optional[str] = None
    logo: Optional[str] = None
    url: Optional[str] = None


class AboutPage(Page):
    section_visibility: Dict[str, bool] = flags(
        "hero", "mission", "stats", "image_gallery", "faq", "testimonials", "partners", "cta",
    )
    hero: Hero = Field(default_factory=lambda: Hero(badge="Om oss", title="Om Synos Medical"))
    mission: CardSection = Field(default_factory=CardSection)
    stats: List[Stat] = []
    image_gallery: GallerySection = Field(default_factory=GallerySection)
    faq: FaqSection = Field(default_factory=FaqSection)
    testimonials: List[Testimonial] = []
    partners: List[Partner] = []
    cta: Section = Field(default_factory=Section)


class FaqCategory(Block):
    id: Optional[str] = None
    name: Optional[str] = None
    icon: Optional[str] = None
    order: int = 0


class FaqContent(Block):
    search_placeholder: str = "Sök bland frågor..."
    no_results_text: str = "Inga frågor matchade din sökning"
    categories: List[FaqCategory] = []
    items: List[QuestionAnswer] = []


class FaqPage(Page):
    section_visibility: Dict[str, bool] = flags(
        "hero", "faq_content", "sidebar", "newsletter", off=("rich_content",),
    )
    hero: Hero = Field(default_factory=lambda: Hero(badge="FAQ", title="Vanliga frågor"))
    stats: List[Stat] = []
    faq_content: FaqContent = Field(default_factory=FaqContent)
    sidebar: Section = Field(default_factory=Section)
    newsletter: Section = Field(default_factory=Section)


class TitledText(Block):
    title: Optional[str] = None
    content: Optional[str] = None


class CompanyInfo(Block):
    company_name: str = "Synos Medical AB"
    organization_number: str = "556871-8075"
    vat_number: Optional[str] = None
    registered_seat: Optional[str] = None
    email: str = "info@synos.se"
    phone: str = "010-205 15 01"


class LegalPage(Page):
    section_visibility: Dict[str, bool] = flags("hero", "legal_cards", "company_info", "terms", "gdpr_rights", "cta")
    hero: Hero = Field(default_factory=lambda: Hero(badge="Juridik", title="Juridisk information"))
    legal_cards: List[Card] = []
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    terms: List[TitledText] = []
    gdpr_rights: List[TitledText] = []
    cta: Section = Field(default_factory=Section)


class PrivacySection(Section):
    section_number: Optional[str] = None
    intro: Optional[str] = None
    items: List[TitledText] = []
    outro: Optional[str] = None
    highlighted: bool = False


PRIVACY_SECTIONS = (
    "introduction", "data_collection", "purpose_of_processing", "legal_basis", "data_retention",
    "data_sharing", "your_rights", "security", "cookies", "contact", "policy_changes",
)


class PrivacyPage(Page):
    section_visibility: Dict[str, bool] = flags("hero", *PRIVACY_SECTIONS, "cta")
    hero: Hero = Field(default_factory=lambda: Hero(title="Integritetspolicy"))
    last_updated: Optional[str] = None
    sections: Dict[str, PrivacySection] = Field(
        default_factory=lambda: {name: PrivacySection(section_number=str(i))
                                 for i, name in enumerate(PRIVACY_SECTIONS, start=1)}
    )
    cta: Section = Field(default_factory=Section)


class TeamMember(Block):
    name: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    bio: Optional[str] = None
    image: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None


class TeamPage(Page):
    section_visibility: Dict[str, bool] = flags(
        "hero", "stats", "team_members", "values", "join_us", "contact", off=("rich_content",),
    )
    hero: Hero = Field(default_factory=lambda: Hero(badge="Vårt team", title="Människorna bakom Synos"))
    stats: List[Stat] = []
    team_members: List[TeamMember] = []
    values_section: CardSection = Field(default_factory=CardSection)
    join_us: AboutSection = Field(default_factory=AboutSection)
    contact: Section = Field(default_factory=Section)


class JobOpening(Block):
    slug: Optional[str] = None
    title: Optional[str] = None
    location: Optional[str] = None
    work_type: Optional[str] = None
    employment_type: Optional[str] = None
    short_description: Optional[str] = None
    featured_image: Optional[str] = None
    description: Optional[str] = None
    requirements: List[str] = []
    responsibilities: List[str] = []
    apply_link: Optional[str] = None
    is_active: bool = True
    published_at: Optional[str] = None


class JobOpeningsSection(Section):
    no_jobs_message: str = "Just nu har vi inga lediga tjänster."
    job_openings: List[JobOpening] = []


class CareersPage(Page):
    section_visibility: Dict[str, bool] = flags("hero", "benefits", "job_openings", "values", "application_form")
    hero: Hero = Field(default_factory=lambda: Hero(badge="Karriär", title="Lediga tjänster"))
    benefits_section: CardSection = Field(default_factory=CardSection)
    job_openings_section: JobOpeningsSection = Field(default_factory=JobOpeningsSection)
    values_section: Section = Field(default_factory=Section)
    values: List[str] = []
    contact_sidebar: Section = Field(default_factory=Section)
    expert_cta: Section = Field(default_factory=Section)


class OpeningHoursDay(Block):
    day: str
    hours: str
    is_closed: bool = False


class StoreMap(Section):
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "Sverige"
    phone: Optional[str] = None
    email: Optional[str] = None
    map_embed_url: Optional[str] = None
    directions: Optional[str] = None


class StorePage(Page):
    section_visibility: Dict[str, bool] = flags("hero", "info", "opening_hours", "map", "gallery")
    hero: Hero = Field(default_factory=lambda: Hero(badge="Butik", title="Besök vår butik"))
    info: AboutSection = Field(default_factory=AboutSection)
    opening_hours: List[OpeningHoursDay] = []
    special_note: Optional[str] = None
    map: StoreMap = Field(default_factory=StoreMap)
    gallery: GallerySection = Field(default_factory=GallerySection)


class Certificate(Block):
    title: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    order: int = 0


class QualityPage(Page):
    section_visibility: Dict[str, bool] = flags("hero", "certificates", "description")
    hero: Hero = Field(default_factory=lambda: Hero(badge="Kvalitet", title="Kvalitet och certifieringar"))
    certificates: List[Certificate] = []
    description: TitledText = Field(default_factory=TitledText)


class TrainingPage(Page):
    section_visibility: Dict[str, bool] = flags(
        "hero", "main_content", "benefits", "process", "support", "inquiry_form", "resources",
        off=("rich_content",),
    )
    hero: Hero = Field(default_factory=lambda: Hero(title="Utbildningar", title_highlight="Utbildningar"))
    main_content: Section = Field(default_factory=Section)
    paragraphs: List[str] = []
    benefits: List[Card] = []
    process_section: StepSection = Field(default_factory=StepSection)
    support_section: Section = Field(default_factory=Section)
    inquiry_section: Section = Field(default_factory=Section)
    resources_section: CardSection = Field(default_factory=CardSection)


class GuidePage(Page):
    """Long-form content pages under "Starta eget"."""

    section_visibility: Dict[str, bool] = flags("hero", "sections", "faq", "cta", "rich_content")
    hero: Hero = Field(default_factory=Hero)
    sections: List[CardSection] = []
    steps: StepSection = Field(default_factory=StepSection)
    faq: FaqSection = Field(default_factory=FaqSection)
    cta: Section = Field(default_factory=Section)


PAGES: Dict[str, Type[Page]] = {
    "home": HomePage,
    "kontakt": KontaktPage,
    "reseller": ResellerPage,
    "about": AboutPage,
    "faq": FaqPage,
    "legal": LegalPage,
    "privacy": PrivacyPage,
    "team": TeamPage,
    "careers": CareersPage,
    "store": StorePage,
    "quality": QualityPage,
    "training": TrainingPage,
    "starta-eget": GuidePage,
    "kopguide": GuidePage,
    "miniutbildning": GuidePage,
    "varfor-valja-synos": GuidePage,
}

GUIDE_TITLES = {
    "starta-eget": "Starta eget",
    "kopguide": "Köpguide",
    "miniutbildning": "Miniutbildning",
    "varfor-valja-synos": "Varför välja Synos",
}

# Fields holding editor HTML
RICH_TEXT_KEYS = ("rich_content", "content")


# -----------------
# Helpers
# -----------------

def page_model(page: str) -> Type[Page]:
    model = PAGES.get(page)
    if model is None:
        raise NotFoundError(f"Unknown page: {page}")
    return model


def default_content(page: str) -> dict:
    content = page_model(page)().model_dump()
    if page in GUIDE_TITLES:
        content["hero"]["title"] = GUIDE_TITLES[page]
    return content


def dotted(values: Dict[str, Any], current: Optional[dict] = None, prefix: str = "") -> Dict[str, Any]:
    """Flatten nested dicts into ``a.b.c`` keys for ``$set``; lists stay whole.

    With ``current`` (the stored document) flattening stops where the stored
    value is missing or not a sub-document, and the whole object is set there.
    """
    flat = {}
    for key, value in values.items():
        path = f"{prefix}{key}"
        stored = {} if current is None else current.get(key)
        if isinstance(value, dict) and isinstance(stored, dict):
            flat.update(dotted(value, None if current is None else stored, f"{path}."))
        else:
            flat[path] = value
    return flat


def sanitize_rich_text(values: Any) -> Any:
    if isinstance(values, dict):
        return {
            k: sanitize_html(v) if k in RICH_TEXT_KEYS and isinstance(v, str) else sanitize_rich_text(v)
            for k, v in values.items()
        }
    if isinstance(values, list):
        return [sanitize_rich_text(v) for v in values]
    return values


def validate_changes(model: Type[BaseModel], body: dict) -> dict:
    try:
        parsed = model.model_validate(body)
    except PydanticValidationError as exc:
        raise validation_error_from(exc, status=400)
    return sanitize_rich_text(parsed.model_dump(exclude_unset=True))


def get_page(page: str) -> dict:
    """Load a page, creating it from defaults on first access."""
    now = utcnow()
    return collection(COLLECTION).find_one_and_update(
        {"page": page},
        {"$setOnInsert": {**default_content(page), "created_at": now, "updated_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def update_page(page: str, changes: dict) -> dict:
    update = dotted(changes, get_page(page))
    update["updated_at"] = utcnow()
    return collection(COLLECTION).find_one_and_update(
        {"page": page}, {"$set": update}, return_document=ReturnDocument.AFTER,
    )


def get_settings() -> dict:
    now = utcnow()
    return collection(SETTINGS_COLLECTION).find_one_and_update(
        {"key": "site"},
        {"$setOnInsert": {**SiteSettings().model_dump(), "created_at": now, "updated_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


# -----------------
# Routes
# -----------------

@router.get("/site-settings")
def read_site_settings():
    return success(get_settings(), "Site settings retrieved successfully")


@router.put("/site-settings")
def write_site_settings(body: dict = Body(...), user: dict = Depends(get_current_user)):
    changes = validate_changes(SiteSettings, body)
    update = dotted(changes, get_settings())
    update["updated_at"] = utcnow()
    doc = collection(SETTINGS_COLLECTION).find_one_and_update(
        {"key": "site"}, {"$set": update}, return_document=ReturnDocument.AFTER,
    )
    logger.info("Site settings updated by %s: %s", user["_id"], sorted(changes))
    return success(doc, "Site settings updated successfully")


@router.get("/careers-page/jobs/{slug}")
def read_job_opening(slug: str):
    careers = get_page("careers")
    jobs = (careers.get("job_openings_section") or {}).get("job_openings") or []
    for job in jobs:
        if job.get("slug") == slug and job.get("is_active", True):
            return success(job, "Job opening retrieved successfully")
    raise NotFoundError("Job opening not found")


@router.get("/{page}-page")
def read_page(page: str):
    page_model(page)
    return success(get_page(page), "Page content retrieved successfully")


@router.put("/{page}-page")
@router.patch("/{page}-page")
def write_page(page: str, body: dict = Body(...), user: dict = Depends(get_current_user)):
    changes = validate_changes(page_model(page), body)
    doc = update_page(page, changes)
    logger.info("Page %s updated by %s: %s", page, user["_id"], sorted(changes))
    return success(doc, "Page content updated successfully")
