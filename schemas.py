"""
Database Schemas

MongoDB collection schemas as Pydantic models. They validate what the
admin dashboard saves; the stricter publish checks live next to the routes.

Each model represents a collection. The model name is lowercased for the
collection name:
- User -> "user"
- Session -> "session"
- FormSubmission -> "formsubmission"
- BlogPost -> "blogpost"
- BlogCategory -> "blogcategory"
- BlogComment -> "blogcomment"
- Category -> "category" (product categories)
- Product -> "product"
- SiteSettings -> "sitesettings"

Editable pages share one "cmspage" collection keyed by ``page``; their
models are in pages.py.

References between documents (parent category, post of a comment, product
categories) are stored as ObjectId hex strings.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from helpers import is_valid_object_id, is_valid_url_or_path


class SubmissionType(str, Enum):
    product_inquiry = "product_inquiry"
    training_inquiry = "training_inquiry"
    contact = "contact"
    demo_request = "demo_request"
    quote_request = "quote_request"
    callback_request = "callback_request"
    tour_request = "tour_request"
    reseller_application = "reseller_application"


class SubmissionStatus(str, Enum):
    new = "new"
    read = "read"
    archived = "archived"


class CommentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PostPublishType(str, Enum):
    publish = "publish"
    draft = "draft"
    private = "private"


class ProductPublishType(str, Enum):
    publish = "publish"
    draft = "draft"
    pending = "pending"
    private = "private"


class Visibility(str, Enum):
    public = "public"
    hidden = "hidden"


class UserRole(str, Enum):
    admin = "admin"
    editor = "editor"


def clean_tag_list(tags: List[str]) -> List[str]:
    """Trimmed, de-duplicated tags; each at most 50 characters."""
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if len(tag) > 50:
            raise ValueError("Tags may be at most 50 characters")
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def object_id_list(ids: List[str]) -> List[str]:
    for value in ids:
        if not is_valid_object_id(value):
            raise ValueError(f"Invalid category ID: {value}")
    return list(dict.fromkeys(ids))


# -----------------
# Users & sessions
# -----------------

class Address(BaseModel):
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., min_length=2, max_length=100, description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="Password hash (PBKDF2)")
    salt: str = Field(..., description="Per-user salt for hashing")
    role: UserRole = Field("editor", description="admin or editor")
    avatar_url: Optional[str] = Field(None, description="Avatar image URL")
    bio: Optional[str] = Field(None, max_length=500, description="Short profile text")
    phone_number: Optional[str] = Field(None, max_length=30, description="Contact phone")
    address: Optional[Address] = Field(None, description="Postal address")
    is_active: bool = Field(True, description="Whether user is active")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class Session(BaseModel):
    """
    Login sessions
    Collection name: "session"
    """
    token: str
    user_id: str
    expires_at: datetime


# -----------------
# Inquiries
# -----------------

class SubmissionMetadata(BaseModel):
    ip_address: str = "unknown"
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    page_url: Optional[str] = None
    locale: Optional[str] = None
    submitted_at: Optional[datetime] = None


class FormSubmission(BaseModel):
    """
    Website form submissions (inquiries)
    Collection name: "formsubmission"
    """
    model_config = ConfigDict(use_enum_values=True)

    type: SubmissionType
    status: SubmissionStatus = "new"
    full_name: str
    email: EmailStr
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    phone: Optional[str] = None
    corporation_number: Optional[str] = None
    message: Optional[str] = None
    subject: Optional[str] = None
    gdpr_consent: bool
    gdpr_consent_timestamp: Optional[datetime] = None
    gdpr_consent_version: Optional[str] = None
    marketing_consent: bool = False
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    product_slug: Optional[str] = None
    help_type: Optional[str] = None
    training_interest_type: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    company_name: Optional[str] = None
    business_description: Optional[str] = None
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)
    read_at: Optional[datetime] = None
    read_by: Optional[str] = None


# -----------------
# Shared content parts
# -----------------

class ImageRef(BaseModel):
    url: str = ""
    alt: str = Field("", max_length=200)


class HeaderImage(ImageRef):
    show_title_overlay: bool = True


class Seo(BaseModel):
    title: Optional[str] = Field(None, max_length=70)
    description: Optional[str] = Field(None, max_length=160)
    keywords: List[str] = []
    og_image: Optional[str] = None
    canonical_url: Optional[str] = None
    noindex: bool = False


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=15000)
    parent: Optional[str] = None
    image: Optional[str] = None
    order: int = 0
    is_active: bool = True

    @field_validator("parent")
    @classmethod
    def parent_is_object_id(cls, v):
        if v in (None, ""):
            return None
        if not is_valid_object_id(v):
            raise ValueError("Invalid parent category ID")
        return v


# -----------------
# Blog
# -----------------

class BlogCategory(CategoryBase):
    """
    Blog categories
    Collection name: "blogcategory"
    """


class BlogPost(BaseModel):
    """
    Blog posts collection schema
    Collection name: "blogpost"
    """
    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=250)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: str = ""
    featured_image: Optional[ImageRef] = None
    header_image: Optional[HeaderImage] = None
    author: Optional[str] = Field(None, max_length=100)
    author_id: Optional[str] = None
    categories: List[str] = []
    tags: List[str] = []
    seo: Seo = Field(default_factory=Seo)
    publish_type: PostPublishType = "draft"
    published_at: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return clean_tag_list(v)

    @field_validator("categories")
    @classmethod
    def category_ids(cls, v):
        return object_id_list(v)


class BlogComment(BaseModel):
    """
    Reader comments on blog posts, moderated before they are shown
    Collection name: "blogcomment"
    """
    model_config = ConfigDict(use_enum_values=True)

    post_id: str
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str
    comment: str = Field(..., min_length=10, max_length=2000)
    status: CommentStatus = "pending"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# -----------------
# Products
# -----------------

class Category(CategoryBase):
    """
    Product categories
    Collection name: "category"
    """


class TechSpec(BaseModel):
    title: str = ""
    description: str = ""


class DocumentLink(BaseModel):
    title: str = ""
    url: str = ""


class QaItem(BaseModel):
    question: str = ""
    answer: str = ""
    visible: bool = True


class PurchaseInfo(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class HeroSettings(BaseModel):
    theme_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{3,8}$")
    badge: Optional[str] = None
    cta_text: Optional[str] = None
    cta_url: Optional[str] = None


class ProductVariant(BaseModel):
    name: str
    url: str
    icon: str = ""


class AccordionSection(BaseModel):
    title: str
    content: str = ""
    is_open: bool = False


class BeforeAfterImage(BaseModel):
    """One pair for the before/after comparison slider."""
    before_image: str = Field(..., min_length=1)
    after_image: str = Field(..., min_length=1)
    label: Optional[str] = Field(None, max_length=200)
    before_label: str = Field("Före", max_length=50)
    after_label: str = Field("Efter", max_length=50)
    # Initial divider position in percent of the image width
    start_position: int = Field(50, ge=0, le=100)

    @field_validator("before_image", "after_image")
    @classmethod
    def image_location(cls, v):
        if not is_valid_url_or_path(v):
            raise ValueError("Image must be an http(s) URL or a path starting with /")
        return v


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=120)
    description: str = ""
    short_description: Optional[str] = Field(None, max_length=1500)
    product_description: Optional[str] = None
    hidden_description: Optional[str] = None
    benefits: List[str] = []
    certifications: List[str] = []
    treatments: List[str] = []
    product_images: List[str] = []
    overview_image: Optional[str] = None
    before_after_images: List[BeforeAfterImage] = []
    tech_specifications: List[TechSpec] = []
    documentation: List[DocumentLink] = []
    purchase_info: Optional[PurchaseInfo] = None
    seo: Seo = Field(default_factory=Seo)
    categories: List[str] = []
    primary_category: Optional[str] = None
    qa: List[QaItem] = []
    youtube_url: Optional[str] = None
    rubric: Optional[str] = Field(None, max_length=200)
    hero_settings: Optional[HeroSettings] = None
    product_variants: List[ProductVariant] = []
    accordion_sections: List[AccordionSection] = []
    publish_type: ProductPublishType = "draft"
    visibility: Visibility = "public"
    last_edited_by: Optional[str] = None
    published_at: Optional[datetime] = None
    like_count: int = Field(0, ge=0)

    @field_validator("categories")
    @classmethod
    def category_ids(cls, v):
        return object_id_list(v)

    @field_validator("primary_category")
    @classmethod
    def primary_category_id(cls, v):
        if v in (None, ""):
            return None
        if not is_valid_object_id(v):
            raise ValueError("Invalid primary category ID")
        return v


# -----------------
# Site settings
# -----------------

class Office(BaseModel):
    name: str
    street: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = "Sverige"
    is_headquarters: bool = False
    is_visible: bool = True
    map_embed_url: Optional[str] = None


class SocialMedia(BaseModel):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    youtube: Optional[str] = None


class SeoSettings(BaseModel):
    site_name: str = "Synos Medical"
    site_description: str = ""
    og_image: Optional[str] = None
    keywords: List[str] = []
    twitter_handle: Optional[str] = None


class Branding(BaseModel):
    logo_url: str = "/storage/synos-logo.svg"
    favicon_url: Optional[str] = None


class FooterLink(BaseModel):
    label: str
    href: str
    is_external: bool = False


class FooterBanner(BaseModel):
    enabled: bool = False
    background_image: Optional[str] = None
    badge: Optional[str] = None
    title: Optional[str] = None
    cta_text: Optional[str] = None
    cta_href: Optional[str] = None


class FooterSettings(BaseModel):
    banner: FooterBanner = Field(default_factory=FooterBanner)
    quick_links_title: str = "Snabblänkar"
    contact_title: str = "Kontakta oss"
    newsletter_title: str = "Håll dig uppdaterad"
    quick_links: List[FooterLink] = []
    newsletter_description: str = ""
    newsletter_placeholder: str = "Din e-postadress"
    newsletter_button_text: str = "Prenumerera"
    bottom_links: List[FooterLink] = []


class SiteSettings(BaseModel):
    """
    Company-wide settings, a single document
    Collection name: "sitesettings"
    """
    company_name: str = "Synos Medical AB"
    org_number: str = "556871-8075"
    vat_number: Optional[str] = None
    phone: str = "010-205 15 01"
    email: EmailStr = "info@synos.se"
    noreply_email: Optional[EmailStr] = None
    offices: List[Office] = []
    social_media: SocialMedia = Field(default_factory=SocialMedia)
    seo: SeoSettings = Field(default_factory=SeoSettings)
    branding: Branding = Field(default_factory=Branding)
    footer: FooterSettings = Field(default_factory=FooterSettings)
