"""
Text helpers shared by the content routes: slugs, HTML cleaning, search
escaping and a few URL checks.
"""

import re
import time
import unicodedata
from typing import Callable, Optional
from urllib.parse import urlparse

import bleach

SLUG_MAX_LENGTH = 120
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
YOUTUBE_URL_RE = re.compile(r"^(https?://)?(www\.)?(youtube\.com/(watch\?v=|embed/|v/)|youtu\.be/)[a-zA-Z0-9_-]+")
YOUTUBE_ID_RE = re.compile(r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})", re.I)

WORDS_PER_MINUTE = 200

# Characters NFKD leaves alone or maps to something unhelpful in a URL
_SPECIAL_CHARS = {
    "₀": "0", "₁": "1", "₂": "2", "₃": "3", "₄": "4",
    "₅": "5", "₆": "6", "₇": "7", "₈": "8", "₉": "9",
    "⁰": "0", "¹": "1", "²": "2", "³": "3", "⁴": "4",
    "⁵": "5", "⁶": "6", "⁷": "7", "⁸": "8", "⁹": "9",
    "™": "", "®": "", "©": "",
    "–": "-", "—": "-",
    "‘": "", "’": "", "“": "", "”": "",
}
_SPECIAL_TABLE = str.maketrans(_SPECIAL_CHARS)

# Tags editors may use in rich text (blog posts, product descriptions, CMS pages)
RICH_TEXT_TAGS = frozenset({
    "a", "abbr", "b", "blockquote", "br", "code", "div", "em", "figcaption", "figure",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "iframe", "img", "li", "ol", "p",
    "pre", "s", "span", "strong", "sub", "sup", "table", "tbody", "td", "th", "thead",
    "tr", "u", "ul",
})
RICH_TEXT_ATTRIBUTES = {
    "*": ["class"],
    "a": ["href", "title", "target", "rel"],
    "img": ["src", "alt", "title", "width", "height", "loading"],
    "iframe": ["src", "width", "height", "allow", "allowfullscreen", "frameborder", "title"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan"],
}


# -----------------
# Slugs
# -----------------

def generate_slug(text: Optional[str]) -> str:
    """URL-safe slug: ascii, lowercase, hyphen separated, at most 120 chars."""
    if not text or not isinstance(text, str):
        return ""
    value = unicodedata.normalize("NFKD", text.translate(_SPECIAL_TABLE))
    value = "".join(c for c in value if not unicodedata.combining(c))
    value = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    value = re.sub(r"-+", "-", value).strip("-")
    return value[:SLUG_MAX_LENGTH].strip("-")


def normalize_slug(slug: Optional[str]) -> str:
    if not slug or not isinstance(slug, str):
        return ""
    value = slug.translate(_SPECIAL_TABLE).lower()
    value = re.sub(r"[^a-z0-9-]+", "-", value)
    return re.sub(r"-+", "-", value).strip("-")


def is_valid_slug(slug: Optional[str]) -> bool:
    if not slug or not isinstance(slug, str):
        return False
    return bool(SLUG_RE.match(slug.translate(_SPECIAL_TABLE).lower()))


def unique_slug(base: str, exists: Callable[[str], bool], max_attempts: int = 100) -> str:
    """
    First free slug among ``base``, ``base-1``, ``base-2`` ...

    ``exists`` answers whether a candidate is taken. After ``max_attempts``
    a timestamp suffix is used.
    """
    base = base or "item"
    if not exists(base):
        return base
    for n in range(1, max_attempts + 1):
        candidate = f"{base}-{n}"
        if not exists(candidate):
            return candidate
    return f"{base}-{int(time.time() * 1000)}"


# -----------------
# HTML
# -----------------

def strip_html(value: Optional[str]) -> str:
    """Plain text: every tag removed, surrounding whitespace trimmed."""
    if not value:
        return ""
    return bleach.clean(value, tags=[], strip=True).strip()


def sanitize_html(value: Optional[str]) -> str:
    """Rich text from the admin editor with script-capable markup removed."""
    if not value:
        return ""
    return bleach.clean(
        value,
        tags=RICH_TEXT_TAGS,
        attributes=RICH_TEXT_ATTRIBUTES,
        protocols={"http", "https", "mailto", "tel"},
        strip=True,
    )


def text_content(value: Optional[str]) -> str:
    """Tag-free text with collapsed whitespace, for word counts and excerpts."""
    if not value:
        return ""
    stripped = re.sub(r"<[^>]*>", " ", value)
    return re.sub(r"\s+", " ", stripped).strip()


def reading_time(html: Optional[str]) -> int:
    """Minutes needed to read ``html`` at 200 words per minute, at least 1."""
    words = len(text_content(html).split())
    return max(1, -(-words // WORDS_PER_MINUTE))


def truncate(text: Optional[str], length: int = 160, suffix: str = "...") -> str:
    text = text or ""
    if len(text) <= length:
        return text
    cut = text[: length - len(suffix)].rsplit(" ", 1)[0]
    return cut + suffix


# -----------------
# Queries and URLs
# -----------------

def escape_regex(value: str) -> str:
    return re.escape(value or "")


def search_filter(term: Optional[str], fields) -> Optional[dict]:
    """Case-insensitive ``$or`` regex filter over ``fields``; None for a blank term."""
    if not term or not term.strip():
        return None
    pattern = {"$regex": escape_regex(term.strip()), "$options": "i"}
    return {"$or": [{field: pattern} for field in fields]}


def is_valid_object_id(value: Optional[str]) -> bool:
    return bool(value) and bool(OBJECT_ID_RE.match(value))


def is_valid_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_url_or_path(value: Optional[str]) -> bool:
    """Absolute http(s) URL or a site-relative path such as ``/uploads/a.jpg``."""
    if not value:
        return False
    return value.startswith("/") or is_valid_url(value)


def is_valid_youtube_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    return bool(YOUTUBE_URL_RE.match(url))


def extract_youtube_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = YOUTUBE_ID_RE.search(url)
    return match.group(1) if match else None


def youtube_embed_url(video_id: str) -> str:
    return f"https://www.youtube.com/embed/{video_id}"


def client_ip(headers) -> str:
    """Caller address from proxy headers; first X-Forwarded-For hop wins."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return "unknown"
