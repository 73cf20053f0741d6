"""
Blog comments.

Readers comment on posts; every comment waits as "pending" until a staff
member approves or rejects it. Only approved comments are public, and the
public view never exposes email or phone.
"""

import logging
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, field_validator

import config
from auth import get_current_user
from database import collection, create_document, delete_document, find_paginated, to_object_id, update_document
from errors import NotFoundError
from helpers import client_ip, search_filter, strip_html
from inquiries import PhoneFields, full_phone_number
from responses import created, no_content, paginated, success
from schemas import BlogComment, CommentStatus

logger = logging.getLogger(__name__)

COLLECTION = "blogcomment"

THANK_YOU_MESSAGE = "Tack för din kommentar! Den kommer att granskas innan publicering."

post_comments_router = APIRouter(prefix="/api/blog-posts", tags=["comments"])
router = APIRouter(prefix="/api/comments", tags=["comments"])


class CommentCreate(PhoneFields):
    name: str
    email: str
    comment: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Namn måste vara minst 2 tecken")
        if len(v) > 100:
            raise ValueError("Namn kan inte överstiga 100 tecken")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        v = v.strip().lower()
        if len(v) > 255:
            raise ValueError("E-post kan inte överstiga 255 tecken")
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("Ogiltig e-postadress")
        return v

    @field_validator("comment")
    @classmethod
    def check_comment(cls, v):
        v = v.strip()
        if len(v) < 10:
            raise ValueError("Kommentar måste vara minst 10 tecken")
        if len(v) > 2000:
            raise ValueError("Kommentar kan inte överstiga 2000 tecken")
        return v


class CommentStatusUpdate(BaseModel):
    status: CommentStatus


def _post_or_404(post_id: str) -> dict:
    post = collection("blogpost").find_one({"_id": to_object_id(post_id, "Invalid blog post ID format")})
    if not post:
        raise NotFoundError("Blog post not found")
    return post


def _comment_or_404(comment_id: str) -> dict:
    doc = collection(COLLECTION).find_one({"_id": to_object_id(comment_id, "Invalid comment ID format")})
    if not doc:
        raise NotFoundError("Comment not found")
    return doc


def attach_posts(comments):
    """Add ``post_title``/``post_slug`` to each comment for the moderation list."""
    ids = {c.get("post_id") for c in comments if c.get("post_id")}
    posts = {
        str(p["_id"]): p
        for p in collection("blogpost").find(
            {"_id": {"$in": [to_object_id(i) for i in ids if i]}}, {"title": 1, "slug": 1}
        )
    }
    for c in comments:
        post = posts.get(c.get("post_id"))
        c["post_title"] = post.get("title") if post else "Unknown Post"
        c["post_slug"] = post.get("slug") if post else None
    return comments


# -----------------
# Public
# -----------------

@post_comments_router.get("/{post_id}/comments")
def list_approved(post_id: str):
    _post_or_404(post_id)
    cursor = collection(COLLECTION).find({"post_id": post_id, "status": "approved"}).sort("created_at", -1)
    comments = [
        {"id": str(c["_id"]), "name": c.get("name"), "comment": c.get("comment"), "created_at": c.get("created_at")}
        for c in cursor
    ]
    return success(comments, "Comments retrieved successfully")


@post_comments_router.post("/{post_id}/comments")
def submit_comment(post_id: str, payload: CommentCreate, request: Request):
    _post_or_404(post_id)
    comment = BlogComment(
        post_id=post_id,
        name=strip_html(payload.name),
        email=payload.email,
        phone=full_phone_number(payload.country_code, payload.phone),
        comment=strip_html(payload.comment),
        ip_address=client_ip(request.headers),
        user_agent=request.headers.get("user-agent"),
    )
    comment_id = create_document(COLLECTION, comment)
    logger.info("New comment %s submitted on post %s", comment_id, post_id)
    return created({"id": comment_id, "message": THANK_YOU_MESSAGE}, THANK_YOU_MESSAGE)


# -----------------
# Moderation
# -----------------

@router.get("")
def list_comments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=config.MAX_LIMIT),
    status: Optional[CommentStatus] = None,
    post_id: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(get_current_user),
):
    query = {}
    if status:
        query["status"] = status.value
    if post_id:
        query["post_id"] = post_id
    text = search_filter(search, ["name", "email", "comment"])
    if text:
        query.update(text)
    result = find_paginated(COLLECTION, query, page, limit, "-created_at")
    return paginated(result, "Comments retrieved successfully", attach_posts(result["data"]))


@router.get("/stats")
def comment_stats(user: dict = Depends(get_current_user)):
    coll = collection(COLLECTION)
    counts = {s.value: coll.count_documents({"status": s.value}) for s in CommentStatus}
    return success({"total": sum(counts.values()), **counts})


@router.get("/{comment_id}")
def get_comment(comment_id: str, user: dict = Depends(get_current_user)):
    return success(attach_posts([_comment_or_404(comment_id)])[0])


@router.patch("/{comment_id}")
def moderate_comment(comment_id: str, payload: CommentStatusUpdate, user: dict = Depends(get_current_user)):
    _comment_or_404(comment_id)
    doc = update_document(COLLECTION, comment_id, {"status": payload.status.value, "moderated_by": str(user["_id"])})
    logger.info("Comment %s set to %s", comment_id, payload.status.value)
    return success(doc, "Comment updated successfully")


@router.delete("/{comment_id}", status_code=204)
def delete_comment(comment_id: str, user: dict = Depends(get_current_user)):
    doc = _comment_or_404(comment_id)
    delete_document(COLLECTION, doc["_id"])
    logger.info("Comment %s deleted", comment_id)
    return no_content()
