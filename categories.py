"""
Hierarchical categories.

Blog posts and products are both organised in nested categories with the
same rules: unique slugs, an optional parent, no parent cycles and an
explicit choice when deleting a category that still has children. One
``CategoryService`` per collection holds the rules and ``category_router``
exposes them over HTTP.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator

from auth import get_current_user
from database import collection, create_document, find_paginated, get_documents, to_object_id, update_document
from errors import BadRequestError, ConflictError, NotFoundError
from helpers import generate_slug, is_valid_object_id, is_valid_slug, search_filter, unique_slug
from responses import created, no_content, paginated, success
from schemas import CategoryBase
from trees import breadcrumb, build_tree, flatten_tree, would_create_cycle

logger = logging.getLogger(__name__)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=15000)
    parent: Optional[str] = None
    image: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("parent")
    @classmethod
    def parent_is_object_id(cls, v):
        if v and not is_valid_object_id(v):
            raise ValueError("Invalid parent category ID")
        return v


class OrderItem(BaseModel):
    id: str
    order: int


class CategoryService:
    """Category rules for one collection; ``content`` is the collection that references it."""

    def __init__(self, name: str, content: str, label: str):
        self.name = name
        self.content = content
        self.label = label

    @property
    def coll(self):
        return collection(self.name)

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        query = {"slug": slug}
        if exclude_id:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return self.coll.find_one(query) is not None

    def all(self, active_only: bool = False) -> List[dict]:
        query = {"is_active": True} if active_only else {}
        return get_documents(self.name, query)

    def by_id_map(self) -> dict:
        return {str(c["_id"]): c for c in self.all()}

    def get(self, category_id: str) -> dict:
        doc = self.coll.find_one({"_id": to_object_id(category_id, "Invalid category ID format")})
        if not doc:
            raise NotFoundError(f"{self.label} not found")
        return doc

    def get_by_slug(self, slug: str) -> dict:
        doc = self.coll.find_one({"slug": slug})
        if not doc:
            raise NotFoundError(f"{self.label} not found")
        return doc

    def _check_slug(self, slug: str) -> str:
        if not is_valid_slug(slug):
            raise BadRequestError("Slug may only contain lowercase letters, numbers and hyphens")
        return slug

    def _check_parent(self, parent: Optional[str]) -> None:
        if parent and not self.coll.find_one({"_id": to_object_id(parent)}):
            raise BadRequestError("Parent category not found")

    def create(self, data: CategoryBase) -> dict:
        values = data.model_dump()
        if values.get("slug"):
            slug = self._check_slug(values["slug"])
            if self.slug_exists(slug):
                raise ConflictError(f'Slug "{slug}" already exists')
        else:
            slug = unique_slug(generate_slug(values["name"]), self.slug_exists)
        self._check_parent(values.get("parent"))
        values.update(slug=slug, parent=values.get("parent") or None)
        category_id = create_document(self.name, values)
        logger.info("%s created: %s (%s)", self.label, category_id, values["name"])
        return self.get(category_id)

    def update(self, category_id: str, data: CategoryUpdate) -> dict:
        current = self.get(category_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("slug") and changes["slug"] != current.get("slug"):
            self._check_slug(changes["slug"])
            if self.slug_exists(changes["slug"], category_id):
                raise ConflictError(f'Slug "{changes["slug"]}" already exists')
        elif "slug" in changes and not changes["slug"]:
            changes.pop("slug")
        if "parent" in changes:
            new_parent = changes["parent"] or None
            if new_parent != (current.get("parent") or None):
                if would_create_cycle(category_id, new_parent, self.by_id_map()):
                    raise BadRequestError("Cannot set parent: this would create a circular reference")
                self._check_parent(new_parent)
            changes["parent"] = new_parent
        doc = update_document(self.name, category_id, changes)
        logger.info("%s updated: %s %s", self.label, category_id, sorted(changes))
        return doc

    def delete(self, category_id: str, reparent: bool = False) -> None:
        current = self.get(category_id)
        has_children = self.coll.find_one({"parent": category_id}) is not None
        if has_children:
            if not reparent:
                raise BadRequestError(
                    "Cannot delete category with children. Delete children first or use reparent option."
                )
            self.coll.update_many({"parent": category_id}, {"$set": {"parent": current.get("parent") or None}})
            logger.info("Children of %s moved to %s", category_id, current.get("parent") or "root")
        detached = collection(self.content).update_many(
            {"categories": category_id}, {"$pull": {"categories": category_id}}
        ).modified_count
        if self.content == "product":
            collection("product").update_many({"primary_category": category_id}, {"$set": {"primary_category": None}})
        if detached:
            logger.info("%s %s removed from %d documents", self.label, category_id, detached)
        self.coll.delete_one({"_id": current["_id"]})
        logger.info("%s deleted: %s", self.label, category_id)

    def tree(self, active_only: bool = False, flat: bool = False) -> List[dict]:
        """Nested tree, or with ``flat`` the same nodes depth-first for parent pickers."""
        nodes = build_tree(self.all(active_only))
        return flatten_tree(nodes) if flat else nodes

    def breadcrumb(self, category_id: str) -> List[dict]:
        self.get(category_id)
        return breadcrumb(category_id, self.by_id_map())

    def toggle_active(self, category_id: str) -> dict:
        current = self.get(category_id)
        return update_document(self.name, category_id, {"is_active": not current.get("is_active", True)})

    def reorder(self, items: List[OrderItem]) -> int:
        updated = 0
        for item in items:
            result = self.coll.update_one({"_id": to_object_id(item.id)}, {"$set": {"order": item.order}})
            updated += result.modified_count
        return updated


def category_router(prefix: str, service: CategoryService, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("")
    def list_categories(
        tree: bool = False,
        flat: bool = False,
        active_only: bool = False,
        search: Optional[str] = None,
        parent: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=100),
    ):
        if tree:
            return success(service.tree(active_only, flat), "Category tree retrieved successfully")
        query = {}
        if active_only:
            query["is_active"] = True
        if parent is not None:
            query["parent"] = parent or None
        text = search_filter(search, ["name", "slug", "description"])
        if text:
            query.update(text)
        result = find_paginated(service.name, query, page, limit, "order,name")
        return paginated(result, "Categories retrieved successfully")

    @router.post("")
    def create_category(payload: CategoryBase, user: dict = Depends(get_current_user)):
        return created(service.create(payload), "Category created successfully")

    @router.put("/reorder")
    def reorder_categories(items: List[OrderItem], user: dict = Depends(get_current_user)):
        return success({"updated": service.reorder(items)}, "Category order updated")

    @router.get("/slug/{slug}")
    def get_category_by_slug(slug: str):
        return success(service.get_by_slug(slug))

    @router.get("/{category_id}")
    def get_category(category_id: str):
        return success(service.get(category_id))

    @router.get("/{category_id}/breadcrumb")
    def get_breadcrumb(category_id: str):
        return success(service.breadcrumb(category_id))

    @router.put("/{category_id}")
    def update_category(category_id: str, payload: CategoryUpdate, user: dict = Depends(get_current_user)):
        return success(service.update(category_id, payload), "Category updated successfully")

    @router.patch("/{category_id}/toggle-active")
    def toggle_category(category_id: str, user: dict = Depends(get_current_user)):
        return success(service.toggle_active(category_id), "Category updated successfully")

    @router.delete("/{category_id}", status_code=204)
    def delete_category(category_id: str, reparent: bool = False, user: dict = Depends(get_current_user)):
        service.delete(category_id, reparent)
        return no_content()

    return router


def category_names(service: CategoryService, ids: List[str]) -> List[dict]:
    """``[{id, name, slug}]`` for the given ids, in the given order, skipping unknown ids."""
    valid = [to_object_id(i) for i in ids if is_valid_object_id(i)]
    found = {str(c["_id"]): c for c in service.coll.find({"_id": {"$in": valid}})}
    return [
        {"id": i, "name": found[i].get("name"), "slug": found[i].get("slug")}
        for i in ids if i in found
    ]


def check_categories_exist(service: CategoryService, ids: List[str]) -> None:
    if not ids:
        return
    found = service.coll.count_documents({"_id": {"$in": [to_object_id(i) for i in ids]}})
    if found != len(set(ids)):
        raise BadRequestError("One or more categories do not exist")

