"""
Category hierarchy helpers.

Categories reference their parent by id. These functions work on plain
documents already loaded from Mongo, so they are usable for both the blog
and the product category collections.
"""

from typing import Dict, List, Optional


def _key(value) -> Optional[str]:
    return str(value) if value else None


def _sort_key(doc: dict):
    return (doc.get("order") or 0, (doc.get("name") or "").lower())


def build_tree(categories: List[dict], parent_id: Optional[str] = None, depth: int = 0,
               parent_path: str = "") -> List[dict]:
    """
    Nest categories under their parents.

    Siblings are ordered by ``order`` then ``name``. Each node carries
    ``depth`` (0 for roots) and ``path``, the slash-joined slugs from the
    root down to the node.
    """
    children = [c for c in categories if _key(c.get("parent")) == parent_id]
    children.sort(key=_sort_key)
    nodes = []
    for cat in children:
        cat_id = _key(cat.get("_id") or cat.get("id"))
        path = f"{parent_path}/{cat['slug']}" if parent_path else cat["slug"]
        nodes.append({
            "id": cat_id,
            "name": cat.get("name"),
            "slug": cat.get("slug"),
            "description": cat.get("description"),
            "image": cat.get("image"),
            "order": cat.get("order", 0),
            "is_active": cat.get("is_active", True),
            "parent": parent_id,
            "depth": depth,
            "path": path,
            "children": build_tree(categories, cat_id, depth + 1, path),
        })
    return nodes


def flatten_tree(tree: List[dict]) -> List[dict]:
    """Depth-first list of every node in ``tree``."""
    result = []
    for node in tree:
        result.append(node)
        result.extend(flatten_tree(node["children"]))
    return result


def ancestor_ids(category_id: str, by_id: Dict[str, dict]) -> List[str]:
    """Parent, grandparent, ... of ``category_id``; stops on a loop or a missing node."""
    ancestors = []
    seen = set()
    current = category_id
    while current and current not in seen:
        seen.add(current)
        doc = by_id.get(current)
        if not doc:
            break
        parent = _key(doc.get("parent"))
        if not parent:
            break
        ancestors.append(parent)
        current = parent
    return ancestors


def would_create_cycle(category_id: str, new_parent_id: Optional[str], by_id: Dict[str, dict]) -> bool:
    if not new_parent_id:
        return False
    if category_id == new_parent_id:
        return True
    return category_id in ancestor_ids(new_parent_id, by_id)


def breadcrumb(category_id: str, by_id: Dict[str, dict]) -> List[dict]:
    """Root-first ``[{id, name, slug}]`` trail ending at ``category_id``."""
    trail = []
    for cid in reversed([category_id] + ancestor_ids(category_id, by_id)):
        doc = by_id.get(cid)
        if doc:
            trail.append({"id": cid, "name": doc.get("name"), "slug": doc.get("slug")})
    return trail
