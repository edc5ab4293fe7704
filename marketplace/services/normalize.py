"""Single canonical shape for category and subcategory documents.

Two schemas coexist in the ``categories`` collection: the legacy one
(``active``/``order``/``icon``) and the current one
(``isActive``/``sortOrder``/``iconUrl``). Everything leaving the data-access
layer goes through :func:`normalize_category` so callers only ever see the
current field names.
"""
import re
from typing import Any, Dict, Optional

DEFAULT_SORT_ORDER = 999

_SLUG_INVALID = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def slugify(name: str) -> str:
    slug = _SLUG_INVALID.sub("", name.lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    return _DASHES.sub("-", slug).strip("-")


def coerce_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() not in ("false", "0", "no", "")


def coerce_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return default


def normalize_category(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k not in ("active", "order", "icon")}
    out["isActive"] = coerce_bool(doc.get("isActive", doc.get("active")), default=True)
    sort_order = coerce_int(doc.get("sortOrder", doc.get("order")))
    out["sortOrder"] = DEFAULT_SORT_ORDER if sort_order is None else sort_order
    icon = doc.get("iconUrl", doc.get("icon"))
    out["iconUrl"] = icon if icon is not None else ""
    if not out.get("slug") and out.get("name"):
        out["slug"] = slugify(out["name"])
    return out


# Subcategories went through the same rename.
normalize_subcategory = normalize_category
