"""
Free-text category classification.

Rules are evaluated top to bottom and the first match wins, so text that
matches several rows always resolves to the earliest one. New categories are
added by appending a row.
"""
from typing import Optional, Tuple

from surveyme.poi import PoiCategory

# (type hint keywords, name hint keywords, category)
CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...], PoiCategory], ...] = (
    (("shop",), ("shop", "store"), PoiCategory.SHOP),
    (("restaurant",), ("restaurant", "cafe"), PoiCategory.RESTAURANT),
    (("tourist", "attraction"), ("monument",), PoiCategory.TOURIST_ATTRACTION),
    (("transport",), ("station", "stop"), PoiCategory.PUBLIC_TRANSPORT),
    (("amenity",), ("toilet", "parking"), PoiCategory.AMENITY),
    (("historic",), ("castle", "church"), PoiCategory.HISTORIC),
    (("natural",), ("park", "peak"), PoiCategory.NATURAL),
    (("infrastructure",), ("bridge", "tower"), PoiCategory.INFRASTRUCTURE),
)


def classify(type_hint: Optional[str], name_hint: Optional[str]) -> PoiCategory:
    """
    Map a type hint and a name to a POI category.
        Args:
            type_hint (Optional[str]): Free-text type, e.g. a GPX <type> value.
            name_hint (Optional[str]): Display name of the POI.
        Returns:
            PoiCategory: The category of the first matching rule, UNKNOWN if none matches.
    """
    type_text = (type_hint or "").lower()
    name_text = (name_hint or "").lower()

    for type_keywords, name_keywords, category in CATEGORY_RULES:
        if any(keyword in type_text for keyword in type_keywords):
            return category
        if any(keyword in name_text for keyword in name_keywords):
            return category
    return PoiCategory.UNKNOWN
