"""Fuzzy ranking of search results with rapidfuzz."""

from typing import Any, Callable, Iterable, TypeVar

from rapidfuzz import fuzz

T = TypeVar("T")


def _score(query: str, fields: Iterable[str | None]) -> float:
    best = 0.0
    for value in fields:
        if not value:
            continue
        value = value.lower()
        if query in value:
            # Substring hits always outrank pure fuzzy matches.
            best = max(best, 100.0 + len(query) / max(len(value), 1))
        else:
            best = max(best, fuzz.partial_ratio(query, value))
    return best


def rank_by_similarity(
    query: str,
    items: Iterable[T],
    fields: Callable[[T], Iterable[str | None]],
) -> list[T]:
    """Sort *items* by how well any of ``fields(item)`` matches *query*.

    The sort is stable, so equally scored items keep their incoming order.
    """
    q = query.strip().lower()
    items = list(items)
    if not q:
        return items
    scored = [(_score(q, fields(item)), i, item) for i, item in enumerate(items)]
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [item for _, _, item in scored]


def product_fields(product: Any) -> tuple[str | None, ...]:
    return (product.name_ar, product.name_en, product.description_ar)
