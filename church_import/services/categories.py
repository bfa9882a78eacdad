from __future__ import annotations

import logging
import re
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from church_import.models.records import GivingItem
from church_import.models.snapshot import GivingCategory
from church_import.reader.headers import BOM, HeaderMap, cell, normalize_header

logger = logging.getLogger(__name__)

"""Category / amount resolution for giving imports.

Two header shapes coexist per church:

1. Legacy fixed fields ("Amount", "General Fund", "District Synod", ...) that
   always meant a well-known category.
2. Dynamic categories: whatever active giving categories the church has
   defined, matched case-insensitively against the header text.

The alias table bridging (1) to canonical category names comes from
configuration. Column -> category mapping is computed once per import by
build_category_columns(); resolve_amounts() then runs per row.
"""

__all__ = [
    "AmountResolution",
    "CategoryColumn",
    "build_category_columns",
    "parse_amount",
    "resolve_amounts",
]

_CURRENCY_NOISE = re.compile(r"[$,\s]")


@dataclass(frozen=True)
class CategoryColumn:
    index: int
    header: str  # header text as it appeared in the file
    category_id: str
    category_name: str


@dataclass(frozen=True)
class AmountResolution:
    items: tuple[GivingItem, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _compact(text: str) -> str:
    return text.replace(" ", "")


def build_category_columns(
    header_map: HeaderMap,
    categories: Iterable[GivingCategory],
    aliases: Mapping[str, str],
    reserved_columns: Collection[int] = (),
) -> tuple[CategoryColumn, ...]:
    """Map each amount-bearing column to exactly one active category.

    Args:
        header_map: resolved header of the upload
        categories: the church's active giving categories
        aliases: normalized header text -> canonical category name
        reserved_columns: indexes already claimed by identifier/date/notes

    Returns:
        CategoryColumn per matched column, in file order. A direct name match
        wins over an alias; an alias whose target category is not active for
        the church is logged and skipped.
    """
    by_name: dict[str, GivingCategory] = {}
    for category in categories:
        if not category.is_active:
            continue
        norm = normalize_header(category.name)
        by_name.setdefault(norm, category)
        by_name.setdefault(_compact(norm), category)

    columns: list[CategoryColumn] = []
    for index, norm in enumerate(header_map.normalized):
        if not norm or index in reserved_columns:
            continue
        category = by_name.get(norm) or by_name.get(_compact(norm))
        if category is None:
            target = aliases.get(norm) or aliases.get(_compact(norm))
            if target is None:
                continue
            norm_target = normalize_header(target)
            category = by_name.get(norm_target) or by_name.get(_compact(norm_target))
            if category is None:
                logger.warning(
                    "column %r maps to category %r which is not an active category; ignored",
                    header_map.headers[index].strip(),
                    target,
                )
                continue
        columns.append(
            CategoryColumn(
                index=index,
                header=header_map.headers[index].replace(BOM, "").strip(),
                category_id=category.id,
                category_name=category.name,
            )
        )
    return tuple(columns)


def parse_amount(text: str) -> Decimal:
    """Parse a money cell ("$1,250.00", "50", " 12.5 ").

    Raises:
        ValueError: when the text is not a finite decimal number
    """
    cleaned = _CURRENCY_NOISE.sub("", text)
    if cleaned.startswith("(") and cleaned.endswith(")"):
        # accounting notation for negatives
        cleaned = "-" + cleaned[1:-1]
    try:
        value = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"not a number: {text!r}") from e
    if not value.is_finite():
        raise ValueError(f"not a finite number: {text!r}")
    return value


def resolve_amounts(values: Sequence[str], columns: Sequence[CategoryColumn]) -> AmountResolution:
    """Collect (category, amount) items for one row.

    Blank, absent and zero cells are omitted without error. The first cell
    that is negative or not a number makes the whole row invalid. Several
    columns feeding the same category are summed into one item.

    Args:
        values: raw field values of the row
        columns: category columns from build_category_columns()

    Returns:
        AmountResolution with items in first-seen category order, or with
        ``error`` set (the message always contains "non-negative")
    """
    totals: dict[str, Decimal] = {}
    for column in columns:
        text = cell(values, column.index)
        if text is None:
            continue
        try:
            amount = parse_amount(text)
        except ValueError:
            return AmountResolution(
                error=f"Invalid amount for {column.header} (must be a non-negative number)"
            )
        if amount < 0:
            return AmountResolution(error=f"Invalid amount for {column.header} (must be non-negative)")
        if amount == 0:
            continue
        totals[column.category_id] = totals.get(column.category_id, Decimal("0")) + amount
    return AmountResolution(
        items=tuple(GivingItem(category_id=cid, amount=amount) for cid, amount in totals.items())
    )
