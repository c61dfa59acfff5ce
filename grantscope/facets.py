"""
Grantee aggregation, filter facets and the filter predicate.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Sequence, Tuple

from grantscope.models import Foundation, Grantee


def merge_grantees(foundations: Iterable[Foundation]) -> List[Grantee]:
    """Concatenate every foundation's grantees, tagging each with its source."""
    out: List[Grantee] = []
    for foundation in foundations:
        for grantee in foundation.grantees:
            out.append(grantee.tagged(foundation.name))
    return out


def unique_years(grantees: Iterable[Grantee]) -> List[int]:
    return sorted({g.year for g in grantees}, reverse=True)


def unique_states(grantees: Iterable[Grantee]) -> List[str]:
    return sorted({g.state for g in grantees})


def unique_purposes(grantees: Iterable[Grantee]) -> List[str]:
    return sorted({g.purpose for g in grantees})


def amount_range(grantees: Sequence[Grantee]) -> Tuple[float, float]:
    if not grantees:
        return 0, 0
    amounts = [g.amount for g in grantees]
    return min(amounts), max(amounts)


@dataclass(frozen=True)
class Facets:
    years: Tuple[int, ...] = ()
    states: Tuple[str, ...] = ()
    purposes: Tuple[str, ...] = ()
    amount_range: Tuple[float, float] = (0, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "years": list(self.years),
            "states": list(self.states),
            "purposes": list(self.purposes),
            "amountRange": list(self.amount_range),
        }


def derive_facets(grantees: Sequence[Grantee]) -> Facets:
    return Facets(
        years=tuple(unique_years(grantees)),
        states=tuple(unique_states(grantees)),
        purposes=tuple(unique_purposes(grantees)),
        amount_range=amount_range(grantees),
    )


@dataclass(frozen=True)
class FilterOptions:
    """Empty year/state/purpose sets mean no constraint on that field."""
    years: FrozenSet[int] = field(default_factory=frozenset)
    states: FrozenSet[str] = field(default_factory=frozenset)
    purposes: FrozenSet[str] = field(default_factory=frozenset)
    amount_range: Tuple[float, float] = (0, float("inf"))

    @classmethod
    def for_facets(cls, facets: Facets) -> "FilterOptions":
        return cls(amount_range=tuple(facets.amount_range))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], facets: Facets = None) -> "FilterOptions":
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("filters must be an object")
        rng = data.get("amountRange")
        if isinstance(rng, (list, tuple)) and len(rng) == 2:
            amount = (float(rng[0]), float(rng[1]))
        elif facets is not None:
            amount = tuple(facets.amount_range)
        else:
            amount = (0, float("inf"))
        return cls(
            years=frozenset(int(y) for y in data.get("years") or []),
            states=frozenset(str(s) for s in data.get("states") or []),
            purposes=frozenset(str(p) for p in data.get("purposes") or []),
            amount_range=amount,
        )

    def accepts(self, grantee: Grantee) -> bool:
        if self.years and grantee.year not in self.years:
            return False
        if self.states and grantee.state not in self.states:
            return False
        low, high = self.amount_range
        if grantee.amount < low or grantee.amount > high:
            return False
        if self.purposes and grantee.purpose not in self.purposes:
            return False
        return True


def filter_grantees(grantees: Iterable[Grantee], filters: FilterOptions) -> List[Grantee]:
    return [g for g in grantees if filters.accepts(g)]


def totals_by(grantees: Iterable[Grantee], key: Callable[[Grantee], Any]) -> "OrderedDict[Any, float]":
    """Sum grant amounts per key, largest total first."""
    totals: Dict[Any, float] = {}
    for g in grantees:
        k = key(g)
        totals[k] = totals.get(k, 0) + g.amount
    return OrderedDict(sorted(totals.items(), key=lambda kv: (-kv[1], str(kv[0]))))


def summarize(foundations: Sequence[Foundation], grantees: Sequence[Grantee]) -> Dict[str, Any]:
    total_amount = sum(g.amount for g in grantees)
    return {
        "foundations": len(foundations),
        "totalAssets": sum(f.total_assets for f in foundations),
        "totalGiving": sum(f.total_giving for f in foundations),
        "totalGrantees": len(grantees),
        "totalGrantAmount": total_amount,
        "averageGrantAmount": total_amount / len(grantees) if grantees else 0,
    }
