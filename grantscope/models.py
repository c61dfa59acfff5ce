"""
Data Models

Key Models:
- Foundation: the filing organization described by one Form 990
- KeyPerson: officer, director or trustee listed on the return
- Grantee: one grant recipient, optionally tagged with its foundation
- DocumentStatus: lifecycle of an uploaded document

The JSON wire format is camelCase; ``from_dict``/``to_dict`` convert.
"""
from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Optional, Tuple

from grantscope.errors import InvalidTransition


class DocumentStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.SUCCESS, DocumentStatus.ERROR)


_TRANSITIONS = {
    DocumentStatus.PENDING: {DocumentStatus.PROCESSING},
    DocumentStatus.PROCESSING: {DocumentStatus.SUCCESS, DocumentStatus.ERROR},
    DocumentStatus.SUCCESS: set(),
    DocumentStatus.ERROR: set(),
}


def check_transition(current: DocumentStatus, new: DocumentStatus) -> None:
    if new not in _TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move document from {current.value} to {new.value}")


def to_number(value: Any) -> Optional[float]:
    """Parse an LLM-provided amount. Returns None for null, NaN, infinity or garbage."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = re.sub(r"[$,\s]", "", value)
        if not cleaned:
            return None
        try:
            num = float(cleaned)
        except ValueError:
            return None
        if not math.isfinite(num):
            return None
        return int(num) if num.is_integer() else num
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    s = _text(value)
    return s or None


def _year(value: Any, default: Optional[int] = None) -> int:
    num = to_number(value)
    if num is not None and 1000 <= num <= 9999 and float(num).is_integer():
        return int(num)
    return default or date.today().year


@dataclass(frozen=True)
class Location:
    city: str = ""
    state: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"city": self.city, "state": self.state}


@dataclass(frozen=True)
class ContactInfo:
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ContactInfo":
        if not isinstance(data, dict):
            return cls()
        return cls(
            phone=_optional_text(data.get("phone")),
            address=_optional_text(data.get("address")),
            website=_optional_text(data.get("website")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for key in ("phone", "address", "website"):
            value = getattr(self, key)
            if value:
                out[key] = value
        return out


@dataclass(frozen=True)
class KeyPerson:
    name: str
    role: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "role": self.role}


@dataclass(frozen=True)
class Grantee:
    """A recipient of a grant from a foundation."""
    name: str
    year: int
    location: Location = field(default_factory=Location)
    amount: float = 0
    purpose: str = ""
    foundation_name: Optional[str] = None

    @property
    def state(self) -> str:
        return self.location.state

    @property
    def city(self) -> str:
        return self.location.city

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_year: Optional[int] = None) -> "Grantee":
        loc = data.get("location")
        if not isinstance(loc, dict):
            loc = {"city": data.get("city"), "state": data.get("state")}
        amount = to_number(data.get("amount"))
        return cls(
            name=_text(data.get("name")),
            year=_year(data.get("year"), default_year),
            location=Location(city=_text(loc.get("city")), state=_text(loc.get("state"))),
            amount=max(amount or 0, 0),
            purpose=_text(data.get("purpose")),
            foundation_name=_optional_text(data.get("foundationName")),
        )

    def tagged(self, foundation_name: str) -> "Grantee":
        return replace(self, foundation_name=foundation_name)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "name": self.name,
            "year": self.year,
            "location": self.location.to_dict(),
            "amount": self.amount,
            "purpose": self.purpose,
        }
        if self.foundation_name is not None:
            out["foundationName"] = self.foundation_name
        return out


@dataclass(frozen=True)
class Foundation:
    """One analyzed Form 990. Immutable once built."""
    name: str
    ein: str = ""
    total_assets: float = 0
    total_giving: float = 0
    average_grant_amount: float = 0
    median_grant_amount: float = 0
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    key_personnel: Tuple[KeyPerson, ...] = ()
    grantees: Tuple[Grantee, ...] = ()
    sample: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Foundation":
        people = []
        for p in data.get("keyPersonnel") or []:
            if isinstance(p, dict) and _text(p.get("name")):
                people.append(KeyPerson(name=_text(p.get("name")), role=_text(p.get("role"))))

        default_year = None
        years = [to_number(g.get("year")) for g in data.get("grantees") or [] if isinstance(g, dict)]
        years = [int(y) for y in years if y is not None and 1000 <= y <= 9999]
        if years:
            default_year = max(years)

        grantees = tuple(
            Grantee.from_dict(g, default_year)
            for g in data.get("grantees") or []
            if isinstance(g, dict)
        )
        return cls(
            name=_text(data.get("name")) or "Unknown Foundation",
            ein=_text(data.get("ein")),
            total_assets=to_number(data.get("totalAssets")) or 0,
            total_giving=to_number(data.get("totalGiving")) or 0,
            average_grant_amount=to_number(data.get("averageGrantAmount")) or 0,
            median_grant_amount=to_number(data.get("medianGrantAmount")) or 0,
            contact_info=ContactInfo.from_dict(data.get("contactInfo")),
            key_personnel=tuple(people),
            grantees=grantees,
            sample=bool(data.get("sample", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "name": self.name,
            "ein": self.ein,
            "totalAssets": self.total_assets,
            "totalGiving": self.total_giving,
            "averageGrantAmount": self.average_grant_amount,
            "medianGrantAmount": self.median_grant_amount,
            "contactInfo": self.contact_info.to_dict(),
            "keyPersonnel": [p.to_dict() for p in self.key_personnel],
            "grantees": [g.to_dict() for g in self.grantees],
        }
        if self.sample:
            out["sample"] = True
        return out
