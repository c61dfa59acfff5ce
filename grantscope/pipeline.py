"""
Client-side orchestration of the two-stage extraction pipeline.

Each document goes through ``/api/process-pdf`` and then ``/api/analyze-990``,
one document at a time. A failure is recorded on that document only and the
run moves on to the next file. Placeholder data is never substituted
implicitly; callers opt in with ``BatchResult.with_placeholders``.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests

from grantscope.errors import ExtractionError
from grantscope.facets import Facets, derive_facets, merge_grantees
from grantscope.models import (
    ContactInfo,
    DocumentStatus,
    Foundation,
    Grantee,
    KeyPerson,
    Location,
    check_transition,
)
from grantscope.services.openai_service import grant_statistics

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or resp.reason or "").strip()
    if isinstance(body, dict):
        return str(body.get("details") or body.get("error") or resp.reason)
    return resp.reason or ""


class ExtractionClient:
    """HTTP client for the GrantScope API."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT, session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "grantscope/1.0"})

    def _post(self, stage: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise ExtractionError(f"{stage} timed out after {self.timeout}s", stage=stage) from e
        except requests.RequestException as e:
            raise ExtractionError(f"{stage} request failed: {e}", stage=stage) from e

        if resp.status_code != 200:
            detail = _error_detail(resp)
            logger.error("%s failed with status %s: %s", stage, resp.status_code, detail)
            raise ExtractionError(f"{stage} failed: {detail}", stage=stage, status_code=resp.status_code)
        try:
            body = resp.json()
        except ValueError as e:
            raise ExtractionError(f"{stage} returned invalid JSON", stage=stage) from e
        if not isinstance(body, dict):
            raise ExtractionError(f"{stage} returned an unexpected payload", stage=stage)
        return body

    def extract_text(self, filename: str, data: bytes) -> str:
        body = self._post(
            "process-pdf",
            "/api/process-pdf",
            files={"file": (filename, data, "application/pdf")},
        )
        text = body.get("text")
        if not text:
            raise ExtractionError("Failed to extract text from PDF", stage="process-pdf")
        return text

    def analyze(self, text: str) -> Foundation:
        body = self._post("analyze-990", "/api/analyze-990", json={"text": text})
        try:
            return Foundation.from_dict(body)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ExtractionError(f"analyze-990 returned a malformed foundation: {e}", stage="analyze-990") from e


@dataclass
class Document:
    name: str
    data: bytes = field(repr=False, default=b"")
    status: DocumentStatus = DocumentStatus.PENDING
    error: Optional[str] = None
    history: List[DocumentStatus] = field(default_factory=lambda: [DocumentStatus.PENDING])

    def advance(self, status: DocumentStatus, error: Optional[str] = None) -> None:
        check_transition(self.status, status)
        self.status = status
        self.history.append(status)
        if error is not None:
            self.error = error


@dataclass(frozen=True)
class Success:
    document: Document
    foundation: Foundation
    ok = True


@dataclass(frozen=True)
class Failure:
    document: Document
    error: str
    ok = False


Outcome = Union[Success, Failure]
ProgressCallback = Callable[[Outcome, int, int], None]


@dataclass
class BatchResult:
    outcomes: List[Outcome]

    @property
    def total_files(self) -> int:
        return len(self.outcomes)

    @property
    def processed_files(self) -> int:
        return sum(1 for o in self.outcomes if o.document.status.is_terminal)

    @property
    def foundations(self) -> List[Foundation]:
        return [o.foundation for o in self.outcomes if isinstance(o, Success)]

    @property
    def failures(self) -> List[Failure]:
        return [o for o in self.outcomes if isinstance(o, Failure)]

    @property
    def grantees(self) -> List[Grantee]:
        return merge_grantees(self.foundations)

    @property
    def facets(self) -> Facets:
        return derive_facets(self.grantees)

    def with_placeholders(self, rng: random.Random = None) -> List[Foundation]:
        """Foundations in document order, with tagged sample data standing in for failures."""
        out = []
        for o in self.outcomes:
            if isinstance(o, Success):
                out.append(o.foundation)
            else:
                out.append(placeholder_foundation(_display_name(o.document.name), rng=rng))
        return out


def _display_name(filename: str) -> str:
    name = filename
    if name.lower().endswith(".pdf"):
        name = name[:-4]
    return name.replace("_", " ")


class Orchestrator:
    def __init__(self, client: ExtractionClient, on_progress: Optional[ProgressCallback] = None):
        self.client = client
        self.on_progress = on_progress

    def process(self, document: Document) -> Outcome:
        document.advance(DocumentStatus.PROCESSING)
        try:
            text = self.client.extract_text(document.name, document.data)
            foundation = self.client.analyze(text)
        except ExtractionError as e:
            logger.warning("Failed to process %s: %s", document.name, e)
            document.advance(DocumentStatus.ERROR, error=str(e))
            return Failure(document=document, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error processing %s", document.name)
            message = f"{type(e).__name__}: {e}"
            document.advance(DocumentStatus.ERROR, error=message)
            return Failure(document=document, error=message)
        document.advance(DocumentStatus.SUCCESS)
        logger.info("Analysis complete for %s: %s", document.name, foundation.name)
        return Success(document=document, foundation=foundation)

    def run(self, documents: Sequence[Document]) -> BatchResult:
        outcomes: List[Outcome] = []
        total = len(documents)
        for doc in documents:
            outcome = self.process(doc)
            outcomes.append(outcome)
            if self.on_progress is not None:
                self.on_progress(outcome, len(outcomes), total)
        return BatchResult(outcomes=outcomes)


STATES = ["WI", "IL", "MN", "MI", "IA", "OH", "NY", "CA", "TX", "FL"]
PURPOSES = [
    "Education",
    "Health",
    "Arts & Culture",
    "Environment",
    "Human Services",
    "Community Development",
    "Civil Rights",
    "Animal Welfare",
]


def placeholder_foundation(name: str, rng: random.Random = None) -> Foundation:
    """Synthetic foundation for demos. Always tagged ``sample=True``."""
    rng = rng or random.Random()
    total_assets = round(rng.random() * 100_000_000)
    total_giving = round(total_assets * rng.random() * 0.1)
    current_year = date.today().year

    grantees = []
    for i in range(10 + rng.randrange(20)):
        grantees.append(Grantee(
            name=f"Nonprofit Organization {i + 1}",
            year=current_year - rng.randrange(3),
            location=Location(city=f"City {i % 10}", state=STATES[i % len(STATES)]),
            amount=round(rng.random() * total_giving * 0.1 / 1000) * 1000,
            purpose=PURPOSES[i % len(PURPOSES)],
        ))
    average, median = grant_statistics(g.amount for g in grantees)

    slug = "".join(name.lower().split())
    return Foundation(
        name=name,
        ein=f"{rng.randint(10, 99)}-{rng.randint(1000000, 9999999)}",
        total_assets=total_assets,
        total_giving=total_giving,
        average_grant_amount=average,
        median_grant_amount=median,
        contact_info=ContactInfo(
            phone=f"({rng.randint(100, 999)}) {rng.randint(100, 999)}-{rng.randint(1000, 9999)}",
            address=f"{rng.randint(100, 999)} Main St, City, {rng.choice(STATES)} {rng.randint(10000, 99999)}",
            website=f"https://www.{slug}.org",
        ),
        key_personnel=(
            KeyPerson("John Smith", "Executive Director"),
            KeyPerson("Jane Doe", "Board Chair"),
            KeyPerson("Robert Johnson", "Treasurer"),
        ),
        grantees=tuple(grantees),
        sample=True,
    )
