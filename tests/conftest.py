"""
Test Configuration and Fixtures
"""
import io

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from grantscope import create_app
from grantscope.cache import ResponseCache
from grantscope.rate_limit import RateLimiter


class FakeClock:
    """Manually advanced clock, in seconds"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    """Create application for testing"""
    cache = ResponseCache(default_ttl=3600, sweep_interval=300, clock=clock)
    limiter = RateLimiter(quota=10, window=60, purge_interval=300, prefix="/api", clock=clock)
    app = create_app("testing", cache=cache, limiter=limiter)
    app.config["TESTING"] = True
    yield app


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


def make_pdf(lines):
    """Build a small text PDF in memory"""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    y = 750
    for line in lines:
        c.drawString(72, y, line)
        y -= 14
        if y < 72:
            c.showPage()
            y = 750
    c.save()
    return buf.getvalue()


FORM_990_LINES = [
    "Form 990-PF Return of Private Foundation 2023",
    "Name of foundation: Lakeshore Community Foundation",
    "Employer identification number 39-1234567",
    "Total assets end of year 12,500,000",
] + [
    f"Part XV 3 Grants and Contributions Paid During the Year - Grantee {i} Madison WI 10,000 Education"
    for i in range(1, 12)
]


@pytest.fixture
def form990_pdf():
    return make_pdf(FORM_990_LINES)


@pytest.fixture
def foundation_dict():
    return {
        "name": "Lakeshore Community Foundation",
        "ein": "39-1234567",
        "totalAssets": 12500000,
        "totalGiving": 600000,
        "averageGrantAmount": 20000,
        "medianGrantAmount": 20000,
        "contactInfo": {"phone": "(608) 555-0100", "website": "https://lakeshore.example.org"},
        "keyPersonnel": [{"name": "Ann Lee", "role": "President"}],
        "grantees": [
            {"name": "Madison Food Pantry", "year": 2023,
             "location": {"city": "Madison", "state": "WI"}, "amount": 10000, "purpose": "Human Services"},
            {"name": "Chicago Arts League", "year": 2022,
             "location": {"city": "Chicago", "state": "IL"}, "amount": 20000, "purpose": "Arts & Culture"},
            {"name": "Duluth Reading Project", "year": 2023,
             "location": {"city": "Duluth", "state": "MN"}, "amount": 30000, "purpose": "Education"},
        ],
    }
