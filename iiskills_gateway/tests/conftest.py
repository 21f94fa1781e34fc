"""Shared fixtures for gateway tests.

Provides:
- fake_db: patches supabase_client with an in-memory fake
- client: sync TestClient wired to the FastAPI app
- apps_tree: a small learn-* monorepo on disk
- sample data factories for OTPs, entitlements, profiles and payments
"""

import json
import os
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from unittest.mock import patch, MagicMock

import pytest

# Set env vars before any gateway imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "fake-key")
os.environ.setdefault("AIENTER_CONFIRMATION_SIGNING_SECRET", "confirm-secret-123")
os.environ.setdefault("ORIGIN_WEBHOOK_SECRET", "origin-secret-456")
os.environ.setdefault("OTP_SECRET", "otp-secret-789")
os.environ.setdefault("ADMIN_API_KEY", "admin-key-abc")
os.environ.setdefault("NEWSLETTER_SECRET", "newsletter-secret")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "")
os.environ.setdefault("TWILIO_FROM_NUMBER", "")

from postgrest.exceptions import APIError  # noqa: E402


# ---------------------------------------------------------------------------
# In-memory fake Supabase
# ---------------------------------------------------------------------------

# Unique constraints enforced on insert, per table
UNIQUE_COLUMNS = {
    "payment_confirmations": ("razorpay_payment_id",),
    "payments": ("payment_id",),
    "newsletter_subscribers": ("email",),
}


def _comparable(a, b):
    """Compare numbers as numbers and everything else as strings."""
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a, b
    return str(a), str(b)


class FakeQueryResult:
    def __init__(self, data=None, count=None):
        self.data = data or []
        self.count = count


class FakeQueryBuilder:
    """Mimics the supabase-py query builder chain."""

    def __init__(self, store, table_name):
        self._store = store
        self._table = table_name
        self._filters = []
        self._order_col = None
        self._order_desc = False
        self._limit_val = None
        self._range_start = None
        self._range_end = None
        self._columns = "*"
        self._count_mode = None
        self._upsert_data = None
        self._upsert_conflict = None
        self._update_data = None
        self._delete_mode = False
        self._insert_data = None

    def select(self, columns="*", count=None):
        self._columns = columns
        self._count_mode = count
        return self

    def insert(self, data):
        self._insert_data = data
        return self

    def upsert(self, data, on_conflict=None):
        self._upsert_data = data
        self._upsert_conflict = on_conflict
        return self

    def update(self, data):
        self._update_data = data
        return self

    def delete(self):
        self._delete_mode = True
        return self

    def eq(self, col, val):
        self._filters.append(("eq", col, val))
        return self

    def neq(self, col, val):
        self._filters.append(("neq", col, val))
        return self

    def gt(self, col, val):
        self._filters.append(("gt", col, val))
        return self

    def gte(self, col, val):
        self._filters.append(("gte", col, val))
        return self

    def lt(self, col, val):
        self._filters.append(("lt", col, val))
        return self

    def lte(self, col, val):
        self._filters.append(("lte", col, val))
        return self

    def is_(self, col, val):
        self._filters.append(("is", col, val))
        return self

    def order(self, col, desc=False):
        self._order_col = col
        self._order_desc = desc
        return self

    def limit(self, n):
        self._limit_val = n
        return self

    def range(self, start, end):
        self._range_start = start
        self._range_end = end
        return self

    def _match(self, row):
        for op, col, val in self._filters:
            row_val = row.get(col)
            if op == "eq" and row_val != val:
                return False
            if op == "neq" and row_val == val:
                return False
            if op == "is":
                if val == "null" and row_val is not None:
                    return False
                continue
            if op in ("gt", "gte", "lt", "lte"):
                if row_val is None:
                    return False
                left, right = _comparable(row_val, val)
                if op == "gt" and not left > right:
                    return False
                if op == "gte" and not left >= right:
                    return False
                if op == "lt" and not left < right:
                    return False
                if op == "lte" and not left <= right:
                    return False
        return True

    def _check_unique(self, table, row):
        for col in UNIQUE_COLUMNS.get(self._table, ()):
            if row.get(col) is not None and any(r.get(col) == row[col] for r in table):
                raise APIError({
                    "code": "23505",
                    "message": f'duplicate key value violates unique constraint "{self._table}_{col}_key"',
                    "details": None,
                    "hint": None,
                })

    def execute(self):
        table = self._store[self._table]

        if self._insert_data is not None:
            row = dict(self._insert_data)
            if "id" not in row:
                row["id"] = str(uuid.uuid4())
            self._check_unique(table, row)
            table.append(row)
            return FakeQueryResult(data=[dict(row)])

        if self._upsert_data is not None:
            row = dict(self._upsert_data)
            if "id" not in row:
                row["id"] = str(uuid.uuid4())
            if self._upsert_conflict:
                conflict_cols = [c.strip() for c in self._upsert_conflict.split(",")]
                for existing in table:
                    if all(existing.get(c) == row.get(c) for c in conflict_cols):
                        existing.update(row)
                        return FakeQueryResult(data=[dict(existing)])
            table.append(row)
            return FakeQueryResult(data=[dict(row)])

        if self._update_data is not None:
            updated = []
            for row in table:
                if self._match(row):
                    row.update(self._update_data)
                    updated.append(dict(row))
            return FakeQueryResult(data=updated)

        if self._delete_mode:
            remaining = [r for r in table if not self._match(r)]
            removed = [r for r in table if self._match(r)]
            table.clear()
            table.extend(remaining)
            return FakeQueryResult(data=removed)

        # SELECT
        rows = [dict(r) for r in table if self._match(r)]

        if self._order_col:
            rows.sort(
                key=lambda r: r.get(self._order_col) or "",
                reverse=self._order_desc,
            )

        total = len(rows)

        if self._range_start is not None:
            rows = rows[self._range_start:self._range_end + 1]
        elif self._limit_val is not None:
            rows = rows[:self._limit_val]

        return FakeQueryResult(
            data=rows,
            count=total if self._count_mode else None,
        )


class FakeDB:
    """In-memory store keyed by table name."""

    def __init__(self):
        self.store = defaultdict(list)

    def table(self, name):
        return FakeQueryBuilder(self.store, name)

    def clear(self):
        self.store.clear()


@pytest.fixture
def fake_db():
    """Provides a clean in-memory DB and patches supabase_client._table."""
    db = FakeDB()

    def fake_table(name):
        return FakeQueryBuilder(db.store, name)

    with patch("iiskills_gateway.supabase_client._table", side_effect=fake_table):
        with patch("iiskills_gateway.supabase_client.get_client", return_value=MagicMock()):
            yield db


@pytest.fixture(autouse=True)
def _reset_state():
    """Rate limits, discovery cache and catalog singleton are module state."""
    from iiskills_gateway.guards import reset_rate_limits
    from iiskills_gateway.services.content_catalog import reset_content_catalog
    from iiskills_gateway.services.content_discovery import clear_discovery_cache

    reset_rate_limits()
    clear_discovery_cache()
    reset_content_catalog()
    yield
    reset_rate_limits()
    clear_discovery_cache()
    reset_content_catalog()


@pytest.fixture
def client(fake_db):
    """Sync test client for FastAPI app with mocked DB."""
    from contextlib import asynccontextmanager

    @asynccontextmanager
    async def noop_lifespan(app):
        yield

    from iiskills_gateway.app import create_app
    from fastapi.testclient import TestClient

    app = create_app()
    # Scheduler stays off in tests
    app.router.lifespan_context = noop_lifespan

    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer admin-key-abc"}


# ---------------------------------------------------------------------------
# Content tree
# ---------------------------------------------------------------------------

def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        path.write_text(data, encoding="utf-8")
    else:
        path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def apps_tree(tmp_path):
    """A monorepo root with three learn-* apps and one non-learn app."""
    apps = tmp_path / "apps"

    _write(apps / "learn-govt-jobs" / "data" / "jobs" / "clerk.json", {
        "id": "ssc-clerk-2026",
        "title": "SSC Clerk Recruitment 2026",
        "description": "Clerk posts across central ministries",
        "company": "Staff Selection Commission",
        "tags": ["ssc", "clerk"],
        "location": {"country": "India", "state": "Maharashtra", "district": "Pune"},
        "deadline": "2026-12-31",
    })
    _write(apps / "learn-govt-jobs" / "data" / "jobs" / "postal.json", {
        "id": "postal-gds",
        "title": "Postal GDS Vacancies",
        "description": "Gramin Dak Sevak openings",
        "tags": "postal, rural",
        "location": {"country": "India", "state": "Kerala"},
    })

    _write(apps / "learn-math" / "lessons" / "algebra.md", (
        "---\n"
        "id: algebra-basics\n"
        "title: Algebra Basics\n"
        "tags: [algebra, beginner]\n"
        "date: 2026-01-15\n"
        "---\n"
        "# Ignored heading\n"
        "Variables and expressions.\n"
    ))
    _write(apps / "learn-math" / "content" / "geometry-notes.md", (
        "\n# Geometry Notes\n"
        "Angles and triangles.\n"
        "Circles and arcs.\n"
        "Not part of the summary.\n"
    ))
    _write(apps / "learn-math" / "data" / "modules.json", {
        "modules": [
            {"id": "alg-2", "course_id": "algebra-101", "title": "Equations", "order": 2},
            {"id": "alg-1", "course_id": "algebra-101", "title": "Expressions", "order": 1},
            {"id": "geo-1", "course_id": "geometry-101", "title": "Angles", "order": 1},
        ],
        "lessons": [
            {"id": "l-2", "module_id": "alg-1", "title": "Terms", "order": 2},
            {"id": "l-1", "module_id": "alg-1", "title": "Variables", "order": 1},
            {"id": "l-3", "module_id": "alg-2", "title": "Solving", "order": 1},
        ],
    })
    _write(apps / "learn-math" / "data" / "courses.json", [
        {"id": "algebra-101", "title": "Algebra 101"},
        {"id": "geometry-101", "title": "Geometry 101"},
    ])

    _write(apps / "learn-physics" / "content-manifest.json", {
        "appId": "learn-physics",
        "appName": "Physics",
        "description": "Physics lessons",
        "content": [
            {"id": "newton", "type": "lesson", "title": "Newton's Laws",
             "description": "Force and motion", "tags": ["mechanics"]},
            {"id": "optics-quiz", "type": "quiz", "title": "Optics Quiz",
             "description": "Light and lenses", "tags": ["optics"]},
        ],
        "lastUpdated": "2026-02-01T00:00:00+00:00",
        "version": "1.0.0",
    })

    (apps / "main").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def cricket_base(tmp_path):
    """learn-cricket app directory with fixtures and a banlist."""
    base = tmp_path / "learn-cricket"
    _write(base / "data" / "fixtures" / "worldcup-fixtures.json", make_fixtures_data())
    _write(base / "config" / "content-banlist.json", {
        "bannedKeywords": ["betting"],
        "bannedPhrases": ["match fixing"],
        "controversialTopics": [],
    })
    return base


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------

def make_fixtures_data(**overrides):
    defaults = {
        "tournament": "ICC Men's T20 World Cup 2026",
        "venues": [
            {"id": "wankhede", "city": "Mumbai"},
            {"id": "eden", "city": "Kolkata"},
            {"id": "chepauk", "city": "Chennai"},
            {"id": "kotla", "city": "Delhi"},
        ],
        "fixtures": [
            {"matchId": f"m{n}", "matchNumber": n, "teamA": a, "teamB": b,
             "venue": v, "date": f"2026-02-{n + 6:02d}"}
            for n, (a, b, v) in enumerate([
                ("India", "Pakistan", "wankhede"),
                ("Sri Lanka", "Ireland", "eden"),
                ("Afghanistan", "Netherlands", "chepauk"),
                ("West Indies", "Scotland", "kotla"),
                ("Bangladesh", "Nepal", "wankhede"),
                ("Zimbabwe", "Oman", "eden"),
                ("USA", "Canada", "chepauk"),
                ("Namibia", "Italy", "kotla"),
                ("India", "USA", "eden"),
                ("Pakistan", "Netherlands", "wankhede"),
            ], start=1)
        ],
    }
    defaults.update(overrides)
    return defaults


def make_otp(**overrides):
    now = datetime.now(timezone.utc)
    defaults = {
        "id": str(uuid.uuid4()),
        "user_id": None,
        "email": "buyer@example.com",
        "phone": None,
        "app_id": "learn-ai",
        "otp_hash": "",
        "expires_at": (now + timedelta(minutes=10)).isoformat(),
        "verified_at": None,
        "verification_attempts": 0,
        "delivery_channel": "email",
        "email_sent": True,
        "sms_sent": False,
        "reason": "payment_verification",
        "payment_transaction_id": None,
        "admin_generated": False,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_entitlement(**overrides):
    now = datetime.now(timezone.utc)
    defaults = {
        "id": str(uuid.uuid4()),
        "user_id": None,
        "email": "buyer@example.com",
        "phone": None,
        "app_id": "learn-management",
        "status": "active",
        "source": "payment",
        "payment_reference": "pay_TEST123",
        "purchased_at": now.isoformat(),
        "expires_at": (now + timedelta(days=365)).isoformat(),
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_profile(**overrides):
    now = datetime.now(timezone.utc)
    defaults = {
        "id": str(uuid.uuid4()),
        "email": "buyer@example.com",
        "first_name": "Asha",
        "last_name": "Rao",
        "full_name": "Asha Rao",
        "phone": None,
        "is_paid_user": False,
        "paid_at": None,
        "subscribed_to_newsletter": False,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_payment(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "payment_id": "pay_ORIGIN001",
        "payment_gateway": "aienter",
        "app_id": "learn-management",
        "amount": 116.82,
        "currency": "INR",
        "status": "captured",
        "user_email": "buyer@example.com",
        "user_phone": None,
        "payment_notes": {},
        "created_at": "2026-03-01T10:00:00+00:00",
    }
    defaults.update(overrides)
    return defaults


def make_confirmation(**overrides):
    defaults = {
        "purchaseId": "pur_001",
        "appId": "learn-ai",
        "courseSlug": "ai-foundations",
        "amountPaise": 11682,
        "currency": "INR",
        "customerPhone": "98765 43210",
        "razorpayOrderId": "order_001",
        "razorpayPaymentId": "pay_CONFIRM001",
        "paidAt": "2026-03-01T10:00:00Z",
    }
    defaults.update(overrides)
    return defaults
