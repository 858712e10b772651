"""
Shared pytest fixtures for the Travel Desk test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - requester / reviewer / reviewer_b / minister / admin: acting identities
    - auth_headers: Bearer headers for an identity
    - application_payload: valid create payload (callable, accepts overrides)
    - submitted_app / in_review_app / referred_app: applications driven
      through the workflow to that status
"""

import pytest

from travel_desk import create_app
from travel_desk.core.identity import ActorIdentity
from travel_desk.models import db as _db
from travel_desk.services import application_service, workflow
from travel_desk.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Identities ───────────────────────────────────────────────────────────


@pytest.fixture()
def requester():
    return ActorIdentity(
        id="u-100", first_name="Ana", last_name="Deiye",
        email="ana.deiye@finance.gov.nr", roles=frozenset({"USER"}),
    )


@pytest.fixture()
def other_requester():
    return ActorIdentity(
        id="u-101", first_name="Tom", last_name="Harris",
        email="tom.harris@health.gov.nr", roles=frozenset({"USER"}),
    )


@pytest.fixture()
def reviewer():
    return ActorIdentity(
        id="r-200", first_name="Ben", last_name="Adam",
        email="ben.adam@traveldesk.gov.nr", roles=frozenset({"REVIEWER"}),
    )


@pytest.fixture()
def reviewer_b():
    return ActorIdentity(
        id="r-201", first_name="Lisa", last_name="Kun",
        email="lisa.kun@traveldesk.gov.nr", roles=frozenset({"REVIEWER"}),
    )


@pytest.fixture()
def minister():
    return ActorIdentity(
        id="m-300", first_name="Clara", last_name="Detenamo",
        email="minister@finance.gov.nr", roles=frozenset({"MINISTER"}),
    )


@pytest.fixture()
def admin():
    return ActorIdentity(
        id="a-400", first_name="Sam", last_name="Dowiyogo",
        email="sam.dowiyogo@ict.gov.nr", roles=frozenset({"ADMIN"}),
    )


@pytest.fixture()
def auth_headers():
    """Return a function building Bearer headers for an ActorIdentity."""
    def _headers(actor):
        token = generate_access_token(
            actor.id, sorted(actor.roles),
            first_name=actor.first_name, last_name=actor.last_name, email=actor.email,
        )
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Applications ─────────────────────────────────────────────────────────


@pytest.fixture()
def application_payload():
    """Return a function producing a valid create payload (5 days, GoN cost 2800)."""
    def _payload(**overrides):
        data = {
            "department": "Finance",
            "division": "Treasury",
            "head_of_department": "Secretary for Finance",
            "hod_email": "secretary@finance.gov.nr",
            "minister_name": "Hon. Clara Detenamo",
            "event_title": "Pacific Budget Forum",
            "reason_for_participation": "Present the national budget reform.",
            "start_date": "2026-11-02",
            "end_date": "2026-11-06",
            "department_head_code": "06",
            "travellers": [{"name": "Ana Deiye", "role": "Budget Officer"}],
            "expenses": [
                {"expense_type": "Airfare", "details": "NRU-BNE return",
                 "cost_per_person": 1800, "persons_or_days": 1, "total_cost": 1800,
                 "donor_funding": "No", "gon_cost": 1800},
                {"expense_type": "Accommodation", "details": "4 nights",
                 "cost_per_person": 250, "persons_or_days": 4, "total_cost": 1000,
                 "donor_funding": "No", "gon_cost": 1000},
            ],
            "attachments_provided": ["invitation"],
        }
        data.update(overrides)
        return data
    return _payload


@pytest.fixture()
def draft_app(requester, application_payload):
    return application_service.create_application(application_payload(), requester)


@pytest.fixture()
def submitted_app(requester, application_payload):
    return application_service.create_application(application_payload(), requester, submit=True)


@pytest.fixture()
def in_review_app(submitted_app, reviewer):
    return workflow.open_for_review(submitted_app.id, reviewer)


@pytest.fixture()
def referred_app(in_review_app, reviewer):
    return workflow.decide(in_review_app.id, "REFERRED_TO_MINISTER", reviewer,
                           note="minister@finance.gov.nr")
