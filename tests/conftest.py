import itertools
import json
from datetime import datetime, timedelta

import pytest

from umrah_office.app import create_app
from umrah_office.auth.credentials import InMemoryCredentialVerifier
from umrah_office.config import TestConfig
from umrah_office.domain import Agent
from umrah_office.extensions import db

PASSWORDS = {
    "agent@example.com": "agent-pass",
    "other@example.com": "other-pass",
    "director@example.com": "director-pass",
}


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    app.extensions["credentials"] = InMemoryCredentialVerifier(PASSWORDS)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def store(app):
    return app.extensions["store"]


@pytest.fixture()
def manager(app):
    return app.extensions["rooming"]


@pytest.fixture()
def agent(store):
    return store.create_agent(Agent(id=None, name="Samir Agent", email="agent@example.com", role="agent"))


@pytest.fixture()
def other_agent(store):
    return store.create_agent(Agent(id=None, name="Nadia Agent", email="other@example.com", role="agent"))


@pytest.fixture()
def director(store):
    return store.create_agent(
        Agent(id=None, name="Head Office", email="director@example.com", role="director", department="Management")
    )


def _login(app, email):
    client = app.test_client()
    resp = client.post("/auth/login", json={"email": email, "password": PASSWORDS[email]})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture()
def agent_client(app, agent):
    return _login(app, agent.email)


@pytest.fixture()
def other_client(app, other_agent):
    return _login(app, other_agent.email)


@pytest.fixture()
def director_client(app, director):
    return _login(app, director.email)


# ---------- fake document database ----------

class FakeResponse:
    def __init__(self, status_code, body=None, reason=""):
        self.status_code = status_code
        self._body = body
        self.reason = reason

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeDocumentsSession:
    """In-memory stand-in for the document database REST API (requests.Session)."""

    def __init__(self):
        self.headers = {}
        self.collections = {}
        self.calls = []
        self.failures = []  # (method, collection, status) consumed in order
        self._ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, 8, 0, 0)

    def fail_next(self, method, collection, status=500):
        self.failures.append((method, collection, status))

    def _parse(self, url):
        tail = url.split("/collections/", 1)[1]
        parts = tail.split("/")
        collection = parts[0]
        doc_id = parts[2] if len(parts) > 2 else None
        return collection, doc_id

    def _match(self, doc, queries):
        for q in queries:
            if q["method"] == "equal":
                if doc.get(q["attribute"]) not in q["values"]:
                    return False
        return True

    def request(self, method, url, params=None, json=None, timeout=None):
        collection, doc_id = self._parse(url)
        self.calls.append((method, collection, doc_id))
        for idx, (f_method, f_collection, status) in enumerate(self.failures):
            if f_method == method and f_collection == collection:
                del self.failures[idx]
                return FakeResponse(status, {"message": "injected failure"}, "Server Error")

        docs = self.collections.setdefault(collection, {})

        if method == "GET" and doc_id is None:
            queries = [_loads(q) for q in (params or {}).get("queries[]", [])]
            found = [d for d in docs.values() if self._match(d, queries)]
            for q in queries:
                if q["method"] in ("orderAsc", "orderDesc"):
                    found.sort(key=lambda d: d.get(q["attribute"]) or "", reverse=q["method"] == "orderDesc")
            total = len(found)
            for q in queries:
                if q["method"] == "offset":
                    found = found[q["values"][0]:]
            for q in queries:
                if q["method"] == "limit":
                    found = found[:q["values"][0]]
            return FakeResponse(200, {"total": total, "documents": [dict(d) for d in found]})

        if method == "GET":
            if doc_id not in docs:
                return FakeResponse(404, {"message": "Document not found"}, "Not Found")
            return FakeResponse(200, dict(docs[doc_id]))

        if method == "POST":
            new_id = json.get("documentId") or f"doc{next(self._ids)}"
            if new_id in docs:
                return FakeResponse(409, {"message": "Document already exists"}, "Conflict")
            self._clock += timedelta(seconds=1)
            doc = dict(json["data"])
            doc["$id"] = new_id
            doc["$createdAt"] = self._clock.isoformat() + ".000+00:00"
            doc["$updatedAt"] = doc["$createdAt"]
            docs[new_id] = doc
            return FakeResponse(201, dict(doc))

        if method == "PATCH":
            if doc_id not in docs:
                return FakeResponse(404, {"message": "Document not found"}, "Not Found")
            docs[doc_id].update(json["data"])
            return FakeResponse(200, dict(docs[doc_id]))

        if method == "DELETE":
            if docs.pop(doc_id, None) is None:
                return FakeResponse(404, {"message": "Document not found"}, "Not Found")
            return FakeResponse(204)

        return FakeResponse(405, {"message": "Method not allowed"})


def _loads(raw):
    return json.loads(raw)


@pytest.fixture()
def docs_session():
    return FakeDocumentsSession()


@pytest.fixture()
def doc_store(docs_session):
    from umrah_office.store.documents import DocumentStore

    return DocumentStore(
        {
            "endpoint": "https://docs.example.test/v1",
            "project_id": "proj",
            "api_key": "key",
            "database_id": "umrah",
            "retry_delay": 0,
        },
        session=docs_session,
    )
