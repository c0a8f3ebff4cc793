import httpx
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from media_search.core.errors import PersistenceError
from media_search.core.security import create_access_token
from media_search.main import app
from media_search.models.search import SearchRecord
from media_search.services.openverse_service import openverse_service
from media_search.services.search_history_service import search_history_service


def test_anonymous_search_returns_results_without_recording(client, openverse, db):
    response = client.get("/api/media/search", params={"q": "sunset"})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert [result["id"] for result in body["results"]] == ["a1", "a2"]
    assert body["results"][1]["title"] == "Untitled"
    assert len(openverse.requests) == 1
    assert db.query(SearchRecord).count() == 0


def test_authenticated_search_records_exactly_one_entry(client, auth_headers, db):
    response = client.get(
        "/api/media/search",
        params={"q": "  rain  ", "media_type": "audio"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    records = db.query(SearchRecord).all()
    assert len(records) == 1
    assert records[0].query == "rain"
    assert records[0].media_type == "audio"


def test_search_with_invalid_token_is_treated_as_anonymous(client, db):
    response = client.get(
        "/api/media/search",
        params={"q": "sunset"},
        headers={"Authorization": "Bearer expired-or-forged"},
    )

    assert response.status_code == 200
    assert db.query(SearchRecord).count() == 0


def test_search_forwards_filters_and_paging(client, openverse):
    response = client.get(
        "/api/media/search",
        params={"q": "cats", "license": "by,cc0", "extension": "png", "page": 3, "page_size": 100},
    )

    assert response.status_code == 200
    params = openverse.requests[0].url.params
    assert params["license"] == "by,cc0"
    assert params["extension"] == "png"
    assert params["page"] == "3"
    assert params["page_size"] == "50"
    assert response.json()["page_size"] == 50


def test_blank_query_is_rejected_without_outbound_call(client, openverse, auth_headers, db):
    response = client.get("/api/media/search", params={"q": "   "}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "q", "message": "Search query is required"}]
    assert openverse.requests == []
    assert db.query(SearchRecord).count() == 0


def test_missing_query_is_field_level_validation_error(client, openverse):
    response = client.get("/api/media/search")

    assert response.status_code == 400
    assert [error["field"] for error in response.json()["errors"]] == ["q"]
    assert openverse.requests == []


def test_unknown_media_type_is_rejected(client, openverse):
    response = client.get("/api/media/search", params={"q": "cats", "media_type": "model"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "media_type"
    assert openverse.requests == []


def test_video_search_is_rejected(client, openverse):
    response = client.get("/api/media/search", params={"q": "cats", "media_type": "video"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "media_type"
    assert openverse.requests == []


def test_upstream_error_is_not_recorded(client, openverse, auth_headers, db):
    openverse.status_code = 500

    response = client.get("/api/media/search", params={"q": "sunset"}, headers=auth_headers)

    assert response.status_code == 502
    assert response.json() == {"message": "Error fetching media", "status": 500}
    assert db.query(SearchRecord).count() == 0


def test_upstream_timeout_is_not_recorded(client, openverse, auth_headers, db):
    openverse.error = lambda request: httpx.ConnectTimeout("timed out", request=request)

    response = client.get("/api/media/search", params={"q": "sunset"}, headers=auth_headers)

    assert response.status_code == 504
    assert response.json() == {"message": "Media search timed out"}
    assert db.query(SearchRecord).count() == 0


def test_history_write_failure_does_not_fail_search(client, auth_headers, monkeypatch, db):
    def failing_save(*args, **kwargs):
        raise PersistenceError("Error saving search history")

    monkeypatch.setattr(search_history_service, "save", failing_save)

    response = client.get("/api/media/search", params={"q": "sunset"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert db.query(SearchRecord).count() == 0


def test_recent_searches_require_authentication(client):
    response = client.get("/api/media/searches")

    assert response.status_code == 401


def test_recent_searches_newest_first(client, auth_headers):
    for query in ("first", "second", "third"):
        client.get("/api/media/search", params={"q": query}, headers=auth_headers)

    response = client.get("/api/media/searches", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert [record["query"] for record in body] == ["third", "second", "first"]
    assert set(body[0]) == {"id", "query", "media_type", "created_at"}


def test_recent_searches_limit(client, auth_headers):
    for i in range(12):
        client.get("/api/media/search", params={"q": f"query {i}"}, headers=auth_headers)

    default = client.get("/api/media/searches", headers=auth_headers)
    limited = client.get("/api/media/searches", params={"limit": 5}, headers=auth_headers)
    too_big = client.get("/api/media/searches", params={"limit": 500}, headers=auth_headers)

    assert len(default.json()) == 10
    assert len(limited.json()) == 5
    assert too_big.status_code == 400


def test_delete_own_search(client, auth_headers):
    client.get("/api/media/search", params={"q": "cats"}, headers=auth_headers)
    search_id = client.get("/api/media/searches", headers=auth_headers).json()[0]["id"]

    response = client.delete(f"/api/media/searches/{search_id}", headers=auth_headers)

    assert response.status_code == 200
    assert client.get("/api/media/searches", headers=auth_headers).json() == []


def test_delete_other_users_search_is_not_found(client, register_user, login, db):
    register_user(email="alice@example.com")
    register_user(email="bob@example.com", name="Bob")
    alice = login(email="alice@example.com")
    bob = login(email="bob@example.com")
    client.get("/api/media/search", params={"q": "bob's query"}, headers=bob)
    search_id = client.get("/api/media/searches", headers=bob).json()[0]["id"]

    response = client.delete(f"/api/media/searches/{search_id}", headers=alice)

    assert response.status_code == 404
    assert response.json() == {"message": "Search not found"}
    assert db.get(SearchRecord, search_id) is not None


def test_delete_requires_authentication(client):
    response = client.delete("/api/media/searches/1")

    assert response.status_code == 401


def test_clear_all_searches(client, auth_headers):
    for query in ("a", "b"):
        client.get("/api/media/search", params={"q": query}, headers=auth_headers)

    response = client.delete("/api/media/searches", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["deleted"] == 2
    assert client.get("/api/media/searches", headers=auth_headers).json() == []


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200


def test_search_succeeds_anonymously_when_user_lookup_fails(client, openverse, failing_db):
    session = failing_db(OperationalError("SELECT users", {}, Exception("db down")))
    token = create_access_token({"sub": "1"})

    response = client.get(
        "/api/media/search",
        params={"q": "sunset"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert len(openverse.requests) == 1
    assert session.rolled_back is True


def test_history_listing_reports_pool_exhaustion_generically(client, failing_db):
    failing_db(SQLAlchemyTimeoutError("QueuePool limit reached"))
    token = create_access_token({"sub": "1"})

    response = client.get("/api/media/searches", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 500
    assert response.json() == {"message": "Database error occurred"}


def test_lifespan_closes_openverse_client():
    shared_client = openverse_service.client

    with TestClient(app):
        pass

    assert shared_client.is_closed
