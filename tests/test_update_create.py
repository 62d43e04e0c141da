import uuid

from conftest import API, auth
from lms_media.modules.directory.context import ContextRef


def test_update_requires_login(client, seed):
    alice = seed.user()
    seed.media_object(ContextRef.user(alice.id), "m1", user=alice)

    resp = client.put(f"{API}/media_objects/m1", json={"user_entered_title": "x"}, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"


def test_update_by_non_owner_is_unauthorized(client, seed):
    alice, bob = seed.user("alice"), seed.user("bob")
    seed.media_object(ContextRef.user(alice.id), "m1", user=alice, title="Alice's")

    resp = client.put(f"{API}/media_objects/m1", json={"user_entered_title": "mine now"}, headers=auth(bob))
    assert resp.status_code == 401
    assert resp.json()["error"] == "Unauthorized"
    assert client.put(f"{API}/media_objects/missing", json={"user_entered_title": "x"}, headers=auth(bob)).status_code == 401


def test_owner_updates_user_entered_title(client, seed, bus):
    alice = seed.user()
    seed.media_object(ContextRef.user(alice.id), "m1", user=alice, title="Provider title")

    resp = client.put(f"{API}/media_objects/m1", json={"user_entered_title": "My title"}, headers=auth(alice))
    assert resp.status_code == 200
    assert resp.json()["title"] == "My title"
    [mo] = seed.media_objects()
    assert mo.title == "Provider title"
    assert mo.user_entered_title == "My title"
    assert bus.types == ["media_object.updated"]


def test_update_through_attachment(client, seed):
    teacher, student = seed.user("teacher"), seed.user("student")
    course = seed.course()
    seed.enroll(teacher, course, "teacher")
    seed.enroll(student, course)
    att = seed.attachment(ContextRef.course(course.id), "m1", user=teacher)
    seed.media_object(ContextRef.course(course.id), "m1", user=teacher, attachment=att)

    url = f"{API}/media_attachments/{att.id}"
    assert client.put(url, json={"user_entered_title": "no"}, headers=auth(student)).status_code == 401

    resp = client.put(url, json={"user_entered_title": "Renamed"}, headers=auth(teacher))
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["embedded_iframe_url"].endswith(f"/media_attachments_iframe/{att.id}")


def test_create_is_idempotent_per_context(client, seed, bus):
    alice = seed.user()

    first = client.post(f"{API}/media_objects", json={"id": "m1", "title": "old", "type": "video"}, headers=auth(alice))
    assert first.status_code == 200
    body = first.json()
    assert body["title"] == "old"
    assert body["embedded_iframe_url"] == "http://testserver/media_objects_iframe/m1"
    assert "media_sources" not in body and "media_tracks" not in body

    second = client.post(f"{API}/media_attachments", json={"id": "m1", "title": "new"}, headers=auth(alice))
    assert second.json()["title"] == "new"

    [mo] = seed.media_objects()
    assert mo.title == "new"
    assert mo.media_type == "video"
    assert mo.context == ContextRef.user(alice.id)
    assert bus.types == ["media_object.created", "media_object.updated"]


def test_create_truncates_long_titles(client, seed):
    alice = seed.user()
    resp = client.post(f"{API}/media_objects", json={"id": "m1", "title": "t" * 400}, headers=auth(alice))
    assert resp.status_code == 200
    assert len(resp.json()["title"]) == 255


def test_same_media_id_in_two_contexts_gives_two_records(client, seed):
    alice = seed.user()
    course = seed.course()
    seed.enroll(alice, course)

    client.post(f"{API}/media_objects", json={"id": "m1"}, headers=auth(alice))
    client.post(f"{API}/media_objects", json={"id": "m1", "context_code": f"course_{course.id}"}, headers=auth(alice))
    client.post(f"{API}/media_objects", json={"id": "m1", "context_code": f"course_{course.id}"}, headers=auth(alice))

    contexts = sorted(mo.context_type for mo in seed.media_objects())
    assert contexts == ["course", "user"]


def test_create_context_errors(client, seed):
    alice, bob = seed.user("alice"), seed.user("bob")
    course = seed.course()

    def post(code):
        return client.post(f"{API}/media_objects", json={"id": "m1", "context_code": code}, headers=auth(alice))

    assert post("bogus").status_code == 400
    assert post(f"course_{uuid.uuid4()}").status_code == 404
    assert post(f"course_{course.id}").status_code == 401
    assert post(f"user_{bob.id}").status_code == 401
    assert client.post(f"{API}/media_objects", json={"id": "m1"}, follow_redirects=False).status_code == 302
