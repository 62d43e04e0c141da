import pytest

from conftest import API, auth
from lms_media.modules.directory.context import ContextRef


@pytest.fixture()
def shared(seed):
    """Three course attachments sharing one media id; the first is the original upload."""
    teacher, student = seed.user("teacher"), seed.user("student")
    course = seed.course()
    seed.enroll(teacher, course, "teacher")
    seed.enroll(student, course)
    ctx = ContextRef.course(course.id)
    original = seed.attachment(ctx, "shared", user=teacher, filename="original.mp4")
    copy = seed.attachment(ctx, "shared", user=teacher, filename="copy.mp4")
    sibling = seed.attachment(ctx, "shared", user=teacher, filename="sibling.mp4")
    seed.media_object(ctx, "shared", user=teacher, title="Shared", attachment=original)
    tracks = {
        "original": seed.track(original, "en", "WEBVTT\n\noriginal"),
        "copy": seed.track(copy, "en", "WEBVTT\n\ncopy"),
        "sibling": seed.track(sibling, "fr", "WEBVTT\n\nsibling"),
    }
    return dict(course=course, teacher=teacher, student=student,
                original=original, copy=copy, sibling=sibling, tracks=tracks)


def track_ids(resp):
    assert resp.status_code == 200, resp.text
    return [(t["id"], t["inherited"]) for t in resp.json()["media_tracks"]]


def test_own_tracks_first_then_original_upload(client, shared):
    tracks = shared["tracks"]
    resp = client.get(f"{API}/media_attachments/{shared['copy'].id}", headers=auth(shared["student"]))
    assert track_ids(resp) == [(str(tracks["copy"].id), False), (str(tracks["original"].id), True)]
    locales = [t["locale"] for t in resp.json()["media_tracks"]]
    assert locales == ["en", "en"]


def test_original_attachment_sees_only_its_own_tracks(client, shared):
    resp = client.get(f"{API}/media_attachments/{shared['original'].id}", headers=auth(shared["student"]))
    assert track_ids(resp) == [(str(shared["tracks"]["original"].id), False)]


def test_siblings_do_not_share_tracks(client, shared):
    resp = client.get(f"{API}/media_attachments/{shared['sibling'].id}", headers=auth(shared["student"]))
    ids = [tid for tid, _ in track_ids(resp)]
    assert str(shared["tracks"]["copy"].id) not in ids
    assert ids == [str(shared["tracks"]["sibling"].id), str(shared["tracks"]["original"].id)]


def test_inherited_track_content_is_served_through_viewing_attachment(client, shared):
    copy, original_track = shared["copy"], shared["tracks"]["original"]
    resp = client.get(f"{API}/media_attachments/{copy.id}", headers=auth(shared["student"]))
    src = resp.json()["media_tracks"][1]["src"]
    assert src == f"http://testserver{API}/media_attachments/{copy.id}/media_tracks/{original_track.id}"

    content = client.get(src, headers=auth(shared["student"]))
    assert content.status_code == 200
    assert content.headers["content-type"].startswith("text/vtt")
    assert content.text == "WEBVTT\n\noriginal"

    sibling_track = shared["tracks"]["sibling"]
    url = f"{API}/media_attachments/{copy.id}/media_tracks/{sibling_track.id}"
    assert client.get(url, headers=auth(shared["student"])).status_code == 404


def test_can_add_captions_follows_course_roles(client, seed, shared):
    url = f"{API}/media_attachments/{shared['copy'].id}"
    assert client.get(url, headers=auth(shared["teacher"])).json()["can_add_captions"] is True
    assert client.get(url, headers=auth(shared["student"])).json()["can_add_captions"] is False
    assert client.get(url).status_code == 401


def test_role_override_disables_captioning(client, seed, shared):
    seed.override(shared["course"], "teacher", "manage_content", enabled=False)
    url = f"{API}/media_attachments/{shared['copy'].id}"
    assert client.get(url, headers=auth(shared["teacher"])).json()["can_add_captions"] is False


def test_role_override_on_files_also_disables_captioning(client, seed, shared):
    seed.override(shared["course"], "teacher", "manage_files_edit", enabled=False)
    url = f"{API}/media_attachments/{shared['copy'].id}"
    assert client.get(url, headers=auth(shared["teacher"])).json()["can_add_captions"] is False


def test_create_track(client, shared):
    copy = shared["copy"]
    payload = {"kind": "captions", "locale": "de", "content": "WEBVTT\n\nhallo"}

    resp = client.post(f"{API}/media_attachments/{copy.id}/media_tracks", json=payload, headers=auth(shared["student"]))
    assert resp.status_code == 401

    resp = client.post(f"{API}/media_attachments/{copy.id}/media_tracks", json=payload, headers=auth(shared["teacher"]))
    assert resp.status_code == 201
    created = resp.json()
    assert created["locale"] == "de"
    assert created["inherited"] is False

    listed = client.get(f"{API}/media_attachments/{copy.id}", headers=auth(shared["teacher"])).json()["media_tracks"]
    assert [t["locale"] for t in listed] == ["en", "de", "en"]
    assert listed[1]["id"] == created["id"]


def test_create_track_rejects_unknown_kind(client, shared):
    payload = {"kind": "karaoke", "locale": "en", "content": "x"}
    resp = client.post(
        f"{API}/media_attachments/{shared['copy'].id}/media_tracks", json=payload, headers=auth(shared["teacher"])
    )
    assert resp.status_code == 422
