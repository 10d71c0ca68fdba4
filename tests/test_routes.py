from conftest import make_png_bytes


def upload(test_client, *names):
    files = [("files", (name, make_png_bytes(), "image/png")) for name in names]
    return test_client.post("/media", files=files)


# ------------------------------
# /media [POST + GET]
# ------------------------------

def test_upload_media_success(test_client):
    resp = upload(test_client, "b.png", "a.png")
    assert resp.status_code == 201
    body = resp.json()
    assert [it["filename"] for it in body] == ["b.png", "a.png"]
    assert all(it["status"] == "pending" for it in body)
    assert all(it["metadata"] is None for it in body)

    listed = test_client.get("/media").json()["items"]
    assert [it["id"] for it in listed] == [it["id"] for it in body]


def test_upload_invalid_file_type(test_client):
    files = [("files", ("f.txt", b"notimg", "text/plain"))]
    resp = test_client.post("/media", files=files)
    assert resp.status_code == 400
    assert test_client.get("/media").json()["items"] == []


def test_preview_serves_uploaded_bytes(test_client):
    data = make_png_bytes("blue")
    item = test_client.post("/media", files=[("files", ("p.png", data, "image/png"))]).json()[0]

    resp = test_client.get(item["preview_url"])
    assert resp.status_code == 200
    assert resp.content == data
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["content-security-policy"] == "sandbox"


def test_get_nonexistent_media(test_client):
    assert test_client.get("/media/nope").status_code == 404
    assert test_client.get("/media/nope/preview").status_code == 404


# ------------------------------
# /media/generate
# ------------------------------

def test_generate_processes_all_pending(test_client, fake_generator):
    upload(test_client, "a.png", "b.png")

    resp = test_client.post("/media/generate", json={"title_length": 90, "keyword_count": 7})
    assert resp.status_code == 202
    assert resp.json() == {"queued": 2}

    items = test_client.get("/media").json()["items"]
    assert [it["status"] for it in items] == ["completed", "completed"]
    assert items[0]["metadata"]["title"] == "Title 1"
    assert items[0]["error"] is None
    assert fake_generator.max_in_flight == 1
    assert fake_generator.calls[0][2].keyword_count == 7

    status = test_client.get("/media/generate/status").json()
    assert status == {"generating": False, "pending": 0, "processing": 0, "completed": 2, "error": 0}


def test_generate_without_body_uses_defaults(test_client, fake_generator):
    upload(test_client, "a.png")
    resp = test_client.post("/media/generate")
    assert resp.status_code == 202
    assert fake_generator.calls[0][2].title_length == 150
    assert fake_generator.calls[0][2].keyword_count == 20


def test_generate_rejects_reentry(test_client):
    from matanest.main import app

    app.state.orchestrator.begin()
    resp = test_client.post("/media/generate")
    assert resp.status_code == 409


def test_generate_with_missing_credential_marks_error(test_client):
    from matanest.main import app
    from matanest.generation.client import GeminiClient
    from matanest.media_service.orchestrator import GenerationOrchestrator

    app.state.orchestrator = GenerationOrchestrator(app.state.store, app.state.blobs, GeminiClient(api_key=None))
    upload(test_client, "a.png")
    test_client.post("/media/generate")

    item = test_client.get("/media").json()["items"][0]
    assert item["status"] == "error"
    assert item["metadata"] is None
    assert "API Key not configured" in item["error"]


# ------------------------------
# editing
# ------------------------------

def generated_item(test_client, name="a.png"):
    item = upload(test_client, name).json()[0]
    test_client.post("/media/generate")
    return test_client.get(f"/media/{item['id']}").json()


def test_edit_metadata_and_keywords(test_client):
    item = generated_item(test_client)
    item_id = item["id"]

    resp = test_client.patch(f"/media/{item_id}/metadata", json={"description": "New text"})
    assert resp.status_code == 200
    assert resp.json()["metadata"]["description"] == "New text"
    assert resp.json()["metadata"]["title"] == item["metadata"]["title"]

    resp = test_client.post(f"/media/{item_id}/keywords", json={"keyword": "extra"})
    assert resp.json()["metadata"]["keywords"] == ["kw1a", "kw1b", "extra"]

    resp = test_client.delete(f"/media/{item_id}/keywords/0")
    assert resp.json()["metadata"]["keywords"] == ["kw1b", "extra"]

    assert test_client.delete(f"/media/{item_id}/keywords/5").status_code == 404
    assert test_client.get(f"/media/{item_id}").json()["metadata"]["keywords"] == ["kw1b", "extra"]


def test_edit_pending_item_conflicts(test_client):
    item = upload(test_client, "a.png").json()[0]
    resp = test_client.patch(f"/media/{item['id']}/metadata", json={"title": "x"})
    assert resp.status_code == 409


def test_copy_sets_indicator(test_client):
    item = generated_item(test_client)
    resp = test_client.post(f"/media/{item['id']}/copy/title")
    assert resp.status_code == 200
    assert resp.json() == {"field": "title", "text": "Title 1", "copied": True}
    assert test_client.get(f"/media/{item['id']}").json()["copied"] == "title"

    assert test_client.post(f"/media/{item['id']}/copy/filename").status_code == 422


def test_apply_to_all_titles(test_client):
    item = generated_item(test_client)
    pending = upload(test_client, "later.png").json()[0]

    resp = test_client.post("/media/titles", json={"prefix": "A-", "suffix": "-B"})
    assert resp.json() == {"updated": 1}
    assert test_client.get(f"/media/{item['id']}").json()["metadata"]["title"] == "A-Title 1-B"
    assert test_client.get(f"/media/{pending['id']}").json()["metadata"] is None


def test_delete_media(test_client):
    item = upload(test_client, "a.png").json()[0]
    assert test_client.delete(f"/media/{item['id']}").status_code == 204
    assert test_client.get(f"/media/{item['id']}").status_code == 404
    assert test_client.get(item["preview_url"]).status_code == 404
    assert test_client.delete(f"/media/{item['id']}").status_code == 404


# ------------------------------
# /media/export
# ------------------------------

def test_export_csv(test_client):
    item = generated_item(test_client, "cat.png")
    test_client.patch(f"/media/{item['id']}/metadata", json={"title": 'He said "hi"'})

    resp = test_client.get("/media/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="matanest_export.csv"' in resp.headers["content-disposition"]
    assert resp.text == (
        "Filename,Title,Keywords,Category,Releases\n"
        '"cat.png","He said ""hi""","kw1a, kw1b",,'
    )


def test_export_with_nothing_completed(test_client):
    upload(test_client, "a.png")
    resp = test_client.get("/media/export")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "No completed files with metadata to export."}


# ------------------------------
# /api-keys
# ------------------------------

def test_api_keys_are_masked(test_client):
    first = test_client.post("/api-keys", json={"key": " abcdefgh1234 "}).json()
    second = test_client.post("/api-keys", json={"key": "zzzz9999"}).json()

    assert first["masked_key"].endswith("1234")
    assert "abcdefgh" not in first["masked_key"]
    assert first["is_active"] is True
    assert second["is_active"] is False

    assert test_client.post("/api-keys", json={"key": "  "}).status_code == 400
    assert test_client.delete(f"/api-keys/{first['id']}").status_code == 204
    assert [k["id"] for k in test_client.get("/api-keys").json()] == [second["id"]]
    assert test_client.delete(f"/api-keys/{first['id']}").status_code == 404


def test_svg_preview_is_sandboxed(test_client):
    svg = b'<svg xmlns="http://www.w3.org/2000/svg"><script>alert(1)</script></svg>'
    item = test_client.post("/media", files=[("files", ("x.svg", svg, "image/svg+xml"))]).json()[0]

    resp = test_client.get(item["preview_url"])
    assert resp.headers["content-type"] == "image/svg+xml"
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["content-security-policy"] == "sandbox"


def test_upload_validates_off_the_event_loop(test_client, mocker):
    from fastapi.concurrency import run_in_threadpool
    from matanest.media_service.intake import ingest_files

    spy = mocker.patch("matanest.routers.media.run_in_threadpool", wraps=run_in_threadpool)
    assert upload(test_client, "a.png").status_code == 201
    assert spy.call_args[0][0] is ingest_files


def test_generate_partial_body_keeps_configured_defaults(test_client, fake_generator, monkeypatch):
    from matanest.routers import media

    monkeypatch.setattr(media.settings, "keyword_count", 33)
    monkeypatch.setattr(media.settings, "title_length", 120)
    upload(test_client, "a.png")

    test_client.post("/media/generate", json={"title_length": 90})

    used = fake_generator.calls[0][2]
    assert used.title_length == 90
    assert used.keyword_count == 33


def test_blank_api_key_rejected(test_client):
    resp = test_client.post("/api-keys", json={"key": "   "})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "API key must not be empty."}
