def _post(**overrides):
    data = {
        "title": "Hello World",
        "full_content": "<p>" + "word " * 450 + "</p>",
        "author": "Ada Admin",
        "publish_date": "2025-01-15",
        "category": "News",
        "tags": ["python", "fastapi"],
    }
    data.update(overrides)
    return data


def _create(client, headers, **overrides):
    res = client.post("/posts", data=_post(**overrides), headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def test_create_derives_slug_and_derived_fields(client, editor_headers):
    post = _create(client, editor_headers)
    assert post["slug"] == "hello-world"
    assert post["is_published"] is False
    assert post["views_count"] == 0
    assert post["reading_time"] == 3
    assert post["summary"].endswith("...")
    assert post["tags"] == ["python", "fastapi"]


def test_title_collision_is_rejected(client, editor_headers):
    _create(client, editor_headers)
    res = client.post("/posts", data=_post(), headers=editor_headers)
    assert res.status_code == 422
    assert res.json()["errors"]["title"] == ["The title has already been taken."]


def test_derived_slug_collision_is_rejected(client, editor_headers):
    _create(client, editor_headers, title="Hello, World!")
    res = client.post("/posts", data=_post(title="Hello World"), headers=editor_headers)
    assert res.status_code == 422
    assert "slug" in res.json()["errors"]


def test_explicit_slug_bypasses_derivation(client, editor_headers):
    _create(client, editor_headers, title="Hello, World!")
    post = _create(client, editor_headers, title="Hello World", slug="hello-again")
    assert post["slug"] == "hello-again"


def test_explicit_slug_must_be_well_formed(client, editor_headers):
    res = client.post("/posts", data=_post(slug="Not A Slug"), headers=editor_headers)
    assert res.status_code == 422
    assert "slug" in res.json()["errors"]


def test_lookup_by_id_or_slug(client, editor_headers):
    post = _create(client, editor_headers)
    by_id = client.get(f"/posts/{post['id']}", headers=editor_headers).json()["data"]
    by_slug = client.get("/posts/hello-world", headers=editor_headers).json()["data"]
    assert by_id["id"] == by_slug["id"] == post["id"]
    assert client.get("/posts/missing-post", headers=editor_headers).status_code == 404


def test_views_only_counted_when_published(client, editor_headers):
    post = _create(client, editor_headers)
    client.get(f"/posts/{post['id']}", headers=editor_headers)
    client.get(f"/posts/{post['id']}", headers=editor_headers)
    assert client.get(f"/posts/{post['id']}", headers=editor_headers).json()["data"]["views_count"] == 0

    client.patch(f"/posts/{post['id']}/toggle-published", headers=editor_headers)
    assert client.get(f"/posts/{post['id']}", headers=editor_headers).json()["data"]["views_count"] == 1
    assert client.get(f"/posts/{post['id']}", headers=editor_headers).json()["data"]["views_count"] == 2


def test_update_keeps_slug_when_title_unchanged(client, editor_headers):
    post = _create(client, editor_headers, slug="custom-slug")
    res = client.put(f"/posts/{post['id']}", data=_post(excerpt="Short"), headers=editor_headers)
    assert res.status_code == 200
    assert res.json()["data"]["slug"] == "custom-slug"
    assert res.json()["data"]["summary"] == "Short"

    res = client.put(f"/posts/{post['id']}", data=_post(title="Brand New Title"), headers=editor_headers)
    assert res.json()["data"]["slug"] == "brand-new-title"


def test_permission_gates(client, viewer_headers, author_headers, editor_headers):
    assert client.post("/posts", data=_post(), headers=viewer_headers).status_code == 403
    post = _create(client, author_headers)
    assert client.patch(f"/posts/{post['id']}/toggle-published", headers=author_headers).status_code == 403
    assert client.delete(f"/posts/{post['id']}", headers=editor_headers).status_code == 403
    assert client.get("/posts").status_code == 401


def test_bulk_actions_check_verb_permission(client, author_headers, editor_headers, admin_headers):
    ids = [_create(client, editor_headers, title=f"Post {i}")["id"] for i in range(3)]

    res = client.post("/posts/bulk-action", json={"action": "publish", "post_ids": ids}, headers=author_headers)
    assert res.status_code == 403

    res = client.post("/posts/bulk-action", json={"action": "publish", "post_ids": ids}, headers=editor_headers)
    assert res.json()["message"] == "3 post(s) published"

    res = client.post("/posts/bulk-action", json={"action": "delete", "post_ids": ids}, headers=editor_headers)
    assert res.status_code == 403
    res = client.post("/posts/bulk-action", json={"action": "delete", "post_ids": ids[:2]}, headers=admin_headers)
    assert res.json()["message"] == "2 post(s) deleted"

    res = client.post("/posts/bulk-action", json={"action": "publish", "post_ids": [9999]}, headers=admin_headers)
    assert res.status_code == 422
    assert "post_ids" in res.json()["errors"]


def test_list_filters_and_meta(client, editor_headers):
    _create(client, editor_headers, title="Alpha", tags=["python"])
    _create(client, editor_headers, title="Beta", tags=["go"], category="Guides", is_published="true")

    res = client.get("/posts", params={"status": "published"}, headers=editor_headers).json()
    assert [p["title"] for p in res["data"]] == ["Beta"]
    assert res["meta"]["total_posts"] == 2
    assert res["meta"]["draft_posts"] == 1

    res = client.get("/posts", params={"tags": "python"}, headers=editor_headers).json()
    assert [p["title"] for p in res["data"]] == ["Alpha"]

    res = client.get("/posts", params={"sort_by": "title", "sort_order": "asc", "per_page": 1},
                     headers=editor_headers).json()
    assert [p["title"] for p in res["data"]] == ["Alpha"]
    assert res["meta"]["last_page"] == 2


def test_unknown_sort_column_is_rejected(client, editor_headers):
    res = client.get("/posts", params={"sort_by": "password"}, headers=editor_headers)
    assert res.status_code == 422


def test_stats_categories_and_tags(client, editor_headers):
    _create(client, editor_headers, title="Alpha", tags=["python"])
    _create(client, editor_headers, title="Beta", tags=["python", "go"], is_published="true")

    stats = client.get("/posts-stats", headers=editor_headers).json()["data"]
    assert stats["total_posts"] == 2
    assert stats["published_posts"] == 1

    categories = client.get("/posts-categories", headers=editor_headers).json()["data"]
    assert categories == [{"name": "News", "count": 2, "published_count": 1}]

    tags = client.get("/posts-tags", headers=editor_headers).json()["data"]
    assert tags[0] == {"name": "python", "count": 2, "published_count": 1}


def test_image_upload_is_stored_and_removed_on_delete(client, admin_headers, files):
    res = client.post(
        "/posts",
        data=_post(),
        files={"image": ("cover.jpg", b"\xff\xd8 fake jpeg", "image/jpeg")},
        headers=admin_headers,
    )
    post = res.json()["data"]
    assert post["image_url"].startswith("http://testserver/storage/posts/")
    path = post["image_url"].split("/storage/", 1)[1]
    assert files.exists(path)

    client.delete(f"/posts/{post['id']}", headers=admin_headers)
    assert not files.exists(path)


def test_non_image_upload_is_rejected(client, editor_headers):
    res = client.post(
        "/posts",
        data=_post(),
        files={"image": ("notes.txt", b"plain", "text/plain")},
        headers=editor_headers,
    )
    assert res.status_code == 422
    assert "image" in res.json()["errors"]
