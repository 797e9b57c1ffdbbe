BLOG = {"title": "Summer hair care", "content": "Keep it hydrated.", "category": "hair"}


def _create(client, **overrides):
    return client.post("/blog", json=dict(BLOG, **overrides))


def test_create_and_get(client):
    resp = _create(client, imageUrl="/uploads/blogs/summer.jpg")
    assert resp.status_code == 201
    blog = resp.json()["blog"]
    assert blog["imageUrl"] == "/uploads/blogs/summer.jpg"

    assert client.get(f"/blog/{blog['_id']}").json()["title"] == "Summer hair care"
    assert client.get("/blog/65f000000000000000000000").status_code == 404
    assert client.get("/blog/bad-id").status_code == 404


def test_create_requires_title_content_and_category(client):
    resp = client.post("/blog", json={"title": "Only a title"})
    assert resp.status_code == 400
    assert client.post("/blog", json=dict(BLOG, category="")).status_code == 400


def test_list_newest_first_and_by_category(client):
    first = _create(client).json()["blog"]["_id"]
    second = _create(client, title="Nail art", category="nails").json()["blog"]["_id"]

    assert [b["_id"] for b in client.get("/blog").json()] == [second, first]
    assert [b["_id"] for b in client.get("/blog/category/hair").json()] == [first]
    assert client.get("/blog/category/makeup").status_code == 404


def test_update_keeps_missing_fields(client):
    blog_id = _create(client).json()["blog"]["_id"]
    resp = client.put(f"/blog/{blog_id}", json={"title": "Winter hair care", "content": ""})
    assert resp.status_code == 200
    blog = resp.json()["blog"]
    assert blog["title"] == "Winter hair care"
    assert blog["content"] == "Keep it hydrated."
    assert client.put("/blog/65f000000000000000000000", json={"title": "x"}).status_code == 404


def test_comments(client):
    blog_id = _create(client).json()["blog"]["_id"]
    assert client.get(f"/blog/{blog_id}/comments").status_code == 404

    resp = client.post(f"/blog/{blog_id}/comments", json={"name": "Asha", "message": "Loved it"})
    assert resp.status_code == 201
    assert resp.json()["comment"]["blogId"] == blog_id
    client.post(f"/blog/{blog_id}/comments", json={
        "name": "Ravi", "email": "ravi@gmail.com", "number": "9000000001", "message": "Thanks",
    })

    comments = client.get(f"/blog/{blog_id}/comments").json()
    assert [c["name"] for c in comments] == ["Ravi", "Asha"]

    assert client.post(f"/blog/{blog_id}/comments", json={"name": "Asha"}).status_code == 400
    assert client.post("/blog/65f000000000000000000000/comments",
                       json={"name": "Asha", "message": "Hi"}).status_code == 404


def test_delete_removes_blog_and_comments(client):
    blog_id = _create(client).json()["blog"]["_id"]
    client.post(f"/blog/{blog_id}/comments", json={"name": "Asha", "message": "Loved it"})

    assert client.delete(f"/blog/{blog_id}").status_code == 200
    assert client.get(f"/blog/{blog_id}").status_code == 404
    assert client.get(f"/blog/{blog_id}/comments").status_code == 404
    assert client.delete(f"/blog/{blog_id}").status_code == 404
