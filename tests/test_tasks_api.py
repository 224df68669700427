from datetime import datetime, timedelta

BASE = "/api/v1/tasks/"


def create_task_payload(text="Test Task", category=None, priority=None, status=None, due_date=None):
    payload = {"text": text}
    if category is not None:
        payload["category"] = category
    if priority is not None:
        payload["priority"] = priority
    if status is not None:
        payload["status"] = status
    if due_date is not None:
        payload["due_date"] = due_date
    return payload


def create(client, **kwargs):
    res = client.post(BASE, json=create_task_payload(**kwargs))
    assert res.status_code == 201, res.text
    return res.json()


def assert_task_shape(task: dict):
    for key in ["id", "text", "completed", "status", "created_at", "order", "is_archived"]:
        assert key in task
    for key in ["category", "priority", "due_date", "deleted_at"]:
        assert key in task
    assert isinstance(task["id"], str)
    assert isinstance(task["completed"], bool)
    datetime.fromisoformat(task["created_at"])
    if task["due_date"] is not None:
        datetime.fromisoformat(task["due_date"])


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "local", "remote")


class TestTasksCRUD:
    def test_create_task_minimal(self, client):
        task = create(client, text="Buy milk")
        assert_task_shape(task)
        assert task["text"] == "Buy milk"
        assert task["category"] is None
        assert task["completed"] is False
        assert task["status"] == "pending"

    def test_create_with_due_date_string(self, client):
        task = create(client, text="Pay bills", due_date="2099-12-25", priority="high")
        assert task["due_date"].startswith("2099-12-25T00:00:00")
        assert task["priority"] == "high"

    def test_get_task_and_not_found(self, client):
        task = create(client, text="Read book")
        res_get = client.get(f"{BASE}{task['id']}")
        assert res_get.status_code == 200
        assert res_get.json()["text"] == "Read book"

        res_404 = client.get(f"{BASE}does-not-exist")
        assert res_404.status_code == 404
        assert res_404.json()["detail"] == "Task not found"

    def test_edit_text(self, client):
        task = create(client, text="Initial", category="work")
        res = client.put(f"{BASE}{task['id']}/text", json={"text": "Replaced"})
        assert res.status_code == 200
        assert res.json()["text"] == "Replaced"
        assert res.json()["category"] == "work"

        res_nf = client.put(f"{BASE}missing/text", json={"text": "Nope"})
        assert res_nf.status_code == 404

    def test_patch_details(self, client):
        task = create(client, text="Partial", priority="low", due_date="2099-01-01")
        res = client.patch(f"{BASE}{task['id']}", json={"status": "completed", "due_date": None})
        assert res.status_code == 200
        patched = res.json()
        assert patched["status"] == "completed"
        assert patched["completed"] is True
        assert patched["due_date"] is None
        assert patched["priority"] == "low"

        res_nf = client.patch(f"{BASE}missing", json={"priority": "high"})
        assert res_nf.status_code == 404

    def test_toggle(self, client):
        task = create(client, text="Toggle")
        res = client.post(f"{BASE}{task['id']}/toggle")
        assert res.status_code == 200
        assert res.json()["completed"] is True
        assert client.post(f"{BASE}missing/toggle").status_code == 404

    def test_archive_restore_and_delete(self, client):
        task = create(client, text="ToArchive")
        res = client.post(f"{BASE}{task['id']}/archive")
        assert res.status_code == 200
        assert res.json()["is_archived"] is True

        listed = client.get(BASE).json()
        assert task["id"] not in [t["id"] for t in listed["items"]]
        archived = client.get(f"{BASE}archived").json()
        assert [t["id"] for t in archived["items"]] == [task["id"]]

        res = client.post(f"{BASE}{task['id']}/restore")
        assert res.json()["is_archived"] is False

        res_del = client.delete(f"{BASE}{task['id']}")
        assert res_del.status_code == 204
        assert res_del.text == ""
        assert client.get(f"{BASE}{task['id']}").status_code == 404
        res_del_again = client.delete(f"{BASE}{task['id']}")
        assert res_del_again.status_code == 404
        assert res_del_again.json()["detail"] == "Task not found"


class TestListFilteringSorting:
    def seed(self, client):
        specs = [
            ("Buy milk", "shopping", "low", "pending"),
            ("Write report", "work", "high", "completed"),
            ("Call mom", None, "medium", "pending"),
            ("Plan sprint", "work", "high", "in-progress"),
            ("Buy stamps", "shopping", None, "completed"),
        ]
        return [create(client, text=t, category=c, priority=p, status=s) for t, c, p, s in specs]

    def test_default_list_in_store_order(self, client):
        seeded = self.seed(client)
        data = client.get(BASE).json()
        assert data["total"] == 5
        assert [t["id"] for t in data["items"]] == [t["id"] for t in seeded]

    def test_status_search_category_priority(self, client):
        self.seed(client)
        active = client.get(BASE, params={"status": "active"}).json()["items"]
        assert [t["text"] for t in active] == ["Buy milk", "Call mom", "Plan sprint"]

        found = client.get(BASE, params={"q": "BUY"}).json()["items"]
        assert [t["text"] for t in found] == ["Buy milk", "Buy stamps"]

        work_high = client.get(BASE, params={"category": "work", "priority": "high", "status": "active"}).json()
        assert [t["text"] for t in work_high["items"]] == ["Plan sprint"]

        uncategorized = client.get(BASE, params={"category": "uncategorized"}).json()["items"]
        assert [t["text"] for t in uncategorized] == ["Call mom"]

    def test_pagination(self, client):
        self.seed(client)
        page = client.get(BASE, params={"limit": 2, "offset": 2}).json()
        assert page["limit"] == 2
        assert page["offset"] == 2
        assert page["total"] == 5
        assert [t["text"] for t in page["items"]] == ["Call mom", "Plan sprint"]

    def test_sort_and_order(self, client):
        self.seed(client)
        by_text = client.get(BASE, params={"sort": "text"}).json()["items"]
        assert by_text[0]["text"] == "Buy milk"
        desc = client.get(BASE, params={"sort": "created_at", "order": "desc"}).json()["items"]
        created = [datetime.fromisoformat(t["created_at"]) for t in desc]
        assert created == sorted(created, reverse=True)

    def test_invalid_order_and_status(self, client):
        res = client.get(BASE, params={"order": "sideways"})
        assert res.status_code == 400
        assert res.json()["detail"] == "order must be 'asc' or 'desc'"
        res = client.get(BASE, params={"status": "finished"})
        assert res.status_code == 422
        assert res.json()["error"] == "InvalidInputError"

    def test_stats(self, client):
        seeded = self.seed(client)
        client.post(f"{BASE}{seeded[0]['id']}/archive")
        assert client.get(f"{BASE}stats").json() == {"all": 4, "active": 2, "completed": 2}

    def test_overdue(self, client):
        past = (datetime.now() - timedelta(days=2)).date().isoformat()
        future = (datetime.now() + timedelta(days=2)).date().isoformat()
        late = create(client, text="Late", due_date=past)
        create(client, text="Later", due_date=future)
        create(client, text="Late but done", due_date=past, status="completed")
        items = client.get(f"{BASE}overdue").json()["items"]
        assert [t["id"] for t in items] == [late["id"]]

    def test_due_dates_with_utc_offset_compare_with_local_ones(self, client):
        offset = create(client, text="Offset", due_date="2020-01-01T00:00:00+00:00")
        zulu = create(client, text="Zulu", due_date="2020-01-03T12:00:00Z")
        local = create(client, text="Local", due_date="2020-01-02")
        assert "+" not in offset["due_date"]

        overdue = client.get(f"{BASE}overdue")
        assert overdue.status_code == 200
        assert [t["id"] for t in overdue.json()["items"]] == [offset["id"], local["id"], zulu["id"]]

        by_due = client.get(BASE, params={"sort": "due_date", "order": "desc"})
        assert by_due.status_code == 200
        assert [t["text"] for t in by_due.json()["items"]] == ["Zulu", "Local", "Offset"]


class TestReorderAndBulk:
    def test_reorder(self, client):
        a, b, c = (create(client, text=t) for t in ("a", "b", "c"))
        res = client.post(f"{BASE}reorder", json={"active_id": a["id"], "over_id": c["id"]})
        assert res.status_code == 200
        assert list(res.json()["changed"]) == [a["id"]]
        assert [t["text"] for t in client.get(BASE).json()["items"]] == ["b", "a", "c"]

        again = client.post(f"{BASE}reorder", json={"active_id": a["id"], "over_id": c["id"]})
        assert again.json() == {"changed": {}}
        assert [t["text"] for t in client.get(BASE).json()["items"]] == ["b", "a", "c"]

    def test_reorder_unknown_is_noop(self, client):
        a = create(client, text="a")
        res = client.post(f"{BASE}reorder", json={"active_id": a["id"], "over_id": "zz"})
        assert res.status_code == 200
        assert res.json() == {"changed": {}}

    def test_move_to_index(self, client):
        a, b, c = (create(client, text=t) for t in ("a", "b", "c"))
        res = client.post(f"{BASE}{c['id']}/move", json={"index": 0})
        assert res.status_code == 200
        assert [t["text"] for t in client.get(BASE).json()["items"]] == ["c", "a", "b"]
        again = client.post(f"{BASE}{c['id']}/move", json={"index": 0})
        assert again.json() == {"changed": {}}

    def test_bulk_complete_ignores_unknown(self, client):
        a = create(client, text="a")
        b = create(client, text="b")
        res = client.post(f"{BASE}bulk/complete", json={"ids": [a["id"], b["id"], "zz"]})
        assert res.status_code == 200
        assert res.json()["affected"] == [a["id"], b["id"]]
        assert client.get(f"{BASE}stats").json()["completed"] == 2

        client.post(f"{BASE}bulk/uncomplete", json={"ids": [a["id"]]})
        assert client.get(f"{BASE}stats").json()["completed"] == 1

    def test_bulk_category_archive_restore_delete(self, client):
        a = create(client, text="a")
        b = create(client, text="b")
        ids = [a["id"], b["id"]]
        client.post(f"{BASE}bulk/category", json={"ids": ids, "category": "health"})
        assert {t["category"] for t in client.get(BASE).json()["items"]} == {"health"}

        client.post(f"{BASE}bulk/archive", json={"ids": ids})
        assert client.get(BASE).json()["total"] == 0
        client.post(f"{BASE}bulk/restore", json={"ids": [a["id"]]})
        assert client.get(BASE).json()["total"] == 1

        res = client.post(f"{BASE}bulk/delete", json={"ids": ids})
        assert res.json()["affected"] == ids
        assert client.get(f"{BASE}archived").json()["total"] == 0


class TestValidationErrors:
    def test_empty_text(self, client):
        res = client.post(BASE, json={"text": "  "})
        assert res.status_code == 422
        body = res.json()
        assert body["error"] == "InvalidInputError"
        assert body["message"] == "Task text cannot be empty"

    def test_text_too_long_creates_nothing(self, client):
        res = client.post(BASE, json={"text": "x" * 201})
        assert res.status_code == 422
        assert "200" in res.json()["message"]
        assert client.get(BASE).json()["total"] == 0

    def test_schema_validation_error_format(self, client):
        task = create(client, text="Due date bad")
        res = client.patch(f"{BASE}{task['id']}", json={"due_date": "not-a-date"})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_bad_priority(self, client):
        res = client.post(BASE, json={"text": "x", "priority": "urgent"})
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"
