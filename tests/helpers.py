def create_task(client, **fields):
    """POST a task and return its JSON, failing the test if the API rejects it."""
    fields.setdefault("title", "Write report")
    r = client.post("/api/tasks", json=fields)
    assert r.status_code == 201, r.text
    return r.json()


def task_ids(tasks):
    return sorted(t["id"] for t in tasks)
