from datetime import timedelta

from regcheck.models import JobPatch


def test_merge_creates_pending_skeleton(jobs, store):
    record = jobs.merge("job-1", {})

    assert record.status == "pending"
    assert record.started_at == record.updated_at == "2024-05-01T12:00:00.000Z"
    assert record.request.endpoint == "unknown"
    assert store.get("job-1")["jobId"] == "job-1"


def test_merge_applies_patch_on_top_of_pending_skeleton(jobs):
    record = jobs.merge("job-1", JobPatch(status="running"))

    assert record.status == "running"
    assert record.started_at == "2024-05-01T12:00:00.000Z"


def test_request_and_metrics_are_deep_merged(jobs):
    jobs.merge("job-1", {"request": {"endpoint": "/x", "metadata": {"kind": "recipe"}}})
    jobs.merge("job-1", {"metrics": {"durationMs": 5}})
    record = jobs.merge("job-1", {"request": {"method": "GET"}})

    assert record.request.endpoint == "/x"
    assert record.request.method == "GET"
    assert record.request.metadata == {"kind": "recipe"}
    assert record.metrics.duration_ms == 5


def test_explicit_none_clears_top_level_field(jobs):
    jobs.merge("job-1", {"status": "failed", "error": {"message": "boom"}})
    record = jobs.merge("job-1", JobPatch(status="pending", error=None, result=None))

    assert record.error is None
    assert "error" not in jobs.store.get("job-1")


def test_updated_at_is_rewritten_and_non_decreasing(jobs, clock):
    first = jobs.merge("job-1", {"status": "pending"})
    clock.advance(2)
    second = jobs.merge("job-1", {"status": "running"})
    clock.now = clock.now - timedelta(seconds=30)
    third = jobs.merge("job-1", {"metrics": {"durationMs": 1}})

    assert first.updated_at < second.updated_at
    assert third.updated_at == second.updated_at


def test_completed_at_is_set_once_on_first_terminal_patch(jobs, clock):
    jobs.merge("job-1", {"status": "running"})
    assert jobs.get("job-1").completed_at is None

    clock.advance(3)
    done = jobs.merge("job-1", {"status": "completed", "result": {"status": 200}})
    assert done.completed_at == done.updated_at == "2024-05-01T12:00:03.000Z"

    clock.advance(10)
    again = jobs.merge("job-1", {"status": "failed"})
    assert again.completed_at == "2024-05-01T12:00:03.000Z"
    assert again.updated_at == "2024-05-01T12:00:13.000Z"


def test_failed_record_keeps_result_and_error(jobs):
    record = jobs.merge("job-1", {
        "status": "failed",
        "result": {"status": 500, "rawBody": "{}"},
        "error": {"message": "bad"},
    })

    stored = jobs.store.get("job-1")
    assert record.result.status == 500
    assert stored["error"] == {"message": "bad"}
    assert stored["result"]["rawBody"] == "{}"


def test_get_missing_and_empty_id_return_none(jobs):
    assert jobs.get("nope") is None
    assert jobs.get("") is None


def test_list_and_delete_all(jobs, clock):
    jobs.merge("old", {"status": "completed"})
    clock.advance(1)
    jobs.merge("new", {"status": "pending", "startedAt": "2024-05-01T12:00:01.000Z"})

    assert [r.job_id for r in jobs.list()] == ["new", "old"]
    assert jobs.delete_all() == 2
    assert jobs.list() == []


def test_delete_removes_record(jobs):
    jobs.merge("job-1", {"status": "pending"})
    jobs.delete("job-1")
    jobs.delete("job-1")

    assert jobs.get("job-1") is None
