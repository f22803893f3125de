"""HTTP contract: envelopes, error codes and the X-User-Id requirement."""

ALICE = {"X-User-Id": "alice"}


def _create_goal(client, **body):
    payload = {"title": "Read daily", "type": "multi-activity"}
    payload.update(body)
    resp = client.post("/v1/goals", json=payload, headers=ALICE)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def _add_activity(client, goal_id, headers=ALICE, **body):
    payload = {"title": "Read 20 pages"}
    payload.update(body)
    resp = client.post(f"/v1/goals/{goal_id}/activities", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_readyz_memory_backend(client):
    resp = client.get("/readyz")
    assert resp.json() == {"status": "ok", "backend": "memory"}


def test_missing_user_header_is_401(client):
    resp = client.post("/v1/goals", json={"title": "x"})
    body = resp.json()
    assert resp.status_code == 401
    assert body["error"]["code"] == "not_authenticated"
    assert body["error"]["request_id"] == resp.headers["x-request-id"]


def test_create_and_get_goal(client):
    goal = _create_goal(client)
    assert goal["status"] == "active"
    assert goal["can_edit"] is True
    assert goal["members"][0]["user_id"] == "alice"

    resp = client.get(f"/v1/goals/{goal['goal_id']}", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Read daily"


def test_unknown_goal_is_404(client):
    resp = client.get("/v1/goals/nope", headers=ALICE)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "goal_not_found"


def test_strangers_cannot_read_goal(client):
    goal = _create_goal(client)
    resp = client.get(f"/v1/goals/{goal['goal_id']}", headers={"X-User-Id": "mallory"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


def test_completion_is_idempotent_over_http(client):
    goal = _create_goal(client)
    activity = _add_activity(client, goal["goal_id"])
    url = f"/v1/activities/{activity['activity_id']}/completions"

    first = client.post(url, headers=ALICE)
    second = client.post(url, headers=ALICE)

    assert first.status_code == 200
    assert first.json()["data"]["status"] == "recorded"
    streak = first.json()["data"]["outcome"]["streaks"][0]
    assert (streak["current_streak"], streak["status"]) == (1, "first_completion")
    assert second.status_code == 200
    assert second.json()["data"]["status"] == "already_completed"


def test_completion_by_unassigned_user(client):
    goal = _create_goal(client)
    activity = _add_activity(client, goal["goal_id"])

    resp = client.post(f"/v1/activities/{activity['activity_id']}/completions", headers={"X-User-Id": "bob"})

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "not_assigned"


def test_pending_goal_rejects_completion(client):
    goal = _create_goal(client, start_date="2024-03-10")
    assert goal["status"] == "pending"
    activity = _add_activity(client, goal["goal_id"])

    resp = client.post(f"/v1/activities/{activity['activity_id']}/completions", headers=ALICE)

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "goal_not_started"


def test_edit_and_delete_windows(client):
    goal = _create_goal(client)
    goal_id = goal["goal_id"]

    late = client.patch(f"/v1/goals/{goal_id}", json={"title": "New"}, params={"now": "2024-03-04T14:01:00Z"}, headers=ALICE)
    assert late.status_code == 409
    assert late.json()["error"]["code"] == "edit_window_closed"

    on_time = client.patch(f"/v1/goals/{goal_id}", json={"title": "New"}, params={"now": "2024-03-04T13:59:00Z"}, headers=ALICE)
    assert on_time.json()["data"]["title"] == "New"

    too_late = client.delete(f"/v1/goals/{goal_id}", params={"now": "2024-03-05T09:01:00Z"}, headers=ALICE)
    assert too_late.status_code == 409
    assert too_late.json()["error"]["code"] == "delete_window_closed"

    deleted = client.delete(f"/v1/goals/{goal_id}", params={"now": "2024-03-05T08:59:00Z"}, headers=ALICE)
    assert deleted.json()["data"]["deleted"] is True


def test_freeze_endpoint(client):
    goal = _create_goal(client)
    activity = _add_activity(client, goal["goal_id"])
    client.post(f"/v1/activities/{activity['activity_id']}/completions", headers=ALICE)

    resp = client.post(f"/v1/goals/{goal['goal_id']}/streaks/freeze", params={"now": "2024-03-05T10:00:00Z"}, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["data"]["remaining"] == 1

    streaks = client.get(f"/v1/goals/{goal['goal_id']}/streaks", headers=ALICE).json()
    assert streaks["count"] == 1
    assert streaks["data"][0]["last_activity_date"] == "2024-03-05"


def test_freeze_without_streak_is_conflict(client):
    goal = _create_goal(client)
    resp = client.post(f"/v1/goals/{goal['goal_id']}/streaks/freeze", headers=ALICE)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "no_freeze_remaining"


def test_group_membership_flow(client):
    goal = _create_goal(client, mode="group")
    goal_id = goal["goal_id"]

    invite = client.post(f"/v1/goals/{goal_id}/members", json={"user_id": "bob"}, headers=ALICE)
    assert invite.json()["data"]["status"] == "invited"
    accept = client.post(f"/v1/goals/{goal_id}/members/accept", headers={"X-User-Id": "bob"})
    assert accept.json()["data"]["status"] == "accepted"

    activity = _add_activity(client, goal_id, assigned_to_all=True)
    for user in ("alice", "bob"):
        client.post(f"/v1/activities/{activity['activity_id']}/completions", headers={"X-User-Id": user})

    streaks = client.get(f"/v1/goals/{goal_id}/streaks", headers={"X-User-Id": "bob"}).json()["data"]
    group = [s for s in streaks if s["streak_type"] == "group"]
    assert group[0]["current_streak"] == 1
    assert group[0]["user_id"] is None


def test_uncomplete_endpoint(client):
    goal = _create_goal(client)
    activity = _add_activity(client, goal["goal_id"])
    url = f"/v1/activities/{activity['activity_id']}/completions"
    client.post(url, headers=ALICE)

    resp = client.delete(url, headers=ALICE)

    assert resp.json()["data"]["removed"] is True


def test_pause_and_complete_endpoints(client):
    goal = _create_goal(client)
    goal_id = goal["goal_id"]

    assert client.post(f"/v1/goals/{goal_id}/pause", headers=ALICE).json()["data"]["status"] == "paused"
    done = client.post(f"/v1/goals/{goal_id}/complete", headers=ALICE).json()["data"]
    assert done["status"] == "completed"
    assert done["can_delete"] is False

    again = client.post(f"/v1/goals/{goal_id}/resume", headers=ALICE)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "goal_completed"


def test_invalid_now_parameter(client):
    resp = client.get("/v1/goals/anything", params={"now": "yesterday"}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_body_validation_uses_error_envelope(client):
    resp = client.post("/v1/goals", json={"title": ""}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"
