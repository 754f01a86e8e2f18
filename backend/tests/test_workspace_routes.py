"""
Workspace API tests (TestClient against in-memory SQLite).

Validates the HTTP surface end to end:
- Create workspace, import roster, review warnings, groups, moves
- Lookup failures map to 404, bad imports to 400
"""

CSV = """Name,Gender,Skill,Teammate Requests,Avoid Requests
Ann Lee,F,7,Bobby Jones,
Bob Jones,M,5,Ann Lee,
Cal Moe,M,6,,Bob Jones
Dee Fox,F,4,Eve,
"""


def _create(client, **config):
    response = client.post("/api/workspaces", json={"name": "Spring League", "config": config or None})
    assert response.status_code == 201
    return response.json()["id"]


def _import(client, workspace_id, auto_accept=False):
    response = client.post(
        f"/api/workspaces/{workspace_id}/roster/import",
        json={"csv_text": CSV, "auto_accept_exact": auto_accept},
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_get_workspace(client):
    workspace_id = _create(client, max_team_size=99)
    response = client.get(f"/api/workspaces/{workspace_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Spring League"
    assert data["version"] == 1
    assert data["state"]["config"]["max_team_size"] == 30


def test_missing_workspace_is_404(client):
    assert client.get("/api/workspaces/999").status_code == 404
    assert client.get("/api/workspaces/999/warnings").status_code == 404


def test_import_rejects_file_without_names(client):
    workspace_id = _create(client)
    response = client.post(f"/api/workspaces/{workspace_id}/roster/import", json={"csv_text": "Gender\nF\n"})
    assert response.status_code == 400


def test_import_and_review_flow(client):
    workspace_id = _create(client)
    report = _import(client, workspace_id)
    assert report["players_imported"] == 4
    assert report["groups_formed"] == 0
    assert report["pending_review"] == 2

    queue = client.get(f"/api/workspaces/{workspace_id}/warnings").json()
    assert [w["requested_name"] for w in queue["warnings"]] == ["Bobby Jones", "Eve"]
    assert queue["counts"]["pending"] == 2
    assert queue["info"][-1]["message"].startswith("Imported 4 players")

    nickname = queue["warnings"][0]
    preview = client.get(f"/api/workspaces/{workspace_id}/warnings/{nickname['id']}/preview").json()
    assert preview["type"] == "mutual"

    response = client.post(f"/api/workspaces/{workspace_id}/warnings/{nickname['id']}/resolve", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["warning"]["status"] == "accepted"
    assert len(data["grouping"]["created"]) == 1

    groups = client.get(f"/api/workspaces/{workspace_id}/groups").json()
    assert [m["name"] for m in groups[0]["members"]] == ["Ann Lee", "Bob Jones"]
    assert groups[0]["label"] == "A"

    missing = queue["warnings"][1]
    response = client.post(f"/api/workspaces/{workspace_id}/warnings/{missing['id']}/resolve", json={})
    assert response.status_code == 400
    assert client.post(f"/api/workspaces/{workspace_id}/warnings/warn-9999/dismiss").status_code == 404

    response = client.post(f"/api/workspaces/{workspace_id}/warnings/dismiss-all")
    assert response.json()["dismissed"] == 1


def test_review_step_endpoint(client):
    workspace_id = _create(client)
    _import(client, workspace_id)

    response = client.post(
        f"/api/workspaces/{workspace_id}/warnings/review-step",
        json={"current_index": 0, "action": "confirm"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["current_index"] == 1
    assert data["current"]["requested_name"] == "Eve"
    assert not data["finished"]

    response = client.post(
        f"/api/workspaces/{workspace_id}/warnings/review-step",
        json={"current_index": 1, "action": "dismiss"},
    )
    assert response.json()["finished"]
    assert len(client.get(f"/api/workspaces/{workspace_id}/groups").json()) == 1


def test_group_move_and_avoid_conflict(client):
    workspace_id = _create(client)
    _import(client, workspace_id, auto_accept=True)

    red = client.post(f"/api/workspaces/{workspace_id}/teams", json={"name": "Red"}).json()
    blue = client.post(f"/api/workspaces/{workspace_id}/teams", json={"name": "Blue"}).json()
    assert client.post(f"/api/workspaces/{workspace_id}/teams", json={"name": "red"}).status_code == 409

    moved = client.post(
        f"/api/workspaces/{workspace_id}/moves", json={"player_id": "ann-lee", "target_team_id": red["id"]}
    ).json()
    assert moved["allowed"]
    assert moved["moved_player_ids"] == ["ann-lee", "bob-jones"]

    check = client.post(
        f"/api/workspaces/{workspace_id}/moves/check", json={"player_id": "cal-moe", "target_team_id": red["id"]}
    ).json()
    assert not check["allowed"]
    assert check["violation"]["conflicting_player_name"] == "Bob Jones"

    blocked = client.post(
        f"/api/workspaces/{workspace_id}/moves", json={"player_id": "cal-moe", "target_team_id": red["id"]}
    ).json()
    assert not blocked["allowed"]

    teams = client.get(f"/api/workspaces/{workspace_id}/teams").json()
    assert teams[0]["player_ids"] == ["ann-lee", "bob-jones"]
    assert teams[0]["average_skill"] == 6.0
    assert teams[1]["player_ids"] == []

    proposals = client.post(
        f"/api/workspaces/{workspace_id}/moves/proposals",
        json={
            "proposals": [
                {"player_id": "cal-moe", "source_team_id": None, "target_team_id": blue["id"]},
                {"player_id": "bob-jones", "source_team_id": None, "target_team_id": blue["id"]},
            ]
        },
    ).json()
    assert [o["status"] for o in proposals["outcomes"]] == ["applied", "stale"]

    summary = client.get(f"/api/workspaces/{workspace_id}/summary").json()
    assert summary["assigned_players"] == 3
    assert summary["mutual_requests_honored"] == 1
    assert summary["avoid_requests_violated"] == 0

    violations = client.get(f"/api/workspaces/{workspace_id}/teams/{red['id']}/violations").json()
    assert violations["hard_violations"] == []

    assert client.post(
        f"/api/workspaces/{workspace_id}/moves", json={"player_id": "nobody", "target_team_id": red["id"]}
    ).status_code == 404
    assert client.post(
        f"/api/workspaces/{workspace_id}/moves", json={"player_id": "dee-fox", "target_team_id": "team-99"}
    ).status_code == 404


def test_dissolve_and_remove_group_member(client):
    workspace_id = _create(client)
    _import(client, workspace_id, auto_accept=True)
    [group] = client.get(f"/api/workspaces/{workspace_id}/groups").json()

    response = client.post(f"/api/workspaces/{workspace_id}/groups/{group['id']}/dissolve")
    assert response.status_code == 200
    assert response.json()["dissolved"] == [group["id"]]

    recomputed = client.post(f"/api/workspaces/{workspace_id}/groups/recompute").json()
    assert recomputed["groups"] == []

    assert client.post(f"/api/workspaces/{workspace_id}/groups/group-99/dissolve").status_code == 404
    assert client.delete(f"/api/workspaces/{workspace_id}/groups/members/ann-lee").status_code == 400


def test_matching_probe(client):
    response = client.post(
        "/api/matching/match",
        json={"requested": "chrissmith", "candidates": ["Chris Smith", "Jane Doe"]},
    )
    assert response.status_code == 200
    assert response.json()["matched"] == "Chris Smith"
    assert response.json()["confidence"] in ("high", "exact")

    workspace_id = _create(client)
    _import(client, workspace_id)
    suggestions = client.get(f"/api/workspaces/{workspace_id}/players/suggest", params={"q": "Bo"}).json()
    assert suggestions[0]["matched"] == "Bob Jones"


def test_config_update_defaults_malformed_values(client):
    workspace_id = _create(client)
    response = client.put(
        f"/api/workspaces/{workspace_id}/config",
        json={"max_team_size": "inf", "min_females": 3, "allow_mixed_gender": "false"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["max_team_size"] == client.get(f"/api/workspaces/{_create(client)}").json()["state"]["config"]["max_team_size"]
    assert data["min_females"] == 3
    assert data["allow_mixed_gender"] is False
