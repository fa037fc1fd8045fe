from unittest.mock import MagicMock, patch
import pytest
from docubuddy.services.webhook import APOLOGY


PASSWORD = "password123"


def register(client, email, role="team_member", full_name="Test User"):
    response = client.post("/api/signup", json={"email": email, "password": PASSWORD,
                                                 "full_name": full_name, "role": role})
    assert response.status_code == 200, response.text
    return response.json()


def login(client, email, device=None):
    response = client.post("/api/login", data={"username": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    if device:
        headers["X-Device-Id"] = device
    return headers


@pytest.fixture()
def admin_headers(client):
    register(client, "boss@example.com", role="admin", full_name="Boss")
    return login(client, "boss@example.com")


def create(client, headers, name):
    response = client.post("/api/team/create", json={"name": name}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def upload(client, headers, *files, team_id=None):
    data = {"team_id": team_id} if team_id else {}
    return client.post("/api/documents/upload", headers=headers, data=data,
                       files=[("files", file) for file in files])


def test_requests_without_session_are_rejected(client):
    response = client.get("/api/team/")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_bad_login(client):
    register(client, "someone@example.com")
    response = client.post("/api/login", data={"username": "someone@example.com", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid login credentials"}


def test_duplicate_signup(client):
    register(client, "someone@example.com")
    response = client.post("/api/signup", json={"email": "someone@example.com", "password": PASSWORD,
                                                "full_name": "Again"})
    assert response.status_code == 409


def test_me_reports_role_source(client, admin_headers):
    me = client.get("/api/users/me", headers=admin_headers).json()
    assert (me["email"], me["role"], me["role_source"]) == ("boss@example.com", "admin", "database")


def test_admin_with_no_teams_starts_at_select_team(client, admin_headers):
    state = client.get("/api/workflow/", headers=admin_headers).json()
    assert state == {"step": "select_team", "current_team_id": None,
                     "upload_enabled": False, "teams": []}


def test_creating_a_team_makes_it_current(client, admin_headers):
    team = create(client, admin_headers, "Ops")
    teams = client.get("/api/team/", headers=admin_headers).json()["teams"]
    assert [t["name"] for t in teams] == ["Ops"]

    state = client.get("/api/workflow/", headers=admin_headers).json()
    assert (state["step"], state["current_team_id"], state["upload_enabled"]) == \
        ("manage_team", team["id"], True)


def test_change_and_select_team(client, admin_headers):
    ops = create(client, admin_headers, "Ops")
    legal = create(client, admin_headers, "Legal")
    state = client.post("/api/workflow/change", headers=admin_headers).json()
    assert (state["step"], state["current_team_id"]) == ("select_team", legal["id"])

    state = client.post("/api/workflow/select", json={"team_id": ops["id"]}, headers=admin_headers).json()
    assert (state["step"], state["current_team_id"]) == ("manage_team", ops["id"])

    state = client.post("/api/workflow/select", json={"team_id": "unknown"}, headers=admin_headers).json()
    assert state["current_team_id"] == ops["id"]


def test_selection_survives_sign_in_on_same_device(client):
    register(client, "boss@example.com", role="admin")
    headers = login(client, "boss@example.com", device="laptop")
    create(client, headers, "Ops")
    legal = create(client, headers, "Legal")
    client.post("/api/logout", headers=headers)

    headers = login(client, "boss@example.com", device="laptop")
    state = client.get("/api/workflow/", headers=headers).json()
    assert (state["step"], state["current_team_id"]) == ("manage_team", legal["id"])


def test_upload_and_process_document(client, admin_headers):
    team = create(client, admin_headers, "Ops")
    response = upload(client, admin_headers, ("policy.pdf", b"x" * 1000, "application/pdf"), team_id=team["id"])
    assert response.status_code == 200, response.text
    document = response.json()["uploaded"][0]
    assert (document["filename"], document["file_size"], document["team_id"], document["status"]) == \
        ("policy.pdf", 1000, team["id"], "processing")

    response = client.post(f"/api/documents/{document['id']}/status", json={"status": "ready"},
                           headers=admin_headers)
    assert response.json()["updated"] is True

    documents = client.get("/api/documents/", headers=admin_headers).json()["documents"]
    assert [(d["filename"], d["status"], d["team_name"]) for d in documents] == [("policy.pdf", "ready", "Ops")]


def test_admin_upload_without_team_is_rejected(client, admin_headers):
    response = upload(client, admin_headers, ("policy.pdf", b"x", "application/pdf"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Please select a team to share this document with"


def test_partial_batch_failure(client, admin_headers):
    team = create(client, admin_headers, "Ops")
    response = upload(client, admin_headers,
                      ("good.pdf", b"ok", "application/pdf"),
                      ("bad.png", b"png", "image/png"),
                      team_id=team["id"])
    assert response.status_code == 207
    body = response.json()
    assert body["detail"] == "1 of 2 files failed to upload"
    assert [d["filename"] for d in body["uploaded"]] == ["good.pdf"]
    assert [f["filename"] for f in body["failed"]] == ["bad.png"]


def test_member_sees_only_documents_of_their_teams(client, admin_headers):
    a, b, c = (create(client, admin_headers, name) for name in ("A", "B", "C"))
    register(client, "member@example.com", full_name="Member")
    for team in (a, b):
        response = client.post("/api/members/", json={"team_id": team["id"], "email": "member@example.com"},
                               headers=admin_headers)
        assert response.status_code == 200, response.text
    for team in (a, b, c):
        upload(client, admin_headers, (f"{team['name']}.pdf", b"doc", "application/pdf"), team_id=team["id"])

    member_headers = login(client, "member@example.com")
    documents = client.get("/api/documents/", headers=member_headers).json()["documents"]
    assert sorted(d["filename"] for d in documents) == ["A.pdf", "B.pdf"]
    assert {d["uploaded_by"] for d in documents} == {"Team Member"}

    filtered = client.get("/api/documents/", params={"team_id": c["id"], "q": "C"},
                          headers=member_headers).json()["documents"]
    assert filtered == []


def test_member_management(client, admin_headers):
    team = create(client, admin_headers, "Ops")
    register(client, "member@example.com", full_name="Member Person")
    found = client.get("/api/users/search", params={"q": "member"}, headers=admin_headers).json()["users"]
    assert [u["email"] for u in found] == ["member@example.com"]

    response = client.post("/api/members/", json={"team_id": team["id"], "user_id": found[0]["id"]},
                           headers=admin_headers)
    assert response.status_code == 200
    membership = response.json()

    again = client.post("/api/members/", json={"team_id": team["id"], "email": "member@example.com"},
                        headers=admin_headers)
    assert again.status_code == 409

    missing = client.post("/api/members/", json={"team_id": team["id"], "email": "ghost@example.com"},
                          headers=admin_headers)
    assert missing.status_code == 404

    members = client.get(f"/api/team/members/{team['id']}", headers=admin_headers).json()["members"]
    assert [(m["name"], m["team"]) for m in members] == [("Member Person", "Ops")]

    response = client.delete(f"/api/members/delete/{membership['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert client.get(f"/api/team/members/{team['id']}", headers=admin_headers).json()["members"] == []


def test_members_cannot_use_admin_routes(client):
    register(client, "member@example.com")
    headers = login(client, "member@example.com")
    assert client.post("/api/team/create", json={"name": "Nope"}, headers=headers).status_code == 403
    assert client.get("/api/workflow/", headers=headers).status_code == 403
    assert client.get("/api/users/search", params={"q": "a"}, headers=headers).status_code == 403


def test_delete_document(client, admin_headers):
    team = create(client, admin_headers, "Ops")
    document = upload(client, admin_headers, ("old.pdf", b"x", "application/pdf"),
                      team_id=team["id"]).json()["uploaded"][0]
    response = client.delete(f"/api/documents/delete/{document['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert client.get("/api/documents/", headers=admin_headers).json()["documents"] == []


def test_logout_invalidates_token(client, admin_headers):
    assert client.post("/api/logout", headers=admin_headers).status_code == 204
    assert client.get("/api/users/me", headers=admin_headers).status_code == 401


def test_storage_bucket_endpoint(client, admin_headers):
    body = client.post("/api/storage/bucket", headers=admin_headers).json()
    assert (body["name"], body["public"], body["created"]) == ("documents", False, False)


def test_chat(client, admin_headers):
    reply = MagicMock(ok=True, status_code=200, text='{"response": "Read the handbook."}')
    with patch("docubuddy.services.webhook.requests.post", return_value=reply):
        body = client.post("/api/chat/", json={"question": "How do I onboard?"}, headers=admin_headers).json()
    assert body == {"answer": "Read the handbook.", "error": False}

    failing = MagicMock(ok=False, status_code=502, text="bad gateway")
    with patch("docubuddy.services.webhook.requests.post", return_value=failing):
        body = client.post("/api/chat/", json={"question": "Hello?"}, headers=admin_headers).json()
    assert body == {"answer": APOLOGY, "error": True}


def test_websocket_requires_token(client, admin_headers):
    token = admin_headers["Authorization"].split(" ", 1)[1]
    with client.websocket_connect("/ws", subprotocols=[token]) as websocket:
        assert websocket.receive_json() == {"type": "connected"}
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}


def test_processing_status_limited_to_team_owner(client, admin_headers):
    team = create(client, admin_headers, "Ops")
    document = upload(client, admin_headers, ("policy.pdf", b"x", "application/pdf"),
                      team_id=team["id"]).json()["uploaded"][0]
    register(client, "rival@example.com", role="admin", full_name="Rival")
    rival_headers = login(client, "rival@example.com")

    response = client.post(f"/api/documents/{document['id']}/status", json={"status": "error"},
                           headers=rival_headers)
    assert response.status_code == 403

    missing = client.post("/api/documents/unknown/status", json={"status": "ready"}, headers=admin_headers)
    assert missing.status_code == 404

    documents = client.get("/api/documents/", headers=admin_headers).json()["documents"]
    assert documents[0]["status"] == "processing"
