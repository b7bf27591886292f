import base64

from dynqr import models


def _folder(client, auth_headers, name="Events"):
    resp = client.post("/folders", json={"name": name}, headers=auth_headers)
    assert resp.status_code == 201
    return resp.json()


def _qr(client, auth_headers, **fields):
    payload = {"name": "Wifi card", "type": "text", "content": "hello world", **fields}
    resp = client.post("/qrcodes", json=payload, headers=auth_headers)
    assert resp.status_code == 201
    return resp.json()


def test_folder_crud(client, auth_headers):
    folder = _folder(client, auth_headers)
    assert folder["name"] == "Events"
    assert folder["user_id"] == "owner"

    renamed = client.patch(f"/folders/{folder['id']}", json={"name": "Conferences"}, headers=auth_headers)
    assert renamed.json()["name"] == "Conferences"
    assert [f["name"] for f in client.get("/folders", headers=auth_headers).json()] == ["Conferences"]

    resp = client.delete(f"/folders/{folder['id']}", headers=auth_headers)
    assert resp.json() == {"ok": True, "detail": "Folder 'Conferences' deleted"}
    assert client.get("/folders", headers=auth_headers).json() == []


def test_folders_are_owner_scoped(client, session_local, auth_headers):
    with session_local() as db:
        foreign = models.Folder(name="Theirs", user_id="someone-else")
        db.add(foreign)
        db.commit()
        foreign_id = foreign.id

    assert client.get("/folders", headers=auth_headers).json() == []
    assert client.patch(f"/folders/{foreign_id}", json={"name": "x"}, headers=auth_headers).status_code == 404
    assert client.get(f"/folders/{foreign_id}/qrcodes", headers=auth_headers).status_code == 404
    created = client.post(
        "/qrcodes", json={"name": "x", "content": "y", "folder_id": foreign_id}, headers=auth_headers
    )
    assert created.status_code == 404


def test_static_code_crud(client, auth_headers):
    qr = _qr(client, auth_headers, options={"fill_color": "navy"})
    assert qr["type"] == "text"
    assert qr["options"] == {"fill_color": "navy"}
    assert qr["folder_id"] is None

    fetched = client.get(f"/qrcodes/{qr['id']}", headers=auth_headers).json()
    assert fetched["content"] == "hello world"

    updated = client.patch(f"/qrcodes/{qr['id']}", json={"content": "goodbye"}, headers=auth_headers).json()
    assert updated["content"] == "goodbye"
    assert updated["name"] == "Wifi card"

    listing = client.get("/qrcodes", headers=auth_headers).json()
    assert listing["total"] == 1

    resp = client.delete(f"/qrcodes/{qr['id']}", headers=auth_headers)
    assert resp.json() == {"ok": True, "detail": "QR code 'Wifi card' deleted"}
    assert client.get(f"/qrcodes/{qr['id']}", headers=auth_headers).status_code == 404


def test_move_into_and_out_of_folder(client, auth_headers):
    folder = _folder(client, auth_headers)
    qr = _qr(client, auth_headers)
    other = _qr(client, auth_headers, name="Loose")

    moved = client.put(f"/qrcodes/{qr['id']}/folder", json={"folder_id": folder["id"]}, headers=auth_headers)
    assert moved.json()["folder_id"] == folder["id"]

    in_folder = client.get(f"/folders/{folder['id']}/qrcodes", headers=auth_headers).json()
    assert in_folder["total"] == 1
    assert [item["id"] for item in in_folder["items"]] == [qr["id"]]
    assert other["id"] not in [item["id"] for item in in_folder["items"]]

    out = client.put(f"/qrcodes/{qr['id']}/folder", json={"folder_id": None}, headers=auth_headers)
    assert out.json()["folder_id"] is None
    assert client.get(f"/folders/{folder['id']}/qrcodes", headers=auth_headers).json()["total"] == 0


def test_update_can_clear_folder(client, auth_headers):
    folder = _folder(client, auth_headers)
    qr = _qr(client, auth_headers, folder_id=folder["id"])
    assert qr["folder_id"] == folder["id"]

    renamed = client.patch(f"/qrcodes/{qr['id']}", json={"name": "Renamed"}, headers=auth_headers).json()
    assert renamed["folder_id"] == folder["id"]

    cleared = client.patch(f"/qrcodes/{qr['id']}", json={"folder_id": None}, headers=auth_headers).json()
    assert cleared["folder_id"] is None


def test_move_to_missing_folder_is_404(client, auth_headers):
    qr = _qr(client, auth_headers)
    resp = client.put(f"/qrcodes/{qr['id']}/folder", json={"folder_id": 9999}, headers=auth_headers)
    assert resp.status_code == 404


def test_deleting_folder_keeps_its_codes(client, auth_headers):
    folder = _folder(client, auth_headers)
    qr = _qr(client, auth_headers, folder_id=folder["id"])
    client.delete(f"/folders/{folder['id']}", headers=auth_headers)

    kept = client.get(f"/qrcodes/{qr['id']}", headers=auth_headers)
    assert kept.status_code == 200
    assert kept.json()["folder_id"] is None


def test_static_code_image(client, auth_headers):
    qr = _qr(client, auth_headers, options={"fill_color": "navy", "box_size": 4})
    resp = client.get(f"/qrcodes/{qr['id']}/qr", headers=auth_headers)
    assert base64.b64decode(resp.json()["qr_base64"]).startswith(b"\x89PNG")

    bad = _qr(client, auth_headers, options={"fill_color": "not-a-colour"})
    assert client.get(f"/qrcodes/{bad['id']}/qr", headers=auth_headers).status_code == 400
