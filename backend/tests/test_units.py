# Overview: Pytest coverage for unit, barber and service management routes.

from barberdesk.models import Barber, Unit


class TestUnits:

    def test_list_includes_current_unit(self, client, unit_a, owner_a_headers):
        resp = client.get("/api/units", headers=owner_a_headers)

        assert resp.status_code == 200
        assert [u["id"] for u in resp.json["units"]] == [unit_a.id]
        assert resp.json["current_unit_id"] == unit_a.id

    def test_create_unit(self, client, db_session, unit_a, company_a, owner_a_headers):
        resp = client.post("/api/units", json={"name": "Fade Lab Norte", "phone": "1234"}, headers=owner_a_headers)

        assert resp.status_code == 201
        assert resp.json["company_id"] == company_a.id
        assert db_session.query(Unit).filter_by(company_id=company_a.id).count() == 2

    def test_create_unit_rejects_unknown_fields(self, client, unit_a, owner_a_headers):
        resp = client.post("/api/units", json={"name": "X", "company_id": 999}, headers=owner_a_headers)
        assert resp.status_code == 400

    def test_headquarters_is_exclusive(self, client, db_session, unit_a, company_a, owner_a_headers):
        other = client.post("/api/units", json={"name": "Matriz"}, headers=owner_a_headers).json

        client.post(f"/api/units/{unit_a.id}/headquarters", headers=owner_a_headers)
        resp = client.post(f"/api/units/{other['id']}/headquarters", headers=owner_a_headers)

        assert resp.status_code == 200
        flags = {u.id: u.is_headquarters for u in db_session.query(Unit).filter_by(company_id=company_a.id)}
        assert flags == {unit_a.id: False, other["id"]: True}

    def test_update_foreign_unit_is_404(self, client, db_session, unit_a, unit_b, owner_a_headers):
        resp = client.put(f"/api/units/{unit_b.id}", json={"name": "Hijacked"}, headers=owner_a_headers)

        assert resp.status_code == 404
        assert db_session.get(Unit, unit_b.id).name == "Navalha Sul"


class TestBarbersAndServices:

    def test_create_and_list_barbers(self, client, unit_a, owner_a_headers):
        resp = client.post(f"/api/units/{unit_a.id}/barbers", json={
            "name": "Rafa",
            "email": "RAFA@mail.com",
            "calendar_color": "#ff0000",
        }, headers=owner_a_headers)

        assert resp.status_code == 201
        assert resp.json["email"] == "rafa@mail.com"

        listed = client.get(f"/api/units/{unit_a.id}/barbers", headers=owner_a_headers).json
        assert [b["name"] for b in listed] == ["Rafa"]

    def test_deactivated_barber_hidden_by_default(self, client, db_session, unit_a, barber_a, owner_a_headers):
        resp = client.delete(f"/api/units/{unit_a.id}/barbers/{barber_a.id}", headers=owner_a_headers)
        assert resp.status_code == 200
        assert db_session.get(Barber, barber_a.id).is_active is False

        assert client.get(f"/api/units/{unit_a.id}/barbers", headers=owner_a_headers).json == []
        listed = client.get(f"/api/units/{unit_a.id}/barbers?include_inactive=true", headers=owner_a_headers).json
        assert [b["id"] for b in listed] == [barber_a.id]

    def test_foreign_unit_barbers_404(self, client, unit_a, unit_b, owner_a_headers):
        assert client.get(f"/api/units/{unit_b.id}/barbers", headers=owner_a_headers).status_code == 404
        resp = client.post(f"/api/units/{unit_b.id}/barbers", json={"name": "Spy"}, headers=owner_a_headers)
        assert resp.status_code == 404

    def test_create_service(self, client, unit_a, owner_a_headers):
        resp = client.post(f"/api/units/{unit_a.id}/services", json={
            "name": "Fade",
            "duration_minutes": 45,
            "price": "55.5",
        }, headers=owner_a_headers)

        assert resp.status_code == 201
        assert resp.json["price"] == "55.50"
        assert resp.json["duration_minutes"] == 45

    def test_service_validation(self, client, unit_a, owner_a_headers):
        for body in [
            {"name": "Fade", "duration_minutes": 0},
            {"name": "Fade", "duration_minutes": 30, "price": "-1"},
            {"name": "Fade", "duration_minutes": 2.5},
            {"duration_minutes": 30},
        ]:
            resp = client.post(f"/api/units/{unit_a.id}/services", json=body, headers=owner_a_headers)
            assert resp.status_code == 400, f"{body} returned {resp.status_code}"
