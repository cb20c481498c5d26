import datetime
import json

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import make_token
from salonbook.api.booking import public
from salonbook.models import Client, Review, Salon, Service, Stylist, User


@pytest.mark.salon
class TestCurrentUser:
    def test_user_with_salon(self, client, salon, auth_headers):
        response = client.get("/api/auth/user", headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["id"] == "owner-sub-123"
        assert data["salon_id"] == salon.id

    def test_first_login_creates_user(self, client, db_session):
        token = make_token("new-owner", email="new@example.com", first_name="Nina")

        response = client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["email"] == "new@example.com"
        assert data["salon_id"] is None
        assert db_session.get(User, "new-owner").first_name == "Nina"

    def test_missing_token(self, client, db_session):
        assert client.get("/api/auth/user").status_code == 401

    def test_invalid_token(self, client, db_session):
        response = client.get("/api/auth/user", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_expired_token(self, client, db_session):
        expired = make_token(
            "owner-sub-123",
            exp=datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=5),
        )

        response = client.get("/api/auth/user", headers={"Authorization": f"Bearer {expired}"})

        assert response.status_code == 401


@pytest.mark.salon
class TestSalonProfile:
    def test_get_salon(self, client, salon, auth_headers):
        response = client.get("/api/salon", headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data)["name"] == "Test Salon"

    def test_get_without_salon(self, client, owner, auth_headers):
        assert client.get("/api/salon", headers=auth_headers).status_code == 404

    def test_create_salon(self, client, db_session, owner, auth_headers):
        response = client.post(
            "/api/salon",
            json={
                "name": "  Chez Nina  ",
                "email": "hello@cheznina.fr",
                "hours": {"monday": {"open": "09:00", "close": "17:00"}},
                "policies": {"deposit_percentage": 30},
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["name"] == "Chez Nina"
        assert data["owner_id"] == owner.id
        assert data["hours"]["monday"]["open"] == "09:00:00"
        assert data["policies"]["deposit_percentage"] == 30
        assert db_session.get(User, owner.id).salon_name == "Chez Nina"

    def test_one_salon_per_owner(self, client, salon, auth_headers):
        response = client.post("/api/salon", json={"name": "Second"}, headers=auth_headers)

        assert response.status_code == 409

    def test_create_validation(self, client, owner, auth_headers):
        response = client.post(
            "/api/salon",
            json={"name": "", "email": "nope", "hours": {"monday": {"open": "18:00", "close": "09:00"}}},
            headers=auth_headers,
        )

        assert response.status_code == 400
        fields = json.loads(response.data)["fields"]
        assert "name" in fields
        assert "email" in fields
        assert any(key.startswith("hours") for key in fields)

    def test_update_salon(self, client, salon, auth_headers):
        response = client.patch(
            f"/api/salon/{salon.id}",
            json={"phone": "0199887766", "policies": {"cancellation_hours": 48}},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["phone"] == "0199887766"
        assert data["policies"]["cancellation_hours"] == 48
        assert data["name"] == "Test Salon"

    def test_update_other_owners_salon(self, client, salon):
        headers = {"Authorization": f"Bearer {make_token('intruder')}"}

        response = client.patch(f"/api/salon/{salon.id}", json={"name": "Mine"}, headers=headers)

        assert response.status_code == 403

    def test_update_unknown_salon(self, client, owner, auth_headers):
        response = client.patch("/api/salon/missing", json={"name": "X"}, headers=auth_headers)

        assert response.status_code == 404


@pytest.mark.salon
class TestServices:
    def test_create_service(self, client, salon, auth_headers):
        response = client.post(
            "/api/services",
            json={
                "name": "Blow dry",
                "duration_minutes": 45,
                "price": "35.50",
                "requires_deposit": True,
                "tags": ["styling"],
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["price"] == 35.5
        assert data["requires_deposit"] is True
        assert data["is_active"] is True

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"duration_minutes": 30, "price": 10}, "name"),
            ({"name": "Cut", "duration_minutes": 0, "price": 10}, "duration_minutes"),
            ({"name": "Cut", "duration_minutes": True, "price": 10}, "duration_minutes"),
            ({"name": "Cut", "duration_minutes": 30, "price": -1}, "price"),
            ({"name": "Cut", "duration_minutes": 30, "price": "abc"}, "price"),
            ({"name": "Cut", "duration_minutes": 30, "price": 10, "tags": "x"}, "tags"),
        ],
    )
    def test_create_validation(self, client, salon, auth_headers, payload, field):
        response = client.post("/api/services", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert field in json.loads(response.data)["fields"]

    def test_update_service(self, client, haircut, auth_headers):
        response = client.patch(
            f"/api/services/{haircut.id}", json={"price": 27}, headers=auth_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)["price"] == 27.0

    def test_soft_delete_hides_service(self, client, db_session, salon, haircut, coloring, auth_headers):
        response = client.delete(f"/api/services/{haircut.id}", headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data) == {"message": "Service deactivated", "id": haircut.id}
        assert db_session.get(Service, haircut.id) is not None

        owner_view = json.loads(client.get("/api/services", headers=auth_headers).data)
        everything = json.loads(
            client.get("/api/services?include_inactive=true", headers=auth_headers).data
        )
        public = json.loads(client.get(f"/api/public/salon/{salon.id}/services").data)

        assert [s["name"] for s in owner_view["services"]] == ["Coloring"]
        assert len(everything["services"]) == 2
        assert [s["name"] for s in public["services"]] == ["Coloring"]

    def test_other_salons_service(self, client, db_session, haircut):
        db_session.add(User(id="someone-else"))
        db_session.add(Salon(owner_id="someone-else", name="Elsewhere"))
        db_session.commit()
        headers = {"Authorization": f"Bearer {make_token('someone-else')}"}

        response = client.patch(f"/api/services/{haircut.id}", json={"price": 1}, headers=headers)

        assert response.status_code == 404


@pytest.mark.salon
class TestStylists:
    def test_create_stylist_with_schedule(self, client, salon, auth_headers):
        response = client.post(
            "/api/stylists",
            json={
                "first_name": "Léa",
                "last_name": "Moreau",
                "email": "lea@example.com",
                "specialties": ["balayage"],
                "schedule": {
                    "tuesday": {
                        "start": "10:00",
                        "end": "19:00",
                        "breaks": [{"start": "13:00", "end": "14:00"}],
                    }
                },
                "vacations": [{"start": "2025-08-01", "end": "2025-08-15"}],
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["schedule"]["tuesday"]["breaks"][0]["start"] == "13:00:00"
        assert data["vacations"][0]["start"] == "2025-08-01"

    def test_invalid_schedule(self, client, salon, auth_headers):
        response = client.post(
            "/api/stylists",
            json={
                "first_name": "Léa",
                "last_name": "Moreau",
                "schedule": {"tuesday": {"start": "19:00", "end": "10:00"}},
            },
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert any(key.startswith("schedule") for key in json.loads(response.data)["fields"])

    def test_invalid_vacations(self, client, salon, auth_headers):
        response = client.post(
            "/api/stylists",
            json={"first_name": "Léa", "last_name": "Moreau", "vacations": "summer"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert "vacations" in json.loads(response.data)["fields"]

    def test_soft_delete_and_public_list(self, client, db_session, salon, stylist, auth_headers):
        response = client.delete(f"/api/stylists/{stylist.id}", headers=auth_headers)

        assert response.status_code == 200
        assert db_session.get(Stylist, stylist.id).is_active is False

        public = json.loads(client.get(f"/api/public/salon/{salon.id}/stylists").data)
        assert public["stylists"] == []

    def test_public_list_hides_contact_details(self, client, db_session, salon, stylist):
        stylist.email = "alex@example.com"
        db_session.commit()

        public = json.loads(client.get(f"/api/public/salon/{salon.id}/stylists").data)

        assert public["stylists"][0]["first_name"] == "Alex"
        assert "email" not in public["stylists"][0]


@pytest.mark.salon
class TestClients:
    def test_create_and_lookup_by_phone(self, client, salon, auth_headers):
        response = client.post(
            "/api/clients",
            json={"first_name": "Ana", "last_name": "Silva", "phone": "07 12 34 56 78"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert json.loads(response.data)["phone"] == "0712345678"

        found = json.loads(
            client.get("/api/clients?phone=07-12-34-56-78", headers=auth_headers).data
        )
        missing = json.loads(client.get("/api/clients?phone=0000", headers=auth_headers).data)

        assert [c["first_name"] for c in found["clients"]] == ["Ana"]
        assert missing["clients"] == []

    def test_create_validation(self, client, salon, auth_headers):
        response = client.post(
            "/api/clients", json={"first_name": "Ana", "email": "bad"}, headers=auth_headers
        )

        assert response.status_code == 400
        assert set(json.loads(response.data)["fields"]) == {"last_name", "phone", "email"}

    def test_update_client(self, client, sample_client, auth_headers):
        response = client.patch(
            f"/api/clients/{sample_client.id}",
            json={"notes": "Prefers mornings", "phone": ""},
            headers=auth_headers,
        )

        assert response.status_code == 400

        response = client.patch(
            f"/api/clients/{sample_client.id}",
            json={"notes": "Prefers mornings"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert json.loads(response.data)["notes"] == "Prefers mornings"

    def test_update_unknown_client(self, client, salon, auth_headers):
        response = client.patch("/api/clients/missing", json={"notes": "x"}, headers=auth_headers)

        assert response.status_code == 404


@pytest.mark.salon
class TestReviews:
    def test_public_review(self, client, salon, sample_client, stylist):
        response = client.post(
            "/api/reviews",
            json={
                "salon_id": salon.id,
                "client_id": sample_client.id,
                "stylist_id": stylist.id,
                "rating": 5,
                "comment": "Lovely cut",
            },
        )

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["rating"] == 5
        assert data["client_name"] == "Jamie Doe"

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "5", True, None])
    def test_rating_must_be_one_to_five(self, client, salon, sample_client, rating):
        response = client.post(
            "/api/reviews",
            json={"salon_id": salon.id, "client_id": sample_client.id, "rating": rating},
        )

        assert response.status_code == 400
        assert "rating" in json.loads(response.data)["fields"]

    def test_client_from_another_salon(self, client, db_session, salon):
        db_session.add(User(id="someone-else"))
        other = Salon(owner_id="someone-else", name="Elsewhere")
        db_session.add(other)
        db_session.commit()

        stranger = Client(salon_id=other.id, first_name="A", last_name="B", phone="01")
        db_session.add(stranger)
        db_session.commit()

        response = client.post(
            "/api/reviews",
            json={"salon_id": salon.id, "client_id": stranger.id, "rating": 4},
        )

        assert response.status_code == 404

    def test_list_newest_first_with_limit(
        self, client, db_session, salon, sample_client, auth_headers
    ):
        base = datetime.datetime(2025, 1, 1, 12, 0)
        for day in range(3):
            db_session.add(
                Review(
                    salon_id=salon.id,
                    client_id=sample_client.id,
                    rating=day + 3,
                    created_at=base + datetime.timedelta(days=day),
                )
            )
        db_session.commit()

        response = client.get("/api/reviews?limit=2", headers=auth_headers)

        assert response.status_code == 200
        ratings = [r["rating"] for r in json.loads(response.data)["reviews"]]
        assert ratings == [5, 4]

    def test_list_requires_auth(self, client, salon):
        assert client.get("/api/reviews").status_code == 401


def failing_query(*args, **kwargs):
    raise SQLAlchemyError("connection lost")


@pytest.mark.salon
class TestPublicCatalogDatabaseErrors:
    @pytest.mark.parametrize(
        "name,path,message",
        [
            ("get_salon", "", "Failed to fetch salon"),
            ("active_services", "/services", "Failed to fetch services"),
            ("active_stylists", "/stylists", "Failed to fetch stylists"),
            (
                "generator_for_salon",
                "/slots?date=2030-01-07&duration=30",
                "Failed to fetch available slots",
            ),
        ],
    )
    def test_database_failure_returns_json_error(
        self, client, salon, monkeypatch, name, path, message
    ):
        monkeypatch.setattr(public, name, failing_query)

        response = client.get(f"/api/public/salon/{salon.id}{path}")

        assert response.status_code == 500
        assert json.loads(response.data) == {"error": message}
