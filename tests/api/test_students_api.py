"""
Tests de los endpoints de alumnos, planes y gimnasios: autenticación, tenant y
traducción de errores de negocio a respuestas HTTP.
"""
from app.schemas.token import CallerRole

API = "/api/v1"


def create_plan(client, headers, name="Mensual"):
    response = client.post(
        f"{API}/membership-plans",
        json={"name": name, "price_cents": 1500000, "duration": 1, "duration_type": "months"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_student(client, headers, plan_id, dni="30111222"):
    return client.post(
        f"{API}/students",
        json={"first_name": "Juan", "last_name": "Pérez", "dni": dni, "membership_plan_id": plan_id},
        headers=headers,
    )


class TestAuthAndTenant:

    def test_requires_token(self, client, gym):
        response = client.get(f"{API}/students", headers={"X-Gym-ID": str(gym.id)})
        assert response.status_code == 401

    def test_requires_gym_header(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        del headers["X-Gym-ID"]
        response = client.get(f"{API}/students", headers=headers)
        assert response.status_code == 400

    def test_other_gym_is_forbidden(self, client, gym, make_gym, auth_headers):
        other = make_gym(name="Gym Norte")
        response = client.get(f"{API}/students", headers=auth_headers(gym.id, header_gym_id=other.id))
        assert response.status_code == 403

    def test_super_admin_can_access_any_gym(self, client, gym, auth_headers):
        headers = auth_headers(None, role=CallerRole.SUPER_ADMIN, header_gym_id=gym.id)
        response = client.get(f"{API}/students", headers=headers)
        assert response.status_code == 200
        assert response.json()["total"] == 0

    def test_staff_cannot_create_plans(self, client, gym, auth_headers):
        response = client.post(
            f"{API}/membership-plans",
            json={"name": "Mensual", "price_cents": 1500000, "duration": 1},
            headers=auth_headers(gym.id, role=CallerRole.STAFF),
        )
        assert response.status_code == 403


class TestStudentsApi:

    def test_create_and_get_student(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        plan = create_plan(client, headers)

        response = create_student(client, headers, plan["id"])
        assert response.status_code == 201, response.text
        student = response.json()
        assert student["membership_status"] == "active"
        assert student["check_in_token"].startswith(f"G{gym.id}_")

        response = client.get(f"{API}/students/{student['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["dni"] == "30111222"

        response = client.get(f"{API}/students/{student['id']}/membership", headers=headers)
        assert response.status_code == 200
        assert response.json()["can_access"] is True

    def test_duplicate_dni_is_conflict(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        plan = create_plan(client, headers)
        assert create_student(client, headers, plan["id"]).status_code == 201

        response = create_student(client, headers, plan["id"])
        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_dni"

    def test_quota_exceeded_is_forbidden(self, client, make_gym, basic_tier, auth_headers):
        basic_gym = make_gym(name="Gym Barrio", subscription_plan=basic_tier)
        headers = auth_headers(basic_gym.id)
        plan = create_plan(client, headers)
        create_student(client, headers, plan["id"], dni="1")
        create_student(client, headers, plan["id"], dni="2")

        response = create_student(client, headers, plan["id"], dni="3")
        assert response.status_code == 403
        assert response.json()["code"] == "quota_exceeded"

        response = client.get(f"{API}/gyms/current/limits", headers=headers)
        assert response.json() == {"current_active_students": 2, "max_students": 2, "over_limit": True}

    def test_dni_patch_is_rejected(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        plan = create_plan(client, headers)
        student = create_student(client, headers, plan["id"]).json()

        response = client.patch(f"{API}/students/{student['id']}", json={"dni": "99999999"}, headers=headers)
        assert response.status_code == 422
        assert response.json()["code"] == "immutable_field"

    def test_unknown_student(self, client, gym, auth_headers):
        response = client.get(f"{API}/students/9999", headers=auth_headers(gym.id))
        assert response.status_code == 404
        assert response.json()["code"] == "student_not_found"

    def test_delete_then_renew(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        plan = create_plan(client, headers)
        student = create_student(client, headers, plan["id"]).json()

        response = client.delete(f"{API}/students/{student['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["membership_status"] == "inactive"

        response = client.post(
            f"{API}/students/{student['id']}/renew",
            json={"membership_plan_id": plan["id"]},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["membership_status"] == "active"

    def test_retire_plan_in_use(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        plan = create_plan(client, headers)
        create_student(client, headers, plan["id"])

        response = client.post(f"{API}/membership-plans/{plan['id']}/retire", headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "plan_in_use"


class TestGymsApi:

    def test_create_gym_requires_super_admin(self, client, gym, auth_headers):
        payload = {"name": "Gym Nuevo", "timezone": "America/Argentina/Cordoba"}
        response = client.post(f"{API}/gyms", json=payload, headers=auth_headers(gym.id))
        assert response.status_code == 403

        response = client.post(
            f"{API}/gyms", json=payload, headers=auth_headers(None, role=CallerRole.SUPER_ADMIN, header_gym_id=gym.id)
        )
        assert response.status_code == 201
        assert response.json()["timezone"] == "America/Argentina/Cordoba"

    def test_invalid_timezone(self, client, gym, auth_headers):
        response = client.post(
            f"{API}/gyms",
            json={"name": "Gym Nuevo", "timezone": "Mars/Olympus_Mons"},
            headers=auth_headers(None, role=CallerRole.SUPER_ADMIN, header_gym_id=gym.id),
        )
        assert response.status_code == 422

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_update_current_gym(self, client, gym, auth_headers):
        response = client.put(
            f"{API}/gyms/current",
            json={"timezone": "America/Mexico_City", "phone": "555-0101"},
            headers=auth_headers(gym.id),
        )
        assert response.status_code == 200
        assert response.json()["timezone"] == "America/Mexico_City"
        assert response.json()["phone"] == "555-0101"

        response = client.put(
            f"{API}/gyms/current", json={"timezone": "Mars/Olympus_Mons"}, headers=auth_headers(gym.id)
        )
        assert response.status_code == 422

        response = client.put(
            f"{API}/gyms/current", json={"phone": "1"}, headers=auth_headers(gym.id, role=CallerRole.STAFF)
        )
        assert response.status_code == 403

    def test_list_gyms_requires_super_admin(self, client, gym, auth_headers):
        response = client.get(f"{API}/gyms", headers=auth_headers(gym.id))
        assert response.status_code == 403

        response = client.get(
            f"{API}/gyms", headers=auth_headers(None, role=CallerRole.SUPER_ADMIN, header_gym_id=gym.id)
        )
        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["id"] == gym.id
