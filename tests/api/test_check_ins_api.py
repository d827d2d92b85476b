"""
Tests de los endpoints de asistencia y mantenimiento.
"""
API = "/api/v1"


def setup_student(client, headers, dni="30111222"):
    plan = client.post(
        f"{API}/membership-plans",
        json={"name": "Mensual", "price_cents": 1500000, "duration": 1},
        headers=headers,
    ).json()
    student = client.post(
        f"{API}/students",
        json={"first_name": "Ana", "last_name": "Gómez", "dni": dni, "membership_plan_id": plan["id"]},
        headers=headers,
    ).json()
    return student


class TestCheckInsApi:

    def test_register_and_duplicate(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        student = setup_student(client, headers)

        response = client.post(f"{API}/check-ins", json={"method": "dni", "dni": student["dni"]}, headers=headers)
        assert response.status_code == 201, response.text
        assert response.json()["student_id"] == student["id"]

        response = client.post(
            f"{API}/check-ins", json={"method": "qr", "token": student["check_in_token"]}, headers=headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_check_in"

        response = client.get(f"{API}/check-ins", headers=headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.get(f"{API}/check-ins/today", headers=headers)
        assert [a["dni"] for a in response.json()] == [student["dni"]]

        check_in_id = client.get(f"{API}/check-ins", headers=headers).json()["items"][0]["id"]
        response = client.get(f"{API}/check-ins/{check_in_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["student_id"] == student["id"]

        response = client.get(f"{API}/students/{student['id']}/check-ins", headers=headers)
        assert response.json()["total"] == 1

    def test_requires_exactly_one_identifier(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        response = client.post(
            f"{API}/check-ins", json={"method": "dni", "dni": "1", "token": "G1_abc"}, headers=headers
        )
        assert response.status_code == 422

        response = client.post(f"{API}/check-ins", json={"method": "dni"}, headers=headers)
        assert response.status_code == 422

    def test_unknown_dni(self, client, gym, auth_headers):
        response = client.post(
            f"{API}/check-ins", json={"method": "dni", "dni": "00000000"}, headers=auth_headers(gym.id)
        )
        assert response.status_code == 404
        assert response.json()["code"] == "student_not_found"

    def test_token_from_other_gym(self, client, gym, make_gym, pro_tier, auth_headers):
        student = setup_student(client, auth_headers(gym.id))
        other = make_gym(name="Gym Norte", subscription_plan=pro_tier)

        response = client.post(
            f"{API}/check-ins",
            json={"method": "qr", "token": student["check_in_token"]},
            headers=auth_headers(other.id),
        )
        assert response.status_code == 403
        assert response.json()["code"] == "tenant_mismatch"

    def test_check_in_of_other_gym_not_found(self, client, gym, make_gym, pro_tier, auth_headers):
        headers = auth_headers(gym.id)
        student = setup_student(client, headers)
        check_in = client.post(
            f"{API}/check-ins", json={"method": "dni", "dni": student["dni"]}, headers=headers
        ).json()
        other = make_gym(name="Gym Norte", subscription_plan=pro_tier)

        response = client.get(f"{API}/check-ins/{check_in['id']}", headers=auth_headers(other.id))
        assert response.status_code == 404
        assert response.json()["code"] == "check_in_not_found"

    def test_method_not_in_subscription(self, client, make_gym, basic_tier, auth_headers):
        basic_gym = make_gym(name="Gym Barrio", subscription_plan=basic_tier)
        headers = auth_headers(basic_gym.id)
        student = setup_student(client, headers)

        response = client.post(
            f"{API}/check-ins", json={"method": "qr", "token": student["check_in_token"]}, headers=headers
        )
        assert response.status_code == 403
        assert response.json()["code"] == "feature_not_available"

    def test_inactive_membership(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        student = setup_student(client, headers)
        client.delete(f"{API}/students/{student['id']}", headers=headers)

        response = client.post(f"{API}/check-ins", json={"method": "dni", "dni": student["dni"]}, headers=headers)
        assert response.status_code == 412
        assert response.json()["code"] == "membership_inactive"

    def test_stats_endpoints(self, client, gym, auth_headers):
        headers = auth_headers(gym.id)
        student = setup_student(client, headers)
        client.post(f"{API}/check-ins", json={"method": "dni", "dni": student["dni"]}, headers=headers)

        response = client.get(f"{API}/check-ins/stats/methods", headers=headers)
        assert response.json()["by_method"]["dni"] == 1

        response = client.get(f"{API}/check-ins/peak-hours", headers=headers)
        assert len(response.json()) == 1
        assert response.json()[0]["count"] == 1

        response = client.get(f"{API}/analytics/dashboard", headers=headers)
        assert response.status_code == 200
        assert response.json()["check_ins"]["total"] == 1


class TestMaintenanceApi:

    def test_requires_worker_key(self, client):
        response = client.post(f"{API}/maintenance/process-expired-memberships")
        assert response.status_code == 401

        response = client.post(
            f"{API}/maintenance/process-expired-memberships", headers={"X-API-Key": "wrong"}
        )
        assert response.status_code == 401

    def test_sweep(self, client, gym):
        response = client.post(
            f"{API}/maintenance/process-expired-memberships", headers={"X-API-Key": "test-worker-key"}
        )
        assert response.status_code == 200
        assert response.json() == {"affected": 0, "errors": []}
