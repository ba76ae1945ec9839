"""
Reservation routes: booking, schedule views, lifecycle actions
"""
from fastapi.testclient import TestClient

from app.models.ontology import Client, OutboxEvent, Reservation
from conftest import next_weekday


def booking_payload(client_record, vehicle, category, day, start_time="09:00", **extra):
    payload = {
        "clientId": client_record.id,
        "vehicleId": vehicle.id,
        "categoryId": category.id,
        "date": day.isoformat(),
        "startTime": start_time,
    }
    payload.update(extra)
    return payload


class TestCreateReservation:

    def test_staff_booking_is_confirmed(self, client: TestClient, admin_headers, null_dispatcher,
                                        client_record, vehicle, category, booking_day):
        response = client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, booking_day),
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "CONFIRMED"
        assert data["startTime"] == "09:00"
        assert data["endTime"] == "09:30"
        assert data["bookingCode"].startswith("RES-")
        assert data["client"]["lastName"] == "Dupont"
        assert data["vehicle"]["plateNumber"] == "AB123CD"
        assert data["category"]["duration"] == 30
        assert null_dispatcher.calls == 1

    def test_booking_writes_outbox_event(self, client: TestClient, db_session, employee_headers,
                                         client_record, vehicle, category, booking_day):
        client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, booking_day),
            headers=employee_headers,
        )

        events = db_session.query(OutboxEvent).all()
        assert [e.event_type for e in events] == ["reservation.created"]

    def test_double_booking_conflict(self, client: TestClient, admin_headers, book,
                                     client_record, vehicle, category, booking_day):
        book("09:00")

        response = client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, booking_day, "09:15"),
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]

    def test_closed_day_rejected(self, client: TestClient, admin_headers, client_record, vehicle, category):
        sunday = next_weekday(6)

        response = client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, sunday),
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_malformed_start_time(self, client: TestClient, admin_headers,
                                  client_record, vehicle, category, booking_day):
        response = client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, booking_day, "9h00"),
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_unauthenticated(self, client: TestClient, client_record, vehicle, category, booking_day):
        response = client.post("/reservations", json=booking_payload(client_record, vehicle, category, booking_day))
        assert response.status_code in (401, 403)

    def test_client_books_for_itself_as_pending(self, client: TestClient, client_headers,
                                                client_record, vehicle, category, booking_day):
        response = client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, booking_day),
            headers=client_headers,
        )

        assert response.status_code == 201
        assert response.json()["status"] == "PENDING"

    def test_client_cannot_book_for_someone_else(self, client: TestClient, db_session, center, client_headers,
                                                 vehicle, category, booking_day):
        stranger = Client(center_id=center.id, first_name="Marie", last_name="Curie", phone="0611111111")
        db_session.add(stranger)
        db_session.commit()

        response = client.post(
            "/reservations",
            json=booking_payload(stranger, vehicle, category, booking_day),
            headers=client_headers,
        )

        assert response.status_code == 403

    def test_client_cannot_list_reservations(self, client: TestClient, client_headers):
        response = client.get("/reservations", headers=client_headers)
        assert response.status_code == 403


class TestQuickReservation:

    def test_walk_in_creates_client_and_vehicle(self, client: TestClient, db_session, admin_headers,
                                                category, booking_day):
        response = client.post("/reservations/quick", json={
            "clientFirstName": "Luc",
            "clientLastName": "Martin",
            "clientPhone": "0699887766",
            "vehiclePlate": "ef-789gh",
            "vehicleBrand": "Renault",
            "categoryId": category.id,
            "date": booking_day.isoformat(),
            "startTime": "10:00",
        }, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "CONFIRMED"
        assert data["client"]["firstName"] == "Luc"
        assert db_session.query(Client).filter(Client.phone == "0699887766").count() == 1

    def test_walk_in_requires_staff(self, client: TestClient, client_headers, category, booking_day):
        response = client.post("/reservations/quick", json={
            "clientFirstName": "Luc",
            "clientPhone": "0699887766",
            "vehiclePlate": "EF789GH",
            "categoryId": category.id,
            "date": booking_day.isoformat(),
            "startTime": "10:00",
        }, headers=client_headers)

        assert response.status_code == 403


class TestReadReservations:

    def test_list_page_envelope(self, client: TestClient, admin_headers, book):
        book("09:00")
        book("10:00")

        response = client.get("/reservations", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["page"] == 1
        assert data["limit"] == 20
        assert data["totalPages"] == 1
        assert len(data["items"]) == 2

    def test_list_filter_by_status(self, client: TestClient, admin_headers, book):
        book("09:00")

        response = client.get("/reservations", params={"status": "CANCELLED"}, headers=admin_headers)

        assert response.json()["total"] == 0

    def test_get_one(self, client: TestClient, employee_headers, book):
        reservation = book("11:00")

        response = client.get(f"/reservations/{reservation.id}", headers=employee_headers)

        assert response.status_code == 200
        assert response.json()["bookingCode"] == reservation.booking_code

    def test_get_unknown(self, client: TestClient, admin_headers):
        response = client.get("/reservations/9999", headers=admin_headers)
        assert response.status_code == 404

    def test_day_schedule(self, client: TestClient, admin_headers, book, booking_day):
        book("09:00")

        response = client.get(f"/reservations/day/{booking_day.isoformat()}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["isHoliday"] is False
        assert data["isClosed"] is False
        assert data["stats"] == {"total": 1, "confirmed": 1, "completed": 0}
        assert data["reservations"][0]["startTime"] == "09:00"

    def test_available_slots(self, client: TestClient, admin_headers, book, category, booking_day):
        book("09:00")

        response = client.get(
            f"/reservations/available-slots/{booking_day.isoformat()}",
            params={"categoryId": category.id},
            headers=admin_headers,
        )

        assert response.status_code == 200
        slots = response.json()
        assert len(slots) == 20
        assert slots[0] == {"startTime": "08:00", "endTime": "08:30", "isAvailable": True}
        taken = [s["startTime"] for s in slots if not s["isAvailable"]]
        assert taken == ["09:00"]

    def test_client_can_read_slots(self, client: TestClient, client_headers, booking_day):
        response = client.get(f"/reservations/available-slots/{booking_day.isoformat()}",
                              headers=client_headers)
        assert response.status_code == 200

    def test_slots_on_closed_day(self, client: TestClient, admin_headers):
        sunday = next_weekday(6)
        response = client.get(f"/reservations/available-slots/{sunday.isoformat()}", headers=admin_headers)
        assert response.json() == []


class TestReservationLifecycle:

    def test_cancel_with_reason(self, client: TestClient, admin_headers, null_dispatcher, book):
        reservation = book("09:00")

        response = client.delete(
            f"/reservations/{reservation.id}",
            params={"reason": "Client malade"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "CANCELLED"
        assert "Client malade" in data["notes"]
        assert null_dispatcher.calls == 1

    def test_cancel_frees_the_slot(self, client: TestClient, admin_headers, book,
                                   client_record, vehicle, category, booking_day):
        reservation = book("09:00")
        client.delete(f"/reservations/{reservation.id}", headers=admin_headers)

        response = client.post(
            "/reservations",
            json=booking_payload(client_record, vehicle, category, booking_day, "09:00"),
            headers=admin_headers,
        )

        assert response.status_code == 201

    def test_cancel_twice_conflicts(self, client: TestClient, admin_headers, book):
        reservation = book("09:00")
        client.delete(f"/reservations/{reservation.id}", headers=admin_headers)

        response = client.delete(f"/reservations/{reservation.id}", headers=admin_headers)

        assert response.status_code == 409

    def test_start_then_record_result(self, client: TestClient, admin_headers, book):
        reservation = book("09:00")

        started = client.patch(f"/reservations/{reservation.id}", json={"status": "IN_PROGRESS"},
                               headers=admin_headers)
        assert started.json()["status"] == "IN_PROGRESS"

        response = client.patch(f"/reservations/{reservation.id}/result", json={
            "result": "PASSED",
            "report": {"defects": [], "mileage": 84200},
        }, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "COMPLETED"
        assert data["result"] == "PASSED"

    def test_result_requires_in_progress(self, client: TestClient, admin_headers, book):
        reservation = book("09:00")

        response = client.patch(f"/reservations/{reservation.id}/result", json={"result": "FAILED"},
                                headers=admin_headers)

        assert response.status_code == 409

    def test_illegal_status_jump(self, client: TestClient, admin_headers, book):
        reservation = book("09:00")

        response = client.patch(f"/reservations/{reservation.id}", json={"status": "PENDING"},
                                headers=admin_headers)

        assert response.status_code == 409

    def test_status_patch_cannot_complete(self, client: TestClient, db_session, admin_headers, book, vehicle):
        reservation = book("09:00")
        client.patch(f"/reservations/{reservation.id}", json={"status": "IN_PROGRESS"}, headers=admin_headers)

        response = client.patch(f"/reservations/{reservation.id}", json={"status": "COMPLETED"},
                                headers=admin_headers)

        assert response.status_code == 400
        assert "/result" in response.json()["detail"]
        db_session.refresh(vehicle)
        assert vehicle.last_inspection_date is None
        assert client.get(f"/reservations/{reservation.id}", headers=admin_headers).json()["status"] == "IN_PROGRESS"

    def test_reschedule(self, client: TestClient, admin_headers, book):
        reservation = book("09:00")

        response = client.patch(f"/reservations/{reservation.id}", json={"startTime": "14:00"},
                                headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["startTime"] == "14:00"
        assert response.json()["endTime"] == "14:30"

    def test_assign_employee(self, client: TestClient, admin_headers, book, employee_user):
        reservation = book("09:00")

        response = client.patch(f"/reservations/{reservation.id}/assign",
                                json={"employeeId": employee_user.id}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["employee"]["firstName"] == "Bruno"

    def test_employee_cannot_remove(self, client: TestClient, employee_headers, book):
        reservation = book("09:00")

        response = client.delete(f"/reservations/{reservation.id}/remove", headers=employee_headers)

        assert response.status_code == 403

    def test_admin_removes(self, client: TestClient, db_session, admin_headers, book):
        reservation = book("09:00")

        response = client.delete(f"/reservations/{reservation.id}/remove", headers=admin_headers)

        assert response.status_code == 200
        assert client.get(f"/reservations/{reservation.id}", headers=admin_headers).status_code == 404
        assert db_session.get(Reservation, reservation.id).deleted_at is not None
