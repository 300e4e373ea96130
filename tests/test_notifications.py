from app.services.notification_service import NotificationService, NotificationTypes


def _notify(db, user_id, title):
    notification = NotificationService.create_notification(
        db, user_id, NotificationTypes.CONTRACT_APPROVED, title, link="/dashboard/contracts/1"
    )
    db.commit()
    return notification.id


class TestNotifications:
    def test_newest_first(self, business_client, db, seeded):
        _notify(db, seeded["business"], "First")
        _notify(db, seeded["business"], "Second")
        db.close()

        body = business_client.get("/api/v1/notifications").json()
        assert [n["title"] for n in body["notifications"]] == ["Second", "First"]
        assert body["unread_count"] == 2

    def test_mark_as_read(self, business_client, db, seeded):
        notification_id = _notify(db, seeded["business"], "Approved")
        db.close()

        response = business_client.put(f"/api/v1/notifications/{notification_id}/read")
        assert response.status_code == 200
        assert response.json()["notification"]["is_read"] is True
        assert business_client.get("/api/v1/notifications/unread-count").json()["count"] == 0

    def test_cannot_read_someone_elses(self, business_client, db, seeded):
        notification_id = _notify(db, seeded["legal"], "Not yours")
        db.close()

        response = business_client.put(f"/api/v1/notifications/{notification_id}/read")
        assert response.status_code == 404
        assert response.json()["detail"] == "Notification not found"

    def test_mark_all_as_read(self, business_client, db, seeded):
        _notify(db, seeded["business"], "One")
        _notify(db, seeded["business"], "Two")
        _notify(db, seeded["legal"], "Other user")
        db.close()

        response = business_client.put("/api/v1/notifications/read-all")
        assert response.json()["updated"] == 2
        assert business_client.get("/api/v1/notifications").json()["unread_count"] == 0

    def test_requires_login(self, anonymous):
        assert anonymous.get("/api/v1/notifications").status_code == 401
