"""
test_admin_users.py — Admin user management, directory listings and catalogue.
"""
from __future__ import annotations

from unittest.mock import patch

from speexify.auth.sqlite_db import get_conn
from speexify.tests.conftest import make_user


def test_admin_search_users(admin_client, learner_user, teacher_user):
    resp = admin_client.get("/api/admin/users", params={"q": "tom"})
    assert [u["email"] for u in resp.json()] == [teacher_user.email]

    everyone = admin_client.get("/api/admin/users").json()
    assert [u["email"] for u in everyone] == sorted(u["email"] for u in everyone)


def test_users_by_role(admin_client, learner_user, teacher_user):
    resp = admin_client.get("/api/users", params={"role": "learner"})
    assert resp.json() == [{"id": learner_user.id, "email": learner_user.email,
                            "name": "Lena Learner"}]


def test_active_teachers(admin_client, teacher_user):
    make_user("gone@example.com", role="teacher", is_disabled=True)
    all_teachers = admin_client.get("/api/teachers").json()
    active = admin_client.get("/api/teachers", params={"active": "true"}).json()
    assert len(all_teachers) == 2
    assert [t["email"] for t in active] == [teacher_user.email]
    assert active[0]["rateHourlyCents"] == 3000


def test_update_role_and_rates(admin_client, learner_user):
    resp = admin_client.patch(
        f"/api/admin/users/{learner_user.id}",
        json={"role": "teacher", "ratePerSessionCents": 2500},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["role"] == "teacher"
    assert data["ratePerSessionCents"] == 2500
    assert data["isDisabled"] is False


def test_update_rejects_unknown_role(admin_client, learner_user):
    resp = admin_client.patch(f"/api/admin/users/{learner_user.id}", json={"role": "owner"})
    assert resp.status_code == 400


def test_update_rejects_negative_rate(admin_client, teacher_user):
    resp = admin_client.patch(
        f"/api/admin/users/{teacher_user.id}", json={"rateHourlyCents": -1}
    )
    assert resp.status_code == 400


def test_update_missing_user(admin_client):
    assert admin_client.patch("/api/admin/users/9999", json={"role": "learner"}).status_code == 404


def test_admin_cannot_disable_or_demote_self(admin_client, admin_user):
    url = f"/api/admin/users/{admin_user.id}"
    assert admin_client.patch(url, json={"isDisabled": True}).status_code == 400
    assert admin_client.patch(url, json={"role": "learner"}).status_code == 400
    assert admin_client.patch(url, json={"name": "Still Admin"}).status_code == 200


def test_update_is_audited(admin_client, admin_user, learner_user):
    admin_client.patch(f"/api/admin/users/{learner_user.id}", json={"isDisabled": True})
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM audit_log WHERE action = 'user.update'"
        ).fetchone()
    assert row["actor_id"] == admin_user.id
    assert row["entity_id"] == str(learner_user.id)


def test_admin_triggers_reset_email(admin_client, learner_user):
    with patch("speexify.core.mailer.send_code", return_value=True) as send:
        resp = admin_client.post(f"/api/admin/users/{learner_user.id}/reset-password")
    assert resp.status_code == 200
    assert send.call_args.args[0] == learner_user.email
    assert send.call_args.args[2] == "reset"


def test_packages_are_public_and_active_only(client):
    with get_conn() as conn:
        conn.executemany(
            """
            INSERT INTO packages
              (title, description, session_count, duration_minutes, price_cents, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                ("Starter", "Four lessons", 4, 60, 9999, 1),
                ("Retired", None, 1, 30, 1000, 0),
            ],
        )
        conn.commit()

    resp = client.get("/api/packages")
    assert resp.status_code == 200
    (pkg,) = resp.json()
    assert pkg["title"] == "Starter"
    assert pkg["sessionCount"] == 4
    assert pkg["priceUSD"] == 99.99


def test_user_search_matches_wildcards_literally(admin_client):
    make_user("a_b@example.com")
    make_user("axb@example.com")
    resp = admin_client.get("/api/admin/users", params={"q": "a_b"})
    assert [u["email"] for u in resp.json()] == ["a_b@example.com"]


def test_user_search_folds_non_ascii_case(admin_client):
    make_user("elodie@example.com", name="Élodie Durand")
    resp = admin_client.get("/api/admin/users", params={"q": "élodie"})
    assert [u["email"] for u in resp.json()] == ["elodie@example.com"]


def test_update_rejects_out_of_range_rate(admin_client, teacher_user):
    resp = admin_client.patch(
        f"/api/admin/users/{teacher_user.id}", json={"rateHourlyCents": 2 ** 70}
    )
    assert resp.status_code == 400


def test_out_of_range_user_id_returns_400(admin_client):
    assert admin_client.patch(f"/api/admin/users/{2 ** 70}", json={"name": "x"}).status_code == 400
    assert admin_client.post(f"/api/admin/impersonate/{2 ** 70}").status_code == 400


def test_get_users_by_ids_handles_many_ids(learner_user, teacher_user):
    from speexify.auth.users import get_users_by_ids

    ids = list(range(1000, 2200)) + [teacher_user.id, learner_user.id, teacher_user.id]
    found = get_users_by_ids(ids)
    assert set(found) == {teacher_user.id, learner_user.id}
    assert get_users_by_ids([]) == {}
