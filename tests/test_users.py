import pytest

from database import OtpSQL, UserSQL, create_session_factory, create_sql_engine, create_tables
from errors import InternalError, ValidationError
from users import UserService


def _send(client, phone):
    return client.post("/user/send-otp", json={"mobileNumber": phone})


def _verify(client, otp_sender, phone, **extra):
    body = {"mobileNumber": phone, "otp": otp_sender.last_code(phone)}
    body.update(extra)
    return client.post("/user/verify-otp", json=body)


def test_signup_creates_user_and_wallet(client, otp_sender):
    assert _send(client, "7000000001").status_code == 200
    code = otp_sender.last_code("7000000001")
    assert len(code) == 6 and code.isdigit()

    resp = _verify(client, otp_sender, "7000000001")
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["role"] == "user"
    assert body["user"]["referralCode"].startswith("SALON")
    assert body["wallet"]["balance"] == 100


def test_wrong_or_reused_otp(client, otp_sender):
    _send(client, "7000000001")
    resp = client.post("/user/verify-otp", json={"mobileNumber": "7000000001", "otp": "abc"})
    assert resp.status_code == 400
    assert resp.json()["reason"] == "invalid-otp"

    assert _verify(client, otp_sender, "7000000001").status_code == 200
    # El código se consume al verificarse
    assert _verify(client, otp_sender, "7000000001").status_code == 400


def test_second_login_keeps_same_user(client, otp_sender):
    _send(client, "7000000001")
    first = _verify(client, otp_sender, "7000000001").json()
    _send(client, "7000000001")
    second = _verify(client, otp_sender, "7000000001").json()
    assert first["user"]["id"] == second["user"]["id"]
    assert second["wallet"]["balance"] == 100


def test_referral_bonus(client, otp_sender):
    _send(client, "7000000001")
    referrer = _verify(client, otp_sender, "7000000001").json()["user"]

    _send(client, "7000000002")
    resp = _verify(client, otp_sender, "7000000002", referralCode="NOPE")
    assert resp.status_code == 400
    assert resp.json()["reason"] == "invalid-referral"

    resp = _verify(client, otp_sender, "7000000002", referralCode=referrer["referralCode"])
    assert resp.json()["user"]["referredBy"] == referrer["id"]

    wallet = client.get(f"/user/get/{referrer['id']}").json()["wallet"]
    assert wallet["nonWithdrawableBalance"] == 50
    assert wallet["balance"] == 100


def test_otp_delivery_failure(client, otp_sender):
    otp_sender.ok = False
    resp = _send(client, "7000000001")
    assert resp.status_code == 400
    assert resp.json()["reason"] == "otp-delivery"


def test_expired_otp(app, otp_sender):
    service = UserService(sender=otp_sender, otp_ttl=-1)
    create_tables(app.state.sql_engine)
    db_sql = app.state.session_factory()
    try:
        code = service.send_otp(db_sql, "7000000009")
        with pytest.raises(ValidationError):
            service.verify_otp(db_sql, "7000000009", code)
    finally:
        db_sql.close()


def test_profile_location_and_lookup(client, otp_sender):
    _send(client, "7000000001")
    user = _verify(client, otp_sender, "7000000001").json()["user"]

    resp = client.put(f"/user/update-profile/{user['id']}", json={
        "name": "Asha", "email": "asha@gmail.com", "gender": "female",
    })
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Asha"
    assert client.put(f"/user/update-profile/{user['id']}", json={"name": "Asha"}).status_code == 400
    assert client.put("/user/update-profile/999", json={"name": "A", "email": "a@gmail.com"}).status_code == 404

    resp = client.post("/user/update-location", json={
        "mobileNumber": "7000000001", "latitude": 12.97, "longitude": 77.59,
    })
    assert resp.json()["location"] == {"latitude": 12.97, "longitude": 77.59}
    assert client.post("/user/update-location", json={
        "mobileNumber": "0", "latitude": 1, "longitude": 1,
    }).status_code == 404

    assert len(client.get("/user/get-all").json()) == 1
    assert client.get(f"/user/referral/{user['id']}").json()["referralCode"] == user["referralCode"]
    assert client.get("/user/get/999").status_code == 404


def test_profile_email_must_be_unique(client, otp_sender):
    ids = []
    for phone in ("7000000001", "7000000002"):
        _send(client, phone)
        ids.append(_verify(client, otp_sender, phone).json()["user"]["id"])
    client.put(f"/user/update-profile/{ids[0]}", json={"name": "A", "email": "same@gmail.com"})
    resp = client.put(f"/user/update-profile/{ids[1]}", json={"name": "B", "email": "same@gmail.com"})
    assert resp.status_code == 409


def test_referral_code_retries_are_bounded(app, otp_sender):
    create_tables(app.state.sql_engine)
    db_sql = app.state.session_factory()
    try:
        db_sql.add(UserSQL(phone="7000000001", role="user", referral_code="SALONTAKEN"))
        db_sql.commit()

        service = UserService(sender=otp_sender)
        service._random_referral_code = lambda: "SALONTAKEN"
        code = service.send_otp(db_sql, "7000000002")
        with pytest.raises(InternalError) as exc:
            service.verify_otp(db_sql, "7000000002", code)
        assert exc.value.reason == "referral-code"
        db_sql.rollback()

        # Una colisión y luego un código libre
        codes = iter(["SALONTAKEN", "SALONFRESH"])
        service._random_referral_code = lambda: next(codes)
        code = service.send_otp(db_sql, "7000000002")
        assert service.verify_otp(db_sql, "7000000002", code).referral_code == "SALONFRESH"
    finally:
        db_sql.close()


def test_concurrent_first_login_returns_existing_user(tmp_path, otp_sender):
    engine = create_sql_engine(f"sqlite:///{tmp_path / 'users.db'}")
    create_tables(engine)
    factory = create_session_factory(engine)
    service = UserService(sender=otp_sender)

    def rival_signup(db_sql):
        # El otro request gana la carrera y crea el usuario primero
        other = factory()
        other.add(UserSQL(phone="7000000001", role="user", referral_code="SALONRIVAL"))
        other.commit()
        other.close()
        return "SALONMINE"

    service._new_referral_code = rival_signup
    db_sql = factory()
    try:
        code = service.send_otp(db_sql, "7000000001")
        user = service.verify_otp(db_sql, "7000000001", code)
        assert user.referral_code == "SALONRIVAL"
        assert db_sql.query(UserSQL).count() == 1
        assert db_sql.query(OtpSQL).count() == 0
    finally:
        db_sql.close()
        engine.dispose()
