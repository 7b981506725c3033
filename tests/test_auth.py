def test_register_login_and_me(api):
    res = api.post(
        "/api/auth/register",
        json={"email": "newprovider@example.com", "name": "New Provider", "password": "s3cret!", "role": "provider"},
    )
    assert res.status_code == 201, res.text
    assert res.json()["role"] == "provider"

    dup = api.post(
        "/api/auth/register",
        json={"email": "newprovider@example.com", "name": "Again", "password": "x"},
    )
    assert dup.status_code == 400

    res = api.post("/api/auth/login", data={"username": "newprovider@example.com", "password": "wrong"})
    assert res.status_code == 400

    res = api.post("/api/auth/login", data={"username": "newprovider@example.com", "password": "s3cret!"})
    assert res.status_code == 200
    token = res.json()["access_token"]

    me = api.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "newprovider@example.com"


def test_protected_route_requires_token(api):
    assert api.get("/bookings/client").status_code == 401


def test_provider_creates_service_with_token(api):
    api.post(
        "/api/auth/register",
        json={"email": "p2@example.com", "name": "P2", "password": "pw", "role": "provider"},
    )
    token = api.post("/api/auth/login", data={"username": "p2@example.com", "password": "pw"}).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    res = api.post("/services/provider/services", json={"title": "AC repair", "price": 450}, headers=headers)
    assert res.status_code == 201, res.text
    assert res.json()["review_count"] == 0
    assert api.get("/services/provider/services", headers=headers).json()[0]["title"] == "AC repair"
