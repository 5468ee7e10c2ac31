def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_calculate_by_income(client, calculation_payload):
    response = client.post("/api/calculate", json=calculation_payload)
    assert response.status_code == 200

    alice, bob = response.json()
    assert alice["roommateId"] == "r1"
    assert alice["rentShare"] == 857.14
    assert bob["rentShare"] == 1142.86
    assert alice["utilitiesShare"] == 150.0
    assert alice["customExpensesShare"] == 25.0
    assert alice["totalShare"] == 1032.14


def test_query_flag_switches_to_room_size(client, calculation_payload):
    response = client.post("/api/calculate", params={"use_room_size_split": "true"}, json=calculation_payload)
    alice, bob = response.json()
    assert alice["rentShare"] == 666.67
    assert bob["rentShare"] == 1333.33


def test_flag_in_body_is_used_without_query(client, calculation_payload):
    calculation_payload["useRoomSizeSplit"] = True
    alice, _ = client.post("/api/calculate", json=calculation_payload).json()
    assert alice["rentShare"] == 666.67


def test_snake_case_input_is_accepted(client):
    response = client.post("/api/calculate", json={
        "total_rent": 1000,
        "roommates": [{"id": "r1", "name": "Solo", "income": 0, "room_size": None}],
    })
    assert response.status_code == 200
    [result] = response.json()
    assert result["rentShare"] == 1000.0
    assert result["basisPercentage"] == 1.0


def test_adjustments_shift_rent(client):
    response = client.post("/api/calculate", json={
        "totalRent": 3000,
        "roommates": [
            {"id": "r1", "name": "Alice", "income": 50000, "adjustments": {"hasPrivateBathroom": True}},
            {"id": "r2", "name": "Bob", "income": 50000,
             "adjustments": {"hasWindow": False, "hasFlexWall": True}},
        ],
    })
    alice, bob = response.json()
    assert alice["rentShare"] == 1725.0
    assert bob["rentShare"] == 1275.0
    assert alice["rentShare"] + bob["rentShare"] == 3000.0


def test_invalid_input_is_rejected(client, calculation_payload):
    calculation_payload["totalRent"] = -1
    assert client.post("/api/calculate", json=calculation_payload).status_code == 422

    calculation_payload["totalRent"] = 2000
    calculation_payload["roommates"] = []
    assert client.post("/api/calculate", json=calculation_payload).status_code == 422
