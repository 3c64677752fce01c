"""Tests for the room WebSocket push channel."""


def _join(ws, display_name=None, **extra):
    """Send a join frame and return the ``joined`` reply."""
    frame = {"type": "join", **extra}
    if display_name is not None:
        frame["displayName"] = display_name
    ws.send_json(frame)
    joined = ws.receive_json()
    assert joined["type"] == "joined"
    return joined


def test_join_returns_room_state(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        joined = _join(ws, "Alice")

        assert joined["roomCode"] == "123"
        assert joined["participant"]["displayName"] == "Alice"
        assert joined["resumed"] is False
        assert joined["messages"] == []
        assert len(joined["participants"]) == 1


def test_two_clients_same_room(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws1, \
         api_client.websocket_connect("/ws/rooms/123") as ws2:
        _join(ws1, "Alice")
        bob = _join(ws2, "Bob")

        # Alice learns that Bob arrived
        arrived = ws1.receive_json()
        assert arrived["type"] == "participant-joined"
        assert arrived["participant"]["participantId"] == bob["participant"]["participantId"]
        assert len(arrived["participants"]) == 2

        ws1.send_json({"type": "message", "text": "hi"})
        data1 = ws1.receive_json()
        data2 = ws2.receive_json()

        for data in (data1, data2):
            assert data["type"] == "message-sent"
            assert data["roomCode"] == "123"
            assert data["message"]["text"] == "hi"
            assert data["message"]["displayName"] == "Alice"
            assert data["message"]["viewCount"] == 1
            assert data["message"]["totalParticipants"] == 2


def test_typing_not_echoed_to_origin(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws1, \
         api_client.websocket_connect("/ws/rooms/123") as ws2:
        _join(ws1, "Alice")
        _join(ws2, "Bob")
        ws1.receive_json()  # participant-joined

        ws2.send_json({"type": "typing", "isTyping": True})
        typing = ws1.receive_json()
        assert typing["type"] == "typing-changed"
        assert typing["displayName"] == "Bob"
        assert typing["isTyping"] is True

        ws2.send_json({"type": "heartbeat"})
        assert ws2.receive_json() == {"type": "ack", "active": True}


def test_poll_marks_viewed_and_burns(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws1, \
         api_client.websocket_connect("/ws/rooms/123") as ws2:
        _join(ws1, "Alice")
        _join(ws2, "Bob")
        ws1.receive_json()  # participant-joined

        ws1.send_json({"type": "message", "text": "burn me"})
        ws1.receive_json()
        ws2.receive_json()

        ws2.send_json({"type": "poll"})
        expired_1 = ws1.receive_json()
        expired_2 = ws2.receive_json()
        state = ws2.receive_json()

        assert expired_1["type"] == expired_2["type"] == "message-expired"
        assert state["type"] == "state"
        assert state["messages"][0]["isExpired"] is True
        assert state["messages"][0]["viewCount"] == 2


def test_reconnect_resumes_participant(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        first = _join(ws, "Alice")
    participant_id = first["participant"]["participantId"]

    with api_client.websocket_connect("/ws/rooms/123") as ws:
        again = _join(ws, participantId=participant_id)

    assert again["resumed"] is True
    assert again["participant"]["participantId"] == participant_id
    assert len(again["participants"]) == 1


def test_message_before_join(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        ws.send_json({"type": "message", "text": "hi"})
        response = ws.receive_json()
        assert response["type"] == "error"
        assert response["code"] == "not_joined"


def test_unknown_message_type(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        _join(ws, "Alice")
        ws.send_json({"type": "dance"})
        response = ws.receive_json()
        assert response["type"] == "error"
        assert response["code"] == "unknown_type"


def test_empty_message_keeps_socket_open(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        _join(ws, "Alice")
        ws.send_json({"type": "message", "text": "   "})
        response = ws.receive_json()
        assert response == {
            "type": "error",
            "success": False,
            "error": "Message text cannot be empty",
            "code": "empty_or_too_long",
        }

        ws.send_json({"type": "heartbeat"})
        assert ws.receive_json()["type"] == "ack"


def test_room_full_over_websocket(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws1, \
         api_client.websocket_connect("/ws/rooms/123") as ws2:
        _join(ws1, "Alice", settings={"maxUsers": 1})
        ws2.send_json({"type": "join", "displayName": "Bob"})
        response = ws2.receive_json()
        assert response["type"] == "error"
        assert response["code"] == "room_full"


def test_leave_over_websocket(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws1, \
         api_client.websocket_connect("/ws/rooms/123") as ws2:
        _join(ws1, "Alice")
        bob = _join(ws2, "Bob")
        ws1.receive_json()  # participant-joined

        ws2.send_json({"type": "leave"})
        assert ws2.receive_json() == {"type": "ack", "active": True}

        left = ws1.receive_json()
        assert left["type"] == "participant-left"
        assert left["reason"] == "left"
        assert left["participant"]["participantId"] == bob["participant"]["participantId"]


def test_typing_flag_is_parsed_not_truthiness(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws1, \
         api_client.websocket_connect("/ws/rooms/123") as ws2:
        _join(ws1, "Alice")
        _join(ws2, "Bob")
        ws1.receive_json()  # participant-joined

        ws2.send_json({"type": "typing", "isTyping": "true"})
        assert ws1.receive_json()["isTyping"] is True

        ws2.send_json({"type": "typing", "isTyping": "false"})
        assert ws1.receive_json()["isTyping"] is False

        ws2.send_json({"type": "typing", "isTyping": "sometimes"})
        response = ws2.receive_json()
        assert response["type"] == "error"
        assert response["code"] == "invalid_input"


def test_malformed_frames_keep_socket_open(api_client):
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        _join(ws, "Alice")

        ws.send_text("not json")
        assert ws.receive_json()["code"] == "invalid_frame"

        ws.send_json(["join"])
        assert ws.receive_json()["code"] == "invalid_frame"

        ws.send_json({"type": "join", "displayName": 42})
        assert ws.receive_json()["code"] == "invalid_input"

        ws.send_json({"type": "heartbeat"})
        assert ws.receive_json() == {"type": "ack", "active": True}


def test_closed_socket_is_detached(api_client):
    gateway = api_client.app.state.gateway
    with api_client.websocket_connect("/ws/rooms/123") as ws:
        _join(ws, "Alice")
        assert gateway.connection_count("123") == 1

    assert gateway.connection_count("123") == 0
    assert gateway.websocket_to_participant == {}
