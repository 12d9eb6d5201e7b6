import pytest

from remote_matches.errors import AlreadyDecided


def drain(sio_client):
    return sio_client.get_received('/ws')


def test_socket_connect_and_subscribe(sio_client):
    assert sio_client.is_connected('/ws')
    received = drain(sio_client)
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('subscribe_match', {'match_id': 'abc'}, namespace='/ws')
    received = drain(sio_client)
    assert {'name': 'subscribed', 'args': [{'room': 'match:abc'}], 'namespace': '/ws'} in received

    sio_client.emit('unsubscribe_match', {'match_id': 'abc'}, namespace='/ws')
    received = drain(sio_client)
    assert any(pkt['name'] == 'unsubscribed' for pkt in received)


def test_subscribe_requires_ids(sio_client):
    drain(sio_client)
    sio_client.emit('subscribe_match', {}, namespace='/ws')
    sio_client.emit('subscribe_participant', {}, namespace='/ws')
    received = drain(sio_client)
    assert [pkt['name'] for pkt in received] == ['error', 'error']


def test_ping_pong(sio_client):
    drain(sio_client)
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = drain(sio_client)
    assert received[0]['name'] == 'pong'
    assert received[0]['args'][0] == {'n': 1}


def test_match_update_carries_only_match_id(sio_client, service, users):
    alice, bob = users['alice'], users['bob']
    match_id = service.create_challenge(alice, bob, '301', 1)

    sio_client.emit('subscribe_match', {'match_id': match_id}, namespace='/ws')
    drain(sio_client)

    service.accept_challenge(match_id, bob)
    updates = [pkt for pkt in drain(sio_client) if pkt['name'] == 'match_update']
    assert updates == [{'name': 'match_update', 'args': [{'match_id': match_id}], 'namespace': '/ws'}]


def test_participant_room_hears_new_challenges(sio_client, service, users):
    alice, bob = users['alice'], users['bob']
    sio_client.emit('subscribe_participant', {'participant_id': bob}, namespace='/ws')
    drain(sio_client)

    match_id = service.create_challenge(alice, bob, '501', 3)
    updates = [pkt for pkt in drain(sio_client) if pkt['name'] == 'match_update']
    assert updates == [{'name': 'match_update', 'args': [{'match_id': match_id}], 'namespace': '/ws'}]


def test_rejected_command_sends_no_update(sio_client, service, users):
    alice, bob = users['alice'], users['bob']
    match_id = service.create_challenge(alice, bob, '301', 1)
    sio_client.emit('subscribe_match', {'match_id': match_id}, namespace='/ws')
    drain(sio_client)

    service.accept_challenge(match_id, bob)
    drain(sio_client)
    with pytest.raises(AlreadyDecided):
        service.accept_challenge(match_id, bob)
    assert [pkt for pkt in drain(sio_client) if pkt['name'] == 'match_update'] == []
