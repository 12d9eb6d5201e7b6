from flask_socketio import join_room, leave_room, emit

from remote_matches import socketio
from remote_matches.services.matches.notifier import NAMESPACE, match_room, participant_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_subscribe_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = match_room(match_id)
    join_room(room)
    emit('subscribed', {'room': room})


def handle_unsubscribe_match(data):
    match_id = (data or {}).get('match_id')
    if not match_id:
        emit('error', {'message': 'match_id is required'})
        return
    room = match_room(match_id)
    leave_room(room)
    emit('unsubscribed', {'room': room})


def handle_subscribe_participant(data):
    """Follow every match a participant is in, for live match lists."""
    participant_id = (data or {}).get('participant_id')
    if participant_id is None:
        emit('error', {'message': 'participant_id is required'})
        return
    room = participant_room(participant_id)
    join_room(room)
    emit('subscribed', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('subscribe_match', handle_subscribe_match, namespace=NAMESPACE)
    socketio.on_event('unsubscribe_match', handle_unsubscribe_match, namespace=NAMESPACE)
    socketio.on_event('subscribe_participant', handle_subscribe_participant, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
