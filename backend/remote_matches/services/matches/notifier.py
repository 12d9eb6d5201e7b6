"""Change signals for subscribed clients.

A signal only says "match <id> changed". It never carries status, scores or
timestamps: receivers re-fetch the match and render what the server returns,
so duplicate or reordered signals are harmless.
"""

from remote_matches import socketio

EVENT_NAME = 'match_update'
NAMESPACE = '/ws'


def match_room(match_id) -> str:
    return f"match:{match_id}"


def participant_room(user_id) -> str:
    return f"participant:{user_id}"


class MatchNotifier:
    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace

    def publish(self, match) -> None:
        """Signal the match room and both participants' list rooms."""
        payload = {'match_id': match.id}
        socketio.emit(EVENT_NAME, payload, to=match_room(match.id), namespace=self.namespace)
        for user_id in match.participant_ids:
            socketio.emit(EVENT_NAME, payload, to=participant_room(user_id), namespace=self.namespace)
