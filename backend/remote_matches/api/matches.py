from flask import Blueprint, jsonify, request, current_app

from remote_matches.errors import DuplicateVisit, MatchError


matches = Blueprint('matches', __name__)


def _service():
    return current_app.extensions['match_service']


def _int_field(data, name, required=True):
    value = data.get(name)
    if value is None and not required:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise _BadRequest(f'{name} must be an integer')
    return value


class _BadRequest(Exception):
    pass


def _state(match):
    return match.to_dict(now=_service().clock.now())


@matches.errorhandler(_BadRequest)
def handle_bad_request(exc):
    return jsonify({'error': 'invalid_request', 'message': str(exc)}), 400


@matches.errorhandler(MatchError)
def handle_match_error(exc: MatchError):
    current_app.logger.info(f"[rejected] error={exc.code} message={exc}")
    return jsonify({'error': exc.code, 'message': str(exc)}), exc.status_code


@matches.route('/challenges', methods=['POST'])
def create_challenge():
    data = request.get_json(silent=True) or {}
    challenger_id = _int_field(data, 'challenger_id')
    receiver_id = _int_field(data, 'receiver_id')
    match_format = _int_field(data, 'match_format')
    game_variant = data.get('game_variant')
    if game_variant is None:
        raise _BadRequest('game_variant is required')
    match_id = _service().create_challenge(challenger_id, receiver_id, game_variant, match_format)
    return jsonify({'match_id': match_id}), 201


@matches.route('/<string:match_id>/accept', methods=['POST'])
def accept_challenge(match_id):
    data = request.get_json(silent=True) or {}
    match = _service().accept_challenge(
        match_id,
        _int_field(data, 'participant_id'),
        expected_version=_int_field(data, 'expected_version', required=False),
    )
    return jsonify(_state(match))


@matches.route('/<string:match_id>/cancel', methods=['POST'])
def cancel_match(match_id):
    data = request.get_json(silent=True) or {}
    service = _service()
    service.cancel_match(
        match_id,
        _int_field(data, 'participant_id'),
        expected_version=_int_field(data, 'expected_version', required=False),
    )
    return jsonify(_state(service.fetch_match(match_id)))


@matches.route('/<string:match_id>/abort', methods=['POST'])
def abort_match(match_id):
    data = request.get_json(silent=True) or {}
    match = _service().abort_match(
        match_id,
        _int_field(data, 'participant_id'),
        expected_version=_int_field(data, 'expected_version', required=False),
    )
    return jsonify(_state(match))


@matches.route('/<string:match_id>/join', methods=['POST'])
def join_match(match_id):
    data = request.get_json(silent=True) or {}
    match = _service().join_match(
        match_id,
        _int_field(data, 'participant_id'),
        expected_version=_int_field(data, 'expected_version', required=False),
    )
    return jsonify(_state(match))


@matches.route('/<string:match_id>/visits', methods=['POST'])
def save_visit(match_id):
    data = request.get_json(silent=True) or {}
    service = _service()
    try:
        match = service.save_visit(
            match_id,
            _int_field(data, 'participant_id'),
            data.get('darts'),
            leg=_int_field(data, 'leg', required=False),
            turn_index=_int_field(data, 'turn_index', required=False),
            expected_version=_int_field(data, 'expected_version', required=False),
        )
    except DuplicateVisit as exc:
        if not exc.same_submission:
            raise
        # A retried submission: answer with the state it already produced
        payload = _state(service.fetch_match(match_id))
        payload['already_applied'] = True
        return jsonify(payload), 200
    return jsonify(_state(match))


@matches.route('/<string:match_id>', methods=['GET'])
def get_match(match_id):
    return jsonify(_state(_service().fetch_match(match_id)))


@matches.route('/<string:match_id>/visits', methods=['GET'])
def list_visits(match_id):
    return jsonify([visit.to_dict() for visit in _service().list_visits(match_id)])


@matches.route('/participants/<int:participant_id>', methods=['GET'])
def list_participant_matches(participant_id):
    return jsonify(_service().list_matches_for_participant(participant_id))
