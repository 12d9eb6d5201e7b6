from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError

from remote_matches import db
from remote_matches.models import Block, User

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the DanDarts remote match server!'})

@main.route('/users', methods=['POST'])
def add_user():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    if not username:
        return jsonify({'error': 'invalid_request', 'message': 'username is required'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'invalid_request', 'message': 'Username already exists'}), 400

    user = User(username=username)
    db.session.add(user)
    db.session.commit()
    return jsonify(user.to_dict()), 201

@main.route('/users/<int:user_id>/blocks', methods=['POST'])
def block_user(user_id):
    data = request.get_json(silent=True) or {}
    blocked_id = data.get('blocked_id')
    if not isinstance(blocked_id, int) or isinstance(blocked_id, bool):
        return jsonify({'error': 'invalid_request', 'message': 'blocked_id must be an integer'}), 400
    if blocked_id == user_id:
        return jsonify({'error': 'invalid_request', 'message': 'cannot block yourself'}), 400
    if db.session.get(User, user_id) is None or db.session.get(User, blocked_id) is None:
        return jsonify({'error': 'not_found', 'message': 'user not found'}), 404

    existing = Block.query.filter_by(blocker_id=user_id, blocked_id=blocked_id).first()
    if existing:
        return jsonify(existing.to_dict()), 200

    block = Block(blocker_id=user_id, blocked_id=blocked_id)
    db.session.add(block)
    try:
        db.session.commit()
    except IntegrityError:
        # Two identical block requests raced; the other one won
        db.session.rollback()
        block = Block.query.filter_by(blocker_id=user_id, blocked_id=blocked_id).first_or_404()
        return jsonify(block.to_dict()), 200
    return jsonify(block.to_dict()), 201
