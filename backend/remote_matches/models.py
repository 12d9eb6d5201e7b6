from remote_matches import db
from remote_matches.services.matches.scoring import suggest_checkout, get_rules
import json
import uuid


class MatchStatus:
    PENDING = 'pending'
    READY = 'ready'
    LOBBY = 'lobby'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'

    TERMINAL = frozenset({COMPLETED, EXPIRED, CANCELLED})
    # Statuses that hold a participant lock
    ACTIVE = frozenset({READY, LOBBY, IN_PROGRESS})


class LockStatus:
    READY = 'ready'
    IN_PROGRESS = 'in_progress'


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Block(db.Model):
    __tablename__ = 'block'
    __table_args__ = (
        db.UniqueConstraint('blocker_id', 'blocked_id', name='uq_block_pair'),
    )
    id = db.Column(db.Integer, primary_key=True)
    blocker_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    blocked_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    def to_dict(self):
        return {
            'blocker_id': self.blocker_id,
            'blocked_id': self.blocked_id,
        }


def generate_match_id():
    return str(uuid.uuid4())


class Match(db.Model):
    __tablename__ = 'remote_match'
    __table_args__ = (
        db.Index('ix_remote_match_challenger_status', 'challenger_id', 'status'),
        db.Index('ix_remote_match_receiver_status', 'receiver_id', 'status'),
    )
    id = db.Column(db.String(36), primary_key=True)
    status = db.Column(db.String(32), nullable=False, default=MatchStatus.PENDING, index=True)
    challenger_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    game_variant = db.Column(db.String(16), nullable=False)
    match_format = db.Column(db.Integer, nullable=False)
    # Turn and leg state, only written by the lifecycle service
    current_player_id = db.Column(db.Integer, nullable=True)
    current_leg = db.Column(db.Integer, nullable=False, default=1)
    turn_index_in_leg = db.Column(db.Integer, nullable=False, default=0)
    challenger_score = db.Column(db.Integer, nullable=True)
    receiver_score = db.Column(db.Integer, nullable=True)
    challenger_legs_won = db.Column(db.Integer, nullable=False, default=0)
    receiver_legs_won = db.Column(db.Integer, nullable=False, default=0)
    last_visit = db.Column(db.Text, nullable=True)  # JSON-encoded reveal payload
    # Epoch seconds
    challenge_expires_at = db.Column(db.Float, nullable=True, index=True)
    join_window_expires_at = db.Column(db.Float, nullable=True, index=True)
    challenger_joined_at = db.Column(db.Float, nullable=True)
    receiver_joined_at = db.Column(db.Float, nullable=True)
    winner_id = db.Column(db.Integer, nullable=True)
    ended_at = db.Column(db.Float, nullable=True)
    ended_by = db.Column(db.Integer, nullable=True)
    ended_reason = db.Column(db.String(32), nullable=True)  # completed, cancelled, aborted, expired
    created_at = db.Column(db.Float, nullable=True)
    updated_at = db.Column(db.Float, nullable=True)
    started_at = db.Column(db.Float, nullable=True)
    version = db.Column(db.Integer, nullable=False)

    visits = db.relationship('MatchVisit', backref='match', lazy='dynamic', order_by='MatchVisit.id')

    # Every UPDATE is guarded by "WHERE version = <loaded version>"
    __mapper_args__ = {'version_id_col': version}

    def __init__(self, **kwargs):
        super(Match, self).__init__(**kwargs)
        if not self.id:
            self.id = generate_match_id()

    @property
    def legs_to_win(self):
        return self.match_format // 2 + 1

    @property
    def visit_number(self):
        return self.turn_index_in_leg // len(self.participant_ids) + 1

    @property
    def participant_ids(self):
        return (self.challenger_id, self.receiver_id)

    @property
    def is_terminal(self):
        return self.status in MatchStatus.TERMINAL

    def is_participant(self, user_id):
        return user_id in self.participant_ids

    def opponent_of(self, user_id):
        return self.receiver_id if user_id == self.challenger_id else self.challenger_id

    def score_for(self, user_id):
        if user_id == self.challenger_id:
            return self.challenger_score
        if user_id == self.receiver_id:
            return self.receiver_score
        return None

    def set_score(self, user_id, score):
        if user_id == self.challenger_id:
            self.challenger_score = score
        else:
            self.receiver_score = score

    def legs_won_for(self, user_id):
        if user_id == self.challenger_id:
            return self.challenger_legs_won
        return self.receiver_legs_won

    def add_leg_won(self, user_id):
        if user_id == self.challenger_id:
            self.challenger_legs_won += 1
        else:
            self.receiver_legs_won += 1

    def has_joined(self, user_id):
        if user_id == self.challenger_id:
            return self.challenger_joined_at is not None
        return self.receiver_joined_at is not None

    def mark_joined(self, user_id, now):
        if user_id == self.challenger_id:
            self.challenger_joined_at = now
        else:
            self.receiver_joined_at = now

    @property
    def both_joined(self):
        return self.challenger_joined_at is not None and self.receiver_joined_at is not None

    def leg_starter(self, leg):
        # Odd legs are opened by the challenger, even legs by the receiver
        return self.challenger_id if leg % 2 == 1 else self.receiver_id

    def reset_leg_scores(self):
        starting = get_rules(self.game_variant).starting_score
        self.challenger_score = starting
        self.receiver_score = starting

    def window_elapsed(self, now):
        """Whether a time window has lapsed but the sweep has not run yet."""
        if self.status == MatchStatus.PENDING:
            return self.challenge_expires_at is not None and now > self.challenge_expires_at
        if self.status in (MatchStatus.READY, MatchStatus.LOBBY):
            return (
                self.join_window_expires_at is not None
                and now > self.join_window_expires_at
                and not self.both_joined
            )
        return False

    def to_dict(self, now=None):
        checkout_hint = None
        if self.status == MatchStatus.IN_PROGRESS and self.current_player_id is not None:
            checkout_hint = suggest_checkout(self.score_for(self.current_player_id))
        return {
            'id': self.id,
            'status': self.status,
            'challenger_id': self.challenger_id,
            'receiver_id': self.receiver_id,
            'game_variant': self.game_variant,
            'match_format': self.match_format,
            'legs_to_win': self.legs_to_win,
            'current_player_id': self.current_player_id,
            'current_leg': self.current_leg,
            'turn_index_in_leg': self.turn_index_in_leg,
            'visit_number': self.visit_number,
            'scores': {
                str(self.challenger_id): self.challenger_score,
                str(self.receiver_id): self.receiver_score,
            },
            'legs_won': {
                str(self.challenger_id): self.challenger_legs_won,
                str(self.receiver_id): self.receiver_legs_won,
            },
            'joined': {
                str(self.challenger_id): self.challenger_joined_at is not None,
                str(self.receiver_id): self.receiver_joined_at is not None,
            },
            'last_visit': json.loads(self.last_visit) if self.last_visit else None,
            'checkout_hint': checkout_hint,
            'challenge_expires_at': self.challenge_expires_at,
            'join_window_expires_at': self.join_window_expires_at,
            'window_elapsed': self.window_elapsed(now) if now is not None else False,
            'winner_id': self.winner_id,
            'ended_at': self.ended_at,
            'ended_by': self.ended_by,
            'ended_reason': self.ended_reason,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'started_at': self.started_at,
            'version': self.version,
        }


class MatchVisit(db.Model):
    """Append-only history of folded visits, one row per (leg, turn)."""
    __tablename__ = 'match_visit'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'leg', 'turn_index', name='uq_match_visit_turn'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(36), db.ForeignKey('remote_match.id'), nullable=False, index=True)
    leg = db.Column(db.Integer, nullable=False)
    turn_index = db.Column(db.Integer, nullable=False)
    participant_id = db.Column(db.Integer, nullable=False)
    darts = db.Column(db.Text, nullable=False)  # JSON-encoded list of darts
    total = db.Column(db.Integer, nullable=False)
    score_before = db.Column(db.Integer, nullable=False)
    score_after = db.Column(db.Integer, nullable=False)
    is_bust = db.Column(db.Boolean, default=False, nullable=False)
    is_checkout = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.Float, nullable=True)

    @property
    def darts_payload(self):
        return json.loads(self.darts) if self.darts else []

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'leg': self.leg,
            'turn_index': self.turn_index,
            'participant_id': self.participant_id,
            'darts': self.darts_payload,
            'total': self.total,
            'score_before': self.score_before,
            'score_after': self.score_after,
            'is_bust': self.is_bust,
            'is_checkout': self.is_checkout,
            'created_at': self.created_at,
        }


class MatchLock(db.Model):
    """One row per user holding a ready or in-progress match.

    The primary key on user_id is what makes the single-active-match check
    atomic: a second concurrent accept fails on insert.
    """
    __tablename__ = 'remote_match_lock'
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), primary_key=True)
    match_id = db.Column(db.String(36), db.ForeignKey('remote_match.id'), nullable=False, index=True)
    lock_status = db.Column(db.String(16), nullable=False)  # ready, in_progress
    updated_at = db.Column(db.Float, nullable=True)
