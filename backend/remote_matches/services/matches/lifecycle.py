"""The match lifecycle service: the only writer of remote match state.

Each public method is one short unit of work. It loads the match, checks the
command against the persisted row, applies a single transition and commits.
The UPDATE carries ``WHERE version = <loaded version>`` (see Match), so a
command that lost a race fails with StaleStateError instead of writing over
newer state. A change signal goes out only after a successful commit.

Transitions::

    pending  --accept-->  ready  --join-->  lobby  --join-->  in_progress
    pending/ready/lobby            --cancel-->  cancelled
    ready/lobby/in_progress        --abort-->   cancelled
    pending (challenge window), ready/lobby (join window)  --expire-->  expired
    in_progress  --final checkout-->  completed
"""

import json
from contextlib import contextmanager
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from remote_matches import db
from remote_matches.errors import (
    AlreadyDecided,
    Blocked,
    ConcurrencyLimitExceeded,
    DuplicateVisit,
    Expired,
    InvalidMatchSettings,
    InvalidParticipants,
    InvalidTransition,
    InvalidVisit,
    MatchError,
    MatchNotInProgress,
    NotFound,
    NotParticipant,
    NotYourTurn,
    StaleStateError,
)
from remote_matches.models import Match, MatchStatus, MatchVisit, User
from .locks import SingleActiveMatchEnforcer
from .notifier import MatchNotifier
from .providers import BlockList, SystemClock
from .scoring import get_rules, parse_darts, score_visit

MATCH_FORMATS = (1, 3, 5, 7)
CANCELLABLE = (MatchStatus.PENDING, MatchStatus.READY, MatchStatus.LOBBY)
ABORTABLE = (MatchStatus.READY, MatchStatus.LOBBY, MatchStatus.IN_PROGRESS)


class MatchLifecycleService:

    def __init__(self, clock=None, blocks=None, notifier=None, locks=None,
                 challenge_expiry_sec: int = 86400, join_window_sec: int = 300):
        self.clock = clock or SystemClock()
        self.blocks = blocks or BlockList()
        self.notifier = notifier or MatchNotifier()
        self.locks = locks or SingleActiveMatchEnforcer()
        self.challenge_expiry_sec = challenge_expiry_sec
        self.join_window_sec = join_window_sec

    @classmethod
    def from_config(cls, config) -> 'MatchLifecycleService':
        return cls(
            challenge_expiry_sec=int(config.get('CHALLENGE_EXPIRY_SEC', 86400)),
            join_window_sec=int(config.get('JOIN_WINDOW_SEC', 300)),
        )

    # ---- Commands ----

    def create_challenge(self, challenger_id: int, receiver_id: int, game_variant, match_format: int) -> str:
        if challenger_id == receiver_id:
            raise InvalidParticipants('cannot challenge yourself')
        for user_id in (challenger_id, receiver_id):
            if db.session.get(User, user_id) is None:
                raise InvalidParticipants(f'unknown participant {user_id}')
        rules = get_rules(game_variant)
        if match_format not in MATCH_FORMATS:
            raise InvalidMatchSettings(f'match_format must be one of {MATCH_FORMATS}')
        if self.blocks.is_blocked(receiver_id, challenger_id):
            raise Blocked('receiver has blocked the challenger')

        now = self.clock.now()
        match = Match(
            status=MatchStatus.PENDING,
            challenger_id=challenger_id,
            receiver_id=receiver_id,
            game_variant=str(game_variant),
            match_format=match_format,
            current_leg=1,
            turn_index_in_leg=0,
            challenger_score=rules.starting_score,
            receiver_score=rules.starting_score,
            challenger_legs_won=0,
            receiver_legs_won=0,
            challenge_expires_at=now + self.challenge_expiry_sec,
            created_at=now,
            updated_at=now,
        )
        with self._transaction():
            db.session.add(match)
        current_app.logger.info(
            f"[challenge] match={match.id} challenger={challenger_id} receiver={receiver_id} "
            f"variant={match.game_variant} format={match_format}"
        )
        self.notifier.publish(match)
        return match.id

    def accept_challenge(self, match_id: str, participant_id: int, expected_version: Optional[int] = None) -> Match:
        match = self._load(match_id, expected_version)
        if participant_id != match.receiver_id:
            raise NotParticipant('only the receiver may accept a challenge')
        if match.status == MatchStatus.EXPIRED:
            raise Expired('challenge has expired')
        if match.status != MatchStatus.PENDING:
            raise AlreadyDecided(f'challenge is already {match.status}')

        now = self.clock.now()
        if match.window_elapsed(now):
            self._expire(match, now)
            raise Expired('challenge has expired')

        self._expire_lapsed_conflicts(match, now)
        with self._transaction(on_conflict=ConcurrencyLimitExceeded('a participant already has an active match')):
            conflict = self.locks.find_conflict(match.participant_ids, match.id)
            if conflict is not None:
                current_app.logger.info(
                    f"[accept-reject] match={match.id} user={conflict.user_id} holds match={conflict.match_id}"
                )
                raise ConcurrencyLimitExceeded(f'participant {conflict.user_id} already has an active match')
            self.locks.acquire(match, now)
            match.status = MatchStatus.READY
            match.join_window_expires_at = now + self.join_window_sec
            match.updated_at = now
        current_app.logger.info(f"[accept] match={match.id} receiver={participant_id} join_by={match.join_window_expires_at}")
        self.notifier.publish(match)
        return match

    def cancel_match(self, match_id: str, participant_id: int, expected_version: Optional[int] = None) -> None:
        match = self._load(match_id, expected_version)
        if not match.is_participant(participant_id):
            raise NotParticipant('not a participant of this match')
        if match.status not in CANCELLABLE:
            raise InvalidTransition(f'cannot cancel a match that is {match.status}')
        self._finish(match, MatchStatus.CANCELLED, reason='cancelled', ended_by=participant_id)
        current_app.logger.info(f"[cancel] match={match.id} by={participant_id}")
        self.notifier.publish(match)

    def abort_match(self, match_id: str, participant_id: int, expected_version: Optional[int] = None) -> Match:
        """Leave a ready, lobby or running match. Aborting twice is a no-op."""
        match = self._load(match_id, expected_version)
        if not match.is_participant(participant_id):
            raise NotParticipant('not a participant of this match')
        if match.status in (MatchStatus.CANCELLED, MatchStatus.COMPLETED):
            return match
        if match.status not in ABORTABLE:
            raise InvalidTransition(f'cannot abort a match that is {match.status}')
        self._finish(match, MatchStatus.CANCELLED, reason='aborted', ended_by=participant_id)
        current_app.logger.info(f"[abort] match={match.id} by={participant_id}")
        self.notifier.publish(match)
        return match

    def join_match(self, match_id: str, participant_id: int, expected_version: Optional[int] = None) -> Match:
        match = self._load(match_id, expected_version)
        if not match.is_participant(participant_id):
            raise NotParticipant('not a participant of this match')
        if match.status == MatchStatus.EXPIRED:
            raise Expired('join window has expired')
        if match.status not in (MatchStatus.READY, MatchStatus.LOBBY):
            raise InvalidTransition(f'cannot join a match that is {match.status}')

        now = self.clock.now()
        if match.window_elapsed(now):
            self._expire(match, now)
            raise Expired('join window has expired')

        if match.has_joined(participant_id):
            # Re-entering the lobby changes nothing
            return match

        # In the lobby exactly one participant has joined, so this join starts play
        starting = match.status == MatchStatus.LOBBY
        with self._transaction(on_conflict=ConcurrencyLimitExceeded('a participant already has a match in progress')):
            if starting:
                self.locks.promote(match, now)
            match.mark_joined(participant_id, now)
            if starting:
                match.status = MatchStatus.IN_PROGRESS
                match.current_leg = 1
                match.turn_index_in_leg = 0
                match.challenger_legs_won = 0
                match.receiver_legs_won = 0
                match.reset_leg_scores()
                match.current_player_id = match.leg_starter(1)
                match.started_at = now
            else:
                match.status = MatchStatus.LOBBY
            match.updated_at = now
        current_app.logger.info(f"[join] match={match.id} user={participant_id} status={match.status}")
        self.notifier.publish(match)
        return match

    def save_visit(self, match_id: str, participant_id: int, darts, leg: Optional[int] = None,
                   turn_index: Optional[int] = None, expected_version: Optional[int] = None) -> Match:
        """Score one visit and pass the turn.

        ``leg`` and ``turn_index`` name the turn the client believes it is
        throwing for. When given, a retry of an already recorded turn raises
        DuplicateVisit rather than being scored again. ``turn_index`` is only
        meaningful together with ``leg``, since every leg restarts it at 0.
        """
        if turn_index is not None and leg is None:
            raise InvalidVisit('leg is required when turn_index is given')
        parsed = parse_darts(darts)
        match = self._load(match_id)
        if not match.is_participant(participant_id):
            raise NotParticipant('not a participant of this match')

        target_leg = leg if leg is not None else match.current_leg
        if turn_index is not None:
            recorded = MatchVisit.query.filter_by(match_id=match.id, leg=target_leg, turn_index=turn_index).first()
            if recorded is not None:
                same = (
                    recorded.participant_id == participant_id
                    and recorded.darts_payload == [d.to_dict() for d in parsed]
                )
                raise DuplicateVisit('visit already recorded for this turn', visit=recorded, same_submission=same)

        if match.status != MatchStatus.IN_PROGRESS:
            raise MatchNotInProgress(f'match is {match.status}')
        if match.current_player_id != participant_id:
            raise NotYourTurn('it is not your turn')
        if turn_index is not None and (turn_index != match.turn_index_in_leg or target_leg != match.current_leg):
            raise StaleStateError(
                f'turn {target_leg}/{turn_index} does not match current turn '
                f'{match.current_leg}/{match.turn_index_in_leg}'
            )
        self._check_version(match, expected_version)

        now = self.clock.now()
        rules = get_rules(match.game_variant)
        outcome = score_visit(rules, match.score_for(participant_id), parsed)
        dart_payload = [d.to_dict() for d in outcome.darts]

        with self._transaction(on_conflict=DuplicateVisit('visit already recorded for this turn')):
            db.session.add(MatchVisit(
                match_id=match.id,
                leg=match.current_leg,
                turn_index=match.turn_index_in_leg,
                participant_id=participant_id,
                darts=json.dumps(dart_payload),
                total=outcome.total,
                score_before=outcome.score_before,
                score_after=outcome.score_after,
                is_bust=outcome.is_bust,
                is_checkout=outcome.is_checkout,
                created_at=now,
            ))
            match.last_visit = json.dumps({
                'player_id': participant_id,
                'darts': dart_payload,
                'total': outcome.total,
                'score_before': outcome.score_before,
                'score_after': outcome.score_after,
                'is_bust': outcome.is_bust,
                'is_checkout': outcome.is_checkout,
                'leg': match.current_leg,
                'turn_index': match.turn_index_in_leg,
                'timestamp': now,
            })
            match.set_score(participant_id, outcome.score_after)
            match.turn_index_in_leg += 1
            match.updated_at = now

            if outcome.is_checkout:
                self._complete_leg(match, participant_id, now)
            else:
                match.current_player_id = match.opponent_of(participant_id)
        current_app.logger.info(
            f"[visit] match={match.id} user={participant_id} total={outcome.total} "
            f"bust={outcome.is_bust} checkout={outcome.is_checkout} status={match.status}"
        )
        self.notifier.publish(match)
        return match

    def expire_if_due(self, match_id: str) -> bool:
        """Expire one match whose window has lapsed. Returns False when nothing changed."""
        match = db.session.get(Match, match_id)
        if match is None:
            return False
        now = self.clock.now()
        if not match.window_elapsed(now):
            return False
        self._expire(match, now)
        return True

    # ---- Reads ----

    def fetch_match(self, match_id: str) -> Match:
        match = db.session.get(Match, match_id)
        if match is None:
            raise NotFound(f'match {match_id} not found')
        return match

    def list_matches_for_participant(self, participant_id: int) -> List[Dict]:
        """All of a participant's matches, newest first.

        A pending match is ``disabled`` while the participant has another
        ready, lobby or in-progress match; the flag is derived on every read.
        """
        now = self.clock.now()
        rows = (
            Match.query
            .filter(db.or_(Match.challenger_id == participant_id, Match.receiver_id == participant_id))
            .order_by(Match.created_at.desc())
            .all()
        )
        active_id = self.locks.active_match_id(participant_id)
        listed = []
        for match in rows:
            payload = match.to_dict(now=now)
            payload['disabled'] = (
                match.status == MatchStatus.PENDING and active_id is not None and active_id != match.id
            )
            payload['role'] = 'challenger' if match.challenger_id == participant_id else 'receiver'
            listed.append(payload)
        return listed

    def list_visits(self, match_id: str) -> List[MatchVisit]:
        match = self.fetch_match(match_id)
        return match.visits.all()

    # ---- Internals ----

    def _load(self, match_id: str, expected_version: Optional[int] = None) -> Match:
        match = self.fetch_match(match_id)
        self._check_version(match, expected_version)
        return match

    def _check_version(self, match: Match, expected_version: Optional[int]) -> None:
        if expected_version is not None and match.version != expected_version:
            raise StaleStateError(
                f'match {match.id} is at version {match.version}, caller expected {expected_version}'
            )

    def _expire_lapsed_conflicts(self, match: Match, now: float) -> None:
        """Expire other matches whose join window lapsed but still hold a participant's lock."""
        while True:
            conflict = self.locks.find_conflict(match.participant_ids, match.id)
            if conflict is None:
                return
            holder = db.session.get(Match, conflict.match_id)
            if holder is None or not holder.window_elapsed(now):
                return
            self._expire(holder, now)

    def _complete_leg(self, match: Match, winner_id: int, now: float) -> None:
        match.add_leg_won(winner_id)
        if match.legs_won_for(winner_id) >= match.legs_to_win:
            match.status = MatchStatus.COMPLETED
            match.winner_id = winner_id
            match.current_player_id = None
            match.ended_at = now
            match.ended_reason = 'completed'
            self.locks.release(match)
            current_app.logger.info(f"[complete] match={match.id} winner={winner_id}")
            return
        match.current_leg += 1
        match.turn_index_in_leg = 0
        match.reset_leg_scores()
        match.current_player_id = match.leg_starter(match.current_leg)
        current_app.logger.info(f"[leg] match={match.id} leg_winner={winner_id} next_leg={match.current_leg}")

    def _finish(self, match: Match, status: str, reason: str, ended_by: Optional[int] = None) -> None:
        now = self.clock.now()
        with self._transaction():
            self.locks.release(match)
            match.status = status
            match.ended_at = now
            match.ended_by = ended_by
            match.ended_reason = reason
            match.current_player_id = None
            match.updated_at = now

    def _expire(self, match: Match, now: float) -> None:
        with self._transaction():
            self.locks.release(match)
            match.status = MatchStatus.EXPIRED
            match.ended_at = now
            match.ended_by = None
            match.ended_reason = 'expired'
            match.updated_at = now
        current_app.logger.info(f"[expire] match={match.id}")
        self.notifier.publish(match)

    @contextmanager
    def _transaction(self, on_conflict: Optional[MatchError] = None):
        """Apply the writes made inside the block as one commit.

        Queries inside the block may autoflush, so version and uniqueness
        conflicts are mapped here whether they surface mid-block or at commit.
        """
        try:
            yield
            db.session.commit()
        except StaleDataError as exc:
            db.session.rollback()
            raise StaleStateError('match was changed by another request') from exc
        except IntegrityError as exc:
            db.session.rollback()
            if on_conflict is None:
                raise
            raise on_conflict from exc
        except MatchError:
            db.session.rollback()
            raise
