"""Single-active-match enforcement.

A user holds at most one active (ready, lobby or in-progress) match at a time.
Locks live in ``remote_match_lock`` keyed by user id, and are written in the same
transaction as the match status change they guard. ``find_conflict`` only
produces a friendly error early; the primary key is what settles two accepts
racing for the same user.
"""

from typing import Iterable, Optional

from sqlalchemy import delete, insert, update
from sqlalchemy.exc import IntegrityError

from remote_matches import db
from remote_matches.errors import ConcurrencyLimitExceeded
from remote_matches.models import LockStatus, Match, MatchLock, MatchStatus


class SingleActiveMatchEnforcer:

    def find_conflict(self, participant_ids: Iterable[int], match_id: str) -> Optional[MatchLock]:
        return (
            MatchLock.query
            .filter(MatchLock.user_id.in_(list(participant_ids)), MatchLock.match_id != match_id)
            .first()
        )

    def acquire(self, match: Match, now: float) -> None:
        """Insert ready locks for both participants, or fail the whole command."""
        rows = [
            {'user_id': user_id, 'match_id': match.id, 'lock_status': LockStatus.READY, 'updated_at': now}
            for user_id in match.participant_ids
        ]
        try:
            db.session.execute(insert(MatchLock), rows)
        except IntegrityError as exc:
            db.session.rollback()
            raise ConcurrencyLimitExceeded('a participant already has an active match') from exc

    def promote(self, match: Match, now: float) -> None:
        """Flip both participants' locks to in_progress as the match starts."""
        held = {
            lock.user_id for lock in MatchLock.query.filter_by(match_id=match.id).all()
        }
        if held != set(match.participant_ids):
            db.session.rollback()
            raise ConcurrencyLimitExceeded('match locks are missing, the match cannot start')
        db.session.execute(
            update(MatchLock)
            .where(MatchLock.match_id == match.id)
            .values(lock_status=LockStatus.IN_PROGRESS, updated_at=now)
        )

    def release(self, match: Match) -> None:
        db.session.execute(delete(MatchLock).where(MatchLock.match_id == match.id))

    def active_match_id(self, user_id: int) -> Optional[str]:
        """The user's ready/lobby/in-progress match, read from match rows."""
        row = (
            Match.query
            .filter(
                Match.status.in_(list(MatchStatus.ACTIVE)),
                db.or_(Match.challenger_id == user_id, Match.receiver_id == user_id),
            )
            .with_entities(Match.id)
            .first()
        )
        return row[0] if row else None
