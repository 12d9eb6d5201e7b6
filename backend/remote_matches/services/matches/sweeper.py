"""Time-driven expiry of pending challenges and unused join windows.

The sweep is also exposed as the ``sweep-expired`` CLI command so a cron job
can drive it instead of the in-process loop.
"""

from flask import current_app

from remote_matches import db, socketio
from remote_matches.errors import StaleStateError
from remote_matches.models import Match, MatchStatus


def find_expiry_candidates(now: float):
    return (
        Match.query
        .filter(db.or_(
            db.and_(Match.status == MatchStatus.PENDING, Match.challenge_expires_at < now),
            db.and_(
                Match.status.in_([MatchStatus.READY, MatchStatus.LOBBY]),
                Match.join_window_expires_at < now,
            ),
        ))
        .with_entities(Match.id)
        .all()
    )


def sweep_expired_matches(service) -> int:
    """Expire every lapsed match once. Returns how many were expired.

    A match changed by a concurrent request between the query and the write
    is skipped; the next sweep sees its new status.
    """
    now = service.clock.now()
    expired = 0
    for (match_id,) in find_expiry_candidates(now):
        try:
            if service.expire_if_due(match_id):
                expired += 1
        except StaleStateError:
            current_app.logger.info(f"[sweep-skip] match={match_id} changed concurrently")
    if expired:
        current_app.logger.info(f"[sweep] expired={expired}")
    return expired


def start_expiry_sweeper(app) -> None:
    """Run ``sweep_expired_matches`` every EXPIRY_SWEEP_INTERVAL_SEC seconds.

    - No-ops in TESTING mode or when the interval is 0
    - Runs as a Socket.IO background task so it cooperates with the async mode
    """
    if app.config.get('TESTING'):
        return
    interval = int(app.config.get('EXPIRY_SWEEP_INTERVAL_SEC', 60))
    if interval <= 0:
        return

    def _worker():
        app.logger.info(f"[sweeper-start] interval={interval}s")
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    sweep_expired_matches(app.extensions['match_service'])
                except Exception:
                    db.session.rollback()
                    app.logger.exception("[sweep-error] sweep failed, retrying next interval")

    socketio.start_background_task(_worker)
