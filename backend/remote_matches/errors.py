"""Typed errors raised by the match lifecycle service.

Every rejected command raises a subclass of MatchError. The HTTP layer
converts them into ``{"error": code, "message": ...}`` responses using the
class-level ``status_code``; nothing in the service retries on failure.
"""


class MatchError(Exception):
    code = 'match_error'
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.code)


class InvalidParticipants(MatchError):
    code = 'invalid_participants'
    status_code = 400


class InvalidMatchSettings(MatchError):
    code = 'invalid_match_settings'
    status_code = 400


class Blocked(MatchError):
    code = 'blocked'
    status_code = 403


class NotParticipant(MatchError):
    code = 'not_participant'
    status_code = 403


class NotFound(MatchError):
    code = 'not_found'
    status_code = 404


class AlreadyDecided(MatchError):
    code = 'already_decided'
    status_code = 409


class Expired(MatchError):
    code = 'expired'
    status_code = 410


class ConcurrencyLimitExceeded(MatchError):
    """A participant already holds a ready or in-progress match."""
    code = 'concurrency_limit_exceeded'
    status_code = 409


class InvalidTransition(MatchError):
    code = 'invalid_transition'
    status_code = 409


class StaleStateError(MatchError):
    """The match changed between the caller's read and this write. Re-fetch."""
    code = 'stale_state'
    status_code = 409


class NotYourTurn(MatchError):
    code = 'not_your_turn'
    status_code = 403


class MatchNotInProgress(MatchError):
    code = 'match_not_in_progress'
    status_code = 409


class InvalidVisit(MatchError):
    code = 'invalid_visit'
    status_code = 400


class DuplicateVisit(MatchError):
    """A visit is already recorded for this leg and turn.

    ``same_submission`` is true when the recorded visit came from the same
    participant with identical darts, i.e. a network retry that was already
    applied.
    """
    code = 'duplicate_visit'
    status_code = 409

    def __init__(self, message=None, visit=None, same_submission=False):
        super().__init__(message)
        self.visit = visit
        self.same_submission = same_submission
