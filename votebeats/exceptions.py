"""
Ranking engine errors.

Every error carries the HTTP status the API layer should answer with.
"""


class RankingError(Exception):
    """Base class for ranking engine errors."""

    status_code = 400
    kind = "ranking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DepthExceeded(RankingError):
    kind = "depth_exceeded"


class NotRankable(RankingError):
    kind = "not_rankable"


class AlreadyRanked(RankingError):
    """Raised by the store; the engine reports it as a successful no-op."""
    kind = "already_ranked"
    status_code = 409


class InvalidPermutation(RankingError):
    kind = "invalid_permutation"


class InvalidScoringMode(RankingError):
    kind = "invalid_scoring_mode"


class UnknownRequest(RankingError):
    kind = "unknown_request"
    status_code = 404


class UnknownEvent(RankingError):
    kind = "unknown_event"
    status_code = 404


class RecomputeFailure(RankingError):
    kind = "recompute_failure"
    status_code = 503
