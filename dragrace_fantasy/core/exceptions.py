class ScoringError(Exception):
    """Base class for failures that abort a score recompute."""


class InvalidResultsError(ScoringError, ValueError):
    """Episode results, placements, extras or picks are malformed."""


class ScoringIntegrityError(ScoringError):
    """Stored data contradicts the ruleset (e.g. a multiplier no slot uses)."""
