"""
Checks run before any score is written. Shared by the results write path
(to reject a bad submission with a 400) and by the recompute orchestrator
(so stored data that slipped past the write path still fails loudly).
"""

from collections import Counter
from decimal import Decimal
from typing import Iterable

from dragrace_fantasy.core.exceptions import InvalidResultsError, ScoringIntegrityError
from dragrace_fantasy.models.models import ResultType
from dragrace_fantasy.services.ruleset import FINALE_PLACES, PICKS_PER_ENTRY, SLOT_MULTIPLIERS

KNOWN_MULTIPLIERS = frozenset(SLOT_MULTIPLIERS.values())


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def validate_picks(entry) -> None:
    picks = list(entry.picks)
    # An entry is either undrafted or fully drafted
    if len(picks) not in (0, PICKS_PER_ENTRY):
        raise ScoringIntegrityError(
            f"Entry {entry.id} has {len(picks)} picks (expected 0 or {PICKS_PER_ENTRY})"
        )

    for pick in picks:
        if pick.multiplier is None:
            raise InvalidResultsError(f"Entry {entry.id} slot {pick.slot} has no multiplier")
        if pick.slot not in SLOT_MULTIPLIERS:
            raise ScoringIntegrityError(f"Entry {entry.id} has unknown slot {pick.slot}")
        if as_decimal(pick.multiplier) not in KNOWN_MULTIPLIERS:
            raise ScoringIntegrityError(
                f"Entry {entry.id} slot {pick.slot} multiplier {pick.multiplier} is not a slot value"
            )

    slots = Counter(p.slot for p in picks)
    queens = Counter(p.queen_id for p in picks)
    if any(n > 1 for n in slots.values()) or any(n > 1 for n in queens.values()):
        raise ScoringIntegrityError(f"Entry {entry.id} repeats a slot or a queen")


def _check_known(queen_ids: Iterable[int], known_queen_ids: set[int], what: str) -> None:
    unknown = sorted(set(queen_ids) - set(known_queen_ids))
    if unknown:
        raise InvalidResultsError(f"Unknown queen id(s) in {what}: {unknown}")


def validate_regular_results(results, known_queen_ids: set[int]) -> None:
    """At most one lip sync winner and one elimination; every queen must belong to the season."""
    by_type = Counter(r.type for r in results if r.queen_id is not None)
    if by_type[ResultType.LIPSYNC] > 1:
        raise InvalidResultsError("A week has at most one lip sync winner")
    if by_type[ResultType.ELIMINATION] > 1:
        raise InvalidResultsError("A week has at most one elimination")

    _check_known((r.queen_id for r in results if r.queen_id is not None), known_queen_ids, "results")


def validate_finale_placements(placements, known_queen_ids: set[int] | None = None) -> None:
    placements = list(placements)
    if len(placements) != FINALE_PLACES:
        raise InvalidResultsError(f"Finale needs exactly {FINALE_PLACES} placements, got {len(placements)}")

    places = sorted(p.place for p in placements)
    if places != list(range(1, FINALE_PLACES + 1)):
        raise InvalidResultsError(f"Places must be {', '.join(str(i) for i in range(1, FINALE_PLACES + 1))}")

    queen_ids = [p.queen_id for p in placements]
    if len(set(queen_ids)) != len(queen_ids):
        raise InvalidResultsError(f"Placements must have {FINALE_PLACES} different queens")

    if known_queen_ids is not None:
        _check_known(queen_ids, known_queen_ids, "placements")


def validate_finale_extras(extras, known_queen_ids: set[int] | None = None) -> None:
    extras = list(extras)
    queen_ids = [e.queen_id for e in extras]
    if len(set(queen_ids)) != len(queen_ids):
        raise InvalidResultsError("Each queen can have only one set of finale extras")

    for e in extras:
        counts = (e.mini_wins or 0, e.main_wins or 0, e.lipsync_wins or 0)
        if any(c < 0 for c in counts):
            raise InvalidResultsError(f"Negative win count for queen {e.queen_id}")

    if known_queen_ids is not None:
        _check_known(queen_ids, known_queen_ids, "extras")
