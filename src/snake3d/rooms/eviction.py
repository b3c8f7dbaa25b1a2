"""Admission control for a room's phantom set.

A room is partitioned by spawn slot first: a candidate competes with the
phantom on its own spawn point when there is one, and with the globally
weakest phantom only when its slot is free and the room is full. Both paths
require a strictly higher score.
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import AdmissionCode, PhantomInfo, RoomMeta


@dataclass(frozen=True, slots=True)
class AdmissionDecision:
    admitted: bool
    code: AdmissionCode
    evicted: PhantomInfo | None = None
    incumbent_score: int | None = None


def find_weakest_index(phantoms: list[PhantomInfo]) -> int | None:
    """Index of the lowest score; ties go to the first one found."""
    if not phantoms:
        return None
    worst_index = 0
    worst_score = int(phantoms[0].score)
    for idx in range(1, len(phantoms)):
        score = int(phantoms[idx].score)
        if score < worst_score:
            worst_score = score
            worst_index = idx
    return worst_index


def find_spawn_occupant_index(phantoms: list[PhantomInfo], spawn_index: int) -> int | None:
    for idx, phantom in enumerate(phantoms):
        if int(phantom.spawn_index) == int(spawn_index):
            return idx
    return None


def record_attempt(meta: RoomMeta, player_id: str) -> None:
    meta.total_games_played = int(meta.total_games_played) + 1
    if player_id not in meta.players_history:
        meta.players_history.append(player_id)


def decide_admission(meta: RoomMeta, candidate: PhantomInfo, *, max_phantoms: int) -> AdmissionDecision:
    """Decide and apply the candidate's admission to `meta.active_phantoms`.

    Mutates only the phantom list; counters are handled by `record_attempt`.
    """

    phantoms = meta.active_phantoms

    occupant_index = find_spawn_occupant_index(phantoms, candidate.spawn_index)
    if occupant_index is not None:
        occupant = phantoms[occupant_index]
        if int(candidate.score) > int(occupant.score):
            phantoms[occupant_index] = candidate
            return AdmissionDecision(
                admitted=True,
                code="replaced_spawn",
                evicted=occupant,
                incumbent_score=int(occupant.score),
            )
        return AdmissionDecision(admitted=False, code="lost_spawn", incumbent_score=int(occupant.score))

    if len(phantoms) < int(max_phantoms):
        phantoms.append(candidate)
        return AdmissionDecision(admitted=True, code="admitted")

    weakest_index = find_weakest_index(phantoms)
    assert weakest_index is not None
    weakest = phantoms[weakest_index]
    if int(candidate.score) > int(weakest.score):
        del phantoms[weakest_index]
        phantoms.append(candidate)
        return AdmissionDecision(
            admitted=True,
            code="evicted_weakest",
            evicted=weakest,
            incumbent_score=int(weakest.score),
        )
    return AdmissionDecision(admitted=False, code="lost_capacity", incumbent_score=int(weakest.score))


def trim_to_capacity(meta: RoomMeta, *, max_phantoms: int) -> list[PhantomInfo]:
    """Evict the globally weakest phantoms until the room fits `max_phantoms`.

    Also drops later duplicates of an occupied spawn index. Returns the
    removed phantoms; an already-valid room is left untouched.
    """

    removed: list[PhantomInfo] = []
    seen_spawns: dict[int, int] = {}
    kept: list[PhantomInfo] = []
    for phantom in meta.active_phantoms:
        slot = int(phantom.spawn_index)
        prior = seen_spawns.get(slot)
        if prior is None:
            seen_spawns[slot] = len(kept)
            kept.append(phantom)
            continue
        # Two phantoms on one spawn point: keep the stronger, first on ties.
        if int(phantom.score) > int(kept[prior].score):
            removed.append(kept[prior])
            kept[prior] = phantom
        else:
            removed.append(phantom)
    while len(kept) > int(max_phantoms):
        weakest_index = find_weakest_index(kept)
        assert weakest_index is not None
        removed.append(kept.pop(weakest_index))
    if removed:
        meta.active_phantoms = kept
    return removed


def first_free_spawn_index(meta: RoomMeta, *, max_spawn_points: int) -> int | None:
    occupied = {int(phantom.spawn_index) for phantom in meta.active_phantoms}
    for index in range(int(max_spawn_points)):
        if index not in occupied:
            return index
    return None
