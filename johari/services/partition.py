# johari/services/partition.py
from typing import AbstractSet, Iterable, List, Sequence, Set

from johari.models.session import FeedbackRecord
from johari.models.window import Partition


def union_selections(records: Iterable[FeedbackRecord]) -> Set[str]:
    """Folds the selections of every feedback record into one set."""
    peers: Set[str] = set()
    for record in records:
        peers.update(record.selections)
    return peers


def in_vocabulary_order(vocabulary: Sequence[str], selections: AbstractSet[str]) -> List[str]:
    return [token for token in vocabulary if token in selections]


def compute_partition(
    vocabulary: Sequence[str],
    self_selections: AbstractSet[str],
    peer_selections: AbstractSet[str],
) -> Partition:
    """
    Splits the vocabulary into the four Johari quadrants.

    Every quadrant is a filter over `vocabulary`, so the output keeps its order
    and tokens outside the vocabulary never appear in any quadrant.
    """
    arena: List[str] = []
    blind_spot: List[str] = []
    facade: List[str] = []
    unknown: List[str] = []

    for token in vocabulary:
        known_to_self = token in self_selections
        known_to_peers = token in peer_selections
        if known_to_self and known_to_peers:
            arena.append(token)
        elif known_to_self:
            facade.append(token)
        elif known_to_peers:
            blind_spot.append(token)
        else:
            unknown.append(token)

    return Partition(arena=arena, blind_spot=blind_spot, facade=facade, unknown=unknown)
