"""Live objects and the state-tree codec.

Live objects are observable dict/list trees; the codec turns them into
tagged structural snapshots and back.
"""

from pyodb.observable.codec import from_state_tree, to_plain, to_state_tree
from pyodb.observable.tracked import (
    LiveObject,
    Mutation,
    MutationKind,
    ObservedDict,
    ObservedList,
    Observer,
    observe,
)

__all__ = [
    "LiveObject",
    "Mutation",
    "MutationKind",
    "ObservedDict",
    "ObservedList",
    "Observer",
    "from_state_tree",
    "observe",
    "to_plain",
    "to_state_tree",
]
