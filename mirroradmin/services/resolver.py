"""
Identifier resolution.

Commands accept any substring of a mirror identifier. A query must designate
exactly one mirror: the resolver never guesses between several candidates.
"""
from typing import List

from mirroradmin.core.exceptions import AmbiguousTarget, NoMatch, NothingToMatch
from mirroradmin.core.store import MetadataStore


async def match(store: MetadataStore, query: str) -> List[str]:
    """Return every identifier containing ``query``, in list order."""
    if not query:
        raise NothingToMatch()
    return [identifier for identifier in await store.mirror_ids() if query in identifier]


async def resolve(store: MetadataStore, query: str) -> str:
    """Return the single identifier matching ``query``.

    Raises NoMatch when nothing matches and AmbiguousTarget, listing the
    candidates, when more than one identifier does.
    """
    candidates = await match(store, query)
    if not candidates:
        raise NoMatch(query)
    if len(candidates) > 1:
        raise AmbiguousTarget(query, candidates)
    return candidates[0]
