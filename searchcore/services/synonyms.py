"""Static synonym table and additive token expansion."""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

SYNONYMS: Dict[str, Sequence[str]] = {
    "pic": ("picture", "image", "photo"),
    "picture": ("pic", "image", "photo"),
    "photo": ("picture", "image", "pic"),
    "movie": ("film", "cinema"),
    "film": ("movie", "cinema"),
    "song": ("music", "track"),
    "music": ("song", "track"),
    "artist": ("musician", "singer"),
    "musician": ("artist", "singer"),
    "singer": ("artist", "musician"),
    "actor": ("actress", "performer"),
    "actress": ("actor", "performer"),
    "book": ("novel", "publication"),
    "novel": ("book", "publication"),
}


class SynonymExpander:
    """
    Expands a token list with synonyms from a static table.

    Expansion follows the table to its closure, so expanding an expanded list
    adds nothing even when an entry is missing its reverse mapping.
    """

    def __init__(self, table: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self.table = dict(SYNONYMS if table is None else table)

    def expand(self, tokens: Iterable[str]) -> List[str]:
        expanded = list(dict.fromkeys(tokens))
        seen = set(expanded)
        i = 0
        while i < len(expanded):
            for synonym in self.table.get(expanded[i], ()):
                if synonym not in seen:
                    seen.add(synonym)
                    expanded.append(synonym)
            i += 1
        return expanded
