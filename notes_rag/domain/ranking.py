from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .errors import ValidationError
from .models import FusedScore


def _rank_scores(ids: Sequence[str], weight: float) -> Dict[str, float]:
    n = len(ids)
    scores: Dict[str, float] = {}
    for i, id_ in enumerate(ids):
        # first occurrence wins if a ranker repeats an ID
        if id_ not in scores:
            scores[id_] = (1.0 - i / n) * weight
    return scores


def fuse_rankings(
    semantic_ids: Sequence[str],
    lexical_ids: Sequence[str],
    weight: float = 0.7,
    limit: Optional[int] = None,
) -> List[FusedScore]:
    """Merge two best-first ID rankings into one weighted ordering.

    Each list is scored by rank position rather than by its native score, so
    cosine similarities and full-text relevance never need to be calibrated
    against each other. Position ``i`` in a list of size ``N`` scores
    ``1 - i/N``, scaled by ``weight`` for the semantic list and ``1 - weight``
    for the lexical one. IDs missing from a list get nothing from it.

    Args:
        semantic_ids: Semantic ranking, best first.
        lexical_ids: Lexical ranking, best first.
        weight: Semantic contribution in ``[0, 1]``.
        limit: Truncate to this many entries; ``None`` keeps all.

    Returns:
        List[FusedScore]: Sorted by descending total; ties keep semantic-first
        union order.

    Raises:
        ValidationError: When ``weight`` is outside ``[0, 1]`` or ``limit`` is negative.
    """
    if not 0.0 <= weight <= 1.0:
        raise ValidationError(f"Semantic weight must be within [0, 1], got {weight}")
    if limit is not None and limit < 0:
        raise ValidationError(f"Limit must be non-negative, got {limit}")

    semantic = _rank_scores(semantic_ids, weight) if semantic_ids else {}
    lexical = _rank_scores(lexical_ids, 1.0 - weight) if lexical_ids else {}

    order: List[str] = list(semantic)
    order.extend(id_ for id_ in lexical if id_ not in semantic)

    fused = [FusedScore(id=id_, semantic=semantic.get(id_, 0.0), keyword=lexical.get(id_, 0.0)) for id_ in order]
    fused.sort(key=lambda f: f.total, reverse=True)
    return fused if limit is None else fused[:limit]
