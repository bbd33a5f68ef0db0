"""
Rank fusion and post-fusion filtering.

Pure functions over ranked vector and text hit lists:
- reciprocal_rank_fusion: sum of 1/(k + rank) with confidence weighting
- weighted_fusion: normalized weighted sum of per-source scores
- select_fusion: RRF vs weighted decision from text match evidence
- dynamic_threshold / apply_quality_gate / quality rescoring

All outputs are sorted by descending score; ties keep first-seen order,
so identical inputs always produce identical rankings.

Dependencies: None
System role: Ranking core of hybrid retrieval
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from rag_pipeline.models.search import FusedHit, ScoredChunk, TextHit

logger = logging.getLogger(__name__)

FALLBACK_VECTOR_WEIGHT = 0.85
FALLBACK_TEXT_WEIGHT = 0.15


@dataclass(frozen=True)
class FusionPlan:
    """Fusion method and effective weights chosen for one query."""

    use_rrf: bool
    vector_weight: float
    text_weight: float
    auto_switched: bool
    has_real_text_matches: bool


def has_real_text_matches(text_hits: Sequence[TextHit]) -> bool:
    return any(hit.match_type != "token_fallback" for hit in text_hits)


def dynamic_threshold(
    base_threshold: float,
    has_text_matches: bool,
    min_with_text: float = 0.35,
    min_vector_only: float = 0.55,
) -> float:
    """Raise the vector threshold; more so when no text evidence exists."""
    if has_text_matches:
        return max(base_threshold, min_with_text)
    return max(base_threshold, min_vector_only)


def select_fusion(
    text_hits: Sequence[TextHit],
    use_rrf: bool,
    vector_weight: float,
    text_weight: float,
    min_text_results_for_rrf: int = 3,
    fallback_weights: tuple[float, float] = (FALLBACK_VECTOR_WEIGHT, FALLBACK_TEXT_WEIGHT),
    balanced_weight: float = 0.5,
) -> FusionPlan:
    """
    Decide between RRF and weighted fusion.

    With RRF requested, weak text evidence (only token fallback matches,
    no text hits, or fewer than ``min_text_results_for_rrf``) switches to
    weighted fusion with the vector-heavy fallback weights. With weighted
    fusion requested, weights become fallback or balanced depending on
    whether real text matches exist.
    """
    real_matches = has_real_text_matches(text_hits)
    text_count = len(text_hits)

    if use_rrf:
        if (text_count > 0 and not real_matches) or text_count < min_text_results_for_rrf:
            logger.debug(
                f"{__name__}:select_fusion - Weak text evidence ({text_count} hits, "
                f"real={real_matches}), switching from RRF to weighted"
            )
            return FusionPlan(False, fallback_weights[0], fallback_weights[1], True, real_matches)
        return FusionPlan(True, vector_weight, text_weight, False, real_matches)

    if text_count == 0 or not real_matches:
        return FusionPlan(False, fallback_weights[0], fallback_weights[1], False, real_matches)
    return FusionPlan(False, balanced_weight, balanced_weight, False, real_matches)


def reciprocal_rank_fusion(
    vector_hits: Sequence[ScoredChunk],
    text_hits: Sequence[TextHit],
    limit: int,
    k: int = 60,
    confidence_weighting: bool = True,
    confidence_boost: float = 1.2,
    confidence_penalty: float = 0.7,
) -> list[FusedHit]:
    """
    Reciprocal rank fusion over the vector and text lists.

    Each list contributes 1/(k + rank) with 1-based rank. With confidence
    weighting, vector-only candidates are scaled by ``confidence_penalty``,
    candidates in both lists by ``confidence_boost``; text-only keep 1.0.

    Args:
        vector_hits: Vector hits in rank order
        text_hits: Text hits in rank order
        limit: Results kept
        k: Rank constant

    Returns:
        list[FusedHit]: Top ``limit`` hits by confidence-weighted RRF score
    """
    entries: dict[Any, dict[str, Any]] = {}

    for rank, hit in enumerate(vector_hits, start=1):
        if hit.id in entries:
            continue
        entries[hit.id] = {
            "payload": hit.payload,
            "rrf": 1.0 / (k + rank),
            "vector_score": hit.score,
            "text_score": None,
            "method": "vector",
            "confidence": confidence_penalty if confidence_weighting else 1.0,
        }

    seen_text: set[Any] = set()
    for rank, hit in enumerate(text_hits, start=1):
        if hit.id in seen_text:
            continue
        seen_text.add(hit.id)
        contribution = 1.0 / (k + rank)
        entry = entries.get(hit.id)
        if entry is not None:
            entry["rrf"] += contribution
            entry["text_score"] = hit.score
            entry["method"] = "hybrid"
            entry["confidence"] = confidence_boost if confidence_weighting else 1.0
        else:
            entries[hit.id] = {
                "payload": hit.payload,
                "rrf": contribution,
                "vector_score": None,
                "text_score": hit.score,
                "method": "text",
                "confidence": 1.0,
            }

    fused = [
        FusedHit(
            id=point_id,
            score=entry["rrf"] * entry["confidence"],
            payload=entry["payload"],
            search_method=entry["method"],
            fusion_method="rrf",
            original_vector_score=entry["vector_score"],
            original_text_score=entry["text_score"],
            confidence=entry["confidence"],
            raw_rrf_score=entry["rrf"],
        )
        for point_id, entry in entries.items()
    ]
    fused.sort(key=lambda hit: hit.score, reverse=True)
    return fused[:limit]


def weighted_fusion(
    vector_hits: Sequence[ScoredChunk],
    text_hits: Sequence[TextHit],
    vector_weight: float,
    text_weight: float,
    limit: int,
) -> list[FusedHit]:
    """
    Weighted sum of per-source scores, weights normalized to sum to 1.

    Returns:
        list[FusedHit]: Top ``limit`` hits by weighted score
    """
    total = vector_weight + text_weight
    if total <= 0:
        vector_share, text_share = 0.5, 0.5
    else:
        vector_share, text_share = vector_weight / total, text_weight / total

    entries: dict[Any, dict[str, Any]] = {}
    for hit in vector_hits:
        if hit.id in entries:
            continue
        entries[hit.id] = {
            "payload": hit.payload,
            "vector": max(hit.score, 0.0) * vector_share,
            "text": 0.0,
            "vector_score": hit.score,
            "text_score": None,
            "method": "vector",
        }

    for hit in text_hits:
        contribution = max(hit.score, 0.0) * text_share
        entry = entries.get(hit.id)
        if entry is not None:
            if entry["text_score"] is None:
                entry["text"] = contribution
                entry["text_score"] = hit.score
                entry["method"] = "hybrid" if entry["vector_score"] is not None else "text"
        else:
            entries[hit.id] = {
                "payload": hit.payload,
                "vector": 0.0,
                "text": contribution,
                "vector_score": None,
                "text_score": hit.score,
                "method": "text",
            }

    fused = [
        FusedHit(
            id=point_id,
            score=entry["vector"] + entry["text"],
            payload=entry["payload"],
            search_method=entry["method"],
            fusion_method="weighted",
            original_vector_score=entry["vector_score"],
            original_text_score=entry["text_score"],
        )
        for point_id, entry in entries.items()
    ]
    fused.sort(key=lambda hit: hit.score, reverse=True)
    return fused[:limit]


def apply_quality_gate(
    hits: list[FusedHit],
    has_text_matches: bool,
    min_final_score: float = 0.008,
    min_vector_only_final_score: float = 0.010,
) -> list[FusedHit]:
    """Drop weak fused hits; vector-only hits face a stricter floor without text matches."""
    if not hits:
        return hits

    kept = []
    for hit in hits:
        if hit.score < min_final_score:
            continue
        if hit.search_method == "vector" and not has_text_matches and hit.score < min_vector_only_final_score:
            continue
        kept.append(hit)

    if len(kept) < len(hits):
        logger.debug(f"{__name__}:apply_quality_gate - Kept {len(kept)}/{len(hits)}")
    return kept


def apply_quality_filter(hits: list[ScoredChunk], min_quality: float = 0.4) -> list[ScoredChunk]:
    """Drop hits whose payload ``quality_score`` is below the minimum."""
    kept = []
    for hit in hits:
        quality = hit.payload.get("quality_score")
        if isinstance(quality, (int, float)) and quality < min_quality:
            continue
        kept.append(hit)
    return kept


def apply_quality_rescoring(hits: list[ScoredChunk], boost: float = 1.2) -> list[ScoredChunk]:
    """
    Rescale scores by payload quality and re-sort.

    score * (1 + (quality - 0.5) * (boost - 1)), capped at 1.0; hits
    without a quality score keep their score.
    """
    rescored = []
    for hit in hits:
        quality = hit.payload.get("quality_score")
        if isinstance(quality, (int, float)):
            factor = 1 + (quality - 0.5) * (boost - 1)
            rescored.append(hit.model_copy(update={"score": min(1.0, hit.score * factor)}))
        else:
            rescored.append(hit)
    rescored.sort(key=lambda hit: hit.score, reverse=True)
    return rescored
