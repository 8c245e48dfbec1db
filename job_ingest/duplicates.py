"""In-memory duplicate removal: exact by link, then fuzzy by title and company."""

from __future__ import annotations

from typing import Iterable

from .models import JobOffer

SIMILARITY_THRESHOLD = 0.8


def _tokens(text: str | None) -> frozenset[str]:
    return frozenset((text or "").lower().split())


def jaccard_similarity(a: str | None, b: str | None) -> float:
    """Jaccard index over lowercase whitespace tokens; 0.0 for an empty union."""
    return _jaccard(_tokens(a), _tokens(b))


def _jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    union = len(left | right)
    if union == 0:
        return 0.0
    return len(left & right) / union


def _size_bound_passes(left: frozenset[str], right: frozenset[str]) -> bool:
    # |A ∩ B| / |A ∪ B| <= min(|A|, |B|) / max(|A|, |B|)
    small, large = sorted((len(left), len(right)))
    return large > 0 and small / large > SIMILARITY_THRESHOLD


class DuplicateDetector:
    """Deterministic, order-preserving duplicate removal.

    Stage 1 keeps the first offer per link. Stage 2 compares every pair of
    survivors and drops the later one when the titles (and companies, when
    both are present) are more than 80% similar. Stage 2 is O(n^2) in the
    number of stage 1 survivors; run volumes are bounded by sources x cap.
    """

    def remove_duplicates(self, offers: Iterable[JobOffer]) -> list[JobOffer]:
        return self._remove_fuzzy(self._remove_exact(offers))

    @staticmethod
    def _remove_exact(offers: Iterable[JobOffer]) -> list[JobOffer]:
        seen: set[str] = set()
        unique: list[JobOffer] = []
        for offer in offers:
            if offer.link in seen:
                continue
            seen.add(offer.link)
            unique.append(offer)
        return unique

    @staticmethod
    def _remove_fuzzy(offers: list[JobOffer]) -> list[JobOffer]:
        titles = [_tokens(o.title) for o in offers]
        companies = [_tokens(o.company) for o in offers]
        dropped: set[int] = set()

        for i in range(len(offers)):
            if i in dropped:
                continue
            for j in range(i + 1, len(offers)):
                if j in dropped:
                    continue
                if not _size_bound_passes(titles[i], titles[j]):
                    continue
                if _jaccard(titles[i], titles[j]) <= SIMILARITY_THRESHOLD:
                    continue
                if not companies[i] or not companies[j] or (
                    _jaccard(companies[i], companies[j]) > SIMILARITY_THRESHOLD
                ):
                    dropped.add(j)

        return [o for idx, o in enumerate(offers) if idx not in dropped]
