import logging
from typing import Callable, Dict, List, Optional

from spotcloud.crosscutting.metrics import MetricsCollector
from spotcloud.domain.entities import (
    CandidateTrack,
    ConversionMatch,
    MatchStatus,
    SourceTrack,
    quality_distribution,
)
from spotcloud.domain.normalization import (
    calculate_duration_similarity,
    calculate_string_similarity,
    clean_title,
    normalize_string,
)


logger = logging.getLogger(__name__)

SearchFunction = Callable[[str], List[CandidateTrack]]

# Score weights. Bonus terms overlap the base terms; with the bonus sizes below the maximum is 0.87.
TITLE_WEIGHT = 0.4
ARTIST_WEIGHT = 0.3
ARTIST_IN_TITLE_WEIGHT = 0.1
TITLE_IN_CANDIDATE_WEIGHT = 0.1
DURATION_WEIGHT = 0.1

ARTIST_IN_TITLE_BONUS = 0.3
TITLE_IN_CANDIDATE_BONUS = 0.4


class TrackMatcher:
    """Finds the best SoundCloud candidate for a Spotify track.

    Queries are tried most-specific first and the first query whose best
    candidate clears the acceptance threshold wins; later queries are not
    tried even if they might score higher.
    """

    def __init__(self,
                 acceptance_threshold: float = 0.3,
                 metrics: Optional[MetricsCollector] = None):
        """Initialize the matcher.

        Args:
            acceptance_threshold: A candidate must score strictly above this to be accepted
            metrics: Optional collector recording queries and search failures
        """
        self.acceptance_threshold = acceptance_threshold
        self.metrics = metrics

    def generate_search_queries(self, track: SourceTrack) -> List[str]:
        """Build search queries for a track, most specific first."""
        artist = track.primary_artist
        title = track.title or ""
        cleaned = clean_title(title)

        queries = [
            f"{artist} {title}",
            f"{artist} {cleaned}",
            f"{title} {artist}",
            cleaned,
            artist,
        ]
        # Join artefacts of empty parts ("Song " / " Song") are trimmed; empty queries are dropped.
        return [q.strip() for q in queries if q and q.strip()]

    def find_best_match(self, source_track: SourceTrack, search: SearchFunction) -> Optional[CandidateTrack]:
        """Search the target catalog and return the first accepted candidate.

        Args:
            source_track: Track to find a match for
            search: Callable mapping a free-text query to candidates

        Returns:
            The accepted candidate or None when no query produced one

        Raises:
            Exception: The last search error, only when every query failed
        """
        queries = self.generate_search_queries(source_track)
        last_error: Optional[Exception] = None
        failures = 0

        for query in queries:
            if self.metrics:
                self.metrics.record_query()
            try:
                results = search(query)
            except Exception as e:
                failures += 1
                last_error = e
                if self.metrics:
                    self.metrics.record_search_failure()
                logger.warning(f"Search failed for query '{query}': {e}")
                continue

            if not results:
                continue

            best = self.select_best_match(source_track, results)
            if best is not None:
                logger.debug(f"Accepted '{best.title}' by '{best.username}' for query '{query}'")
                return best

        if last_error is not None and failures == len(queries):
            raise last_error

        logger.info(f"No match found for '{source_track.label}'")
        return None

    def select_best_match(self, source_track: SourceTrack,
                          candidates: List[CandidateTrack]) -> Optional[CandidateTrack]:
        """Return the highest scoring candidate if it clears the threshold.

        Ties keep the earlier candidate.
        """
        if not candidates:
            return None

        best_match = candidates[0]
        best_score = self.calculate_match_score(source_track, best_match)
        for candidate in candidates[1:]:
            score = self.calculate_match_score(source_track, candidate)
            if score > best_score:
                best_match = candidate
                best_score = score

        if best_score > self.acceptance_threshold:
            return best_match
        return None

    def calculate_match_score(self, source_track: SourceTrack, candidate: CandidateTrack) -> float:
        """Weighted similarity between a source track and a candidate.

        Downstream thresholds (0.3 acceptance, 0.8/0.6/0.4 quality grades)
        are calibrated against this unnormalized sum.
        """
        source_title = normalize_string(source_track.title)
        source_artist = normalize_string(source_track.primary_artist)
        candidate_title = normalize_string(candidate.title)
        candidate_artist = normalize_string(candidate.username)

        title_score = calculate_string_similarity(source_title, candidate_title)
        artist_score = calculate_string_similarity(source_artist, candidate_artist)

        artist_in_title = ARTIST_IN_TITLE_BONUS if source_artist in candidate_title else 0.0
        title_in_candidate = TITLE_IN_CANDIDATE_BONUS if source_title in candidate_title else 0.0

        if source_track.duration_ms and candidate.duration_ms:
            duration_score = calculate_duration_similarity(source_track.duration_ms, candidate.duration_ms)
        else:
            duration_score = 0.0

        return (title_score * TITLE_WEIGHT
                + artist_score * ARTIST_WEIGHT
                + artist_in_title * ARTIST_IN_TITLE_WEIGHT
                + title_in_candidate * TITLE_IN_CANDIDATE_WEIGHT
                + duration_score * DURATION_WEIGHT)

    def get_match_statistics(self, matches: List[ConversionMatch]) -> Dict:
        """Get statistics about conversion matches.

        Returns:
            Dictionary with totals, per-status counts, match rate and quality distribution
        """
        quality = quality_distribution(matches)
        total = len(matches)
        if total == 0:
            return {
                "total": 0,
                "matched": 0,
                "not_found": 0,
                "error": 0,
                "match_rate": 0.0,
                "quality": quality,
            }

        matched = [m for m in matches if m.status == MatchStatus.MATCHED]
        return {
            "total": total,
            "matched": len(matched),
            "not_found": sum(1 for m in matches if m.status == MatchStatus.NOT_FOUND),
            "error": sum(1 for m in matches if m.status == MatchStatus.ERROR),
            "match_rate": len(matched) / total,
            "quality": quality,
        }
