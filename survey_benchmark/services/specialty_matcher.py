"""
Specialty Matching Service

Resolves differently spelled specialty labels from independent survey
providers onto one canonical taxonomy. Resolution runs in priority order and
stops at the first stage that reaches the caller's confidence threshold:

1. Exact: normalized label equals a mapping's standardized name, or a source
   specialty recorded for the same survey source (confidence 1.0)
2. Learned: a stored correction for the label, independent of survey source
   (confidence 1.0)
3. Synonym: the label and a candidate mapping both mention terms of the same
   synonym-table entry (confidence 0.9; critical care / intensivist 0.95)
4. Fuzzy: best of normalized string similarity, token Jaccard/overlap and
   containment across every standardized and source name

Below the threshold a label is unresolved and stays visible for manual
correction. The matcher is pure: it reads mappings and the learned store but
never writes either. Appending source specialties and persisting learned
corrections is done by the mapping service.
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from rapidfuzz import fuzz

from survey_benchmark.models import (
    MatchMethod,
    MatchResult,
    MatchSuggestion,
    SpecialtyMapping,
    UnmappedSpecialty,
)
from survey_benchmark.services.learned_mappings import LearnedMappingStore


# =============================================================================
# CONSTANTS - Synonym Table
# canonical term -> alternative spellings seen across survey providers
# =============================================================================

SPECIALTY_SYNONYMS: Dict[str, List[str]] = {
    'cardiology': ['heart', 'cardiac', 'cardiovascular'],
    'orthopedics': ['ortho', 'orthopedic', 'orthopaedic', 'orthopaedics'],
    'pediatrics': ['peds', 'pediatric', 'children'],
    'critical care': [
        'intensivist',
        'critical care medicine',
        'critical care/intensivist',
        'intensive care',
        'cc medicine',
        'cc/intensivist',
        'icu',
    ],
    'emergency medicine': ['emergency', 'er', 'ed'],
    'internal medicine': ['internist', 'internal med'],
    'obstetrics': ['ob/gyn', 'obgyn', 'obstetrics and gynecology', 'obstetrics & gynecology'],
    'anesthesiology': ['anesthesia', 'anesthetist'],
    'family medicine': ['family practice', 'family physician', 'family med'],
    'neurology': ['neurological', 'neuro'],
    'psychiatry': ['psychiatric', 'mental health'],
    'radiology': ['radiologist', 'imaging', 'diagnostic radiology'],
    'surgery': ['surgeon', 'surgical'],
}

CRITICAL_CARE_TERMS: Tuple[str, ...] = ('critical care', 'intensivist')

# =============================================================================
# CONSTANTS - Confidence Scores
# =============================================================================

EXACT_CONFIDENCE: float = 1.0
LEARNED_CONFIDENCE: float = 1.0
SYNONYM_CONFIDENCE: float = 0.9
CRITICAL_CARE_CONFIDENCE: float = 0.95
CONTAINMENT_CONFIDENCE: float = 0.85

# Token scoring accepts a pair when either bound is met
TOKEN_JACCARD_THRESHOLD: float = 0.6
TOKEN_OVERLAP_THRESHOLD: float = 0.8
TOKEN_MAX_CONFIDENCE: float = 0.95
MIN_TOKEN_LENGTH: int = 3

# Candidates offered for manual correction
SUGGESTION_FLOOR: float = 0.3
SUGGESTION_LIMIT: int = 5

_TOKEN_SPLIT = re.compile(r'[^a-z0-9]+')


# =============================================================================
# NORMALIZATION & SIMILARITY
# =============================================================================

def normalize_specialty_name(name: Optional[str]) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    if name is None:
        return ''
    return ' '.join(str(name).lower().split())


def tokenize_specialty(name: Optional[str]) -> Set[str]:
    """Alphanumeric tokens longer than two characters."""
    normalized = normalize_specialty_name(name)
    return {token for token in _TOKEN_SPLIT.split(normalized) if len(token) >= MIN_TOKEN_LENGTH}


def string_similarity(first: str, second: str) -> float:
    """Normalized Indel similarity of two labels in [0, 1]."""
    a = normalize_specialty_name(first)
    b = normalize_specialty_name(second)
    if not a or not b:
        return 0.0
    return fuzz.ratio(a, b) / 100.0


def token_similarity(first: str, second: str) -> float:
    """
    Token-level similarity.

    A pair matches when the Jaccard index reaches 0.6 or the shared tokens
    cover at least 80% of the smaller token set; matched pairs score the
    larger of the two ratios (capped below an exact match), unmatched pairs
    score the plain Jaccard index.
    """
    tokens_a = tokenize_specialty(first)
    tokens_b = tokenize_specialty(second)
    if not tokens_a or not tokens_b:
        return 0.0

    shared = len(tokens_a & tokens_b)
    if shared == 0:
        return 0.0

    jaccard = shared / len(tokens_a | tokens_b)
    overlap = shared / min(len(tokens_a), len(tokens_b))

    if jaccard >= TOKEN_JACCARD_THRESHOLD or overlap >= TOKEN_OVERLAP_THRESHOLD:
        return min(max(jaccard, overlap), TOKEN_MAX_CONFIDENCE)
    return jaccard


def _contains_term(text: str, term: str) -> bool:
    # Whole-word containment so short synonyms ('er', 'ed') do not hit inside words
    pattern = r'(?<![a-z0-9])' + re.escape(term) + r'(?![a-z0-9])'
    return re.search(pattern, text) is not None


def synonym_confidence(raw_name: str, candidate_name: str) -> float:
    """
    Confidence that two labels name the same specialty via the synonym table.

    Returns 0.0 when no synonym entry links them.
    """
    raw = normalize_specialty_name(raw_name)
    candidate = normalize_specialty_name(candidate_name)
    if not raw or not candidate:
        return 0.0

    raw_critical = any(_contains_term(raw, term) for term in CRITICAL_CARE_TERMS)
    candidate_critical = any(_contains_term(candidate, term) for term in CRITICAL_CARE_TERMS)
    if raw_critical and candidate_critical:
        return CRITICAL_CARE_CONFIDENCE

    for key, synonyms in SPECIALTY_SYNONYMS.items():
        terms = (key, *synonyms)
        if any(_contains_term(raw, term) for term in terms) and any(
            _contains_term(candidate, term) for term in terms
        ):
            return SYNONYM_CONFIDENCE
    return 0.0


def fuzzy_confidence(raw_name: str, candidate_name: str) -> float:
    """Best of string similarity, token similarity and containment."""
    raw = normalize_specialty_name(raw_name)
    candidate = normalize_specialty_name(candidate_name)
    if not raw or not candidate:
        return 0.0

    score = max(string_similarity(raw, candidate), token_similarity(raw, candidate))
    if raw != candidate and (raw in candidate or candidate in raw):
        score = max(score, CONTAINMENT_CONFIDENCE)
    return score


def _candidate_names(mapping: SpecialtyMapping) -> List[str]:
    names = [mapping.standardizedName]
    names.extend(source.specialty for source in mapping.sourceSpecialties)
    return names


# =============================================================================
# SPECIALTY INDEX (used by the row normalizer)
# =============================================================================

class SpecialtyIndex:
    """
    Fast label -> standardized name lookup built from the mapping set.

    Lookups try the (survey source, label) pair first, then standardized names,
    then the label under any source, then learned corrections.
    """

    def __init__(
        self,
        mappings: Sequence[SpecialtyMapping],
        learned: Optional[LearnedMappingStore] = None,
    ) -> None:
        self._by_source: Dict[Tuple[str, str], str] = {}
        self._by_name: Dict[str, str] = {}
        self._any_source: Dict[str, str] = {}
        self._standardized: Dict[str, str] = {}
        self._learned = learned

        for mapping in mappings:
            standardized = mapping.standardizedName
            self._standardized.setdefault(normalize_specialty_name(standardized), standardized)
            self._by_name.setdefault(normalize_specialty_name(standardized), standardized)
            for source in mapping.sourceSpecialties:
                key = source.key()
                self._by_source.setdefault(key, standardized)
                self._any_source.setdefault(key[1], standardized)

    def lookup(self, specialty: str, survey_source: str = '') -> Optional[str]:
        name = normalize_specialty_name(specialty)
        if not name:
            return None

        source_key = (normalize_specialty_name(survey_source), name)
        if source_key in self._by_source:
            return self._by_source[source_key]
        if name in self._by_name:
            return self._by_name[name]
        if name in self._any_source:
            return self._any_source[name]

        if self._learned is not None:
            corrected = self._learned.get(specialty)
            if corrected:
                return self._standardized.get(normalize_specialty_name(corrected), corrected)
        return None


# =============================================================================
# MATCHER
# =============================================================================

class SpecialtyMatcher:
    """
    Staged specialty resolver.

    Args:
        learned_store: Learned corrections consulted after exact matching.
            An empty store is used when omitted.
    """

    def __init__(self, learned_store: Optional[LearnedMappingStore] = None) -> None:
        self.learned_store = learned_store if learned_store is not None else LearnedMappingStore()

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def exact_match(
        self,
        raw_name: str,
        survey_source: str,
        mappings: Sequence[SpecialtyMapping],
    ) -> Optional[SpecialtyMapping]:
        name = normalize_specialty_name(raw_name)
        source = normalize_specialty_name(survey_source)
        if not name:
            return None

        for mapping in mappings:
            if normalize_specialty_name(mapping.standardizedName) == name:
                return mapping
            for source_specialty in mapping.sourceSpecialties:
                if source_specialty.key() == (source, name):
                    return mapping
        return None

    def learned_match(self, raw_name: str, mappings: Sequence[SpecialtyMapping]) -> Optional[str]:
        corrected = self.learned_store.get(raw_name)
        if not corrected:
            return None
        target = normalize_specialty_name(corrected)
        for mapping in mappings:
            if normalize_specialty_name(mapping.standardizedName) == target:
                return mapping.standardizedName
        return corrected

    def synonym_match(
        self,
        raw_name: str,
        mappings: Sequence[SpecialtyMapping],
    ) -> Tuple[Optional[SpecialtyMapping], float]:
        best_mapping: Optional[SpecialtyMapping] = None
        best_score = 0.0
        for mapping in mappings:
            score = max(synonym_confidence(raw_name, name) for name in _candidate_names(mapping))
            # Strict comparison keeps the first mapping on ties
            if score > best_score:
                best_mapping, best_score = mapping, score
        return best_mapping, best_score

    def fuzzy_match(
        self,
        raw_name: str,
        mappings: Sequence[SpecialtyMapping],
    ) -> Tuple[Optional[SpecialtyMapping], float]:
        best_mapping: Optional[SpecialtyMapping] = None
        best_score = 0.0
        for mapping in mappings:
            score = max(fuzzy_confidence(raw_name, name) for name in _candidate_names(mapping))
            if score > best_score:
                best_mapping, best_score = mapping, score
        return best_mapping, best_score

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def resolve(
        self,
        raw_name: str,
        survey_source: str,
        mappings: Sequence[SpecialtyMapping],
        confidence_threshold: float,
        use_fuzzy_matching: bool = True,
    ) -> MatchResult:
        """
        Resolve a raw specialty label to a standardized name.

        Args:
            raw_name: Specialty label as it appears in the survey
            survey_source: Survey provider the label comes from
            mappings: Current mapping set, in insertion order
            confidence_threshold: Minimum confidence to accept a match
            use_fuzzy_matching: Whether the fuzzy stage may run

        Returns:
            MatchResult; method is UNRESOLVED when no stage reached the
            threshold. An accepted result never has confidence below the
            threshold.
        """
        result = MatchResult(rawName=raw_name or '', surveySource=survey_source or '')
        if not normalize_specialty_name(raw_name):
            return result

        mapping = self.exact_match(raw_name, survey_source, mappings)
        if mapping is not None:
            return self._accept(result, mapping.standardizedName, EXACT_CONFIDENCE, MatchMethod.EXACT)

        learned = self.learned_match(raw_name, mappings)
        if learned:
            return self._accept(result, learned, LEARNED_CONFIDENCE, MatchMethod.LEARNED)

        mapping, score = self.synonym_match(raw_name, mappings)
        if mapping is not None and score >= confidence_threshold:
            return self._accept(result, mapping.standardizedName, score, MatchMethod.SYNONYM)

        if use_fuzzy_matching:
            mapping, score = self.fuzzy_match(raw_name, mappings)
            if mapping is not None and score > 0 and score >= confidence_threshold:
                return self._accept(result, mapping.standardizedName, score, MatchMethod.FUZZY)

        return result

    @staticmethod
    def _accept(result: MatchResult, name: str, confidence: float, method: MatchMethod) -> MatchResult:
        return result.model_copy(update={
            'standardizedName': name,
            'confidence': confidence,
            'method': method,
        })

    def suggest_matches(
        self,
        raw_name: str,
        mappings: Sequence[SpecialtyMapping],
        limit: int = SUGGESTION_LIMIT,
        floor: float = SUGGESTION_FLOOR,
    ) -> List[MatchSuggestion]:
        """Ranked candidate mappings for a label that needs manual correction."""
        if not normalize_specialty_name(raw_name):
            return []

        scored: List[Tuple[int, MatchSuggestion]] = []
        for position, mapping in enumerate(mappings):
            confidence = max(
                max(synonym_confidence(raw_name, name), fuzzy_confidence(raw_name, name))
                for name in _candidate_names(mapping)
            )
            if confidence > floor:
                scored.append((position, MatchSuggestion(
                    standardizedName=mapping.standardizedName,
                    confidence=confidence,
                )))

        scored.sort(key=lambda item: (-item[1].confidence, item[0]))
        return [suggestion for _, suggestion in scored[:limit]]


# =============================================================================
# MAPPING-SET HELPERS
# =============================================================================

def find_mapping(
    standardized_name: str,
    mappings: Sequence[SpecialtyMapping],
) -> Optional[SpecialtyMapping]:
    target = normalize_specialty_name(standardized_name)
    for mapping in mappings:
        if normalize_specialty_name(mapping.standardizedName) == target:
            return mapping
    return None


def expand_specialty(
    standardized_name: str,
    mappings: Sequence[SpecialtyMapping],
) -> Set[str]:
    """
    Normalized labels that should count as the given standardized specialty.

    Includes the standardized name itself and every source specialty of its
    mapping; an unknown name expands to itself.
    """
    name = normalize_specialty_name(standardized_name)
    if not name:
        return set()

    expanded = {name}
    mapping = find_mapping(standardized_name, mappings)
    if mapping is not None:
        for source in mapping.sourceSpecialties:
            for label in (source.specialty, source.originalName):
                normalized = normalize_specialty_name(label)
                if normalized:
                    expanded.add(normalized)
    return expanded


def mapped_names(mappings: Iterable[SpecialtyMapping]) -> Set[str]:
    """Every normalized standardized and source name across the mapping set."""
    names: Set[str] = set()
    for mapping in mappings:
        names.add(normalize_specialty_name(mapping.standardizedName))
        for source in mapping.sourceSpecialties:
            names.add(normalize_specialty_name(source.specialty))
    return names


def find_unmapped(
    specialty_counts: Dict[Tuple[str, str], int],
    mappings: Sequence[SpecialtyMapping],
) -> List[UnmappedSpecialty]:
    """
    Specialty labels no mapping covers.

    Args:
        specialty_counts: (survey source, raw label) -> number of rows
        mappings: Current mapping set

    Returns:
        One UnmappedSpecialty per (survey source, label), in input order
    """
    known = mapped_names(mappings)
    unmapped: List[UnmappedSpecialty] = []
    for (survey_source, specialty), count in specialty_counts.items():
        if not normalize_specialty_name(specialty):
            continue
        if normalize_specialty_name(specialty) in known:
            continue
        unmapped.append(UnmappedSpecialty(
            id=f"{survey_source}-{specialty}",
            name=specialty,
            surveySource=survey_source,
            frequency=count,
        ))
    return unmapped


__all__ = [
    'SPECIALTY_SYNONYMS',
    'normalize_specialty_name',
    'tokenize_specialty',
    'string_similarity',
    'token_similarity',
    'synonym_confidence',
    'fuzzy_confidence',
    'SpecialtyIndex',
    'SpecialtyMatcher',
    'find_mapping',
    'expand_specialty',
    'mapped_names',
    'find_unmapped',
]
