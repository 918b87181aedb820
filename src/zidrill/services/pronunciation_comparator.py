"""Compare a learner's pinyin answer against the accepted pronunciations of a word."""
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from zidrill.config import ComparisonSettings
from zidrill.models.review_models import NEUTRAL_TONE, Syllable
from zidrill.services.syllable_parser import parse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonOptions:
    """How strictly tones are checked."""
    enforce_tone: bool
    allow_neutral_mismatch: bool = True

    @classmethod
    def from_settings(cls, comparison: ComparisonSettings) -> "ComparisonOptions":
        return cls(
            enforce_tone=comparison.enforce_tone,
            allow_neutral_mismatch=comparison.allow_neutral_mismatch,
        )


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of a pronunciation check."""
    match: bool
    letters_match: bool
    tone_mismatch: bool
    parsed_input: Tuple[Syllable, ...]
    parsed_target: Tuple[Syllable, ...]
    normalized_target: str  # the accepted pronunciation that lined up, "" if none
    mismatched_positions: Tuple[int, ...] = ()


def candidate_pronunciations(target) -> List[str]:
    """Primary pronunciation first, then the alternates in their stored order."""
    candidates = [target.pronunciation]
    candidates.extend(target.alternate_pronunciations or ())
    return [candidate for candidate in candidates if candidate]


def letters_match(answer: Sequence[Syllable], expected: Sequence[Syllable]) -> bool:
    """Same syllable count and the same letters at every position."""
    if len(answer) != len(expected):
        return False
    return all(a.letters == e.letters for a, e in zip(answer, expected))


def tone_mismatches(
    answer: Sequence[Syllable],
    expected: Sequence[Syllable],
    allow_neutral_mismatch: bool = True,
) -> Tuple[int, ...]:
    """Positions whose tones disagree."""
    positions = []
    for index, (given, wanted) in enumerate(zip(answer, expected)):
        if allow_neutral_mismatch and NEUTRAL_TONE in (given.tone, wanted.tone):
            continue
        if given.tone != wanted.tone:
            positions.append(index)
    return tuple(positions)


def compare(answer: str, target, options: ComparisonOptions) -> ComparisonResult:
    """Check ``answer`` against ``target``'s pronunciation and alternates.

    The first candidate whose letters line up decides the result, even if its
    tones are wrong and a later candidate would have matched them.
    ``target`` is anything with ``pronunciation`` and
    ``alternate_pronunciations`` attributes.
    """
    parsed_input = tuple(parse(answer))

    if parsed_input:
        for candidate in candidate_pronunciations(target):
            parsed_target = tuple(parse(candidate))
            if not letters_match(parsed_input, parsed_target):
                continue

            mismatched = tone_mismatches(
                parsed_input, parsed_target, options.allow_neutral_mismatch
            )
            tone_mismatch = bool(mismatched)
            match = not tone_mismatch if options.enforce_tone else True
            logger.debug(
                "Answer %r lined up with %r (tone mismatch at %s)",
                answer, candidate, list(mismatched),
            )
            return ComparisonResult(
                match=match,
                letters_match=True,
                tone_mismatch=tone_mismatch,
                parsed_input=parsed_input,
                parsed_target=parsed_target,
                normalized_target=candidate,
                mismatched_positions=mismatched,
            )

    return ComparisonResult(
        match=False,
        letters_match=False,
        tone_mismatch=False,
        parsed_input=parsed_input,
        parsed_target=(),
        normalized_target="",
    )
