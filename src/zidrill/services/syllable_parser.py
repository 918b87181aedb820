"""Pinyin syllable parsing and tone notation conversion.

Input may use tone marks ("nǐ hǎo"), trailing tone digits ("ni3 hao3", with
0 and 5 both meaning neutral), no tone at all, or any mix of these.
Everything here is pure and never raises on malformed input.
"""
import re
import unicodedata
from typing import List, Optional

from zidrill.models.review_models import NEUTRAL_TONE, Syllable

# Combining marks (NFD) -> tone number
COMBINING_TONE_MARKS = {
    "\u0304": 1,  # macron
    "\u0301": 2,  # acute
    "\u030c": 3,  # caron
    "\u0300": 4,  # grave
}
TONE_TO_COMBINING = {tone: mark for mark, tone in COMBINING_TONE_MARKS.items()}
DIAERESIS = "\u0308"

DIGIT_TONES = {"1": 1, "2": 2, "3": 3, "4": 4, "5": 5, "0": 5}

SEPARATORS = frozenset(" \t\n\r-·•.,;:'’‘")

# Consonants a syllable can start with (y and w included)
INITIAL_CONSONANTS = frozenset("bpmfdtnlgkhjqxzcsryw")
VOWELS = frozenset("aeiouv")
# Never open a syllable unless a vowel follows them
NASAL_OR_RETROFLEX = frozenset("nmr")
# "h" after these belongs to zh/ch/sh
DIGRAPH_PREFIXES = frozenset("csz")


def should_start_new_syllable(
    last_letter: Optional[str],
    tone_resolved: bool,
    letter: str,
    following: Optional[str],
) -> bool:
    """Decide whether ``letter`` opens a new syllable inside an unseparated run.

    ``last_letter`` is the last letter already in the buffer, ``following`` the
    character right after ``letter`` (None at the end of input).
    """
    if last_letter is None or not tone_resolved:
        return False
    if letter not in INITIAL_CONSONANTS:
        return False
    if letter == "h" and last_letter in DIGRAPH_PREFIXES:
        return False
    followed_by_vowel = following is not None and following in VOWELS
    if letter in NASAL_OR_RETROFLEX:
        return followed_by_vowel
    if letter == "g" and last_letter == "n":
        return followed_by_vowel
    return True


class _SyllableScanner:
    """Finite-state scanner turning normalized text into syllables."""

    def __init__(self, text: str):
        self.chars = unicodedata.normalize("NFD", text.lower())
        self.index = 0
        self.letters: List[str] = []
        self.pending_tone: Optional[int] = None
        self.last_letter: Optional[str] = None
        self.syllables: List[Syllable] = []

    def _peek(self, offset: int = 1) -> Optional[str]:
        position = self.index + offset
        if position < len(self.chars):
            return self.chars[position]
        return None

    def _flush(self) -> None:
        if self.letters:
            tone = self.pending_tone if self.pending_tone is not None else NEUTRAL_TONE
            self.syllables.append(Syllable("".join(self.letters), tone))
        self.letters = []
        self.pending_tone = None
        self.last_letter = None

    def _append(self, letter: str) -> None:
        self.letters.append(letter)
        self.last_letter = letter

    def _scan_letter(self, char: str) -> None:
        if char == "u" and self._peek() == ":":
            char = "v"
            self.index += 1  # consume the colon
        following = self._peek()
        if following == "u" and self._peek(2) == ":":
            following = "v"
        if should_start_new_syllable(
            self.last_letter, self.pending_tone is not None, char, following
        ):
            self._flush()
        self._append(char)

    def scan(self) -> List[Syllable]:
        while self.index < len(self.chars):
            char = self.chars[self.index]
            if "a" <= char <= "z":
                self._scan_letter(char)
            elif char in COMBINING_TONE_MARKS:
                if self.letters:
                    self.pending_tone = COMBINING_TONE_MARKS[char]
            elif char == DIAERESIS:
                if self.last_letter == "u":
                    self.letters[-1] = "v"
                    self.last_letter = "v"
            elif char in DIGIT_TONES:
                if self.letters:
                    self.pending_tone = DIGIT_TONES[char]
                self._flush()
            elif char in SEPARATORS:
                self._flush()
            # anything else (hanzi, digits 6-9, symbols) is skipped
            self.index += 1
        self._flush()
        return self.syllables


def parse(text: str) -> List[Syllable]:
    """Parse pinyin in any notation into syllables.

    >>> parse("bàba")
    [Syllable(letters='ba', tone=4), Syllable(letters='ba', tone=5)]
    """
    if not text:
        return []
    return _SyllableScanner(text).scan()


def to_numeric(text: str) -> str:
    """Normalize to space separated digit notation, neutral tone without digit."""
    return " ".join(str(syllable) for syllable in parse(text))


def strip_tones(text: str) -> str:
    """Letters of every syllable, space separated."""
    return " ".join(syllable.letters for syllable in parse(text))


def _toned_vowels() -> str:
    toned = []
    for base in "aeiouüAEIOUÜ":
        for mark in COMBINING_TONE_MARKS:
            toned.append(unicodedata.normalize("NFC", base + mark))
    return "".join(toned)


_SEGMENT = re.compile(
    "((?:[uU]:|[a-zA-ZüÜ" + re.escape(_toned_vowels()) + "])+)([0-5]?)"
)


def _strip_marks(segment: str) -> tuple:
    """Return (segment without tone marks, tone found or None)."""
    tone = None
    base = []
    for char in unicodedata.normalize("NFD", segment):
        if char in COMBINING_TONE_MARKS:
            tone = COMBINING_TONE_MARKS[char]
        else:
            base.append(char)
    return unicodedata.normalize("NFC", "".join(base)), tone


def _mark_position(segment: str) -> int:
    lower = segment.lower()
    for vowel in ("a", "e"):
        if vowel in lower:
            return lower.index(vowel)
    if "ou" in lower:
        return lower.index("ou")
    for position in range(len(lower) - 1, -1, -1):
        if lower[position] in "aeiouü":
            return position
    return len(lower) - 1


def _apply_tone(segment: str, tone: int) -> str:
    if tone == NEUTRAL_TONE or not segment:
        return segment
    position = _mark_position(segment)
    marked = segment[position] + TONE_TO_COMBINING[tone]
    return segment[:position] + unicodedata.normalize("NFC", marked) + segment[position + 1:]


def _last_syllable_start(chars: str) -> int:
    """Index in NFD ``chars`` where the final syllable of a marked run begins."""
    start = 0
    last_letter = None
    tone_resolved = False
    for index, char in enumerate(chars):
        if char in COMBINING_TONE_MARKS:
            tone_resolved = last_letter is not None
            continue
        letter = char.lower()
        if not "a" <= letter <= "z":
            continue
        following = chars[index + 1].lower() if index + 1 < len(chars) else None
        if should_start_new_syllable(last_letter, tone_resolved, letter, following):
            start = index
            tone_resolved = False
        last_letter = letter
    return start


def _convert_segment(match: "re.Match[str]") -> str:
    body, digit = match.group(1), match.group(2)
    body = (
        body.replace("u:", "ü").replace("U:", "Ü").replace("v", "ü").replace("V", "Ü")
    )
    if not digit:
        # Already in display form (or toneless); several marks may be present.
        return body
    # "nǐhao3": the digit only belongs to the last syllable
    chars = unicodedata.normalize("NFD", body)
    start = _last_syllable_start(chars)
    head = unicodedata.normalize("NFC", chars[:start])
    base, _existing = _strip_marks(chars[start:])
    return head + _apply_tone(base, DIGIT_TONES[digit])


def to_diacritic(text: str) -> str:
    """Render digit-toned pinyin with tone marks.

    Letter case, spacing and punctuation are kept as they are.

    >>> to_diacritic("nv3 peng2you0")
    'nǚ péngyou'
    """
    if not text:
        return ""
    return _SEGMENT.sub(_convert_segment, unicodedata.normalize("NFC", text))


# Name used by the quiz front end
convert_numeric_to_tone_marks = to_diacritic
