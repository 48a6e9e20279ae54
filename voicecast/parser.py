"""Parse screenplay-style script text into speaker-attributed dialogue units.

Speaker cues are recognised line by line:

    **ALICE**: Hello there.     (bold form)
    BOB: Hi.                    (bare form)

A name starts with an uppercase letter A-Z and continues with at least one
uppercase letter or space. Everything after a cue, up to the next cue or the
end of the text, is that speaker's dialogue.
"""

import re

from voicecast.constants import MAX_CHUNK_CHARS
from voicecast.models import DialogueUnit, ParseResult, unit_id

SCANNING_FOR_CUE = "scanning_for_cue"
IN_DIALOGUE = "in_dialogue"

BOLD = "bold"
BARE = "bare"

# Inline stage direction: *waves* or **waves**
_STAGE_DIRECTION_RE = re.compile(r"\*\*([^*]+)\*\*|\*([^*]+)\*")

# A sentence and its closing punctuation, or a trailing unpunctuated fragment
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")


def _is_name(candidate: str) -> bool:
    if len(candidate) < 2 or not "A" <= candidate[0] <= "Z":
        return False
    return all("A" <= ch <= "Z" or ch == " " for ch in candidate[1:])


def match_cue(line: str) -> tuple[str, str, str] | None:
    """Match a speaker cue at the start of a line.

    Returns (form, name, rest_of_line) or None. The bold form is tried first.
    """
    line = line.strip()

    if line.startswith("**"):
        close = line.find("**:", 2)
        if close != -1 and _is_name(line[2:close]):
            return BOLD, line[2:close].strip(), line[close + 3:].strip()
        return None

    colon = line.find(":")
    if colon != -1 and _is_name(line[:colon]):
        return BARE, line[:colon].strip(), line[colon + 1:].strip()
    return None


def detect_speakers(text: str) -> list[str]:
    """Return unique speaker names found in the text.

    Bold-form names come first, then bare-form names, each in document order.
    A name matched by both forms appears once.
    """
    bold, bare = [], []
    for line in (text or "").splitlines():
        cue = match_cue(line)
        if cue is None:
            continue
        form, name, _ = cue
        (bold if form == BOLD else bare).append(name)

    speakers = []
    for name in bold + bare:
        if name not in speakers:
            speakers.append(name)
    return speakers


def extract_dialogues(text: str) -> list[DialogueUnit]:
    """Split the text into dialogue units, one per speaker cue.

    Continuation lines are joined with single spaces; blank lines are skipped.
    Text before the first cue is ignored and cues with no dialogue produce no
    unit.
    """
    units = []
    state = SCANNING_FOR_CUE
    speaker = None
    parts = []

    def close_segment():
        segment = " ".join(parts).strip()
        if segment:
            index = len(units)
            units.append(DialogueUnit(
                id=unit_id(index, speaker),
                speaker=speaker,
                text=segment,
                original_index=index,
            ))

    for raw_line in (text or "").splitlines():
        cue = match_cue(raw_line)
        if cue is not None:
            if state == IN_DIALOGUE:
                close_segment()
            _, speaker, rest = cue
            parts = [rest] if rest else []
            state = IN_DIALOGUE
            continue

        line = raw_line.strip()
        if state == IN_DIALOGUE and line:
            parts.append(line)

    # End of text closes the final segment
    if state == IN_DIALOGUE:
        close_segment()

    return units


def clean_dialogue(text: str) -> tuple[str, list[str]]:
    """Strip *stage directions* from a dialogue segment.

    Returns (cleaned_text, removed_directions). Both *single* and **double**
    markers delimit a direction. Spans are removed non-greedily and do not
    nest; an unmatched "*" is left in place.
    """
    removed = []

    def _strip(match):
        removed.append(match.group(1) or match.group(2))
        return " "

    cleaned = _STAGE_DIRECTION_RE.sub(_strip, text or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned, removed


def _split_words(text: str, max_chars: int) -> list[str]:
    chunks = []
    current = ""
    for word in text.split():
        while len(word) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            chunks.append(current)
            current = word
    if current:
        chunks.append(current)
    return chunks


def chunk_dialogue(text: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Split text into pieces of at most max_chars for synthesis.

    Pieces break at sentence ends where possible. A single sentence longer
    than max_chars is split between words, and a single word longer than
    max_chars is cut. Text that already fits comes back as one piece.
    """
    text = (text or "").strip()
    if not text:
        return []
    if len(text) <= max_chars:
        return [text]

    sentences = [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()] or [text]
    chunks = []
    current = ""
    for sentence in sentences:
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                chunks.append(current)
            current = sentence
    if current:
        chunks.append(current)

    pieces = []
    for chunk in chunks:
        pieces.extend([chunk] if len(chunk) <= max_chars else _split_words(chunk, max_chars))
    return pieces


def script_stats(dialogues: list[DialogueUnit]) -> dict:
    """Per-script statistics computed over cleaned dialogue text."""
    breakdown = {}
    total_chars = 0
    total_directions = 0

    for unit in dialogues:
        cleaned, removed = clean_dialogue(unit.text)
        total_chars += len(cleaned)
        total_directions += len(removed)
        entry = breakdown.setdefault(unit.speaker, {"dialogue_count": 0, "character_count": 0})
        entry["dialogue_count"] += 1
        entry["character_count"] += len(cleaned)

    for entry in breakdown.values():
        entry["percentage"] = round(entry["character_count"] / total_chars * 100) if total_chars else 0

    return {
        "total_speakers": len(breakdown),
        "total_dialogues": len(dialogues),
        "total_characters": total_chars,
        "average_dialogue_length": round(total_chars / len(dialogues)) if dialogues else 0,
        "total_stage_directions": total_directions,
        "speaker_breakdown": breakdown,
    }


def parse_script(text: str) -> ParseResult:
    """Parse a full script into speakers, dialogue units and statistics."""
    text = text or ""
    dialogues = extract_dialogues(text)
    return ParseResult(
        speakers=detect_speakers(text),
        dialogues=dialogues,
        total_characters=len(text),
        stats=script_stats(dialogues),
    )
