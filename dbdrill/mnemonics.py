"""
Mnemonic assignment

Gives each label of a picker a single character the user can press to
select it directly. Assignments are recomputed every time the set of
visible labels changes; nothing is remembered between calls.
"""

from typing import Iterable, NamedTuple, Optional, Sequence

STRATEGIES = ("greedy", "word_start")

_VOWELS = set("aeiou")


class Mnemonic(NamedTuple):
    position: int  # index of the highlighted character in the label
    char: str  # lower-case key that selects the label


def _greedy_candidates(label: str) -> Iterable[int]:
    return (i for i, ch in enumerate(label) if ch.isalnum())


def _word_start_candidates(label: str) -> Iterable[int]:
    word_starts = []
    previous_alnum = False
    for i, ch in enumerate(label):
        if ch.isalnum() and not previous_alnum:
            word_starts.append(i)
        previous_alnum = ch.isalnum()
    consonants = [i for i, ch in enumerate(label) if ch.isalpha() and ch.lower() not in _VOWELS]
    return word_starts + consonants + list(_greedy_candidates(label))


def assign_mnemonics(
    labels: Sequence[str],
    reserved: Iterable[str] = (),
    strategy: str = "greedy",
) -> list:
    """
    Assign one character per label, first label first.

    greedy: the first letter or digit of the label not yet taken by an
    earlier label. word_start: prefer word initials, then consonants, then
    any letter or digit. Characters in reserved are never assigned. A label
    whose characters are all taken gets None.
    """
    if strategy == "greedy":
        candidates = _greedy_candidates
    elif strategy == "word_start":
        candidates = _word_start_candidates
    else:
        raise ValueError(f"unknown mnemonic strategy '{strategy}' (expected one of {', '.join(STRATEGIES)})")

    taken = {ch.lower() for ch in reserved}
    result: list[Optional[Mnemonic]] = []

    for label in labels:
        assigned = None
        for position in candidates(label):
            char = label[position].lower()
            if char in taken:
                continue
            taken.add(char)
            assigned = Mnemonic(position, char)
            break
        result.append(assigned)

    return result


def mnemonic_index(assignments: Sequence[Optional[Mnemonic]]) -> dict:
    """Map each assigned character to the index of its label."""
    return {m.char: index for index, m in enumerate(assignments) if m is not None}
