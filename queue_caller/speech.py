"""Turn ticket numbers and counter labels into Indonesian speech text.

Pure functions, no state. The text-to-speech engine reads whatever we give it,
so tickets like "A007" must be spelled out ("A nol nol tujuh") or the engine
will try to pronounce them as a word.
"""

from __future__ import annotations

import re

# Largest number number_to_words accepts. Ticket and counter numbers are far
# below this; anything bigger is a data error.
MAX_SPOKEN_NUMBER = 999_999

DIGIT_WORDS = ("nol", "satu", "dua", "tiga", "empat", "lima", "enam", "tujuh", "delapan", "sembilan")

_TICKET = re.compile(r"^([A-Za-z]+)(\d+)$")
_LABEL_SUFFIX = re.compile(r"^(?P<head>.*\s)?(?P<letters>[A-Za-z]{0,2}?)(?P<digits>\d+)$")


def number_to_words(n: int) -> str:
    """Spell a non-negative integer in Indonesian.

    >>> number_to_words(21)
    'dua puluh satu'
    >>> number_to_words(1100)
    'seribu seratus'
    """
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError(f"expected int, got {type(n).__name__}")
    if n < 0 or n > MAX_SPOKEN_NUMBER:
        raise ValueError(f"{n} is outside 0..{MAX_SPOKEN_NUMBER}")
    if n == 0:
        return DIGIT_WORDS[0]
    return _spell(n)


def _spell(n: int) -> str:
    # n >= 1 here; every branch recurses on a strictly smaller value.
    if n < 10:
        return DIGIT_WORDS[n]
    if n == 10:
        return "sepuluh"
    if n == 11:
        return "sebelas"
    if n < 20:
        return f"{DIGIT_WORDS[n - 10]} belas"
    if n < 100:
        return _join(f"{DIGIT_WORDS[n // 10]} puluh", n % 10)
    if n < 200:
        return _join("seratus", n - 100)
    if n < 1000:
        return _join(f"{DIGIT_WORDS[n // 100]} ratus", n % 100)
    if n < 2000:
        return _join("seribu", n - 1000)
    return _join(f"{_spell(n // 1000)} ribu", n % 1000)


def _join(head: str, rest: int) -> str:
    if rest == 0:
        return head
    return f"{head} {_spell(rest)}"


def spell_letters(letters: str) -> str:
    return " ".join(letters.upper())


def spell_digits(digits: str) -> str:
    return " ".join(DIGIT_WORDS[int(d)] for d in digits)


def format_ticket_number(ticket_number: str) -> str:
    """Spell "A007" as "A nol nol tujuh". Other shapes pass through unchanged."""
    m = _TICKET.match(ticket_number.strip())
    if not m:
        return ticket_number
    letters, digits = m.groups()
    return f"{spell_letters(letters)} {spell_digits(digits)}"


def format_counter_label(label: str) -> str:
    """Speak the letter+number suffix of a counter label.

    "Loket 3" -> "Loket tiga", "Loket B12" -> "Loket B dua belas".
    Labels without such a suffix are returned unchanged.
    """
    m = _LABEL_SUFFIX.match(label.strip())
    if not m:
        return label
    number = int(m.group("digits"))
    if number > MAX_SPOKEN_NUMBER:
        return label
    parts = []
    head = (m.group("head") or "").strip()
    if head:
        parts.append(head)
    if m.group("letters"):
        parts.append(spell_letters(m.group("letters")))
    parts.append(number_to_words(number))
    return " ".join(parts)


def announcement_text(ticket_number: str, counter_label: str) -> str:
    return (
        f"Nomor antrian {format_ticket_number(ticket_number)}, "
        f"silakan menuju {format_counter_label(counter_label)}"
    )
