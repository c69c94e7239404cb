import pytest

from queue_caller.speech import (
    MAX_SPOKEN_NUMBER,
    announcement_text,
    format_counter_label,
    format_ticket_number,
    number_to_words,
)


@pytest.mark.parametrize(
    "n, words",
    [
        (0, "nol"),
        (1, "satu"),
        (10, "sepuluh"),
        (11, "sebelas"),
        (15, "lima belas"),
        (20, "dua puluh"),
        (21, "dua puluh satu"),
        (100, "seratus"),
        (101, "seratus satu"),
        (111, "seratus sebelas"),
        (250, "dua ratus lima puluh"),
        (1000, "seribu"),
        (1999, "seribu sembilan ratus sembilan puluh sembilan"),
        (2024, "dua ribu dua puluh empat"),
        (11000, "sebelas ribu"),
        (100000, "seratus ribu"),
    ],
)
def test_number_to_words(n, words):
    assert number_to_words(n) == words


def test_number_to_words_is_total_over_small_range():
    for n in range(0, 5000):
        assert number_to_words(n)
    assert number_to_words(MAX_SPOKEN_NUMBER).startswith("sembilan ratus")


@pytest.mark.parametrize("n", [-1, MAX_SPOKEN_NUMBER + 1])
def test_number_to_words_rejects_out_of_range(n):
    with pytest.raises(ValueError):
        number_to_words(n)


def test_number_to_words_rejects_non_int():
    with pytest.raises(TypeError):
        number_to_words(True)


def test_format_ticket_number():
    assert format_ticket_number("A007") == "A nol nol tujuh"
    assert format_ticket_number("bc120") == "B C satu dua nol"
    # not letters+digits: unchanged
    assert format_ticket_number("VIP") == "VIP"
    assert format_ticket_number("007") == "007"


def test_format_counter_label():
    assert format_counter_label("Loket 3") == "Loket tiga"
    assert format_counter_label("Loket 12") == "Loket dua belas"
    assert format_counter_label("Loket B2") == "Loket B dua"
    assert format_counter_label("7") == "tujuh"
    assert format_counter_label("Customer Service") == "Customer Service"
    assert format_counter_label("Loket12") == "Loket12"


def test_announcement_for_a007_at_loket_3():
    text = announcement_text("A007", "Loket 3")
    assert text == "Nomor antrian A nol nol tujuh, silakan menuju Loket tiga"
    spoken_ticket, spoken_counter = text.split(", ")
    assert " A " in f" {spoken_ticket} "
    assert spoken_ticket.endswith("tujuh")
    assert spoken_counter.endswith("tiga")
