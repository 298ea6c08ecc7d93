import json
import os
import tempfile
import unittest

from censor import censor, load_prohibited_words, normalize_words, was_censored

PROHIBITED = frozenset({"idiot", "moron", "jerk"})

SAMPLES = [
    "you idiot!!",
    "IDIOT, moron; Jerk.",
    "hello there, friend",
    "what a jerk?! seriously...",
    "  leading and   uneven   spacing idiot  ",
    "idiotic idiots are not idiot",
    "snake_case idiot_name idiot",
    "",
    "!!! ??? ...",
    "tab\tidiot\nnewline moron",
]


def strip_masks(text: str) -> str:
    return "".join(ch for ch in text if ch != "#")


class CensorTests(unittest.TestCase):
    def test_masks_word_and_keeps_trailing_punctuation(self) -> None:
        self.assertEqual(censor("you idiot!!", {"idiot"}), "you #####!!")

    def test_lookup_is_case_insensitive(self) -> None:
        self.assertEqual(censor("IDIOT, moron; Jerk.", PROHIBITED), "#####, #####; ####.")

    def test_leaves_clean_text_untouched(self) -> None:
        self.assertEqual(censor("hello there, friend", PROHIBITED), "hello there, friend")

    def test_only_whole_words_are_masked(self) -> None:
        self.assertEqual(
            censor("idiotic idiots are not idiot", PROHIBITED),
            "idiotic idiots are not #####",
        )

    def test_underscore_joins_words(self) -> None:
        self.assertEqual(censor("snake_case idiot_name idiot", PROHIBITED), "snake_case idiot_name #####")

    def test_unicode_letters_are_word_characters(self) -> None:
        self.assertEqual(censor("café idiot", {"café"}), "#### #####")

    def test_whitespace_is_preserved(self) -> None:
        self.assertEqual(censor("tab\tidiot\nnewline moron", PROHIBITED), "tab\t#####\nnewline #####")

    def test_censor_is_idempotent(self) -> None:
        for sample in SAMPLES:
            once = censor(sample, PROHIBITED)
            self.assertEqual(censor(once, PROHIBITED), once, sample)

    def test_output_length_matches_input(self) -> None:
        for sample in SAMPLES:
            self.assertEqual(len(censor(sample, PROHIBITED)), len(sample), sample)

    def test_non_word_text_is_preserved(self) -> None:
        for sample in SAMPLES:
            censored = censor(sample, PROHIBITED)
            original_rest = "".join(
                ch if ch_out != "#" else "" for ch, ch_out in zip(sample, censored)
            )
            self.assertEqual(strip_masks(censored), original_rest, sample)

    def test_empty_prohibited_set_is_a_no_op(self) -> None:
        for sample in SAMPLES:
            self.assertEqual(censor(sample, frozenset()), sample)


class WasCensoredTests(unittest.TestCase):
    def test_detects_masked_word(self) -> None:
        original = "you idiot!!"
        self.assertTrue(was_censored(original, censor(original, PROHIBITED)))

    def test_clean_message_is_not_flagged(self) -> None:
        original = "Hello World"
        self.assertFalse(was_censored(original, censor(original, PROHIBITED)))

    def test_case_differences_are_ignored(self) -> None:
        self.assertFalse(was_censored("Hello World", "hello WORLD"))

    def test_compares_up_to_shorter_sequence(self) -> None:
        self.assertFalse(was_censored("one two three", "one two"))
        self.assertTrue(was_censored("one two three", "one ###"))


class WordListTests(unittest.TestCase):
    def test_normalize_strips_lowercases_and_drops_blanks(self) -> None:
        self.assertEqual(normalize_words([" Idiot ", "MORON", "", "  ", 42]), frozenset({"idiot", "moron"}))

    def test_load_from_json_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "words.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"words": ["Idiot", "Jerk"]}, f)
            self.assertEqual(load_prohibited_words(path), frozenset({"idiot", "jerk"}))

    def test_missing_file_gives_empty_set(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(load_prohibited_words(os.path.join(tmp, "missing.json")), frozenset())

    def test_bundled_word_list_loads(self) -> None:
        from constants import OFFENSIVE_WORDS_FILE

        words = load_prohibited_words(OFFENSIVE_WORDS_FILE)
        self.assertIn("idiot", words)


if __name__ == "__main__":
    unittest.main()
