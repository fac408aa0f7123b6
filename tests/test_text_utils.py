import pytest
from pydantic import ValidationError

from docent.config.settings import Settings
from docent.src.core.models import Chunk, validate_question
from docent.src.utils.text_utils import clean_text, query_tokens, render_value


def test_clean_text_removes_invisible_characters_and_newlines():
    assert clean_text("\ufeffWater\u200b Lilies\n\n  1906\x00") == "Water Lilies 1906"

def test_query_tokens_are_lowercased_trimmed_and_unique():
    assert query_tokens("  Who painted “Water Lilies”? Monet, monet!") == ["who", "painted", "water", "lilies", "monet"]

@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Claude  Monet", "Claude Monet"),
        (1906, "1906"),
        (False, "false"),
        (["oil", None, "canvas"], "oil, canvas"),
        ({"city": "Giverny"}, '{"city":"Giverny"}'),
    ],
)
def test_render_value(value, expected):
    assert render_value(value) == expected

def test_chunk_ids_depend_on_source_position_and_content():
    base = Chunk.create("artist: Claude Monet", "a.json", 0)
    assert base.id == Chunk.create("artist: Claude Monet", "a.json", 0).id
    assert base.id != Chunk.create("artist: Claude Monet", "b.json", 0).id
    assert base.id != Chunk.create("artist: Claude Monet", "a.json", 1).id

@pytest.mark.parametrize("question", ["", "  \n", None, 3, ["Monet"]])
def test_invalid_questions(question):
    assert not validate_question(question)

def test_settings_reject_overlap_not_below_chunk_size():
    with pytest.raises(ValidationError):
        Settings(CHUNK_SIZE=100, CHUNK_OVERLAP=100)

def test_settings_reject_zero_attempts():
    with pytest.raises(ValidationError):
        Settings(MAX_ATTEMPTS=0)


@pytest.mark.parametrize("attempts", [4, 10])
def test_settings_cap_attempts_at_three(attempts):
    with pytest.raises(ValidationError):
        Settings(MAX_ATTEMPTS=attempts)
