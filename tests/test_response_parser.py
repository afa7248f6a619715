"""Tests for LLM response extraction utilities."""

import pytest

from latex_tailor.utils.response_parser import ResponseParseError, extract_json, extract_latex


class TestExtractJson:
    def test_direct_json(self):
        assert extract_json('{"score": 80}') == {"score": 80}

    def test_fenced_code_block(self):
        text = 'Here is the result:\n```json\n{"score": 80}\n```\nDone.'
        assert extract_json(text) == {"score": 80}

    def test_fenced_without_json_tag(self):
        assert extract_json('```\n{"key": "value"}\n```') == {"key": "value"}

    def test_embedded_json(self):
        text = 'The evaluation is: {"score": 90, "strengths": []} as shown above.'
        assert extract_json(text) == {"score": 90, "strengths": []}

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Could not extract JSON"):
            extract_json("no json here at all")

    def test_parse_error_keeps_full_text(self):
        text = "  " + "x" * 300 + "  "
        with pytest.raises(ResponseParseError) as exc_info:
            extract_json(text)
        assert exc_info.value.text == text

    def test_empty_string_raises(self):
        with pytest.raises(ValueError):
            extract_json("")

    def test_truncated_json_is_not_repaired(self):
        with pytest.raises(ValueError):
            extract_json('{"score": 80, "strengths": ["a", "b"')


class TestExtractLatex:
    def test_plain_document(self):
        doc = "\\documentclass{article}\n\\begin{document}\nHi\n\\end{document}"
        assert extract_latex(doc) == doc

    def test_strips_fences_and_chatter(self):
        text = (
            "Here is your resume:\n```latex\n\\documentclass{article}\n"
            "\\begin{document}\nHi\n\\end{document}\n```\nLet me know!"
        )
        result = extract_latex(text)
        assert result.startswith("\\documentclass")
        assert result.endswith("\\end{document}")

    def test_drops_text_around_document(self):
        text = "Sure!\n\\documentclass{article}\\begin{document}x\\end{document}\nThanks"
        assert extract_latex(text) == "\\documentclass{article}\\begin{document}x\\end{document}"

    def test_partial_document_returned_as_is(self):
        assert extract_latex("\\section*{Skills} Python") == "\\section*{Skills} Python"

    def test_empty(self):
        assert extract_latex("   ") == ""
