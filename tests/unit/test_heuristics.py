"""Unit tests for the deterministic fallback heuristics."""

from screenshot_semantic.heuristics import (
    analyze_content,
    clean_title,
    compose_comprehensive_description,
    extract_keywords,
    heuristic_description,
    heuristic_title,
)


class TestExtractKeywords:
    """Stop-word filtering and frequency ranking."""

    def test_short_tokens_dropped_and_ranked_by_frequency(self):
        """Tokens of three characters or fewer never qualify, so 'fox' is out."""
        result = extract_keywords("the quick quick brown fox fox fox jumps")

        assert result == ["quick", "brown", "jumps"]

    def test_stop_words_removed(self):
        result = extract_keywords("these would should through during window window")

        assert result == ["window"]

    def test_punctuation_stripped_and_case_folded(self):
        result = extract_keywords("Hello, world! hello-world")

        assert result == ["hello", "world"]

    def test_ties_keep_first_seen_order(self):
        result = extract_keywords("zebra apple mango apple zebra mango")

        assert result == ["zebra", "apple", "mango"]

    def test_at_most_ten_keywords(self):
        words = [f"word{letter}" for letter in "abcdefghijkl"]

        assert extract_keywords(" ".join(words)) == words[:10]

    def test_empty_text(self):
        assert extract_keywords("") == []
        assert extract_keywords("   \n ") == []


class TestHeuristicTitle:
    """Title extraction from OCR lines."""

    def test_first_short_line(self):
        assert heuristic_title("Hello World\nfoo bar baz") == "Hello World"

    def test_skips_short_and_symbol_only_lines(self):
        text = "--\n==>\nab\nQuarterly Report: Q3"

        assert heuristic_title(text) == "Quarterly Report Q3"

    def test_prefers_later_short_line_over_long_first_line(self):
        text = "x" * 80 + "\nShort title"

        assert heuristic_title(text) == "Short title"

    def test_truncates_when_no_line_is_short_enough(self):
        title = heuristic_title("A" * 60)

        assert title == "A" * 47 + "..."
        assert len(title) == 50

    def test_blank_text_gets_dated_default(self):
        assert heuristic_title("").startswith("Screenshot ")
        assert heuristic_title("\n  \n").startswith("Screenshot ")

    def test_clean_title_normalizes_whitespace(self):
        assert clean_title("  Build   #42 | passed!  ") == "Build 42 passed!"


class TestAnalyzeContent:
    """Pattern voting over lowercased OCR text."""

    def test_code(self):
        analysis = analyze_content("function () { return x; }")

        assert analysis.type == "code"
        assert analysis.is_code

    def test_webpage(self):
        analysis = analyze_content("Visit www.example.org/index.html")

        assert analysis.type == "webpage"
        assert analysis.votes["code"] == 0

    def test_full_url_matches_line_comment_pattern(self):
        analysis = analyze_content("see http://example.com")

        assert analysis.type == "code"
        assert analysis.votes["webpage"] > 0

    def test_single_code_match_outranks_many_chart_matches(self):
        analysis = analyze_content("return total\nchart graph plot legend data")

        assert analysis.votes["chart"] > analysis.votes["code"] == 1
        assert analysis.type == "code"

    def test_chart_outranks_interface(self):
        analysis = analyze_content("click the button to open the menu\nchart")

        assert analysis.type == "chart"

    def test_chart(self):
        assert analyze_content("Sales chart with legend and axis labels").type == "chart"

    def test_plain_text_is_document(self):
        assert analyze_content("Meeting notes for quarterly planning").type == "document"

    def test_app_detection(self):
        assert analyze_content("terminal output: zsh").app == "Terminal"
        assert analyze_content("Opened in Visual Studio Code").app == "VS Code"
        assert analyze_content("Meeting notes").app is None

    def test_language_guess_for_code(self):
        analysis = analyze_content("import { useState } from 'react' // typescript tsx")

        assert analysis.type == "code"
        assert analysis.language == "typescript"


class TestHeuristicDescription:
    def test_type_only(self):
        assert heuristic_description("Click the Save button in the dialog") == (
            "interface screenshot"
        )

    def test_includes_app(self):
        assert heuristic_description("vscode export default App") == (
            "code screenshot from VS Code"
        )

    def test_word_count_for_long_text(self):
        text = "word " * 30

        assert heuristic_description(text) == "document screenshot containing 30 words"


class TestComposeComprehensiveDescription:
    def test_default_when_nothing_available(self):
        assert compose_comprehensive_description() == "Screenshot"

    def test_all_fields(self):
        result = compose_comprehensive_description(
            description="A code editor",
            ocr_text="print('hi')",
            title="Greeting script",
            keywords=["print", "greeting"],
        )

        assert result == (
            "A code editor\n\n"
            "Text content: print('hi')\n\n"
            "Title: Greeting script\n\n"
            "Keywords: print, greeting"
        )

    def test_default_prefix_without_description(self):
        result = compose_comprehensive_description(title="Only a title")

        assert result == "Screenshot\n\nTitle: Only a title"

    def test_ocr_excerpt_is_bounded(self):
        result = compose_comprehensive_description(ocr_text="x" * 5000, excerpt_chars=100)

        assert result == "Screenshot\n\nText content: " + "x" * 100
