"""
Unit tests for workflow script parsing.
"""

import pytest

from prompt_workflow.core.errors import ParseError
from prompt_workflow.core.models import NodeKind
from prompt_workflow.core.parser import ScriptParser, parse_script


@pytest.fixture
def parser() -> ScriptParser:
    return ScriptParser()


class TestLineGrammar:
    """Tests for single-line parsing."""

    def test_static_assignment_keeps_quotes(self, parser):
        """Static content is kept verbatim, quotes included."""
        nodes = parser.parse('#topic = "volcanoes"')

        assert len(nodes) == 1
        assert nodes[0].id == "topic"
        assert nodes[0].kind == NodeKind.STATIC
        assert nodes[0].prompt_template == '"volcanoes"'
        assert nodes[0].model is None

    def test_step_with_id_model_flags_and_prompt(self, parser):
        nodes = parser.parse("#answer flash +history +google: Reply to {{INPUT}}")

        node = nodes[0]
        assert node.id == "answer"
        assert node.kind == NodeKind.LLM
        assert node.model == "flash"
        assert node.flags == ["history", "google"]
        assert node.prompt_template == "Reply to {{INPUT}}"

    def test_step_without_id_gets_line_based_id(self, parser):
        """Unnamed steps get deterministic ids from their line number."""
        nodes = parser.parse("\n// comment\nflash: Hello")

        assert nodes[0].id == "node_3"
        assert nodes[0].line_number == 3

    def test_ids_are_reproducible(self, parser):
        script = "flash: one\npro: two"

        assert [n.id for n in parser.parse(script)] == [n.id for n in parser.parse(script)]

    def test_step_with_id_only_is_static(self, parser):
        nodes = parser.parse("#greeting: Hello {{INPUT}}")

        assert nodes[0].kind == NodeKind.STATIC
        assert nodes[0].prompt_template == "Hello {{INPUT}}"

    def test_step_without_colon_has_empty_prompt(self, parser):
        nodes = parser.parse("#collect flash +urlcontext")

        assert nodes[0].kind == NodeKind.LLM
        assert nodes[0].prompt_template == ""
        assert nodes[0].flags == ["urlcontext"]

    def test_prompt_may_contain_colons(self, parser):
        nodes = parser.parse("flash: Answer: yes or no: {{INPUT}}")

        assert nodes[0].prompt_template == "Answer: yes or no: {{INPUT}}"

    def test_blank_lines_and_comments_ignored(self, parser):
        nodes = parser.parse("\n   \n// a comment\n  // indented comment\nflash: hi\n")

        assert len(nodes) == 1

    @pytest.mark.parametrize("separator", ["\u2028", "\u2029", "\x0c", "\x0b", "\x1c", "\x85"])
    def test_only_newline_ends_a_line(self, parser, separator):
        nodes = parse_script(f"#a = foo{separator}bar\nflash: {{{{#a}}}}")

        assert [n.id for n in nodes] == ["a", "node_2"]
        assert nodes[0].prompt_template == f"foo{separator}bar"
        assert nodes[1].explicit_dependencies == ["a"]

    @pytest.mark.parametrize("node_id", ["_", "-", "__", "a-", "_1"])
    def test_punctuation_only_ids(self, parser, node_id):
        nodes = parser.parse(f"#{node_id} = x\n#{node_id}x flash: hi")

        assert [n.id for n in nodes] == [node_id, f"{node_id}x"]


class TestParseErrors:
    """Tests for malformed lines."""

    def test_flags_only_line_is_invalid(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("flash: ok\n+history: no id or model")

        assert exc_info.value.line_number == 2
        assert exc_info.value.line_text == "+history: no id or model"

    def test_colon_only_line_is_invalid(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse(": just a prompt")

        assert exc_info.value.line_number == 1

    def test_unexpected_token_is_invalid(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("flash pro: two models")

        assert "Unexpected token 'pro'" in str(exc_info.value)

    def test_duplicate_id_is_invalid(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("#a = one\n#a flash: two")

        assert exc_info.value.line_number == 2
        assert "Duplicate node id" in str(exc_info.value)

    def test_empty_hash_id_is_invalid(self, parser):
        with pytest.raises(ParseError):
            parser.parse("# flash: hi")


class TestFencedPrompts:
    """Tests for multi-line fenced prompts."""

    def test_fenced_prompt(self, parser):
        script = (
            '#poem flash: """\n'
            "Write a poem.\n"
            "  Keep this indentation.\n"
            'Make it rhyme."""\n'
            "pro: after"
        )

        nodes = parser.parse(script)

        assert len(nodes) == 2
        assert nodes[0].prompt_template == "Write a poem.\n  Keep this indentation.\nMake it rhyme."
        assert nodes[1].id == "node_5"

    def test_fence_closing_on_its_own_line(self, parser):
        nodes = parser.parse('flash: """\nline one\nline two\n"""')

        assert nodes[0].prompt_template == "line one\nline two"

    def test_fenced_static_assignment(self, parser):
        nodes = parser.parse('#rules = """\nBe brief.\nBe kind.\n"""')

        assert nodes[0].kind == NodeKind.STATIC
        assert nodes[0].prompt_template == "Be brief.\nBe kind."

    def test_fence_content_is_not_parsed_as_nodes(self, parser):
        nodes = parser.parse('flash: """\n#notanode = x\n  +history\n"""')

        assert len(nodes) == 1

    def test_unclosed_fence_runs_to_end_of_script(self, parser):
        nodes = parser.parse('flash: ok\npro: """\nline one\n  line two\n')

        assert len(nodes) == 2
        assert nodes[1].prompt_template == "line one\n  line two"

    def test_crlf_line_endings_inside_fence(self, parser):
        nodes = parser.parse('flash: """\r\nline one\r\nline two\r\n"""\r\npro: after\r\n')

        assert nodes[0].prompt_template == "line one\nline two"
        assert nodes[1].line_number == 5


class TestIndentation:
    """Tests for indentation-derived structure."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("flash: x", 0),
            ("  flash: x", 1),
            ("    flash: x", 2),
            ("\tflash: x", 1),
            ("\t  flash: x", 2),
            ("   flash: x", 1),
        ],
    )
    def test_indent_levels(self, line, expected):
        assert ScriptParser.calculate_indent_level(line) == expected

    def test_children_attach_to_nearest_shallower_node(self, parser, nested_script):
        nodes = {n.id: n for n in parser.parse(nested_script)}

        assert nodes["summary"].children == ["notes", "facts"]
        assert nodes["facts"].children == ["style"]
        assert nodes["notes"].children == []
        assert nodes["style"].indent_level == 2

    def test_siblings_after_dedent(self, parser):
        script = "#a flash: A\n  #b = B\n#c flash: C\n  #d = D"

        nodes = {n.id: n for n in parser.parse(script)}

        assert nodes["a"].children == ["b"]
        assert nodes["c"].children == ["d"]

    def test_deeper_jump_attaches_to_last_open_node(self, parser):
        script = "#a flash: A\n      #b = B\n  #c = C"

        nodes = {n.id: n for n in parser.parse(script)}

        assert nodes["a"].children == ["b", "c"]

    def test_declaration_order_preserved(self, parser, nested_script):
        assert [n.id for n in parser.parse(nested_script)] == ["summary", "notes", "facts", "style"]


class TestParseScript:
    """Tests for the parse + resolve convenience."""

    def test_annotates_explicit_dependencies(self, haiku_script):
        nodes = parse_script(haiku_script)

        assert nodes[1].explicit_dependencies == ["topic"]

    def test_empty_script(self):
        assert parse_script("") == []
        assert parse_script("// only a comment\n\n") == []
