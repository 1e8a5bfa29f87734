"""
Unit tests for explicit dependency resolution.
"""

from prompt_workflow.core.dependencies import DependencyResolver, find_reference_ids
from prompt_workflow.core.models import NodeKind
from prompt_workflow.core.parser import ScriptParser, parse_script


class TestFindReferenceIds:

    def test_finds_ids_in_order_without_duplicates(self):
        template = "{{#b}} then {{#a}} then {{#b}} and {{INPUT}}"

        assert find_reference_ids(template) == ["b", "a"]

    def test_ids_may_contain_hyphens(self):
        assert find_reference_ids("{{#my-node_2}}") == ["my-node_2"]

    def test_malformed_tokens_ignored(self):
        assert find_reference_ids("{{ #a }} {#a} {{#}}") == []


class TestDependencyResolver:
    """Tests for explicit dependency discovery."""

    def test_known_references_become_dependencies(self):
        nodes = parse_script("#a = one\n#b = two\nflash: {{#a}} {{#b}} {{#a}}")

        assert nodes[2].explicit_dependencies == ["a", "b"]

    def test_unknown_references_are_ignored(self):
        nodes = parse_script("flash: Tell me about {{#ghost}}")

        assert nodes[0].explicit_dependencies == []
        assert nodes[0].prompt_template == "Tell me about {{#ghost}}"

    def test_forward_references_resolve(self):
        nodes = parse_script("#first flash: Use {{#later}}\n#later = value")

        assert nodes[0].explicit_dependencies == ["later"]

    def test_static_nodes_get_dependencies_too(self):
        nodes = parse_script("#name = Ada\n#greeting = Hello {{#name}}")

        assert nodes[1].explicit_dependencies == ["name"]

    def test_input_nodes_not_modified(self):
        parsed = ScriptParser().parse("#a = x\nflash: {{#a}}")

        DependencyResolver().resolve(parsed)

        assert parsed[1].explicit_dependencies == []


class TestModelVariables:
    """Tests for model tokens that name static nodes."""

    def test_model_token_naming_static_node(self):
        nodes = parse_script("#picker = pro\n#ask picker: Hello")

        ask = nodes[1]
        assert ask.kind == NodeKind.LLM
        assert ask.model is None
        assert ask.model_variable == "picker"
        assert "picker" in ask.dependencies

    def test_placeholder_model_token(self):
        nodes = parse_script("#picker = flash\n{{#picker}}: Hello")

        assert nodes[1].model_variable == "picker"

    def test_plain_nickname_stays_model(self):
        nodes = parse_script("#picker = pro\nflash: Hello")

        assert nodes[1].model == "flash"
        assert nodes[1].model_variable is None

    def test_llm_node_id_is_not_a_model_variable(self):
        nodes = parse_script("#flash pro: first\n#second flash: second")

        assert nodes[1].model == "flash"
