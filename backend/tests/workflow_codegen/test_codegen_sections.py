import ast

import pytest

from agent_studio.workflow.codegen import (
    IMPORT_BLOCK,
    NO_ELEMENTS_COMMENT,
    CodegenMetadata,
    generate_python_code,
    triple_quoted,
)
from agent_studio.workflow.errors import UnresolvedNodeReferenceError
from agent_studio.workflow.schema import WorkflowGraph

from tests.workflow_helpers import (
    agent_node,
    edge_def,
    graph_def,
    schema_def,
    tool_node,
)


def test_empty_graph_emits_header_imports_and_placeholder():
    code = generate_python_code(WorkflowGraph())

    assert code == (
        "# -*- coding: utf-8 -*-\n\n"
        + IMPORT_BLOCK
        + "\n\n\n"
        + NO_ELEMENTS_COMMENT
        + "\n# Nodes: 0, Edges: 0\n"
    )
    ast.parse(code)


def test_metadata_comments_precede_imports():
    metadata = CodegenMetadata(workflow_name="Demo", workflow_description="Line one\nLine two")

    code = generate_python_code(WorkflowGraph(), metadata)

    assert code.startswith(
        "# -*- coding: utf-8 -*-\n\n"
        "# Workflow Name: Demo\n"
        "# Workflow Description: Line one\n"
        "#                   Line two\n\n"
        "from agents import Agent, Runner, function_tool\n"
    )


def test_tool_block_with_parameters_and_docstring():
    graph = graph_def([
        tool_node(
            "t1",
            "Get Weather",
            description="Look up the weather.",
            parameters=[{"name": "City Name", "type": "string"}, {"name": "days", "type": "number"}],
            returnType="string",
            implementation='return f"Sunny in {city_name}"',
        ),
    ])

    code = generate_python_code(graph)

    assert (
        "# Function Tools\n"
        "@function_tool\n"
        "def get_weather(city_name: str, days: int) -> str:\n"
        '    """Look up the weather."""\n'
        '    return f"Sunny in {city_name}"\n'
    ) in code
    ast.parse(code)


def test_tool_implementation_is_indented_line_by_line():
    implementation = "if days > 1:\n    return 'multi'\n\nreturn 'single'"
    graph = graph_def([
        tool_node("t1", "Forecast", parameters=[{"name": "days", "type": "number"}], implementation=implementation),
    ])

    code = generate_python_code(graph)

    assert (
        "def forecast(days: int) -> str:\n"
        "    if days > 1:\n"
        "        return 'multi'\n"
        "\n"
        "    return 'single'\n"
    ) in code
    ast.parse(code)


def test_tool_without_implementation_gets_pass_and_none_return():
    graph = graph_def([tool_node("t1", "Noop", returnType="none", implementation="   ")])

    code = generate_python_code(graph)

    assert "def noop() -> None:\n    pass\n" in code


def test_tool_parameter_names_are_deduplicated():
    graph = graph_def([
        tool_node("t1", "Echo", parameters=[{"name": "city", "type": "string"}, {"name": "City", "type": "list"}]),
    ])

    code = generate_python_code(graph)

    assert "def echo(city: str, city_1: list) -> str:" in code


def test_tools_with_equivalent_names_do_not_collide():
    graph = graph_def([tool_node("t1", "Weather Lookup"), tool_node("t2", "Weather_Lookup")])

    code = generate_python_code(graph)

    assert "def weather_lookup() -> str:" in code
    assert "def weather_lookup_1() -> str:" in code


def test_output_schema_becomes_pydantic_model():
    report = schema_def(
        "Weather Report",
        [
            {"name": "City", "type": "string", "isOptional": False},
            {"name": "temperature", "type": "number", "isOptional": True, "description": "Celsius"},
        ],
        description="Structured weather.",
    )
    graph = graph_def([agent_node("a1", "Forecaster", pydanticSchema=report)])

    code = generate_python_code(graph)

    assert (
        "class weather_report(BaseModel):\n"
        '    """Structured weather."""\n'
        "    city: str\n"
        "    temperature: Optional[float] = None  # Celsius\n"
    ) in code
    assert "    output_type=weather_report,\n" in code
    assert code.index("class weather_report") < code.index("# Agents")
    ast.parse(code)


def test_schema_without_fields_gets_pass():
    graph = graph_def([agent_node("a1", "Bot", pydanticSchema=schema_def("Empty", []))])

    code = generate_python_code(graph)

    assert "class empty(BaseModel):\n    pass\n" in code


def test_shared_model_name_is_emitted_once():
    first = schema_def("Verdict", [{"name": "ok", "type": "boolean"}])
    second = schema_def("Verdict", [{"name": "score", "type": "number"}])
    graph = graph_def([
        agent_node("a1", "First", pydanticSchema=first),
        agent_node("a2", "Second", pydanticSchema=second),
    ])

    code = generate_python_code(graph)

    assert code.count("class verdict(BaseModel):") == 1
    assert "    ok: bool\n" in code
    assert "score" not in code
    assert code.count("    output_type=verdict,\n") == 2


def test_agent_block_lists_tools_once_and_handoffs():
    graph = graph_def(
        [
            tool_node("t1", "Lookup"),
            agent_node("a1", "Triage", instructions="Route the user.", handoff_description="Front desk"),
            agent_node("a2", "Billing", instructions="Handle invoices."),
        ],
        [
            edge_def("e1", "t1", "a1"),
            edge_def("e2", "t1", "a1"),
            edge_def("e3", "a1", "a2"),
        ],
    )

    code = generate_python_code(graph)

    assert (
        "# Agent: Triage (variable: triage)\n"
        "triage = Agent(\n"
        '    name="triage",\n'
        '    instructions="""Route the user.""",\n'
        "    tools=[lookup],\n"
        "    handoffs=[billing],\n"
        '    handoff_description="""Front desk""",\n'
        ")"
    ) in code
    ast.parse(code)


def test_handoff_targets_are_defined_before_use():
    graph = graph_def(
        [agent_node("a1", "Triage"), agent_node("a2", "Billing")],
        [edge_def("e1", "a1", "a2")],
    )

    code = generate_python_code(graph)

    assert "# Agents\n# Agent: Billing (variable: billing)" in code
    assert code.index("billing = Agent(") < code.index("triage = Agent(")


def test_agent_defaults_for_blank_name_and_instructions():
    graph = graph_def([agent_node("agent-1", "", instructions="")])

    code = generate_python_code(graph)

    assert "# Agent: My Agent (variable: agent_agent1)" in code
    assert '    instructions="""No instructions provided.""",' in code


def test_generation_is_deterministic():
    nodes = [tool_node("t1", "Lookup"), agent_node("a1", "Bot")]
    edges = [edge_def("e1", "t1", "a1")]

    assert generate_python_code(graph_def(nodes, edges)) == generate_python_code(graph_def(nodes, edges))


def test_dangling_edge_fails_generation():
    graph = graph_def([agent_node("a1")], [edge_def("e1", "a1", "ghost")])

    with pytest.raises(UnresolvedNodeReferenceError) as exc_info:
        generate_python_code(graph)

    assert exc_info.value.node_id == "ghost"
    assert exc_info.value.edge_id == "e1"


@pytest.mark.parametrize(
    "text",
    [
        "plain",
        "",
        'ends with a quote"',
        'He said """hi"""',
        "back\\slash",
        "trailing backslash\\",
        'escaped \\" quote',
        "multi\nline\ntext",
    ],
)
def test_triple_quoted_literals_preserve_text(text):
    assert ast.literal_eval(triple_quoted(text)) == text
