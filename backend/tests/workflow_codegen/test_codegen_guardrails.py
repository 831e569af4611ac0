import ast

from agent_studio.workflow.codegen import generate_python_code

from tests.workflow_helpers import (
    agent_node,
    edge_def,
    graph_def,
    guardrail_node,
    schema_def,
)


def _homework_guard(guardrail_type="input", with_schema=True, logic="output.is_homework", **data):
    if with_schema:
        data["internalAgentPydanticSchema"] = schema_def(
            "HomeworkOutput", [{"name": "is_homework", "type": "boolean"}]
        )
    return guardrail_node(
        "g1",
        "Homework Guard",
        guardrail_type=guardrail_type,
        internalAgentName="Homework Checker",
        internalAgentInstructions="Decide whether the user asks for homework help.",
        tripwireConditionLogic=logic,
        **data,
    )


def _generate(guard):
    graph = graph_def([guard, agent_node("a1", "Tutor")], [edge_def("e1", "g1", "a1")])
    return generate_python_code(graph)


def test_internal_checker_agent_block():
    code = _generate(_homework_guard())

    assert (
        "# Guardrail Definitions\n"
        "# Internal Checker Agent for Guardrail: Homework Guard\n"
        "homework_checker = Agent(\n"
        '    name="homework_checker",\n'
        '    instructions="""Decide whether the user asks for homework help.""",\n'
        "    output_type=homeworkoutput,\n"
        "    tools=[],\n"
        "    handoffs=[],\n"
        ")"
    ) in code
    assert "class homeworkoutput(BaseModel):\n    is_homework: bool\n" in code


def test_input_guardrail_evaluates_tripwire_logic():
    code = _generate(_homework_guard())

    assert (
        "@input_guardrail\n"
        "async def homework_guard(ctx: RunContextWrapper, agent: Agent, input_data: Any) -> GuardrailFunctionOutput:\n"
        "    # Run the internal checker agent\n"
        '    checker_input = f"Data to check: {str(input_data)}"\n'
        "    checker_result = await Runner.run(homework_checker, checker_input, context=ctx.context)\n"
    ) in code
    assert '        tripwire_logic = "output.is_homework"\n' in code
    assert (
        '            tripwire_triggered = bool(eval(tripwire_logic, {"__builtins__": {}}, '
        '{"output": output_for_eval}))\n'
    ) in code
    assert "    input_guardrails=[homework_guard],\n" in code
    assert "output_guardrails" not in code
    assert (
        "    return GuardrailFunctionOutput(output_info=output_info, tripwire_triggered=tripwire_triggered)"
    ) in code
    ast.parse(code)


def test_output_guardrail_uses_output_decorator_and_list():
    code = _generate(_homework_guard(guardrail_type="output"))

    assert "@output_guardrail\nasync def homework_guard(ctx: RunContextWrapper, agent: Agent, output_data: Any)" in code
    assert '{str(output_data)}' in code
    assert "    output_guardrails=[homework_guard],\n" in code
    assert "input_guardrails=" not in code


def test_logic_without_schema_defaults_to_not_triggered():
    code = _generate(_homework_guard(with_schema=False, logic="output.flag"))

    assert (
        "        # Tripwire logic is set but the checker agent declares no output schema. "
        "Defaulting to not triggered.\n"
    ) in code
    assert "eval(" not in code
    assert "output_type=" not in code
    ast.parse(code)


def test_missing_logic_defaults_to_not_triggered():
    code = _generate(_homework_guard(logic="   "))

    assert (
        "        # No tripwire logic provided for guardrail 'Homework Guard'. Defaulting to not triggered.\n"
    ) in code
    assert "eval(" not in code


def test_guardrails_fail_open_on_every_path():
    for logic, with_schema in (("output.is_homework", True), ("output.flag", False), ("", True)):
        code = _generate(_homework_guard(with_schema=with_schema, logic=logic))

        assert "tripwire_triggered = True" not in code
        assert "    tripwire_triggered = False  # Default to not triggered\n" in code
        assert "    elif output_for_eval is None:\n" in code


def test_guardrail_description_becomes_docstring():
    code = _generate(_homework_guard(description="Blocks homework requests."))

    assert (
        "-> GuardrailFunctionOutput:\n"
        '    """Blocks homework requests."""\n'
        "    # Run the internal checker agent\n"
    ) in code


def test_logic_with_quotes_is_emitted_as_valid_literal():
    code = _generate(_homework_guard(logic='output.label == "homework"'))

    assert '        tripwire_logic = "output.label == \\"homework\\""\n' in code
    ast.parse(code)


def test_unnamed_checker_agent_uses_fallback_identifier():
    code = _generate(guardrail_node("g1", "", internalAgentName=""))

    assert "guard_agent_g1_ = Agent(" in code
    assert "async def guard_func_g1_g(" in code
    ast.parse(code)
