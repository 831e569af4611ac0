"""
Workflow Code Generator - emits an OpenAI Agents SDK program from a workflow graph.

The output is a pure function of the graph: node array order and edge array
order decide every iteration, so the same graph always yields the same text.

Section order:
1. Encoding header and optional workflow metadata comments
2. Fixed import block
3. Structured output schemas (pydantic models)
4. Function tools
5. Guardrails (internal checker agent + guard function)
6. Agents
7. Main execution block
"""
import json
import logging
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel

from .identifiers import generate_identifier, new_module_namespace
from .schema import (
    AgentNodeData,
    ExecutionMode,
    FunctionToolNodeData,
    GuardrailNodeData,
    GuardrailType,
    NodeKind,
    RunnerNodeData,
    StructuredSchema,
    ValueType,
    WorkflowDocument,
    WorkflowGraph,
    WorkflowNode,
)

logger = logging.getLogger(__name__)

ENCODING_HEADER = "# -*- coding: utf-8 -*-"

IMPORT_BLOCK = "\n".join([
    "from agents import Agent, Runner, function_tool",
    "from agents import GuardrailFunctionOutput, RunContextWrapper, input_guardrail, output_guardrail",
    "from pydantic import BaseModel",
    "from typing import Any, Dict, List, Optional",
    "import asyncio",
])

NO_ELEMENTS_COMMENT = "# No executable workflow elements found to generate code."

DEFAULT_INSTRUCTIONS = "No instructions provided."

INDENT = "    "

# Tool signatures map "number" to int; schema fields map it to float.
TOOL_TYPE_MAP: Dict[ValueType, str] = {
    ValueType.STRING: "str",
    ValueType.NUMBER: "int",
    ValueType.BOOLEAN: "bool",
    ValueType.LIST: "list",
    ValueType.DICT: "dict",
    ValueType.NONE: "None",
}

SCHEMA_FIELD_TYPE_MAP: Dict[ValueType, str] = {
    ValueType.STRING: "str",
    ValueType.NUMBER: "float",
    ValueType.BOOLEAN: "bool",
    ValueType.LIST: "List",
    ValueType.DICT: "Dict",
    ValueType.NONE: "Any",
}

# pydantic refuses this as a field name
SCHEMA_RESERVED_FIELD_NAMES = ("model_config",)


class CodegenMetadata(BaseModel):
    workflow_name: Optional[str] = None
    workflow_description: Optional[str] = None


class _SchemaEntry(BaseModel):
    class_name: str
    schema_def: StructuredSchema


# =============================================================================
# Text helpers
# =============================================================================

def string_literal(text: str) -> str:
    """Double-quoted Python string literal for arbitrary text."""
    return json.dumps(text, ensure_ascii=False)


def triple_quoted(text: str) -> str:
    """Triple-quoted literal that keeps newlines readable."""
    escaped = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if escaped.endswith('"'):
        # A bare trailing quote would run into the closing delimiter.
        head = escaped[:-1]
        backslashes = len(head) - len(head.rstrip("\\"))
        if backslashes % 2 == 0:
            escaped = head + '\\"'
    return f'"""{escaped}"""'


def comment_text(text: str) -> str:
    """Fold text onto a single line so it can sit inside a comment."""
    return " ".join(line.strip() for line in text.strip().splitlines())


def docstring_lines(text: str, indent: str = INDENT) -> List[str]:
    lines = [line.strip() for line in text.strip().splitlines()]
    if len(lines) == 1:
        return [f"{indent}{triple_quoted(lines[0])}"]
    escaped = triple_quoted("\n".join(lines))[3:-3].split("\n")
    return [f'{indent}"""'] + [f"{indent}{line}" if line else "" for line in escaped] + [f'{indent}"""']


def indent_block(text: str, indent: str = INDENT) -> List[str]:
    return [f"{indent}{line}" if line.strip() else "" for line in text.rstrip().splitlines()]


# =============================================================================
# Generator
# =============================================================================

class WorkflowCodeGenerator:
    """
    Walks a workflow graph once and emits program text.

    Identifiers for every emitted top-level name are issued up front from a
    single module namespace, in node array order, so later sections can refer
    to them freely.
    """

    def __init__(self, graph: WorkflowGraph, metadata: Optional[CodegenMetadata] = None):
        self.graph = graph
        self.metadata = metadata or CodegenMetadata()
        self.nodes = graph.node_index()

        self.namespace: Set[str] = new_module_namespace()
        self.tool_names: Dict[str, str] = {}
        self.agent_names: Dict[str, str] = {}
        self.guardrail_agent_names: Dict[str, str] = {}
        self.guardrail_function_names: Dict[str, str] = {}
        self.schemas: Dict[str, _SchemaEntry] = {}

    def generate(self) -> str:
        self.graph.check_references()
        self._assign_identifiers()

        head = [ENCODING_HEADER]
        metadata_block = self._metadata_block()
        if metadata_block:
            head.append(metadata_block)
        head.append(IMPORT_BLOCK)

        schema_blocks = [self._schema_block(entry) for entry in self.schemas.values()]
        tool_blocks = self._section("# Function Tools", [
            self._tool_block(node) for node in self.graph.nodes_of_kind(NodeKind.FUNCTION_TOOL)
        ])
        guardrail_blocks = self._section("# Guardrail Definitions", [
            block
            for node in self.graph.nodes_of_kind(NodeKind.GUARDRAIL)
            for block in self._guardrail_blocks(node)
        ])
        # Not plain node array order: an agent follows every agent it hands off to,
        # since handoffs are bare names that must already be bound.
        agent_blocks = self._section("# Agents", [
            self._agent_block(node) for node in self._agent_emission_order()
        ])
        main_blocks, has_connected_runner = self._main_blocks()

        blocks = schema_blocks + tool_blocks + guardrail_blocks + agent_blocks + main_blocks
        has_executable_elements = bool(tool_blocks or guardrail_blocks or agent_blocks or has_connected_runner)
        if not has_executable_elements:
            blocks.append("\n".join([
                NO_ELEMENTS_COMMENT,
                f"# Nodes: {len(self.graph.nodes)}, Edges: {len(self.graph.edges)}",
            ]))

        code = "\n\n".join(head) + "\n\n\n" + "\n\n\n".join(blocks) + "\n"
        logger.info(
            f"Generated workflow code: {len(self.graph.nodes)} nodes, "
            f"{len(self.graph.edges)} edges, {len(code.splitlines())} lines"
        )
        return code

    # -------------------------------------------------------------------------
    # Identifier assignment
    # -------------------------------------------------------------------------

    def _assign_identifiers(self) -> None:
        for node in self.graph.nodes:
            if node.type == NodeKind.FUNCTION_TOOL:
                self.tool_names[node.id] = generate_identifier(
                    node.data.name, "tool", self.namespace, node.id
                )
            elif node.type == NodeKind.AGENT:
                self.agent_names[node.id] = generate_identifier(
                    node.data.name, "agent", self.namespace, node.id
                )
                self._register_schema(node.data.output_schema, "model", f"{node.id}_model")
            elif node.type == NodeKind.GUARDRAIL:
                data: GuardrailNodeData = node.data
                self.guardrail_agent_names[node.id] = generate_identifier(
                    data.internal_agent_name, "guard_agent", self.namespace, f"{node.id}_internal_agent"
                )
                self.guardrail_function_names[node.id] = generate_identifier(
                    data.name, "guard_func", self.namespace, f"{node.id}_guard_func"
                )
                self._register_schema(
                    data.internal_agent_output_schema, "guard_model", f"{node.id}_internal_model"
                )
            elif node.type in (NodeKind.RUNNER, NodeKind.INPUT):
                continue
            else:
                raise ValueError(f"Unsupported node kind: {node.type}")

    def _register_schema(self, schema_def: Optional[StructuredSchema], prefix: str, seed: str) -> None:
        # First definition of a model name wins; later ones reuse it as-is.
        if schema_def is None or not schema_def.model_name:
            return
        if schema_def.model_name in self.schemas:
            return
        class_name = generate_identifier(schema_def.model_name, prefix, self.namespace, seed)
        self.schemas[schema_def.model_name] = _SchemaEntry(class_name=class_name, schema_def=schema_def)

    def _schema_class_name(self, schema_def: Optional[StructuredSchema]) -> Optional[str]:
        if schema_def is None or not schema_def.model_name:
            return None
        entry = self.schemas.get(schema_def.model_name)
        return entry.class_name if entry else None

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def _section(self, title: str, blocks: List[str]) -> List[str]:
        if not blocks:
            return []
        return [f"{title}\n{blocks[0]}"] + blocks[1:]

    def _metadata_block(self) -> str:
        lines = []
        name = (self.metadata.workflow_name or "").strip()
        description = (self.metadata.workflow_description or "").strip()
        if name:
            lines.append(f"# Workflow Name: {comment_text(name)}")
        if description:
            continuation = "\n#                   "
            lines.append("# Workflow Description: " + continuation.join(description.splitlines()))
        return "\n".join(lines)

    def _schema_block(self, entry: _SchemaEntry) -> str:
        schema_def = entry.schema_def
        lines = [f"class {entry.class_name}(BaseModel):"]
        if schema_def.description and schema_def.description.strip():
            lines.extend(docstring_lines(schema_def.description))

        if not schema_def.fields:
            lines.append(f"{INDENT}pass")
            return "\n".join(lines)

        field_namespace: Set[str] = set(SCHEMA_RESERVED_FIELD_NAMES)
        for index, field in enumerate(schema_def.fields):
            field_name = generate_identifier(field.name, "field", field_namespace, field.id or str(index))
            py_type = SCHEMA_FIELD_TYPE_MAP[field.type]
            if field.is_optional:
                definition = f"{INDENT}{field_name}: Optional[{py_type}] = None"
            else:
                definition = f"{INDENT}{field_name}: {py_type}"
            if field.description and field.description.strip():
                definition += f"  # {comment_text(field.description)}"
            lines.append(definition)
        return "\n".join(lines)

    def _tool_block(self, node: WorkflowNode) -> str:
        data: FunctionToolNodeData = node.data
        func_name = self.tool_names[node.id]

        param_namespace: Set[str] = set()
        params = []
        for index, param in enumerate(data.parameters):
            param_name = generate_identifier(param.name, "param", param_namespace, param.id or str(index))
            params.append(f"{param_name}: {TOOL_TYPE_MAP[param.type]}")

        lines = [
            "@function_tool",
            f"def {func_name}({', '.join(params)}) -> {TOOL_TYPE_MAP[data.return_type]}:",
        ]
        if data.description and data.description.strip():
            lines.extend(docstring_lines(data.description))
        if data.implementation and data.implementation.strip():
            lines.extend(indent_block(data.implementation))
        else:
            lines.append(f"{INDENT}pass")
        return "\n".join(lines)

    def _guardrail_blocks(self, node: WorkflowNode) -> List[str]:
        data: GuardrailNodeData = node.data
        agent_name = self.guardrail_agent_names[node.id]
        func_name = self.guardrail_function_names[node.id]
        output_type = self._schema_class_name(data.internal_agent_output_schema)

        agent_lines = [
            f"# Internal Checker Agent for Guardrail: {comment_text(data.name)}",
            f"{agent_name} = Agent(",
            f'{INDENT}name="{agent_name}",',
            f"{INDENT}instructions={triple_quoted(data.internal_agent_instructions or DEFAULT_INSTRUCTIONS)},",
        ]
        if output_type:
            agent_lines.append(f"{INDENT}output_type={output_type},")
        agent_lines += [f"{INDENT}tools=[],", f"{INDENT}handoffs=[],", ")"]

        return ["\n".join(agent_lines), self._guard_function(data, agent_name, func_name, output_type)]

    def _guard_function(
        self,
        data: GuardrailNodeData,
        agent_name: str,
        func_name: str,
        output_type: Optional[str],
    ) -> str:
        if data.guardrail_type == GuardrailType.INPUT:
            decorator, subject = "@input_guardrail", "input_data"
        else:
            decorator, subject = "@output_guardrail", "output_data"

        display_name = data.name
        logic = (data.tripwire_logic or "").strip()
        body = INDENT * 2

        lines = [
            decorator,
            f"async def {func_name}(ctx: RunContextWrapper, agent: Agent, {subject}: Any) -> GuardrailFunctionOutput:",
        ]
        if data.description and data.description.strip():
            lines.extend(docstring_lines(data.description))
        lines += [
            f"{INDENT}# Run the internal checker agent",
            f'{INDENT}checker_input = f"Data to check: {{str({subject})}}"',
            f"{INDENT}checker_result = await Runner.run({agent_name}, checker_input, context=ctx.context)",
            "",
            f"{INDENT}tripwire_triggered = False  # Default to not triggered",
            f"{INDENT}output_for_eval = checker_result.final_output if checker_result is not None else None",
            "",
            f"{INDENT}if isinstance(output_for_eval, BaseModel):",
        ]

        if logic and output_type:
            error_message = f"Error evaluating tripwire logic for guardrail '{display_name}':"
            lines += [
                f"{body}tripwire_logic = {string_literal(logic)}",
                f"{body}try:",
                f'{body}{INDENT}tripwire_triggered = bool(eval(tripwire_logic, {{"__builtins__": {{}}}}, {{"output": output_for_eval}}))',
                f"{body}except Exception as e:",
                f"{body}{INDENT}print({string_literal(error_message)}, e)",
                f"{body}{INDENT}tripwire_triggered = False",
            ]
        elif logic:
            warning = (
                f"Warning: Tripwire logic '{logic}' for guardrail '{display_name}' is set, but the internal "
                "agent has no structured output type. Cannot reliably evaluate. Defaulting to not triggered."
            )
            lines += [
                f"{body}# Tripwire logic is set but the checker agent declares no output schema. "
                "Defaulting to not triggered.",
                f"{body}print({string_literal(warning)})",
                f"{body}tripwire_triggered = False",
            ]
        else:
            lines += [
                f"{body}# No tripwire logic provided for guardrail '{comment_text(display_name)}'. "
                "Defaulting to not triggered.",
                f"{body}tripwire_triggered = False",
            ]

        none_warning = (
            f"Warning: Internal agent output for guardrail '{display_name}' was None. "
            "Cannot evaluate tripwire logic. Defaulting to not triggered."
        )
        type_warning = (
            f"Warning: Internal agent output for guardrail '{display_name}' is not a Pydantic model. "
            "Cannot reliably evaluate tripwire logic. Defaulting to not triggered. Output type:"
        )
        fallback_info = f"Guardrail {display_name} evaluated."
        lines += [
            f"{INDENT}elif output_for_eval is None:",
            f"{body}print({string_literal(none_warning)})",
            f"{body}tripwire_triggered = False",
            f"{INDENT}else:",
            f"{body}print({string_literal(type_warning)}, type(output_for_eval).__name__)",
            f"{body}tripwire_triggered = False",
            "",
            f"{INDENT}output_info = output_for_eval if output_for_eval is not None else {string_literal(fallback_info)}",
            f"{INDENT}return GuardrailFunctionOutput(output_info=output_info, tripwire_triggered=tripwire_triggered)",
        ]
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    def _handoff_targets(self, node: WorkflowNode) -> List[str]:
        targets: List[str] = []
        for edge in self.graph.edges:
            if edge.source != node.id or edge.target == node.id:
                continue
            target = self.nodes[edge.target]
            if target.type == NodeKind.AGENT and target.id not in targets:
                targets.append(target.id)
        return targets

    def _agent_emission_order(self) -> List[WorkflowNode]:
        """Node array order, deferring an agent until its handoff targets are defined."""
        pending = self.graph.nodes_of_kind(NodeKind.AGENT)
        emitted: Set[str] = set()
        order: List[WorkflowNode] = []
        while pending:
            ready = next(
                (n for n in pending if all(t in emitted for t in self._handoff_targets(n))),
                None,
            )
            if ready is None:
                # Only reachable when the handoff graph has a cycle.
                order.extend(pending)
                break
            order.append(ready)
            emitted.add(ready.id)
            pending = [n for n in pending if n.id != ready.id]
        return order

    def _incoming_sources(self, node: WorkflowNode, kind: NodeKind) -> List[WorkflowNode]:
        sources: List[WorkflowNode] = []
        for edge in self.graph.edges:
            if edge.target != node.id:
                continue
            source = self.nodes[edge.source]
            if source.type == kind and all(s.id != source.id for s in sources):
                sources.append(source)
        return sources

    def _agent_block(self, node: WorkflowNode) -> str:
        data: AgentNodeData = node.data
        var_name = self.agent_names[node.id]

        tools = [self.tool_names[s.id] for s in self._incoming_sources(node, NodeKind.FUNCTION_TOOL)]
        handoffs = [self.agent_names[t] for t in self._handoff_targets(node)]

        input_guardrails: List[str] = []
        output_guardrails: List[str] = []
        for source in self._incoming_sources(node, NodeKind.GUARDRAIL):
            func_name = self.guardrail_function_names[source.id]
            if source.data.guardrail_type == GuardrailType.INPUT:
                input_guardrails.append(func_name)
            else:
                output_guardrails.append(func_name)

        lines = [
            f"# Agent: {comment_text(data.name) or 'My Agent'} (variable: {var_name})",
            f"{var_name} = Agent(",
            f'{INDENT}name="{var_name}",',
            f"{INDENT}instructions={triple_quoted(data.instructions or DEFAULT_INSTRUCTIONS)},",
            f"{INDENT}tools=[{', '.join(tools)}],",
            f"{INDENT}handoffs=[{', '.join(handoffs)}],",
        ]
        output_type = self._schema_class_name(data.output_schema)
        if output_type:
            lines.append(f"{INDENT}output_type={output_type},")
        if input_guardrails:
            lines.append(f"{INDENT}input_guardrails=[{', '.join(input_guardrails)}],")
        if output_guardrails:
            lines.append(f"{INDENT}output_guardrails=[{', '.join(output_guardrails)}],")
        if data.handoff_description and data.handoff_description.strip():
            lines.append(f"{INDENT}handoff_description={triple_quoted(data.handoff_description.strip())},")
        lines.append(")")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Main execution
    # -------------------------------------------------------------------------

    def _runner_agent(self, node: WorkflowNode) -> Optional[str]:
        incoming = self.graph.get_incoming_edges(node.id)
        if len(incoming) != 1:
            return None
        source = self.nodes[incoming[0].source]
        if source.type != NodeKind.AGENT:
            return None
        return self.agent_names[source.id]

    def _runner_lines(self, node: WorkflowNode, agent_name: str, awaited: bool) -> List[str]:
        data: RunnerNodeData = node.data
        runner_input = data.input or ""
        first_line = runner_input.split("\n")[0]
        context_argument = ""
        if data.context and data.context.strip():
            context_argument = f", context={data.context.strip()}"

        if awaited:
            announce = f"Executing {agent_name} asynchronously with input: {first_line}..."
            call = f"await Runner.run({agent_name}, {triple_quoted(runner_input)}{context_argument})"
        else:
            announce = f"Executing {agent_name} synchronously with input: {first_line}..."
            call = f"Runner.run_sync({agent_name}, {triple_quoted(runner_input)}{context_argument})"

        return [
            f"{INDENT}print({string_literal(announce)})",
            f"{INDENT}result = {call}",
            f'{INDENT}print(f"Response from {agent_name}: {{result.final_output}}")',
        ]

    def _main_blocks(self) -> Tuple[List[str], bool]:
        runners: List[Tuple[WorkflowNode, Optional[str]]] = [
            (node, self._runner_agent(node)) for node in self.graph.nodes_of_kind(NodeKind.RUNNER)
        ]
        connected = [node for node, agent_name in runners if agent_name is not None]
        # Runner.run_sync cannot run inside an event loop, so an async main awaits every runner.
        has_async = any(node.data.execution_mode == ExecutionMode.ASYNC for node in connected)

        body: List[str] = []
        disconnected: List[str] = []
        for node, agent_name in runners:
            if agent_name is None:
                note = f'# Runner node "{comment_text(node.data.name) or "Unnamed Runner"}" is not connected to an Agent.'
                body.append(f"{INDENT}{note}")
                disconnected.append(note)
                continue
            body.extend(self._runner_lines(node, agent_name, awaited=has_async))

        if not connected:
            if not disconnected:
                return [], False
            return ["# Main Execution\n" + "\n".join(disconnected)], False

        if has_async:
            main_def = "async def main():"
            entry_point = f"{INDENT}asyncio.run(main())"
        else:
            main_def = "def main():"
            entry_point = f"{INDENT}main()"

        main_block = "\n".join(["# Main Execution", main_def] + body)
        entry_block = "\n".join(['if __name__ == "__main__":', entry_point])
        return [main_block, entry_block], True


def generate_python_code(graph: WorkflowGraph, metadata: Optional[CodegenMetadata] = None) -> str:
    """Emit the Python program for a workflow graph."""
    return WorkflowCodeGenerator(graph, metadata).generate()


def compile_workflow(document: WorkflowDocument) -> str:
    """Emit the Python program for a persisted workflow record, including its metadata."""
    metadata = CodegenMetadata(
        workflow_name=document.workflow_name,
        workflow_description=document.workflow_description,
    )
    return generate_python_code(document, metadata)
