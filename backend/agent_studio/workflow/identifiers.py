"""
Identifier generation for emitted workflow code.

Display names typed into the editor ("Weather Lookup", "2nd Agent", "class")
are turned into lowercase Python identifiers. Every identifier is issued
against a namespace set so that no two names handed out from the same
namespace collide.
"""
import keyword
import re
from typing import Optional, Set

PYTHON_KEYWORDS = frozenset(keyword.kwlist)

FALLBACK_MAX_LENGTH = 15

# Names bound by the generated module itself, or used as locals inside the
# generated guardrail and main functions.
MODULE_RESERVED_NAMES = (
    "asyncio",
    "main",
    "function_tool",
    "input_guardrail",
    "output_guardrail",
    "ctx",
    "agent",
    "input_data",
    "output_data",
    "checker_input",
    "checker_result",
    "output_for_eval",
    "tripwire_logic",
    "tripwire_triggered",
    "result",
)

# Builtins the generated code calls or uses in annotations.
GENERATED_CODE_BUILTINS = (
    "print",
    "str",
    "bool",
    "int",
    "float",
    "list",
    "dict",
    "eval",
    "isinstance",
    "type",
)

_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_CHARS_RE = re.compile(r"[^a-z0-9_]")


def sanitize_name(text: Optional[str]) -> str:
    """Lowercase, underscore whitespace, drop anything outside [a-z0-9_], trim underscores."""
    name = (text or "").lower()
    name = _WHITESPACE_RE.sub("_", name)
    name = _INVALID_CHARS_RE.sub("", name)
    return name.strip("_")


def _prefix_leading_digit(name: str) -> str:
    if name[:1].isdigit():
        return f"_{name}"
    return name


def _fallback_name(kind_prefix: str, fallback_seed: Optional[str]) -> str:
    """
    ``{kind_prefix}_{seed}`` cut to FALLBACK_MAX_LENGTH.

    An empty sanitized seed goes straight to ``{kind_prefix}_fallback``
    instead of yielding the bare ``{kind_prefix}_``.
    """
    seed = sanitize_name(fallback_seed)
    if not seed:
        return f"{kind_prefix}_fallback"
    name = f"{kind_prefix}_{seed}"[:FALLBACK_MAX_LENGTH]
    name = _prefix_leading_digit(name)
    if name in ("", "_"):
        return f"{kind_prefix}_fallback"
    return name


def generate_identifier(
    display_name: Optional[str],
    kind_prefix: str,
    namespace: Set[str],
    fallback_seed: Optional[str] = None,
) -> str:
    """
    Issue a unique, keyword-safe identifier for display_name.

    Falls back to ``{kind_prefix}_{seed}`` when the display name sanitizes to
    nothing usable, then appends ``_1``, ``_2``, ... until the candidate is
    free in namespace. The issued name is added to namespace.
    """
    name = _prefix_leading_digit(sanitize_name(display_name))
    if name in ("", "_") or name in PYTHON_KEYWORDS:
        name = _fallback_name(kind_prefix, fallback_seed)

    candidate = name
    counter = 1
    while candidate in namespace:
        candidate = f"{name}_{counter}"
        counter += 1

    namespace.add(candidate)
    return candidate


def new_module_namespace() -> Set[str]:
    """Namespace for top-level names, pre-seeded with names the generated module binds or calls."""
    return set(MODULE_RESERVED_NAMES) | set(GENERATED_CODE_BUILTINS)
