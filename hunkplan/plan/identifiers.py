"""Identifier extraction for hunks.

Two tiers:
- Python sources: the added block is parsed with `ast` when it is
  syntactically complete on its own (after dedenting).
- Everything else (and Python fragments that do not parse): regexes for
  common definition forms plus naive identifier tokenization, minus a
  keyword/builtin stop list.

extract_symbols keeps every name for dependency ordering; extract_identifiers
filters short and stop-listed names for relatedness scoring only.

This is lexical/structural only; no cross-file resolution is attempted.
"""

import ast
import keyword
import re
import textwrap
from typing import Iterable, Optional

PYTHON_EXTENSIONS = {".py", ".pyi"}

# Definition keywords shared by many languages
_DEFINITION_RE = re.compile(
    r"\b(?:def|class|function|func|fn|struct|enum|trait|interface|type|"
    r"module|macro|object|record|typedef|namespace)\s+\*?\s*([A-Za-z_][A-Za-z0-9_]*)"
)
_BINDING_RE = re.compile(
    r"\b(?:export\s+)?(?:const|let|var|val|static)\s+(?:mut\s+)?([A-Za-z_][A-Za-z0-9_]*)"
)
# C-like function definition: `int foo(int x) {`
_C_FUNCTION_RE = re.compile(
    r"^[A-Za-z_][\w\s\*&:<>,]*?\b([A-Za-z_][A-Za-z0-9_]*)\s*\([^;]*\)\s*(?:const\s*)?\{\s*$"
)
# Top-level assignment: `NAME = value` (no indentation)
_TOPLEVEL_ASSIGN_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*(?::[^=]+)?=[^=]")

_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_STRING_RE = re.compile(r"\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'|`[^`]*`")
_COMMENT_PREFIXES = ("#", "//", "/*", "*", "--", ";")

STOP_WORDS = frozenset(keyword.kwlist) | frozenset({
    # Common keywords across languages
    "function", "func", "const", "let", "var", "val", "new", "this", "self",
    "cls", "true", "false", "null", "nil", "none", "undefined", "void",
    "public", "private", "protected", "static", "final", "abstract",
    "export", "default", "package", "struct", "enum", "interface", "type",
    "impl", "trait", "pub", "mut", "use", "mod", "match", "case", "switch",
    "break", "continue", "catch", "throw", "throws", "extends", "implements",
    "typeof", "instanceof", "delete", "require", "module", "exports",
    "namespace", "template", "typename", "unsigned", "signed", "volatile",
    # Primitive types
    "int", "str", "bool", "string", "float", "double", "char", "long",
    "short", "byte", "bytes", "usize", "isize", "u8", "u16", "u32", "u64",
    "i32", "i64", "f32", "f64", "boolean", "object", "any",
    # Python builtins that say nothing about relatedness
    "print", "len", "range", "dict", "list", "set", "tuple", "isinstance",
    "super", "open", "sorted", "enumerate", "zip", "map", "filter", "min",
    "max", "sum", "abs", "getattr", "setattr", "hasattr", "repr", "format",
    "Exception", "ValueError", "TypeError", "KeyError", "Optional", "Any",
    "return", "args", "kwargs",
})


def extract_symbols(path: str, added: Iterable[str]) -> tuple[frozenset[str], frozenset[str]]:
    """Unfiltered (defined, used) names of the added lines.

    No length or stop-word filter is applied: a one-letter function is
    still a definition its callers depend on.
    """
    added = list(added)
    parsed = None
    if _extension(path) in PYTHON_EXTENSIONS and added:
        parsed = _python_identifiers(added)

    if parsed is not None:
        defined, referenced = parsed
    else:
        defined = _regex_definitions(added)
        referenced = _tokens(added)
    referenced = {n for n in referenced if not keyword.iskeyword(n)}
    return frozenset(defined), frozenset(referenced - defined)


def extract_identifiers(
    path: str,
    added: Iterable[str],
    removed: Iterable[str],
    min_length: int = 3,
    symbols: Optional[tuple[frozenset[str], frozenset[str]]] = None,
) -> tuple[frozenset[str], frozenset[str], frozenset[str]]:
    """Extract the identifier sets used for relatedness scoring.

    Args:
        path: File path (used to pick the extraction tier)
        added: Added lines (without the leading '+')
        removed: Removed lines (without the leading '-')
        min_length: Identifiers shorter than this are ignored
        symbols: Result of extract_symbols for the same lines, if already known

    Returns:
        Tuple of (defined, referenced, mentioned):
        - defined: names introduced by the added lines
        - referenced: names used by the added lines but not defined there
        - mentioned: names appearing on removed lines
    """
    defined, used = symbols if symbols is not None else extract_symbols(path, added)
    defined = _keep(defined, min_length)
    referenced = _keep(used, min_length) - defined
    mentioned = _keep(_tokens(list(removed)), min_length)
    return frozenset(defined), frozenset(referenced), frozenset(mentioned)


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    return "." + name.rsplit(".", 1)[-1].lower() if "." in name else ""


def _keep(names: set[str], min_length: int) -> set[str]:
    return {n for n in names if len(n) >= min_length and n not in STOP_WORDS}


def _python_identifiers(lines: list[str]):
    """Use the Python AST when the added block parses on its own."""
    source = textwrap.dedent("\n".join(line.rstrip("\r") for line in lines))
    try:
        tree = ast.parse(source)
    except (SyntaxError, ValueError):
        return None

    defined: set[str] = set()
    referenced: set[str] = set()

    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            defined.add(node.name)
        elif isinstance(node, ast.Name):
            referenced.add(node.id)
        elif isinstance(node, ast.Attribute):
            referenced.add(node.attr)
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            for alias in node.names:
                referenced.add(alias.name.split(".")[-1])
                if alias.asname:
                    referenced.add(alias.asname)

    # Module-level assignments define names
    for node in tree.body:
        targets = []
        if isinstance(node, ast.Assign):
            targets = node.targets
        elif isinstance(node, (ast.AnnAssign, ast.AugAssign)):
            targets = [node.target]
        for target in targets:
            if isinstance(target, ast.Name):
                defined.add(target.id)

    return defined, referenced


def _code_lines(lines: list[str]) -> list[str]:
    """Drop comment lines and string literal contents."""
    result = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(_COMMENT_PREFIXES):
            continue
        result.append(_STRING_RE.sub('""', line))
    return result


def _regex_definitions(lines: list[str]) -> set[str]:
    defined: set[str] = set()
    for line in _code_lines(lines):
        defined.update(_DEFINITION_RE.findall(line))
        defined.update(_BINDING_RE.findall(line))
        match = _C_FUNCTION_RE.match(line.rstrip())
        if match and match.group(1) not in STOP_WORDS:
            defined.add(match.group(1))
        match = _TOPLEVEL_ASSIGN_RE.match(line)
        if match:
            defined.add(match.group(1))
    return defined


def _tokens(lines: list[str]) -> set[str]:
    tokens: set[str] = set()
    for line in _code_lines(lines):
        tokens.update(_TOKEN_RE.findall(line))
    return tokens
