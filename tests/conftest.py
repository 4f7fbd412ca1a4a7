# tests/conftest.py
"""
Shared fixtures and lightweight stand-ins for ``cppcheckdata`` objects.

``make_scope`` turns a snippet of C function-body source into a token
chain that carries the attributes the front end reads: ``str``, ``next``,
``link``, ``varId``, ``variable``, ``astOperand1/2``, ``originalName``,
``file`` and ``linenr``.  It is a toy tokenizer, good enough for the
straight-line and if/else programs used in the tests:

* the first occurrence of a name listed in ``pointers`` / ``scalars`` is
  its declaration;
* ``*`` is unary when it follows an operator, a bracket, ``;`` or
  ``return``, and then gets the next token as ``astOperand1``;
* ``->`` becomes a ``.`` token with ``originalName == "->"``.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

import pytest

from nullflow.cfg_builder import CFGBuilder


class MockVariable:
    def __init__(self, isPointer=False, nameToken=None):
        self.isPointer = isPointer
        self.nameToken = nameToken


class MockToken:
    def __init__(self, str="", **kwargs):
        self.str = str
        self.next = None
        self.previous = None
        self.link = None
        self.varId = 0
        self.variable = None
        self.astOperand1 = None
        self.astOperand2 = None
        self.originalName = ""
        self.file = "test.c"
        self.linenr = 0
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __repr__(self):
        return f"MockToken({self.str!r})"


class MockFunction:
    def __init__(self, name):
        self.name = name


class MockScope:
    def __init__(self, bodyStart=None, bodyEnd=None, type="Function", name=None):
        self.bodyStart = bodyStart
        self.bodyEnd = bodyEnd
        self.type = type
        self.className = name
        self.function = MockFunction(name) if name else None


class MockConfiguration:
    def __init__(self, scopes=None):
        self.scopes = list(scopes or [])


_TOKEN_RE = re.compile(r'"(?:\\.|[^"\\])*"|->|==|!=|<=|>=|&&|\|\||[A-Za-z_]\w*|\d+|\S')
_PAIRS = {"(": ")", "[": "]", "{": "}"}
_UNARY_CONTEXT = {"return", "sizeof", "case"}


def _tokenize(code: str) -> List[MockToken]:
    tokens: List[MockToken] = []
    for linenr, line in enumerate(code.splitlines(), 1):
        line = line.split("//", 1)[0]
        for text in _TOKEN_RE.findall(line):
            if text == "->":
                tokens.append(MockToken(".", originalName="->", linenr=linenr))
            else:
                tokens.append(MockToken(text, linenr=linenr))
    return tokens


def _is_operand_end(tok: Optional[MockToken]) -> bool:
    if tok is None:
        return False
    if tok.str in (")", "]"):
        return True
    return (tok.str[0].isalnum() or tok.str[0] == "_") and tok.str not in _UNARY_CONTEXT


def make_scope(
    code: str,
    pointers: Iterable[str] = (),
    scalars: Iterable[str] = (),
    name: Optional[str] = "main",
) -> MockScope:
    """Tokenize ``{ code }`` and return a function scope over it."""
    tokens = _tokenize("{\n" + code + "\n}")
    for tok in tokens:
        tok.linenr -= 1

    for prev, tok in zip(tokens, tokens[1:]):
        prev.next = tok
        tok.previous = prev

    stack: List[MockToken] = []
    for tok in tokens:
        if tok.str in _PAIRS:
            stack.append(tok)
        elif tok.str in _PAIRS.values():
            opener = stack.pop()
            opener.link = tok
            tok.link = opener

    kinds = {n: True for n in pointers}
    kinds.update({n: False for n in scalars})
    ids = {n: i for i, n in enumerate(kinds, 1)}
    variables = {}
    for tok in tokens:
        if tok.str not in kinds:
            continue
        tok.varId = ids[tok.str]
        if tok.str not in variables:
            variables[tok.str] = MockVariable(kinds[tok.str], nameToken=tok)
        tok.variable = variables[tok.str]

    for tok in tokens:
        if tok.str == "*":
            if _is_operand_end(tok.previous):
                tok.astOperand1 = tok.previous
                tok.astOperand2 = tok.next
            else:
                tok.astOperand1 = tok.next
        elif tok.str == "." and tok.originalName == "->":
            tok.astOperand1 = tok.previous
            tok.astOperand2 = tok.next

    return MockScope(tokens[0], tokens[-1], name=name)


# ── example programs ─────────────────────────────────────────────────

EXAMPLE_SAFE = """
    int actualValue = 10;
    int *ptr = &actualValue;
    int value;
    value = *ptr;
    printf("Value: %d\\n", value);
    return 0;
"""

EXAMPLE_IF_ELSE = """
    int *ptr = NULL;
    int actualValue = 42;
    int condition = 0;
    if (condition) {
        ptr = &actualValue;
    } else {
        ptr = NULL;
    }
    int value = *ptr;
    printf("Value: %d\\n", value);
    return 0;
"""

EXAMPLE_GUARDED = """
    int *ptr = NULL;
    int actualValue = 42;
    int condition = 1;
    if (condition) {
        ptr = &actualValue;
    } else {
        ptr = NULL;
    }
    int value;
    if (condition) {
        value = *ptr;
    } else {
        value = -1;
    }
    printf("Value: %d\\n", value);
    return 0;
"""

EXAMPLE_VARS = dict(pointers=["ptr"], scalars=["actualValue", "condition", "value"])


@pytest.fixture
def builder():
    return CFGBuilder("test")
