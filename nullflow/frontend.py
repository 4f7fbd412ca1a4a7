"""
nullflow.frontend
=================

Drives a statement listener (normally a :class:`~nullflow.cfg_builder.CFGBuilder`)
from Cppcheck dump data.

The walker consumes the token list of a function scope in document order
and fires one listener event per recognised statement.  It relies only on
the ``cppcheckdata`` attributes listed below, read through ``getattr`` so
any duck-typed token model works:

    Token:    str, next, link, varId, variable, astOperand1, astOperand2,
              originalName
    Variable: isPointer, nameToken
    Scope:    type, bodyStart, bodyEnd, className, function

Typical usage::

    import cppcheckdata
    from nullflow.frontend import build_all_cfgs
    from nullflow.checkers import run_checker

    data = cppcheckdata.parsedump("foo.c.dump")
    for configuration in data.configurations:
        for name, cfg in build_all_cfgs(configuration).items():
            print(name, run_checker(cfg).findings)

Implementation notes
--------------------
* Nested ``{ ... }`` blocks are flattened into the enclosing sequence.
* ``if``/``else`` (including ``else if`` chains) map to
  ``on_condition_enter`` / ``on_condition_else`` / ``on_condition_exit``.
* ``while``, ``for``, ``do`` and ``switch`` are skipped entirely and
  recorded as malformed input; loops are not modelled.
* Dereference sites are read from the AST: a unary ``*`` whose operand is a
  variable, or a ``.`` token spelled ``->`` in the source.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from nullflow.cfg_builder import CFGBuilder
from nullflow.config import AnalysisOptions, DEFAULT_OPTIONS
from nullflow.ctrlflow_graph import CFG
from nullflow.errors import IssueKind, IssueLog

logger = logging.getLogger(__name__)

_LOOP_KEYWORDS = frozenset({"while", "for", "do", "switch"})
_JUMP_KEYWORDS = frozenset({"return", "break", "continue", "goto"})
_OPENERS = frozenset({"(", "[", "{"})
_CLOSERS = frozenset({")", "]", "}"})


class StatementListener(Protocol):
    """The event interface a front end drives."""

    def on_declaration(self, text: str, is_pointer: bool, initializer_is_null: bool,
                       name: Optional[str], **kwargs: Any) -> Any: ...

    def on_assignment(self, text: str, lhs_name: Optional[str], rhs_is_null: bool,
                      **kwargs: Any) -> Any: ...

    def on_expression(self, text: str, **kwargs: Any) -> Any: ...

    def on_jump(self, text: str, returned_name: Optional[str] = None,
                **kwargs: Any) -> Any: ...

    def on_condition_enter(self, condition_text: str, **kwargs: Any) -> Any: ...

    def on_condition_else(self) -> Any: ...

    def on_condition_exit(self) -> Any: ...


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------

def _tok_str(tok) -> str:
    """Safely get the string of a token."""
    if tok is None:
        return ""
    return tok.str if tok.str else ""


def _var_id(tok) -> Optional[int]:
    vid = getattr(tok, "varId", None)
    return int(vid) if vid else None


def _tok_text(tok) -> str:
    """Source spelling of a token (``->`` is simplified to ``.`` by Cppcheck)."""
    if getattr(tok, "originalName", "") == "->":
        return "->"
    return _tok_str(tok)


def _join(tokens: Iterable) -> str:
    return " ".join(_tok_text(t) for t in tokens)


def _find_top_level(tokens: Sequence, s: str) -> int:
    """Index of the first *s* token outside any bracket pair, or -1."""
    depth = 0
    for idx, tok in enumerate(tokens):
        ts = _tok_str(tok)
        if ts in _OPENERS:
            depth += 1
        elif ts in _CLOSERS:
            depth -= 1
        elif depth == 0 and ts == s:
            return idx
    return -1


def dereference_sites(tokens: Iterable) -> Tuple[str, ...]:
    """Names of variables dereferenced within *tokens*, in token order."""
    names: List[str] = []
    for tok in tokens:
        ts = _tok_str(tok)
        if ts == "*" and getattr(tok, "astOperand2", None) is None:
            operand = getattr(tok, "astOperand1", None)
        elif ts == "." and getattr(tok, "originalName", "") == "->":
            operand = getattr(tok, "astOperand1", None)
        else:
            continue
        if operand is not None and _var_id(operand):
            names.append(_tok_str(operand))
    return tuple(names)


def _declared_token(tokens: Sequence):
    """The token that declares a variable in this statement, if any."""
    for tok in tokens:
        var = getattr(tok, "variable", None)
        if var is not None and getattr(var, "nameToken", None) is tok:
            return tok
    return None


# ---------------------------------------------------------------------------
# Walker
# ---------------------------------------------------------------------------

class _TokenWalker:
    """Single forward pass over a token range, emitting listener events."""

    def __init__(
        self,
        listener: StatementListener,
        options: AnalysisOptions,
        issues: IssueLog,
    ) -> None:
        self.listener = listener
        self.options = options
        self.issues = issues

    # ----- statement sequences ----------------------------------------------

    def walk_range(self, tok, limit_tok) -> None:
        """Process the statements between *tok* and *limit_tok* (exclusive)."""
        while tok is not None and tok is not limit_tok:
            s = _tok_str(tok)
            if s == "{" and tok.link is not None:
                self.walk_range(tok.next, tok.link)
                tok = tok.link.next
            elif s == ";":
                tok = tok.next
            elif s == "if":
                tok = self._walk_if(tok, limit_tok)
            elif s in _LOOP_KEYWORDS:
                tok = self._skip_construct(tok, limit_tok)
            elif s == "else":
                self.issues.record(
                    IssueKind.STRUCTURAL_INCONSISTENCY,
                    "'else' token outside of an 'if' statement",
                )
                tok = tok.next
            else:
                tok = self._walk_statement(tok, limit_tok)

    def _walk_branch(self, tok, limit_tok):
        """Process one branch body (block or single statement)."""
        if tok is None or tok is limit_tok:
            return tok
        s = _tok_str(tok)
        if s == "{" and tok.link is not None:
            self.walk_range(tok.next, tok.link)
            return tok.link.next
        if s == "if":
            return self._walk_if(tok, limit_tok)
        if s in _LOOP_KEYWORDS:
            return self._skip_construct(tok, limit_tok)
        if s == ";":
            return tok.next
        return self._walk_statement(tok, limit_tok)

    def _walk_if(self, tok, limit_tok):
        paren = tok.next
        if _tok_str(paren) != "(" or paren.link is None:
            self.issues.record(
                IssueKind.MALFORMED_INPUT, "'if' without a parenthesised condition"
            )
            _, nxt = self._take_statement(tok.next, limit_tok)
            return nxt

        cond = self._tokens_between(paren, paren.link)
        self.listener.on_condition_enter(
            _join(cond), dereferences=dereference_sites(cond), source_ref=tok
        )
        tok = self._walk_branch(paren.link.next, limit_tok)
        if tok is not None and tok is not limit_tok and _tok_str(tok) == "else":
            self.listener.on_condition_else()
            tok = self._walk_branch(tok.next, limit_tok)
        self.listener.on_condition_exit()
        return tok

    # ----- single statements ------------------------------------------------

    @staticmethod
    def _tokens_between(open_tok, close_tok) -> List:
        result = []
        tok = open_tok.next
        while tok is not None and tok is not close_tok:
            result.append(tok)
            tok = tok.next
        return result

    @staticmethod
    def _take_statement(tok, limit_tok) -> Tuple[List, Any]:
        """Collect tokens up to the next top-level ';'.

        Returns ``(tokens, token after the ';')``.
        """
        collected: List = []
        while tok is not None and tok is not limit_tok and _tok_str(tok) != ";":
            if _tok_str(tok) in _OPENERS and tok.link is not None:
                closing = tok.link
                while tok is not closing:
                    collected.append(tok)
                    tok = tok.next
            collected.append(tok)
            tok = tok.next
        if tok is not None and tok is not limit_tok:
            tok = tok.next
        return collected, tok

    def _is_null(self, tokens: Sequence) -> bool:
        return self.options.is_null_literal("".join(_tok_str(t) for t in tokens))

    def _walk_statement(self, tok, limit_tok):
        tokens, nxt = self._take_statement(tok, limit_tok)
        if not tokens:
            return nxt
        text = _join(tokens) + ";"
        first = tokens[0]

        if _tok_str(first) in _JUMP_KEYWORDS:
            returned = None
            value = tokens[1:]
            if _tok_str(first) == "return" and len(value) == 1 and _var_id(value[0]):
                returned = _tok_str(value[0])
            self.listener.on_jump(
                text, returned, dereferences=dereference_sites(tokens), source_ref=first
            )
            return nxt

        decl = _declared_token(tokens)
        if decl is not None:
            rest = tokens[next(i for i, t in enumerate(tokens) if t is decl) + 1:]
            eq = _find_top_level(rest, "=")
            initializer = rest[eq + 1:] if eq >= 0 else []
            self.listener.on_declaration(
                text,
                bool(getattr(decl.variable, "isPointer", False)),
                self._is_null(initializer),
                _tok_str(decl),
                has_initializer=eq >= 0,
                dereferences=dereference_sites(initializer),
                source_ref=decl,
            )
            return nxt

        eq = _find_top_level(tokens, "=")
        if eq > 0:
            lhs, rhs = tokens[:eq], tokens[eq + 1:]
            lhs_name = _tok_str(lhs[0]) if len(lhs) == 1 and _var_id(lhs[0]) else None
            self.listener.on_assignment(
                text,
                lhs_name,
                self._is_null(rhs),
                dereferences=dereference_sites(tokens),
                source_ref=tokens[eq],
            )
            return nxt

        self.listener.on_expression(
            text, dereferences=dereference_sites(tokens), source_ref=first
        )
        return nxt

    # ----- unsupported constructs -------------------------------------------

    def _skip_branch(self, tok, limit_tok):
        if tok is None or tok is limit_tok:
            return tok
        s = _tok_str(tok)
        if s == "{" and tok.link is not None:
            return tok.link.next
        if s == "if":
            paren = tok.next
            if _tok_str(paren) == "(" and paren.link is not None:
                tok = self._skip_branch(paren.link.next, limit_tok)
                if tok is not None and tok is not limit_tok and _tok_str(tok) == "else":
                    tok = self._skip_branch(tok.next, limit_tok)
                return tok
        if s in _LOOP_KEYWORDS:
            return self._skip_construct(tok, limit_tok)
        _, nxt = self._take_statement(tok, limit_tok)
        return nxt

    def _skip_construct(self, tok, limit_tok):
        keyword = _tok_str(tok)
        self.issues.record(
            IssueKind.MALFORMED_INPUT,
            f"unsupported construct '{keyword}' skipped",
            _join(self._tokens_between(tok, tok.next.link))
            if _tok_str(tok.next) == "(" and tok.next.link is not None
            else keyword,
        )
        if keyword == "do":
            tok = self._skip_branch(tok.next, limit_tok)
            if _tok_str(tok) == "while":
                _, tok = self._take_statement(tok, limit_tok)
            return tok
        paren = tok.next
        if _tok_str(paren) == "(" and paren.link is not None:
            return self._skip_branch(paren.link.next, limit_tok)
        _, nxt = self._take_statement(tok, limit_tok)
        return nxt


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def walk_scope(
    scope,
    listener: StatementListener,
    options: Optional[AnalysisOptions] = None,
    issues: Optional[IssueLog] = None,
) -> IssueLog:
    """Fire *listener* events for every statement in a function *scope*.

    Returns the issue log the walker recorded into.
    """
    issues = issues if issues is not None else IssueLog()
    body_start = getattr(scope, "bodyStart", None)
    body_end = getattr(scope, "bodyEnd", None)
    if body_start is None or body_end is None:
        issues.record(IssueKind.MALFORMED_INPUT, "scope has no body")
        return issues
    walker = _TokenWalker(listener, options or DEFAULT_OPTIONS, issues)
    walker.walk_range(body_start.next, body_end)
    return issues


def _scope_name(scope) -> Optional[str]:
    function = getattr(scope, "function", None)
    name = getattr(function, "name", None) if function is not None else None
    return name or getattr(scope, "className", None)


def build_cfg(scope, options: Optional[AnalysisOptions] = None) -> CFG:
    """Build the statement CFG of one function scope."""
    builder = CFGBuilder(_scope_name(scope))
    walk_scope(scope, builder, options, issues=builder.issues)
    return builder.build()


def build_all_cfgs(configuration, options: Optional[AnalysisOptions] = None) -> Dict[str, CFG]:
    """Build CFGs for every function scope in a Cppcheck configuration."""
    result: Dict[str, CFG] = {}
    for scope in getattr(configuration, "scopes", []):
        if getattr(scope, "type", None) != "Function":
            continue
        cfg = build_cfg(scope, options)
        key = cfg.name or f"<function@{len(result)}>"
        logger.debug("built %r", cfg)
        result[key] = cfg
    return result
