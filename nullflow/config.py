"""
nullflow.config
===============

Analysis options shared by the front end, the dataflow engine and the
checker.

Options are immutable; derive a variant with :func:`dataclasses.replace`::

    from dataclasses import replace
    strict = replace(AnalysisOptions(), report_potentially_null=False)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_NULL_LITERALS: FrozenSet[str] = frozenset(
    {"NULL", "nullptr", "0", "(void*)0", "((void*)0)"}
)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning("ignoring unrecognised value %r for %s", raw, key)
    return default


@dataclass(frozen=True)
class AnalysisOptions:
    """Tunable knobs of a single analysis run.

    Attributes
    ----------
    null_literals:
        Expression spellings (whitespace removed) treated as the null
        pointer constant.
    report_potentially_null:
        Report dereferences of ``POTENTIALLY_NULL`` pointers.  Enabled by
        default: such a dereference is unsafe on at least one path.
    report_null_returns:
        Report ``return p;`` where ``p`` is known to be ``NULL``.
    """

    null_literals: FrozenSet[str] = field(default=DEFAULT_NULL_LITERALS)
    report_potentially_null: bool = True
    report_null_returns: bool = True

    def is_null_literal(self, text: Optional[str]) -> bool:
        """Return ``True`` if *text* spells a null pointer constant."""
        if not text:
            return False
        return "".join(text.split()) in self.null_literals

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> AnalysisOptions:
        """Build options from ``NULLFLOW_*`` environment variables.

        ``NULLFLOW_NULL_LITERALS``   comma-separated spellings of null
        ``NULLFLOW_REPORT_POSSIBLE`` report POTENTIALLY_NULL dereferences
        ``NULLFLOW_REPORT_RETURNS``  report null returns
        """
        env = os.environ if env is None else env
        literals: Iterable[str] = DEFAULT_NULL_LITERALS
        raw = env.get("NULLFLOW_NULL_LITERALS")
        if raw:
            literals = ["".join(part.split()) for part in raw.split(",") if part.strip()]
        return cls(
            null_literals=frozenset(literals),
            report_potentially_null=_env_flag(env, "NULLFLOW_REPORT_POSSIBLE", True),
            report_null_returns=_env_flag(env, "NULLFLOW_REPORT_RETURNS", True),
        )


DEFAULT_OPTIONS = AnalysisOptions()
