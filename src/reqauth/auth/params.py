"""Typed configuration schema for strategy inputs.

Every strategy describes its inputs as a :class:`ParameterSchema` -- an
ordered sequence of :class:`ParameterSpec` entries. A spec may carry a
*dynamic* rule, a pure function of the current values that returns
:class:`DisplayOverrides` (or ``None`` for "no change"). Rules never see
the network; remote-sourced select options come from an ``options_loader``
instead, which :meth:`ParameterSchema.evaluate` memoises per evaluation.

Two operations matter to callers:

* :meth:`ParameterSchema.evaluate` -- re-run every rule and return the
  flattened visible/hidden view, used by ``reqauth schema``.
* :meth:`ParameterSchema.resolve` -- apply defaults, coerce checkbox values
  to ``bool`` and reject missing required values. This is what
  :class:`~reqauth.auth.manager.SigningManager` calls before ``apply``.

Example::

    schema = ParameterSchema([
        ParameterSpec("location", ParameterKind.SELECT, default="header",
                      options=[SelectOption("header"), SelectOption("query")]),
        ParameterSpec("header_prefix", default="Bearer", optional=True,
                      dynamic=hidden_when("location", "query")),
    ])
    values = schema.resolve({"location": "query"})
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from reqauth.exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"true", "1", "yes", "on"})

ResolvedValues = dict[str, Any]
"""Parameter name -> ``str``, ``bool`` or ``None`` after :meth:`ParameterSchema.resolve`."""


class ParameterKind(str, Enum):
    """Input widget kinds a strategy parameter can take."""

    TEXT = "text"
    SECRET = "secret"
    SELECT = "select"
    CHECKBOX = "checkbox"
    GROUP = "group"


@dataclass(frozen=True)
class SelectOption:
    """One choice of a ``select`` parameter. ``label`` defaults to the value."""

    value: str
    label: str = ""

    @property
    def display(self) -> str:
        return self.label or self.value


@dataclass(frozen=True)
class DisplayOverrides:
    """Presentation changes produced by a dynamic rule.

    Every field left as ``None`` keeps the static value from the ``ParameterSpec``.
    """

    hidden: Optional[bool] = None
    label: Optional[str] = None
    description: Optional[str] = None
    options: Optional[list[SelectOption]] = None


DynamicRule = Callable[[Mapping[str, Any]], Optional[DisplayOverrides]]
OptionsLoader = Callable[[Mapping[str, Any]], Sequence[SelectOption]]


@dataclass
class ParameterSpec:
    """Static description of a single strategy input.

    Attributes:
        name: Key under which the value appears in resolved values.
        kind: Widget kind; ``group`` entries only hold ``children``.
        label: Human-readable label.
        description: Help text.
        default: Value used when the caller leaves the input unset.
        optional: When ``False`` a visible unset value fails resolution.
        multiline: Hint that the value is free-form text (PEM keys, JSON).
        placeholder: Example value shown by UIs.
        options: Static choices of a ``select``.
        children: Nested specs of a ``group``.
        advanced: Hint that the input belongs in an "advanced" section.
        dynamic: Visibility rule evaluated against the current values.
        options_loader: Remote-sourced choices of a ``select``.
    """

    name: str
    kind: ParameterKind = ParameterKind.TEXT
    label: str = ""
    description: str = ""
    default: Any = None
    optional: bool = False
    multiline: bool = False
    placeholder: str = ""
    options: list[SelectOption] = field(default_factory=list)
    children: list[ParameterSpec] = field(default_factory=list)
    advanced: bool = False
    dynamic: Optional[DynamicRule] = None
    options_loader: Optional[OptionsLoader] = None


@dataclass
class EvaluatedParameter:
    """One row of the flattened view returned by :meth:`ParameterSchema.evaluate`."""

    name: str
    kind: ParameterKind
    label: str
    description: str
    hidden: bool
    optional: bool
    default: Any = None
    group: Optional[str] = None
    options: list[SelectOption] = field(default_factory=list)
    options_error: Optional[str] = None


# --- Rule factories ---


def hidden_when(name: str, *values: Any) -> DynamicRule:
    """Build a rule hiding the parameter while ``values[name]`` is one of *values*."""

    def rule(current: Mapping[str, Any]) -> Optional[DisplayOverrides]:
        return DisplayOverrides(hidden=current.get(name) in values)

    rule.__name__ = f"hidden_when_{name}"
    return rule


def hidden_unless(name: str, *values: Any) -> DynamicRule:
    """Build a rule showing the parameter only while ``values[name]`` is one of *values*."""

    def rule(current: Mapping[str, Any]) -> Optional[DisplayOverrides]:
        return DisplayOverrides(hidden=current.get(name) not in values)

    rule.__name__ = f"hidden_unless_{name}"
    return rule


# --- Value helpers ---


def coerce_checkbox(value: Any) -> bool:
    """Coerce a raw checkbox value; strings ``true/1/yes/on`` are truthy."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def _is_unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


class ParameterSchema:
    """Ordered collection of :class:`ParameterSpec` with an evaluator and a resolver."""

    def __init__(self, parameters: Sequence[ParameterSpec]) -> None:
        self._parameters = list(parameters)
        names = [spec.name for spec, _ in self._walk()]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate parameter names: {', '.join(sorted(duplicates))}")

    def __iter__(self) -> Iterator[ParameterSpec]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def _walk(
        self,
        specs: Optional[Sequence[ParameterSpec]] = None,
        group: Optional[str] = None,
    ) -> Iterator[tuple[ParameterSpec, Optional[str]]]:
        for spec in self._parameters if specs is None else specs:
            yield spec, group
            if spec.kind is ParameterKind.GROUP:
                yield from self._walk(spec.children, spec.name)

    def leaves(self) -> list[ParameterSpec]:
        """Return every non-group spec in declaration order, groups flattened."""
        return [spec for spec, _ in self._walk() if spec.kind is not ParameterKind.GROUP]

    def names(self) -> list[str]:
        return [spec.name for spec in self.leaves()]

    def get(self, name: str) -> ParameterSpec:
        """Look up a spec by name, searching inside groups.

        Raises:
            KeyError: If no parameter is called *name*.
        """
        for spec, _ in self._walk():
            if spec.name == name:
                return spec
        raise KeyError(name)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _with_defaults(self, values: Mapping[str, Any]) -> ResolvedValues:
        # An explicit "" is kept: an empty header prefix means a bare token.
        merged: ResolvedValues = dict(values)
        for spec in self.leaves():
            raw = merged.get(spec.name)
            if raw is None:
                raw = spec.default
            if spec.kind is ParameterKind.CHECKBOX:
                raw = coerce_checkbox(raw)
            merged[spec.name] = raw
        return merged

    def _visibility(
        self, current: Mapping[str, Any]
    ) -> Iterator[tuple[ParameterSpec, Optional[str], Optional[DisplayOverrides], bool]]:
        """Yield ``(spec, group, overrides, hidden)``; a hidden group hides its children."""
        hidden_groups: set[str] = set()
        for spec, group in self._walk():
            overrides = spec.dynamic(current) if spec.dynamic is not None else None
            hidden = bool(overrides and overrides.hidden) or (
                group is not None and group in hidden_groups
            )
            if hidden and spec.kind is ParameterKind.GROUP:
                hidden_groups.add(spec.name)
            yield spec, group, overrides, hidden

    def evaluate(
        self,
        values: Mapping[str, Any],
        loaded_options: Optional[dict[str, list[SelectOption]]] = None,
    ) -> list[EvaluatedParameter]:
        """Re-run every dynamic rule against *values* and flatten the schema.

        A hidden group hides all of its children. Options loaders run at
        most once per evaluation; pass the same *loaded_options* dict to
        several calls to share results between them. A loader that raises
        is not memoised, so the next evaluation retries it, and the failure
        is reported on the row's ``options_error``.

        Args:
            values: Current raw values; defaults are applied before rules run.
            loaded_options: Memo of loader results keyed by parameter name.

        Returns:
            One :class:`EvaluatedParameter` per spec, groups included.
        """
        current = self._with_defaults(values)
        memo = loaded_options if loaded_options is not None else {}
        rows: list[EvaluatedParameter] = []

        for spec, group, overrides, hidden in self._visibility(current):
            options = list(spec.options)
            options_error: Optional[str] = None
            if spec.options_loader is not None:
                if spec.name not in memo:
                    try:
                        memo[spec.name] = list(spec.options_loader(current))
                    except Exception as exc:
                        logger.warning(
                            "Options loader for '%s' failed: %s", spec.name, exc
                        )
                        options_error = str(exc)
                options = memo.get(spec.name, options)
            if overrides is not None and overrides.options is not None:
                options = list(overrides.options)

            rows.append(
                EvaluatedParameter(
                    name=spec.name,
                    kind=spec.kind,
                    label=(overrides.label if overrides and overrides.label else None)
                    or spec.label
                    or spec.name,
                    description=(
                        overrides.description
                        if overrides and overrides.description is not None
                        else spec.description
                    ),
                    hidden=hidden,
                    optional=spec.optional,
                    default=spec.default,
                    group=group,
                    options=options,
                    options_error=options_error,
                )
            )
        return rows

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, values: Mapping[str, Any]) -> ResolvedValues:
        """Apply defaults and coercion, then validate required inputs.

        Values for hidden parameters are kept as-is; strategies decide what
        they read. Keys that do not belong to the schema pass through.

        Raises:
            InvalidConfigurationError: If a visible required parameter is
                unset, or a select value is not one of its static options.
        """
        resolved = self._with_defaults(values)
        visibility = {spec.name: hidden for spec, _, _, hidden in self._visibility(resolved)}

        missing: list[str] = []
        for spec in self.leaves():
            value = resolved.get(spec.name)
            if spec.kind is ParameterKind.CHECKBOX:
                continue
            if _is_unset(value):
                if not spec.optional and not visibility.get(spec.name, False):
                    missing.append(spec.label or spec.name)
                continue
            if spec.kind is ParameterKind.SELECT and spec.options:
                allowed = [opt.value for opt in spec.options]
                if value not in allowed:
                    raise InvalidConfigurationError(
                        f"Invalid value '{value}' for '{spec.name}'. "
                        f"Expected one of: {', '.join(allowed)}"
                    )

        if missing:
            raise InvalidConfigurationError(
                f"Missing required value(s): {', '.join(missing)}"
            )
        return resolved
