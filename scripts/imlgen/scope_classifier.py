"""Dependency scope classification.

Assigns resolved artifacts, unresolved dependencies and project references
to IDEA scopes (PROVIDED, COMPILE, RUNTIME, TEST and custom scopes) from
``plus``/``minus`` configuration rules.

Rules:
    - A scope reaches ``(union of plus configs) - (union of minus configs)``.
    - Scopes are processed in priority order; an identity claimed by an
      earlier scope is dropped from every later scope (first match wins).
    - ``RUNTIME_TEST`` is not a priority participant: whatever it reaches is
      added to both RUNTIME and TEST after exclusivity has been applied.
    - A dependency RUNTIME holds that ``testCompile`` also reaches is added
      to TEST, so tests compile against it.
"""

from dataclasses import dataclass, field

from .iml_models import (
    FAN_OUT_TARGETS, RUNTIME_TEST, SCOPE_PRIORITY, Configuration, ScopeRules,
)

# Scope rules the java plugin contributes.
DEFAULT_SCOPES = {
    "PROVIDED": ScopeRules("PROVIDED", plus=[], minus=[]),
    "COMPILE": ScopeRules("COMPILE", plus=["compile"], minus=[]),
    "RUNTIME": ScopeRules("RUNTIME", plus=["runtime"], minus=["compile"]),
    "TEST": ScopeRules("TEST", plus=["testRuntime"], minus=["runtime"]),
}

# A RUNTIME dependency that testCompile reaches and compile does not is also listed under TEST.
COMPILE_CONFIGURATION = "compile"
TEST_COMPILE = "testCompile"


@dataclass
class ClassifiedScope:
    """Result of classification for one output scope.

    Attributes:
        name: Scope name.
        identities: Identities assigned to this scope.
        sources: Configuration names to walk, in order, when building the
            ordered library list (the scope's own ``plus`` configurations,
            then ``testCompile`` or fanned-out ``RUNTIME_TEST`` configurations).
    """
    name: str
    identities: set = field(default_factory=set)
    sources: list = field(default_factory=list)


def _ordered_unique(names) -> list:
    seen = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


def default_scopes(customizations: dict = None) -> dict:
    """Build scope rules from the java plugin defaults plus user customizations.

    For scopes that already exist, customized ``plus``/``minus`` lists are
    appended. Unknown names (custom scopes, ``RUNTIME_TEST``) are added.

    Args:
        customizations: Scope name → ScopeRules (or dict with ``plus``/``minus``).

    Returns:
        Ordered dict of scope name → ScopeRules.
    """
    scopes = {
        name: ScopeRules(name, list(rules.plus), list(rules.minus))
        for name, rules in DEFAULT_SCOPES.items()
    }
    for name, custom in (customizations or {}).items():
        if isinstance(custom, dict):
            custom = ScopeRules(name, list(custom.get("plus", [])), list(custom.get("minus", [])))
        if name in scopes:
            scopes[name].plus = _ordered_unique(scopes[name].plus + list(custom.plus))
            scopes[name].minus = _ordered_unique(scopes[name].minus + list(custom.minus))
        else:
            scopes[name] = ScopeRules(name, _ordered_unique(custom.plus), _ordered_unique(custom.minus))
    return scopes


def scope_order(scopes: dict) -> list:
    """Priority order of real scopes: built-ins first, then custom scopes as declared."""
    custom = [n for n in scopes if n not in SCOPE_PRIORITY and n != RUNTIME_TEST]
    return list(SCOPE_PRIORITY) + custom


def flatten_configurations(configurations: dict) -> dict:
    """Fold ``extends_from`` into each configuration.

    The flattened configuration lists its own declarations and entries
    first, followed by each inherited configuration's (depth-first, in
    ``extends_from`` order). Cycles and unknown parents are ignored.

    Args:
        configurations: Name → Configuration as declared.

    Returns:
        Name → Configuration with inherited content included.
    """
    def _collect(name, visited):
        if name in visited or name not in configurations:
            return []
        visited.add(name)
        chain = [configurations[name]]
        for parent in configurations[name].extends_from:
            chain.extend(_collect(parent, visited))
        return chain

    flattened = {}
    for name, conf in configurations.items():
        chain = _collect(name, set())
        flattened[name] = Configuration(
            name=name,
            extends_from=list(conf.extends_from),
            declared=[d for c in chain for d in c.declared],
            artifacts=[a for c in chain for a in c.artifacts],
            unresolved=[u for c in chain for u in c.unresolved],
            projects=[p for c in chain for p in c.projects],
        )
    return flattened


def _reachable(config_names: list, configurations: dict) -> set:
    identities = set()
    for name in config_names:
        conf = configurations.get(name)
        if conf is None:
            continue
        identities.update(entry.identity for entry in conf.entries())
    return identities


def classify(scopes: dict, configurations: dict) -> dict:
    """Assign every reachable identity to its output scope(s).

    Args:
        scopes: Scope name → ScopeRules (see ``default_scopes``).
        configurations: Name → flattened Configuration.

    Returns:
        Ordered dict of scope name → ClassifiedScope, in priority order.
        Scopes that reach nothing are still present (with empty sets).
    """
    result = {}
    claimed = set()
    for name in scope_order(scopes):
        rules = scopes.get(name)
        if rules is None:
            result[name] = ClassifiedScope(name)
            continue
        reached = _reachable(rules.plus, configurations) - _reachable(rules.minus, configurations)
        own = reached - claimed
        claimed |= own
        result[name] = ClassifiedScope(name, identities=own, sources=list(rules.plus))

    overlap = result["RUNTIME"].identities & _reachable([TEST_COMPILE], configurations)
    overlap -= _reachable([COMPILE_CONFIGURATION], configurations)
    if overlap:
        test = result["TEST"]
        test.identities |= overlap
        test.sources = _ordered_unique(test.sources + [TEST_COMPILE])

    fan_out = scopes.get(RUNTIME_TEST)
    if fan_out is not None:
        reached = _reachable(fan_out.plus, configurations) - _reachable(fan_out.minus, configurations)
        for target in FAN_OUT_TARGETS:
            scope = result[target]
            scope.identities |= reached
            scope.sources = _ordered_unique(scope.sources + list(fan_out.plus))
    return result
