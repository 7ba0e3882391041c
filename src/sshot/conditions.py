"""``when:`` condition grammar.

Conditions are parsed into one of three variants:

- :class:`Defined` for ``<name> is defined``
- :class:`Equals` for ``<lhs> == <rhs>``
- :class:`Always` for an empty condition and anything unrecognized

Unrecognized conditions evaluate to true, so a typo in ``when:`` runs the
task rather than silently skipping it.
"""

from dataclasses import dataclass

from .variables import VariableEnvironment

DEFINED_SUFFIX = "is defined"


@dataclass(frozen=True)
class Always:
    """Condition that is always true."""

    def evaluate(self, env: VariableEnvironment) -> bool:
        return True

    def __str__(self) -> str:
        return ""


@dataclass(frozen=True)
class Equals:
    """``lhs == rhs``: lhs is templated, rhs is a literal.

    Attributes:
        lhs: Left side, rendered through the environment then trimmed
        rhs: Right side, already trimmed of whitespace and quotes
    """

    lhs: str
    rhs: str

    def evaluate(self, env: VariableEnvironment) -> bool:
        return env.render(self.lhs).strip() == self.rhs

    def __str__(self) -> str:
        return f"{self.lhs} == {self.rhs}"


@dataclass(frozen=True)
class Defined:
    """``name is defined``: true if the environment has ``name``."""

    name: str

    def evaluate(self, env: VariableEnvironment) -> bool:
        return env.has(self.name)

    def __str__(self) -> str:
        return f"{self.name} {DEFINED_SUFFIX}"


Condition = Always | Equals | Defined


def _strip_literal(text: str) -> str:
    return text.strip().strip("'\"").strip()


def parse_condition(text: str) -> Condition:
    """Parse a ``when:`` expression.

    Args:
        text: Raw condition text from the playbook

    Returns:
        The parsed condition variant

    Example:
        >>> parse_condition("{{.os}} == 'ubuntu'")
        Equals(lhs='{{.os}} ', rhs='ubuntu')
        >>> parse_condition("nginx_version is defined")
        Defined(name='nginx_version')
    """
    condition = (text or "").strip()
    if not condition:
        return Always()

    if condition.endswith(DEFINED_SUFFIX):
        return Defined(condition[: -len(DEFINED_SUFFIX)].strip())

    parts = condition.split("==")
    if len(parts) == 2:
        return Equals(parts[0], _strip_literal(parts[1]))

    return Always()


def evaluate_condition(text: str, env: VariableEnvironment) -> bool:
    """Parse and evaluate ``text`` against ``env``."""
    return parse_condition(text).evaluate(env)
