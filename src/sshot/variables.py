"""Variable environment and templating for sshot.

Each host gets one :class:`VariableEnvironment`, seeded from the host's
inventory vars and grown during the run by facts, task vars and registered
outputs. Later writes win, which gives the precedence host vars < facts <
task vars < registered outputs.

Templates use the ``{{.name}}`` / ``{{ .a.b }}`` reference syntax of the
playbook format. Only those references are substituted; the rest of the
text, shell syntax included, is copied through as is:

    >>> env = VariableEnvironment({"os": "ubuntu"})
    >>> env.render("apt-get install -y nginx # {{.os}}")
    'apt-get install -y nginx # ubuntu'
    >>> env.render("{{.missing}}")
    '<no value>'
"""

import json
import logging
import re
from typing import Any, Iterator

logger = logging.getLogger(__name__)

NO_VALUE = "<no value>"

_MISSING = object()

# {{.name}} and {{ .a.b }} references
_REFERENCE_RE = re.compile(r"\{\{\s*\.([A-Za-z_][\w.\-]*)\s*\}\}")


def stringify(value: Any) -> str:
    """Render a variable value as text.

    Args:
        value: Any JSON-like value

    Returns:
        ``true``/``false`` for booleans, integral numbers without a decimal
        point, ``null`` for None, compact JSON for lists and mappings and
        ``str()`` for everything else.

    Example:
        >>> stringify(123.0), stringify(True), stringify([1, "a"])
        ('123', 'true', '[1,"a"]')
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """Flatten a nested mapping into dotted keys with string values.

    Nested mappings recurse with ``prefix + key + "."``; lists are serialized
    as compact JSON; scalars go through :func:`stringify`.

    Example:
        >>> flatten({"os": {"name": "ubuntu", "version": 22}}, "ansible.")
        {'ansible.os.name': 'ubuntu', 'ansible.os.version': '22'}
    """
    flat: dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(flatten(value, f"{name}."))
        else:
            flat[name] = stringify(value)
    return flat


class _Unresolvable(Exception):
    """A reference path stepped through a missing key or a non-mapping."""


class VariableEnvironment:
    """Per-host variable store.

    Keys are either plain names (``os``) or flattened fact paths
    (``ansible.os.name``). Values keep their original type until rendered.

    Attributes:
        vars: The underlying name to value mapping
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.vars: dict[str, Any] = dict(initial or {})

    def __contains__(self, name: object) -> bool:
        return name in self.vars

    def __getitem__(self, name: str) -> Any:
        return self.vars[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.vars[name] = value

    def __iter__(self) -> Iterator[str]:
        return iter(self.vars)

    def __len__(self) -> int:
        return len(self.vars)

    def get(self, name: str, default: Any = None) -> Any:
        return self.vars.get(name, default)

    def update(self, values: dict[str, Any]) -> None:
        """Overwrite or extend the environment with ``values``."""
        self.vars.update(values)

    def merge_facts(self, root: str, data: dict[str, Any]) -> None:
        """Store collected facts under ``root``.

        The nested value is kept under ``root`` and every leaf is also
        available as a flattened ``root.a.b`` string.

        Args:
            root: Fact collector name
            data: Decoded JSON object returned by the collector
        """
        self.vars[root] = data
        self.vars.update(flatten(data, f"{root}."))

    def register(self, name: str, output: str) -> None:
        """Store a task's raw output under ``name``."""
        self.vars[name] = output

    def _resolve(self, path: str) -> Any:
        if path in self.vars:
            return self.vars[path]
        current: Any = self.vars
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                return _MISSING
        return current

    def lookup(self, path: str, default: Any = None) -> Any:
        """Look up a variable by flat key first, then by dotted path.

        Args:
            path: Variable name or dotted path (e.g. ``facts.os.name``)
            default: Value returned when nothing matches

        Returns:
            The stored value or ``default``
        """
        value = self._resolve(path)
        return default if value is _MISSING else value

    def has(self, name: str) -> bool:
        """True if ``name`` is a key or a resolvable dotted path."""
        return self._resolve(name) is not _MISSING

    def _substitute(self, match: re.Match) -> str:
        path = match.group(1)
        if path in self.vars:
            return stringify(self.vars[path])
        parts = path.split(".")
        current: Any = self.vars
        for i, part in enumerate(parts):
            if not isinstance(current, dict) or not part:
                raise _Unresolvable(path)
            if part not in current:
                if i < len(parts) - 1:
                    raise _Unresolvable(path)
                return NO_VALUE
            current = current[part]
        return stringify(current)

    def render(self, text: str) -> str:
        """Substitute ``{{.path}}`` references in ``text``.

        Only references are touched; every other character, including other
        ``{{``/``{%``/``{#`` sequences, is copied through. A missing name
        renders as ``<no value>``. A path that cannot be walked (a missing
        intermediate key, or a step into a non-mapping) leaves the whole
        text unchanged.
        """
        if not text or "{{" not in text:
            return text
        try:
            return _REFERENCE_RE.sub(self._substitute, text)
        except _Unresolvable as e:
            logger.debug(f"Template left unchanged, cannot resolve .{e}: {text!r}")
            return text
