"""Inventory and playbook loading.

Two layouts are supported:

- a combined file with ``inventory:`` and ``playbook:`` top-level keys
- a playbook file plus a separate inventory file (``sshot -i hosts.yml``)

Example combined file:

    inventory:
      ssh_config:
        user: deploy
        key_file: ~/.ssh/id_ed25519
      groups:
        - name: databases
          order: 1
          hosts:
            - name: db01
              address: 10.0.0.5
        - name: webservers
          order: 2
          parallel: true
          depends_on: [databases]
          hosts:
            - name: web01
              address: 10.0.0.10
              vars:
                http_port: "8080"
    playbook:
      name: Deploy
      facts:
        collectors:
          - name: system
            command: cat /etc/sshot/facts.json
      tasks:
        - name: Install nginx
          command: apt-get install -y nginx
          sudo: true
          when: "{{.system.os.family}} == Debian"

YAML is parsed with ``yaml.safe_load`` and turned into the dataclasses of
:mod:`sshot.types`. Unknown keys are ignored; wrongly typed values raise
:class:`~sshot.exceptions.ConfigurationError`.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError
from .types import (
    Config,
    CopySpec,
    FactCollector,
    GroupConfig,
    HostConfig,
    Inventory,
    Playbook,
    SSHDefaults,
    Task,
)

logger = logging.getLogger(__name__)


def _mapping(data: Any, what: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


def _list(data: dict[str, Any], key: str, what: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"{what}: '{key}' must be a list")
    return value


def _str(data: dict[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        raise ConfigurationError(f"{what}: '{key}' must be a string")
    return str(value)


def _bool(data: dict[str, Any], key: str, what: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigurationError(f"{what}: '{key}' must be true or false")
    return value


def _optional_bool(data: dict[str, Any], key: str, what: str) -> bool | None:
    if data.get(key) is None:
        return None
    return _bool(data, key, what)


def _int(data: dict[str, Any], key: str, what: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{what}: '{key}' must be an integer")
    return value


def _float(data: dict[str, Any], key: str, what: str) -> float:
    value = data.get(key, 0)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{what}: '{key}' must be a number of seconds")
    if value < 0:
        raise ConfigurationError(f"{what}: '{key}' must not be negative")
    return float(value)


def _names(data: dict[str, Any], key: str, what: str) -> list[str]:
    return [str(item) for item in _list(data, key, what)]


def parse_ssh_defaults(data: Any) -> SSHDefaults | None:
    if data is None:
        return None
    data = _mapping(data, "ssh_config")
    what = "ssh_config"
    return SSHDefaults(
        user=_str(data, "user", what),
        password=_str(data, "password", what),
        key_file=_str(data, "key_file", what),
        key_password=_str(data, "key_password", what),
        use_agent=_bool(data, "use_agent", what),
        port=_int(data, "port", what),
        strict_host_key_check=_optional_bool(data, "strict_host_key_check", what),
    )


def parse_host(data: Any) -> HostConfig:
    data = _mapping(data, "host")
    what = f"host '{data.get('name') or data.get('hostname') or data.get('address') or '?'}'"
    return HostConfig(
        name=_str(data, "name", what),
        address=_str(data, "address", what),
        hostname=_str(data, "hostname", what),
        port=_int(data, "port", what),
        user=_str(data, "user", what),
        password=_str(data, "password", what),
        key_file=_str(data, "key_file", what),
        key_password=_str(data, "key_password", what),
        use_agent=_bool(data, "use_agent", what),
        strict_host_key_check=_optional_bool(data, "strict_host_key_check", what),
        vars=dict(_mapping(data.get("vars"), f"{what} vars")),
    )


def parse_group(data: Any) -> GroupConfig:
    data = _mapping(data, "group")
    name = _str(data, "name", "group")
    if not name:
        raise ConfigurationError("group without a name")
    what = f"group '{name}'"
    return GroupConfig(
        name=name,
        hosts=[parse_host(h) for h in _list(data, "hosts", what)],
        order=_int(data, "order", what),
        parallel=_bool(data, "parallel", what),
        depends_on=_names(data, "depends_on", what),
    )


def parse_inventory(data: Any) -> Inventory:
    data = _mapping(data, "inventory")
    return Inventory(
        hosts=[parse_host(h) for h in _list(data, "hosts", "inventory")],
        groups=[parse_group(g) for g in _list(data, "groups", "inventory")],
        ssh_config=parse_ssh_defaults(data.get("ssh_config")),
    )


def _copy_spec(data: Any, what: str) -> CopySpec | None:
    if data is None:
        return None
    data = _mapping(data, f"{what} copy")
    mode = data.get("mode")
    if isinstance(mode, int) and not isinstance(mode, bool):
        # YAML 1.1 reads an unquoted 0644 as an octal integer
        mode = f"{mode:o}"
    spec = CopySpec(
        src=_str(data, "src", what),
        dest=_str(data, "dest", what),
        mode="" if mode is None else str(mode),
    )
    if not spec.src or not spec.dest:
        raise ConfigurationError(f"{what}: copy needs both 'src' and 'dest'")
    return spec


def parse_task(data: Any) -> Task:
    data = _mapping(data, "task")
    name = _str(data, "name", "task")
    if not name:
        raise ConfigurationError("task without a name")
    what = f"task '{name}'"
    allowed = _list(data, "allowed_exit_codes", what)
    if any(isinstance(code, bool) or not isinstance(code, int) for code in allowed):
        raise ConfigurationError(f"{what}: 'allowed_exit_codes' must be a list of integers")
    retries = _int(data, "retries", what)
    if retries < 0:
        raise ConfigurationError(f"{what}: 'retries' must not be negative")
    return Task(
        name=name,
        command=_str(data, "command", what),
        shell=_str(data, "shell", what),
        script=_str(data, "script", what),
        local_action=_str(data, "local_action", what),
        copy=_copy_spec(data.get("copy"), what),
        wait_for=_str(data, "wait_for", what),
        sudo=_bool(data, "sudo", what),
        when=_str(data, "when", what),
        vars=dict(_mapping(data.get("vars"), f"{what} vars")),
        depends_on=_names(data, "depends_on", what),
        retries=retries,
        retry_delay=_float(data, "retry_delay", what),
        timeout=_float(data, "timeout", what),
        until_success=_bool(data, "until_success", what),
        allowed_exit_codes=list(allowed),
        ignore_error=_bool(data, "ignore_error", what),
        register=_str(data, "register", what),
        run_once=_bool(data, "run_once", what),
        delegate_to=_str(data, "delegate_to", what),
        only_groups=_names(data, "only_groups", what),
        skip_groups=_names(data, "skip_groups", what),
    )


def parse_fact_collector(data: Any) -> FactCollector:
    data = _mapping(data, "fact collector")
    name = _str(data, "name", "fact collector")
    what = f"fact collector '{name}'"
    collector = FactCollector(
        name=name,
        command=_str(data, "command", what),
        sudo=_bool(data, "sudo", what),
    )
    if not collector.name or not collector.command:
        raise ConfigurationError(f"{what}: needs both 'name' and 'command'")
    return collector


def parse_playbook(data: Any) -> Playbook:
    data = _mapping(data, "playbook")
    facts = _mapping(data.get("facts"), "facts")
    return Playbook(
        name=_str(data, "name", "playbook"),
        parallel=_bool(data, "parallel", "playbook"),
        facts=[parse_fact_collector(c) for c in _list(facts, "collectors", "facts")],
        tasks=[parse_task(t) for t in _list(data, "tasks", "playbook")],
    )


def _apply_defaults(host: HostConfig, defaults: SSHDefaults | None) -> None:
    if not host.name:
        host.name = host.hostname or host.address

    if defaults is not None:
        host.user = host.user or defaults.user
        host.password = host.password or defaults.password
        host.key_file = host.key_file or defaults.key_file
        host.key_password = host.key_password or defaults.key_password
        host.use_agent = host.use_agent or defaults.use_agent
        host.port = host.port or defaults.port
        if host.strict_host_key_check is None:
            host.strict_host_key_check = defaults.strict_host_key_check

    if host.strict_host_key_check is None:
        host.strict_host_key_check = True


def apply_ssh_defaults(inventory: Inventory) -> None:
    """Fill unset host settings from ``inventory.ssh_config``.

    Every host, grouped or not, gets a name (explicit name, else hostname,
    else address), the inventory-wide SSH settings it does not override, and
    host key checking enabled unless something disabled it explicitly.
    """
    for host in inventory.hosts:
        _apply_defaults(host, inventory.ssh_config)
    for group in inventory.groups:
        for host in group.hosts:
            _apply_defaults(host, inventory.ssh_config)


def validate_config(config: Config) -> None:
    """Reject configurations that can never run as written.

    Raises:
        ConfigurationError: On duplicate task names, or a group depending on
            itself or on a group scheduled at or after it (which also covers
            dependency cycles)
    """
    seen: set[str] = set()
    for task in config.playbook.tasks:
        if task.name in seen:
            raise ConfigurationError(f"duplicate task name: '{task.name}'")
        seen.add(task.name)

    ordered = sorted(config.inventory.groups, key=lambda g: g.order)
    position = {g.name: i for i, g in enumerate(ordered)}
    for index, group in enumerate(ordered):
        for dependency in group.depends_on:
            if dependency == group.name:
                raise ConfigurationError(f"group '{group.name}' depends on itself")
            # Undefined groups are reported when the run reaches them
            if dependency in position and position[dependency] >= index:
                raise ConfigurationError(
                    f"group '{group.name}' depends on '{dependency}', which is not "
                    f"scheduled before it (dependency cycle or order too high)"
                )


def _read_yaml(path: str | Path, what: str) -> Any:
    path = Path(path)
    try:
        content = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"failed to read {what} file: {e}") from e
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"failed to parse {what}: {e}") from e


def load_config(playbook_path: str | Path, inventory_path: str | Path | None = None) -> Config:
    """Load, normalize and validate a configuration.

    Args:
        playbook_path: Combined file, or the playbook when ``inventory_path`` is set
        inventory_path: Separate inventory file (optional)

    Returns:
        Config with SSH defaults applied to every host

    Raises:
        ConfigurationError: If a file cannot be read, parsed or validated
    """
    if inventory_path:
        inventory = parse_inventory(_read_yaml(inventory_path, "inventory"))
        playbook = parse_playbook(_read_yaml(playbook_path, "playbook"))
        config = Config(inventory=inventory, playbook=playbook)
    else:
        data = _mapping(_read_yaml(playbook_path, "config"), "config")
        config = Config(
            inventory=parse_inventory(data.get("inventory")),
            playbook=parse_playbook(data.get("playbook")),
        )

    apply_ssh_defaults(config.inventory)
    validate_config(config)
    logger.debug(
        f"Loaded playbook '{config.playbook.name}' with {len(config.playbook.tasks)} tasks, "
        f"{len(config.inventory.hosts)} hosts, {len(config.inventory.groups)} groups"
    )
    return config
