"""Daemon configuration: defaults, merging, validation and TOML files."""

from __future__ import annotations

import dataclasses
import os
import tomllib
from dataclasses import dataclass, field
from typing import Any

import tomli_w


class ConfigError(ValueError):
    """The configuration is invalid or cannot be decoded."""


@dataclass
class IPRDConfig:
    """Settings of the IP report daemon."""

    debug: bool = False
    auto: bool = False
    filter: bool = False
    listen_interface: str = ""
    forward_port: int = 0
    ignore_addresses: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Raise ConfigError when a required value is missing or out of range."""
        if not self.listen_interface:
            raise ConfigError("ListenInterface must be present")
        if self.forward_port <= 0:
            raise ConfigError("ForwardPort must be positive")

    def merge(self, target: IPRDConfig | None) -> IPRDConfig:
        """Return a copy overridden by the set values of target."""
        result = dataclasses.replace(self, ignore_addresses=list(self.ignore_addresses))
        if target is None:
            return result
        result.debug = result.debug or target.debug
        result.auto = result.auto or target.auto
        result.filter = result.filter or target.filter
        if target.listen_interface:
            result.listen_interface = target.listen_interface
        if target.forward_port > 0:
            result.forward_port = target.forward_port
        if target.ignore_addresses:
            result.ignore_addresses = list(target.ignore_addresses)
        return result

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration keyed as in the TOML file."""
        return {
            "debug": self.debug,
            "auto": self.auto,
            "filter": self.filter,
            "listen_interface": self.listen_interface,
            "forward_port": self.forward_port,
            "ignore_addrs": list(self.ignore_addresses),
        }


def default_config() -> IPRDConfig:
    return IPRDConfig(listen_interface="eth0", forward_port=7788)


def parse_config(supplied: IPRDConfig | None) -> IPRDConfig:
    """Merge supplied over the defaults and validate the result."""
    cfg = default_config().merge(supplied)
    cfg.validate()
    return cfg


def _get(doc: dict[str, Any], key: str, kind: type) -> Any:
    """Look a key up case-insensitively; missing gives kind's zero value."""
    value = next((v for k, v in doc.items() if k.casefold() == key), None)
    if value is None:
        return kind()
    if type(value) is not kind:
        raise ConfigError(f"{key}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def config_from_bytes(data: bytes | str) -> IPRDConfig:
    """Decode TOML data and merge it over the defaults."""
    try:
        doc = tomllib.loads(data.decode("utf-8") if isinstance(data, bytes) else data)
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(str(exc)) from exc
    addrs = _get(doc, "ignore_addrs", list)
    if not all(isinstance(a, str) for a in addrs):
        raise ConfigError("ignore_addrs: expected an array of strings")
    return parse_config(
        IPRDConfig(
            debug=_get(doc, "debug", bool),
            auto=_get(doc, "auto", bool),
            filter=_get(doc, "filter", bool),
            listen_interface=_get(doc, "listen_interface", str),
            forward_port=_get(doc, "forward_port", int),
            ignore_addresses=list(addrs),
        )
    )


def config_from_file(path: str | os.PathLike[str]) -> IPRDConfig:
    """Read a TOML configuration file."""
    with open(path, "rb") as handle:
        return config_from_bytes(handle.read())


def write_config_to_file(
    supplied: IPRDConfig | None, path: str | os.PathLike[str]
) -> None:
    """Write supplied, merged over the defaults, as TOML to path."""
    cfg = parse_config(supplied)
    with open(path, "wb") as handle:
        tomli_w.dump(cfg.to_dict(), handle)