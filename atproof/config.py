"""
atproof/config.py

Chain configuration: which chain ids are supported and where their JSON-RPC
endpoints live.

    timeout: 10
    chains:
      1:
        name: mainnet
        rpc_url: https://eth.merkle.io
      8453:
        name: base
        rpc_url: https://mainnet.base.org

Resolution order for from_env():
    ATPROOF_CONFIG (path to a YAML file) → built-in default (mainnet only)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from atproof.core.exceptions import ConfigError


CONFIG_ENV_VAR  = "ATPROOF_CONFIG"
DEFAULT_TIMEOUT = 10.0

DEFAULT_CHAINS = {
    1: {"name": "mainnet", "rpc_url": "https://eth.merkle.io"},
}


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    rpc_url:  str
    name:     str = ""


@dataclass
class AtproofConfig:
    chains:  Dict[int, ChainConfig] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def default(cls) -> "AtproofConfig":
        return cls.from_dict({"chains": DEFAULT_CHAINS})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AtproofConfig":
        """
        Raises:
            ConfigError: any structural problem, naming the offending key.
        """
        if not isinstance(data, Mapping):
            raise ConfigError("config root must be a mapping")

        timeout = data.get("timeout", DEFAULT_TIMEOUT)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError("timeout must be a positive number", {"timeout": timeout})

        raw_chains = data.get("chains")
        if not isinstance(raw_chains, Mapping) or not raw_chains:
            raise ConfigError("config must define at least one chain under 'chains'")

        chains: Dict[int, ChainConfig] = {}
        for key, entry in raw_chains.items():
            try:
                chain_id = int(key)
            except (TypeError, ValueError):
                raise ConfigError("chain id must be an integer", {"chain": key})
            if chain_id < 0:
                raise ConfigError("chain id must be non-negative", {"chain": key})
            if not isinstance(entry, Mapping) or not entry.get("rpc_url"):
                raise ConfigError("chain entry requires rpc_url", {"chain": key})
            chains[chain_id] = ChainConfig(
                chain_id=chain_id,
                rpc_url=str(entry["rpc_url"]),
                name=str(entry.get("name", "")),
            )

        return cls(chains=chains, timeout=float(timeout))

    @classmethod
    def from_yaml(cls, path: Path) -> "AtproofConfig":
        """Load chain configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls) -> "AtproofConfig":
        """Read ATPROOF_CONFIG env var. Defaults to mainnet only."""
        path = os.environ.get(CONFIG_ENV_VAR)
        return cls.from_yaml(Path(path)) if path else cls.default()
