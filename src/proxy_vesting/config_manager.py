"""
proxy-vesting Configuration Manager

Centralized configuration for the migration workflows:
- Environment-based configs (development/testnet/production)
- Config file loading (YAML/JSON)
- Command-line override support
- Environment variable support (PROXY_VESTING_*)
- Config validation
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv

from proxy_vesting.blockchain.vesting_schedule import AllocationEntry, VestingParams
from proxy_vesting.core import constants
from proxy_vesting.core.exceptions import ConfigurationError, InvalidInputError

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent / "config"
ENV_PREFIX = "PROXY_VESTING_"


class Environment(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    TESTNET = "testnet"
    PRODUCTION = "production"


@dataclass
class NetworkConfig:
    """Chain connection settings"""
    rpc_url: str = constants.DEFAULT_RPC_URL
    ss58_format: int = constants.SS58_FORMAT
    type_registry_preset: Optional[str] = None

    def validate(self):
        """Validate network configuration"""
        if not self.rpc_url.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid rpc_url: {self.rpc_url}. Must be a ws:// or wss:// endpoint")
        if not (0 <= self.ss58_format <= 16383):
            raise ValueError(f"Invalid ss58_format: {self.ss58_format}. Must be between 0-16383")


@dataclass
class DistributionConfig:
    """Allocation table and provisioning settings"""
    unit: int = constants.UNIT
    proxy_index_start: int = constants.DEFAULT_PROXY_INDEX_START
    proxy_type: str = constants.DEFAULT_PROXY_TYPE
    funding_amount: int = constants.DEFAULT_FUNDING_AMOUNT
    multisig: str = ""
    treasury_pallet_id: str = constants.TREASURY_PALLET_ID
    vesting_templates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    allocations: List[Dict[str, Any]] = field(default_factory=list)

    def validate(self):
        """Validate distribution configuration"""
        if self.unit < 1:
            raise ValueError(f"Invalid unit: {self.unit}. Must be >= 1")
        if self.proxy_index_start < 0:
            raise ValueError(f"Invalid proxy_index_start: {self.proxy_index_start}. Must be >= 0")
        if self.funding_amount < 0:
            raise ValueError(f"Invalid funding_amount: {self.funding_amount}. Must be >= 0")
        if len(self.treasury_pallet_id.encode()) > constants.ACCOUNT_ID_LENGTH:
            raise ValueError(f"Invalid treasury_pallet_id: {self.treasury_pallet_id}. Longer than an account id")
        try:
            self.allocation_entries()
        except InvalidInputError as exc:
            raise ValueError(exc.message) from exc

    def _template(self, vesting: Union[str, Dict[str, Any]], index: int) -> VestingParams:
        if isinstance(vesting, str):
            if vesting not in self.vesting_templates:
                raise InvalidInputError(f"Allocation {index} references unknown vesting template '{vesting}'")
            vesting = self.vesting_templates[vesting]
        try:
            return VestingParams(
                start=int(vesting["start"]),
                period=int(vesting["period"]),
                period_count=int(vesting["period_count"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidInputError(f"Allocation {index} has a malformed vesting template: {exc}") from exc

    def allocation_entries(self) -> List[AllocationEntry]:
        """
        Parse the configured allocation table.

        Amounts may be written as YAML integers or digit strings; both are
        read as exact integers.
        """
        entries = []
        for index, raw in enumerate(self.allocations):
            if not isinstance(raw, dict) or "amount" not in raw or "vesting" not in raw:
                raise InvalidInputError(f"Allocation {index} must have 'amount' and 'vesting'")
            try:
                amount = int(str(raw["amount"]).replace("_", ""))
            except ValueError as exc:
                raise InvalidInputError(f"Allocation {index} has a non-integer amount: {raw['amount']!r}") from exc
            entry = AllocationEntry(amount=amount, template=self._template(raw["vesting"], index))
            entry.template.validate()
            if entry.amount < 0:
                raise InvalidInputError(f"Allocation {index} has a negative amount: {entry.amount}")
            entries.append(entry)
        return entries


@dataclass
class UpgradeConfig:
    """Runtime upgrade watcher settings"""
    wait_blocks: int = constants.DEFAULT_UPGRADE_WAIT_BLOCKS
    timeout_seconds: int = constants.DEFAULT_UPGRADE_TIMEOUT_SECONDS
    unchecked_weight: int = constants.DEFAULT_UNCHECKED_WEIGHT
    watched_sections: List[str] = field(default_factory=lambda: ["Sudo", "ParachainSystem"])

    def validate(self):
        """Validate upgrade configuration"""
        if self.wait_blocks < 0:
            raise ValueError(f"Invalid wait_blocks: {self.wait_blocks}. Must be >= 0")
        if self.timeout_seconds < 1:
            raise ValueError(f"Invalid timeout_seconds: {self.timeout_seconds}. Must be >= 1")
        if self.unchecked_weight < 0:
            raise ValueError(f"Invalid unchecked_weight: {self.unchecked_weight}. Must be >= 0")


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    json: bool = True
    log_file: Optional[str] = None

    def validate(self):
        """Validate logging configuration"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")


SECTIONS = {
    "network": NetworkConfig,
    "distribution": DistributionConfig,
    "upgrade": UpgradeConfig,
    "logging": LoggingConfig,
}


class ConfigManager:
    """
    Configuration Manager for proxy-vesting

    Handles loading, validation, and access to configuration settings
    from multiple sources with proper precedence:
    1. Command-line arguments (highest priority)
    2. Environment variables (PROXY_VESTING_*, RPC_SERVER)
    3. Environment-specific config files
    4. Default config file
    5. Built-in defaults (lowest priority)
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 config_dir: Optional[str] = None,
                 cli_overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize Configuration Manager

        Args:
            environment: Environment name (development/testnet/production)
            config_dir: Directory containing config files
            cli_overrides: Command-line overrides keyed by "section.key"
        """
        load_dotenv()

        self.environment = self._determine_environment(environment)
        self.config_dir = Path(config_dir).resolve() if config_dir else DEFAULT_CONFIG_DIR
        self.cli_overrides = cli_overrides or {}

        self.network: NetworkConfig = None
        self.distribution: DistributionConfig = None
        self.upgrade: UpgradeConfig = None
        self.logging: LoggingConfig = None

        self._load_configuration()

    def _determine_environment(self, environment: Optional[str]) -> Environment:
        """
        Determine the environment to use

        Priority:
        1. Passed environment parameter
        2. PROXY_VESTING_ENVIRONMENT environment variable
        3. Default to DEVELOPMENT
        """
        env_str = (environment or os.getenv(f"{ENV_PREFIX}ENVIRONMENT", "development")).lower()

        env_mapping = {
            "dev": Environment.DEVELOPMENT,
            "development": Environment.DEVELOPMENT,
            "test": Environment.TESTNET,
            "testnet": Environment.TESTNET,
            "prod": Environment.PRODUCTION,
            "production": Environment.PRODUCTION,
        }

        if env_str not in env_mapping:
            raise ConfigurationError(f"Unknown environment: {env_str}")
        return env_mapping[env_str]

    def _load_configuration(self):
        """Load configuration from all sources with proper precedence"""
        default_config = self._load_config_file("default")
        env_config = self._load_config_file(self.environment.value)
        merged_config = self._merge_configs(default_config, env_config)
        merged_config = self._apply_env_variables(merged_config)
        merged_config = self._apply_cli_overrides(merged_config)

        try:
            self._parse_configuration(merged_config)
            self._validate_configuration()
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def _load_config_file(self, filename: str) -> Dict[str, Any]:
        """
        Load configuration from YAML or JSON file

        Args:
            filename: Config filename (without extension)

        Returns:
            Configuration dictionary, empty if no file exists
        """
        yaml_path = self.config_dir / f"{filename}.yaml"
        try:
            if yaml_path.exists():
                with open(yaml_path, "r") as f:
                    return yaml.safe_load(f) or {}

            json_path = self.config_dir / f"{filename}.json"
            if json_path.exists():
                with open(json_path, "r") as f:
                    return json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Could not parse config file {filename}: {exc}") from exc

        return {}

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_variables(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides (PROXY_VESTING_*)

        Environment variables format:
        PROXY_VESTING_SECTION_KEY=value

        Example:
        PROXY_VESTING_NETWORK_RPC_URL=wss://rpc.example.org
        PROXY_VESTING_UPGRADE_TIMEOUT_SECONDS=900

        RPC_SERVER is also honoured for the RPC endpoint.
        """
        result = {key: dict(value) if isinstance(value, dict) else value for key, value in config.items()}

        rpc_server = os.getenv("RPC_SERVER", "").strip()
        if rpc_server:
            result.setdefault("network", {})["rpc_url"] = rpc_server

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}ENVIRONMENT":
                continue

            parts = key[len(ENV_PREFIX):].lower().split("_")
            if len(parts) < 2:
                continue

            section = parts[0]
            config_key = "_".join(parts[1:])

            if section in SECTIONS:
                if not isinstance(result.get(section), dict):
                    result[section] = {}
                result[section][config_key] = self._parse_env_value(value)

        return result

    def _parse_env_value(self, value: str) -> Union[str, int, bool]:
        """Parse environment variable value to appropriate type"""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    def _apply_cli_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply command-line overrides keyed by "section.key"."""
        result = config.copy()

        for key, value in self.cli_overrides.items():
            if value is None:
                continue
            parts = key.split(".")
            if len(parts) == 1:
                result[key] = value
            elif len(parts) == 2:
                section, config_key = parts
                section_values = dict(result.get(section) or {})
                section_values[config_key] = value
                result[section] = section_values

        return result

    def _parse_configuration(self, config: Dict[str, Any]):
        """Parse configuration into typed objects"""
        for section, section_cls in SECTIONS.items():
            setattr(self, section, section_cls(**(config.get(section) or {})))

    def _validate_configuration(self):
        """Validate all configuration sections"""
        self.network.validate()
        self.distribution.validate()
        self.upgrade.validate()
        self.logging.validate()

    def account_secret(self) -> str:
        """
        Signing secret (SURI) for the active account.

        Read from ACCOUNT_SECRET only. Outside production a missing value falls
        back to the //Alice development key.
        """
        secret = os.getenv("ACCOUNT_SECRET", "").strip()
        if secret:
            return secret
        if self.environment == Environment.PRODUCTION:
            raise ConfigurationError("ACCOUNT_SECRET environment variable required for production")
        return constants.DEFAULT_ACCOUNT_SECRET

    def __repr__(self) -> str:
        return f"ConfigManager(environment={self.environment.value})"
