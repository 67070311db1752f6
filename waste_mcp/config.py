"""Configuration Management for the Waste Management MCP Server.

This module provides centralized configuration management for the waste
management MCP server. It handles environment variables, default values, and
configuration validation using Pydantic models.

The configuration is organized into logical sections:
- Server configuration (host, port, debug)
- Logging and monitoring settings
- Record storage backend selection
- Redis connection settings
- Sampling broker settings (responder strategy, timeout)
- Fallback policy (fetch limits and focus-area thresholds)

Classes
-------
ServerConfig
    Server-related configuration settings
LoggingConfig
    Logging and monitoring configuration
StorageConfig
    Record store backend configuration
RedisConfig
    Redis configuration for the shared record store
SamplingConfig
    Sampling broker configuration
PolicyConfig
    Tunable heuristics used by the sampling-aware tools
AppConfig
    Main application configuration container

Functions
---------
get_config
    Get the global configuration instance
load_config
    Load configuration from environment variables
reload_config
    Force a reload from the environment

Environment Variables
--------------------
MCP_HOST : str
    Server host address (default: "127.0.0.1")
MCP_PORT : int
    Server port number (default: 8000)
MCP_LOG_LEVEL : str
    Logging level (default: "INFO")
MCP_STORAGE_BACKEND : str
    Record store backend, "memory" or "redis" (default: "memory")
MCP_DATA_SEED_PATH : str
    Optional JSON file used to seed the in-memory record store
MCP_SAMPLING_RESPONDER : str
    Responder bound at startup: "none", "placeholder" or "client" (default: "client")
MCP_SAMPLING_TIMEOUT : float
    Seconds to wait for a sampling reply (default: 30)

Examples
--------
    >>> from waste_mcp.config import get_config
    >>> config = get_config()
    >>> config.sampling.timeout_seconds
    30.0

See Also
--------
pydantic : Data validation and settings management
waste_mcp.constants : Default values for the fallback policy
"""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from . import constants


class ServerConfig(BaseModel):
    """Server configuration settings.

    Attributes
    ----------
    host : str
        Server host address
    port : int
        Server port number
    debug : bool
        Enable debug mode
    """

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port number")
    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        """Validate host address format."""
        if not v or not isinstance(v, str):
            raise ValueError("Host must be a non-empty string")
        return v


class LoggingConfig(BaseModel):
    """Logging and monitoring configuration.

    Attributes
    ----------
    level : str
        Logging level
    json_format : bool
        Emit JSON lines instead of human-readable output
    file_path : Optional[str]
        Path to log file (None for console only)
    max_file_size_mb : int
        Maximum log file size in MB
    backup_count : int
        Number of backup log files to keep
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Logging level")
    json_format: bool = Field(default=False, description="Emit JSON log lines")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, description="Maximum log file size in MB")
    backup_count: int = Field(default=5, ge=1, description="Number of backup log files")


class StorageConfig(BaseModel):
    """Record store configuration.

    Attributes
    ----------
    storage_backend : str
        Record store backend ('memory' or 'redis')
    data_seed_path : Optional[str]
        JSON file loaded into the in-memory store at startup
    """

    storage_backend: str = Field(default="memory", description="Record store backend ('memory' or 'redis')")
    data_seed_path: Optional[str] = Field(default=None, description="JSON seed file for the memory backend")

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        """Validate storage backend type."""
        if v not in ["memory", "redis"]:
            raise ValueError("Storage backend must be 'memory' or 'redis'")
        return v

    @field_validator("data_seed_path")
    @classmethod
    def validate_seed_path(cls, v):
        """Resolve the seed file to an absolute path when one is given."""
        if v is None or v == "":
            return None
        return str(Path(v).expanduser().absolute())


class RedisConfig(BaseModel):
    """Redis configuration for the shared record store.

    Attributes
    ----------
    host : str
        Redis host address
    port : int
        Redis port number
    password : Optional[str]
        Redis password
    database : int
        Redis database number
    key_prefix : str
        Prefix for collection hash keys
    socket_timeout : int
        Socket timeout in seconds
    """

    host: str = Field(default="localhost", description="Redis host address")
    port: int = Field(default=6379, ge=1, le=65535, description="Redis port number")
    password: Optional[str] = Field(default=None, description="Redis password")
    database: int = Field(default=0, ge=0, le=15, description="Redis database number")
    key_prefix: str = Field(default="waste", description="Prefix for collection hash keys")
    socket_timeout: int = Field(default=5, ge=1, description="Socket timeout in seconds")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        """Validate Redis host address."""
        if not v or not v.strip():
            raise ValueError("Redis host cannot be empty")
        return v.strip()


class SamplingConfig(BaseModel):
    """Sampling broker configuration.

    Attributes
    ----------
    responder : str
        Responder strategy bound at startup ('none', 'placeholder', 'client')
    timeout_seconds : float
        How long a sampling request may stay pending
    """

    responder: Literal["none", "placeholder", "client"] = Field(default="client", description="Responder strategy")
    timeout_seconds: float = Field(
        default=constants.DEFAULT_SAMPLING_TIMEOUT, gt=0, description="Sampling reply timeout in seconds"
    )


class PolicyConfig(BaseModel):
    """Tunable heuristics used by the sampling-aware tools.

    Defaults come from ``waste_mcp.constants``; override per deployment with
    the ``MCP_POLICY_*`` environment variables.
    """

    report_inspection_limit: int = Field(default=constants.REPORT_INSPECTION_LIMIT, ge=1)
    report_contaminant_limit: int = Field(default=constants.REPORT_CONTAMINANT_LIMIT, ge=1)
    report_shipment_limit: int = Field(default=constants.REPORT_SHIPMENT_LIMIT, ge=1)
    source_history_limit: int = Field(default=constants.SOURCE_HISTORY_LIMIT, ge=1)
    checklist_inspection_limit: int = Field(default=constants.CHECKLIST_INSPECTION_LIMIT, ge=1)
    checklist_contaminant_limit: int = Field(default=constants.CHECKLIST_CONTAMINANT_LIMIT, ge=1)
    checklist_shipment_limit: int = Field(default=constants.CHECKLIST_SHIPMENT_LIMIT, ge=1)
    contamination_focus_threshold: int = Field(default=constants.CONTAMINATION_FOCUS_THRESHOLD, ge=0)
    acceptance_focus_threshold: float = Field(default=constants.ACCEPTANCE_FOCUS_THRESHOLD, ge=0, le=1)
    compliance_focus_threshold: int = Field(default=constants.COMPLIANCE_FOCUS_THRESHOLD, ge=0)


class AppConfig(BaseModel):
    """Main application configuration container.

    Attributes
    ----------
    server : ServerConfig
        Server configuration
    logging : LoggingConfig
        Logging configuration
    storage : StorageConfig
        Record store configuration
    redis : RedisConfig
        Redis configuration
    sampling : SamplingConfig
        Sampling broker configuration
    policy : PolicyConfig
        Fallback policy configuration
    app_name : str
        Application name
    version : str
        Application version
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    app_name: str = Field(default=constants.APP_NAME, description="Application name")
    version: str = Field(default=constants.APP_VERSION, description="Application version")


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


def load_config() -> AppConfig:
    """Load configuration from environment variables.

    Returns
    -------
    AppConfig
        Configured application settings

    Notes
    -----
    Values are read from variables with the "MCP_" prefix. Each section is
    built in one go so that Pydantic validates the final values:
    - MCP_HOST -> server.host
    - MCP_STORAGE_BACKEND -> storage.storage_backend
    - MCP_SAMPLING_TIMEOUT -> sampling.timeout_seconds
    - MCP_POLICY_CONTAMINATION_THRESHOLD -> policy.contamination_focus_threshold
    - etc.
    """
    defaults = AppConfig()

    server = ServerConfig(
        host=os.getenv("MCP_HOST", defaults.server.host),
        port=int(os.getenv("MCP_PORT", defaults.server.port)),
        debug=_env_bool("MCP_DEBUG", defaults.server.debug),
    )

    log_level = os.getenv("MCP_LOG_LEVEL", defaults.logging.level).upper()
    if log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        log_level = defaults.logging.level
    logging_config = LoggingConfig(
        level=log_level,
        json_format=_env_bool("MCP_LOG_JSON", defaults.logging.json_format),
        file_path=os.getenv("MCP_LOG_FILE", defaults.logging.file_path),
        max_file_size_mb=int(os.getenv("MCP_LOG_MAX_SIZE_MB", defaults.logging.max_file_size_mb)),
        backup_count=int(os.getenv("MCP_LOG_BACKUP_COUNT", defaults.logging.backup_count)),
    )

    storage = StorageConfig(
        storage_backend=os.getenv("MCP_STORAGE_BACKEND", defaults.storage.storage_backend),
        data_seed_path=os.getenv("MCP_DATA_SEED_PATH", defaults.storage.data_seed_path),
    )

    redis = RedisConfig(
        host=os.getenv("MCP_REDIS_HOST", defaults.redis.host),
        port=int(os.getenv("MCP_REDIS_PORT", defaults.redis.port)),
        password=os.getenv("MCP_REDIS_PASSWORD", defaults.redis.password),
        database=int(os.getenv("MCP_REDIS_DATABASE", defaults.redis.database)),
        key_prefix=os.getenv("MCP_REDIS_KEY_PREFIX", defaults.redis.key_prefix),
        socket_timeout=int(os.getenv("MCP_REDIS_SOCKET_TIMEOUT", defaults.redis.socket_timeout)),
    )

    sampling = SamplingConfig(
        responder=os.getenv("MCP_SAMPLING_RESPONDER", defaults.sampling.responder).lower(),
        timeout_seconds=float(os.getenv("MCP_SAMPLING_TIMEOUT", defaults.sampling.timeout_seconds)),
    )

    policy = PolicyConfig(
        report_inspection_limit=int(os.getenv("MCP_POLICY_REPORT_INSPECTIONS", defaults.policy.report_inspection_limit)),
        report_contaminant_limit=int(
            os.getenv("MCP_POLICY_REPORT_CONTAMINANTS", defaults.policy.report_contaminant_limit)
        ),
        report_shipment_limit=int(os.getenv("MCP_POLICY_REPORT_SHIPMENTS", defaults.policy.report_shipment_limit)),
        source_history_limit=int(os.getenv("MCP_POLICY_SOURCE_HISTORY", defaults.policy.source_history_limit)),
        checklist_inspection_limit=int(
            os.getenv("MCP_POLICY_CHECKLIST_INSPECTIONS", defaults.policy.checklist_inspection_limit)
        ),
        checklist_contaminant_limit=int(
            os.getenv("MCP_POLICY_CHECKLIST_CONTAMINANTS", defaults.policy.checklist_contaminant_limit)
        ),
        checklist_shipment_limit=int(
            os.getenv("MCP_POLICY_CHECKLIST_SHIPMENTS", defaults.policy.checklist_shipment_limit)
        ),
        contamination_focus_threshold=int(
            os.getenv("MCP_POLICY_CONTAMINATION_THRESHOLD", defaults.policy.contamination_focus_threshold)
        ),
        acceptance_focus_threshold=float(
            os.getenv("MCP_POLICY_ACCEPTANCE_THRESHOLD", defaults.policy.acceptance_focus_threshold)
        ),
        compliance_focus_threshold=int(
            os.getenv("MCP_POLICY_COMPLIANCE_THRESHOLD", defaults.policy.compliance_focus_threshold)
        ),
    )

    return AppConfig(
        server=server,
        logging=logging_config,
        storage=storage,
        redis=redis,
        sampling=sampling,
        policy=policy,
        app_name=os.getenv("MCP_APP_NAME", defaults.app_name),
        version=os.getenv("MCP_VERSION", defaults.version),
    )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance.

    Returns
    -------
    AppConfig
        Global configuration instance, loaded on first access
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> AppConfig:
    """Reload configuration from environment variables.

    Returns
    -------
    AppConfig
        Reloaded configuration instance
    """
    global _config
    _config = load_config()
    return _config
