"""Configuration loading and the category rule store."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from import_reconciler.errors import ConfigError
from import_reconciler.models.category import (
    CategoryRule,
    MatchMode,
    RuleScope,
    sort_rules_newest_first,
)
from import_reconciler.utils.logging_config import get_logger
from import_reconciler.utils.text import DERIVED_NAME_MAX_LENGTH

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 100
DEFAULT_HISTORY_LIMIT = 300


def _positive_int(data: dict[str, object], key: str, default: int) -> int:
    raw = data.get(key, default)
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"'{key}' must be positive, got {value}")
    return value


@dataclass
class ImportConfig:
    """Configuration for the import engine.

    Attributes:
        chunk_size: Transactions per commit request.
        history_limit: Recent ledger transactions used for learning.
        derived_name_max_length: Maximum length of names derived from descriptions.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    history_limit: int = DEFAULT_HISTORY_LIMIT
    derived_name_max_length: int = DERIVED_NAME_MAX_LENGTH

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ImportConfig":
        """Create from dictionary."""
        return cls(
            chunk_size=_positive_int(data, "chunk_size", DEFAULT_CHUNK_SIZE),
            history_limit=_positive_int(data, "history_limit", DEFAULT_HISTORY_LIMIT),
            derived_name_max_length=_positive_int(
                data, "derived_name_max_length", DERIVED_NAME_MAX_LENGTH
            ),
        )


@dataclass
class LedgerConfig:
    """Configuration for the ledger API.

    Attributes:
        base_url: Dashboard API root (without the /api/v1 suffix).
        api_token_env: Environment variable holding the bearer token.
        timeout: Request timeout in seconds.
    """

    base_url: str = "http://localhost:3001"
    api_token_env: str = "FINANCE_API_TOKEN"
    timeout: float = 30.0

    @property
    def api_token(self) -> Optional[str]:
        """Read the API token from the environment."""
        return os.environ.get(self.api_token_env) or None

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LedgerConfig":
        """Create from dictionary."""
        try:
            timeout = float(data.get("timeout", 30.0))  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise ConfigError(f"'timeout' must be a number, got {data.get('timeout')!r}") from e
        return cls(
            base_url=str(data.get("base_url", "http://localhost:3001")).rstrip("/"),
            api_token_env=str(data.get("api_token_env", "FINANCE_API_TOKEN")),
            timeout=timeout,
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "import_reconciler.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "import_reconciler.log")),
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        import_settings: Import engine configuration.
        ledger: Ledger API configuration.
        logging: Logging configuration.
        category_rules: User rules, newest first.
        rules_path: File the rules were loaded from (and are saved to).
    """

    import_settings: ImportConfig = field(default_factory=ImportConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    category_rules: list[CategoryRule] = field(default_factory=list)
    rules_path: Path = field(default_factory=lambda: Path("config") / "category_rules.yaml")


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def load_settings(path: Path) -> tuple[ImportConfig, LedgerConfig, LoggingConfig]:
    """Load settings from settings.yaml.

    Args:
        path: Path to settings.yaml.

    Returns:
        Tuple of (ImportConfig, LedgerConfig, LoggingConfig).
    """
    data = load_yaml_file(path)

    import_settings = ImportConfig()
    if data.get("import"):
        import_settings = ImportConfig.from_dict(data["import"])  # type: ignore[arg-type]

    ledger = LedgerConfig()
    if data.get("ledger"):
        ledger = LedgerConfig.from_dict(data["ledger"])  # type: ignore[arg-type]

    logging_config = LoggingConfig()
    if data.get("logging"):
        logging_config = LoggingConfig.from_dict(data["logging"])  # type: ignore[arg-type]

    return import_settings, ledger, logging_config


def load_category_rules(path: Path) -> list[CategoryRule]:
    """Load category rules from the rule file.

    A missing file means no rules yet. Entries that cannot be parsed are
    skipped with a warning so one bad rule does not disable the rest.

    Args:
        path: Path to category_rules.yaml.

    Returns:
        Rules sorted newest first.

    Raises:
        ConfigError: If 'rules' is present but not a list.
    """
    if not path.exists():
        return []

    data = load_yaml_file(path)

    rules: list[CategoryRule] = []
    rule_list = data.get("rules")
    if rule_list is None:
        return rules
    if not isinstance(rule_list, list):
        raise ConfigError(f"'rules' must be a list, got {type(rule_list).__name__}")

    for index, rule_data in enumerate(rule_list):
        if not isinstance(rule_data, dict):
            logger.warning(f"Skipping rule #{index + 1} in {path}: not a mapping")
            continue
        try:
            rules.append(CategoryRule.from_dict(rule_data))
        except (KeyError, ValueError) as e:
            logger.warning(f"Skipping invalid rule #{index + 1} in {path}: {e}")

    return sort_rules_newest_first(rules)


def save_category_rules(path: Path, rules: list[CategoryRule]) -> None:
    """Save category rules to the rule file.

    Args:
        path: Path to category_rules.yaml.
        rules: Rules to persist (stored in the given order).
    """
    data = {"rules": [rule.to_dict() for rule in rules]}

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    logger.info(f"Saved {len(rules)} category rules to {path}")


def create_category_rule(
    rules: list[CategoryRule],
    keyword: str,
    category_id: str,
    match_mode: MatchMode = MatchMode.CONTAINS,
    applies_to: RuleScope = RuleScope.ALL,
    name: Optional[str] = None,
) -> list[CategoryRule]:
    """Return a new rule list with a freshly created rule first.

    Raises:
        ConfigError: If the keyword is blank.
    """
    if not keyword.strip():
        raise ConfigError("Rule keyword must not be empty")
    rule = CategoryRule.create(
        keyword=keyword.strip(),
        category_id=category_id,
        match_mode=match_mode,
        applies_to=applies_to,
        name=name,
    )
    return [rule, *rules]


def delete_category_rule(rules: list[CategoryRule], rule_id: str) -> list[CategoryRule]:
    """Return a new rule list without the rule with the given ID.

    Raises:
        ConfigError: If no rule has that ID.
    """
    remaining = [rule for rule in rules if rule.id != rule_id]
    if len(remaining) == len(rules):
        raise ConfigError(f"No rule with id '{rule_id}'")
    return remaining


def load_config(
    settings_path: Optional[Path] = None,
    rules_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> Config:
    """Load complete configuration.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        rules_path: Path to category_rules.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Complete Config object.
    """
    if config_dir is None:
        config_dir = Path("config")

    if settings_path is None:
        settings_path = config_dir / "settings.yaml"
    if rules_path is None:
        rules_path = config_dir / "category_rules.yaml"

    config = Config(rules_path=rules_path)

    # Settings are optional - use defaults if missing
    if settings_path.exists():
        config.import_settings, config.ledger, config.logging = load_settings(settings_path)
        logger.info(f"Loaded settings from {settings_path}")
    else:
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    config.category_rules = load_category_rules(rules_path)
    logger.info(f"Loaded {len(config.category_rules)} category rules from {rules_path}")

    return config
