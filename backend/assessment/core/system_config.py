"""
System configuration helper functions for accessing the SystemConfig table.

Configuration values are stored as JSON.

Known keys:
- section_weights: {"reading": 0.4, "grammar": 0.3, "listening": 0.2, "dialog": 0.1}
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from assessment.core.datetime_utils import utc_now
from assessment.models.models import SystemConfig

SECTION_WEIGHTS_KEY = "section_weights"


def get_config(db: Session, key: str, default: Any = None) -> Any:
    """
    Get a configuration value from the SystemConfig table.

    Args:
        db: Database session
        key: Configuration key to retrieve
        default: Default value to return if key doesn't exist

    Returns:
        The configuration value, or default if not found
    """
    config = db.query(SystemConfig).filter(SystemConfig.key == key).first()
    if config is None:
        return default
    return config.value


def set_config(db: Session, key: str, value: Any) -> SystemConfig:
    """
    Set a configuration value, creating the entry if needed, and commit.

    Args:
        db: Database session
        key: Configuration key to set
        value: Value to store (must be JSON-serializable)

    Returns:
        The SystemConfig instance (new or updated)
    """
    config = db.query(SystemConfig).filter(SystemConfig.key == key).first()

    if config is None:
        config = SystemConfig(key=key, value=value, updated_at=utc_now())
        db.add(config)
    else:
        config.value = value
        config.updated_at = utc_now()  # type: ignore[assignment]

    db.commit()
    db.refresh(config)
    return config


def get_section_weights(db: Session) -> Optional[Dict[str, float]]:
    """
    Get the configured finalizer section weights.

    Returns:
        Dictionary mapping section names to weights, or None if not configured
    """
    return get_config(db, SECTION_WEIGHTS_KEY)


def set_section_weights(db: Session, weights: Dict[str, float]) -> SystemConfig:
    """Store finalizer section weights."""
    return set_config(db, SECTION_WEIGHTS_KEY, weights)
