import logging
from datetime import datetime, timezone
from typing import List, Optional

import semver

from app.models.schemas import DeploymentConfig
from app.services.service_errors import ServiceError

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ["development", "staging", "production"]


def parse_version(value: Optional[str]) -> Optional[semver.Version]:
    """Parse a semantic version, tolerating a leading "v"; None when invalid."""
    text = (value or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return semver.Version.parse(text)
    except (TypeError, ValueError):
        return None


def parse_port(value: Optional[str]) -> Optional[int]:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if port < 1 or port > 65535:
        return None
    return port


def parse_bool(value: Optional[str]) -> Optional[bool]:
    normalized = (value or "").strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    return None


def validate_deployment_inputs(environment: str, version: str, port: str = "8080", enable_ssl: str = "true") -> DeploymentConfig:
    """Validate deployment inputs, reporting every problem at once."""
    errors: List[str] = []

    if environment not in VALID_ENVIRONMENTS:
        errors.append(f"Invalid environment: {environment}. Must be one of: {', '.join(VALID_ENVIRONMENTS)}")

    parsed_version = parse_version(version)
    if parsed_version is None:
        errors.append(f"Invalid version: {version}. Must be valid semver (e.g., 1.0.0)")

    port_number = parse_port(port)
    if port_number is None:
        errors.append(f"Invalid port: {port}. Must be between 1 and 65535")

    ssl = parse_bool(enable_ssl)
    if ssl is None:
        errors.append(f"Invalid enable-ssl: {enable_ssl}. Must be true or false")

    if errors:
        logger.error("Input validation failed", extra={"errors": errors})
        raise ServiceError("Input validation failed", status_code=422, code="invalid_inputs", errors=errors)

    config = DeploymentConfig(
        environment=environment,
        version=str(parsed_version),
        port=port_number,
        ssl=ssl,
        timestamp=datetime.now(timezone.utc),
    )
    logger.info("Inputs validated", extra={"environment": environment, "version": config.version, "port": port_number})
    return config
