import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional, Tuple

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Plan catalog
    MAX_PLANS: int = 4  # built-ins + custom

    # Expiry windows (days)
    EXPIRY_WARNING_DAYS: int = 7
    EXPIRY_NOTICE_DAYS: str = "7,3,1"  # comma-separated

    # Sellers whose plan id is missing from the catalog
    FALLBACK_TO_FREE_PLAN: bool = False

    # Admin audit trail
    AUDIT_ENABLED: bool = True
    AUDIT_MAX_ENTRIES: int = 1000  # 0 = unbounded

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()

DEFAULT_EXPIRY_NOTICE_DAYS = (7, 3, 1)


def _parse_notice_days(raw: str) -> Tuple[List[int], List[str]]:
    """Split a comma-separated day list into (positive days, rejected parts)."""
    days, rejected = set(), []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            day = int(part)
        except ValueError:
            rejected.append(part)
            continue
        if day <= 0:
            rejected.append(part)
        else:
            days.add(day)
    return sorted(days, reverse=True), rejected


def expiry_notice_days(settings_obj: Optional[Settings] = None) -> List[int]:
    """Parse EXPIRY_NOTICE_DAYS into a descending list of whole days.

    A malformed value falls back to DEFAULT_EXPIRY_NOTICE_DAYS with a warning;
    validate_config reports it at startup.
    """
    cfg = settings_obj or settings
    days, rejected = _parse_notice_days(getattr(cfg, "EXPIRY_NOTICE_DAYS", ""))
    if rejected:
        logging.getLogger("marketplace").warning(
            "[config] malformed EXPIRY_NOTICE_DAYS, using defaults",
            extra={"rejected": rejected},
        )
        return list(DEFAULT_EXPIRY_NOTICE_DAYS)
    return days


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate plan engine configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("marketplace")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.MAX_PLANS < 3:
        problems.append(f"MAX_PLANS={cfg.MAX_PLANS} leaves no room for the built-in plans")
    if cfg.EXPIRY_WARNING_DAYS < 0:
        problems.append("EXPIRY_WARNING_DAYS cannot be negative")
    if cfg.AUDIT_MAX_ENTRIES < 0:
        problems.append("AUDIT_MAX_ENTRIES cannot be negative (0 means unbounded)")
    _, rejected = _parse_notice_days(cfg.EXPIRY_NOTICE_DAYS)
    if rejected:
        problems.append(f"EXPIRY_NOTICE_DAYS must be positive integers, got {rejected!r}")

    if problems:
        message = f"Invalid configuration: {'; '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
