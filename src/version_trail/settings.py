"""Settings for version-trail.

Process-wide configuration is read from the environment with the
VERSION_TRAIL_ prefix and covers:
- The global history-capture switch
- Audit trail defaults
- The SQLAlchemy database used by the bundled repository
- Logging output

Per-entity-type configuration (ignore sets, metadata, tracking flags) is not
environment driven. It is registered in code through TrackingRegistry.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for version-trail.

    Environment variable prefix: VERSION_TRAIL_
    """

    # -------------------------------------------------------------------------
    # History capture
    # -------------------------------------------------------------------------

    enabled: bool = Field(
        default=True,
        description="Global switch for history capture. When false every record_* "
        "call is a no-op, e.g. during bulk imports.",
    )
    audit_ignored_attributes: list[str] = Field(
        default_factory=lambda: ["updated_at"],
        description="Attributes left out of audit trail diffs unless the caller "
        "passes its own ignore set. The record timestamp already covers updated_at.",
    )

    # -------------------------------------------------------------------------
    # Version store database (SQLAlchemy)
    # -------------------------------------------------------------------------

    database_url: str = Field(
        default="sqlite:///version_trail.db",
        description="SQLAlchemy URL for the database holding the versions table.",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements. Leave off outside local debugging, snapshots may hold sensitive values.",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(default="INFO", description="Log level for the version_trail logger.")
    log_json: bool = Field(default=False, description="Emit JSON log lines instead of plain text.")

    model_config = SettingsConfigDict(env_prefix="VERSION_TRAIL_")
