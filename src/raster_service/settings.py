import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_PREFIX = "RASTER_SERVICE_"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process configuration read from the environment.

    Variables are prefixed with RASTER_SERVICE_ (e.g. RASTER_SERVICE_PORT);
    MAX_UPLOAD_MB and RELOAD keep their unprefixed names. Command-line flags
    given to `raster-service` take precedence over these values.
    """

    host: str = "0.0.0.0"
    port: int = 8081
    log_level: str = "info"
    log_json: bool = False
    shutdown_timeout: int = 10
    max_upload_mb: int = 300
    reload: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        return cls(
            host=get("HOST") or defaults.host,
            port=int(get("PORT") or defaults.port),
            log_level=get("LOG_LEVEL") or defaults.log_level,
            log_json=_env_bool(get("LOG_JSON"), defaults.log_json),
            shutdown_timeout=int(get("SHUTDOWN_TIMEOUT") or defaults.shutdown_timeout),
            max_upload_mb=int(env.get("MAX_UPLOAD_MB") or defaults.max_upload_mb),
            reload=_env_bool(env.get("RELOAD"), defaults.reload),
        )
