from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()

DEFAULT_URL = "https://secure.aleks.com/xmlrpc"
ENV_PREFIX = "ALEKS_"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    url: str
    username: str
    password: str
    from_date: str | None
    to_date: str | None
    class_codes: tuple[str, ...]
    log_level: str


def _env(name: str) -> str | None:
    return os.getenv(ENV_PREFIX + name) or None


def _split_class_codes(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(code.strip() for code in raw.split(",") if code.strip())


def get_settings() -> Settings:
    missing = [ENV_PREFIX + name for name in ("USERNAME", "PASSWORD") if _env(name) is None]
    if missing:
        raise ConfigError(f"required environment variables are not set: {', '.join(missing)}")

    return Settings(
        url=_env("URL") or DEFAULT_URL,
        username=_env("USERNAME") or "",
        password=_env("PASSWORD") or "",
        from_date=_env("FROM_COMPLETION_DATE"),
        to_date=_env("TO_COMPLETION_DATE"),
        class_codes=_split_class_codes(_env("CLASSCODES")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
