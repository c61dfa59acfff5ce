"""
GrantScope Configuration
Supports AWS Parameter Store for production secrets
"""
import os
from functools import lru_cache

try:
    import boto3
except ImportError:
    boto3 = None


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from AWS Parameter Store or environment"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if env_key in os.environ:
        return os.environ[env_key]

    if boto3 and os.environ.get("USE_PARAMETER_STORE"):
        try:
            ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-west-2"))
            path = os.environ.get("PARAMETER_STORE_PATH", "/grantscope/prod/")
            response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
            return response["Parameter"]["Value"]
        except Exception:
            pass

    return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_flag(name: str, default: str = "1") -> bool:
    return (os.environ.get(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # OpenAI
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
    OPENAI_MAX_TOKENS = _env_int("OPENAI_MAX_TOKENS", 4000)
    OPENAI_TEMPERATURE = _env_float("OPENAI_TEMPERATURE", 0.3)
    OPENAI_TIMEOUT = _env_float("OPENAI_TIMEOUT", 60)

    # Uploads
    MAX_FILE_SIZE = _env_int("MAX_FILE_SIZE", 25 * 1024 * 1024)
    MAX_FILES = _env_int("MAX_FILES", 5)
    # Leave room for multipart overhead so the route can report oversize itself
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE + 1024 * 1024

    # Cache (seconds)
    CACHE_DEFAULT_TTL = _env_int("CACHE_DEFAULT_TTL", 60 * 60)
    CACHE_PDF_TTL = _env_int("CACHE_PDF_TTL", 7 * 24 * 60 * 60)
    CACHE_ANALYSIS_TTL = _env_int("CACHE_ANALYSIS_TTL", 24 * 60 * 60)
    CACHE_SWEEP_INTERVAL = _env_int("CACHE_SWEEP_INTERVAL", 5 * 60)

    # Rate Limiting
    RATELIMIT_QUOTA = _env_int("RATELIMIT_QUOTA", 10)
    RATELIMIT_WINDOW = _env_float("RATELIMIT_WINDOW", 60)
    RATELIMIT_PURGE_INTERVAL = _env_float("RATELIMIT_PURGE_INTERVAL", 5 * 60)
    RATELIMIT_PREFIX = os.environ.get("RATELIMIT_PREFIX", "/api")

    # Serve a tagged sample foundation when no OpenAI key is configured
    SAMPLE_DATA_ENABLED = _env_flag("SAMPLE_DATA_ENABLED", "1")

    # AWS
    AWS_REGION = os.environ.get("AWS_REGION", "us-west-2")

    # App Version
    APP_VERSION = os.environ.get("APP_VERSION", "2026.10")
    BUILD_TIME = os.environ.get("BUILD_TIME", "")
    GIT_COMMIT = os.environ.get("GIT_COMMIT", "")


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SAMPLE_DATA_ENABLED = _env_flag("SAMPLE_DATA_ENABLED", "0")

    # Override with Parameter Store in production
    SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
    OPENAI_API_KEY = get_parameter("openai-api-key", Config.OPENAI_API_KEY)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    OPENAI_API_KEY = ""
    SAMPLE_DATA_ENABLED = True


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


@lru_cache()
def get_config(env: str = None):
    """Get configuration by environment name"""
    env = env or os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
