import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)

DEFAULT_VOICE_MODEL = "aura-2-thalia-en"


class ClarionConfig(BaseModel):
    deepgram_api_key: Optional[str] = Field(default=None, description="Deepgram API key; speaking is a no-op without it")
    voice_model: str = Field(default=DEFAULT_VOICE_MODEL, description="Aura voice used for English text")
    language_detection: bool = Field(default=True, description="Switch to a per-language voice when non-English text is detected")
    rest_max_chars: int = Field(default=1000, gt=0, description="Texts shorter than this use the one-shot REST endpoint")
    rest_timeout_s: float = Field(default=30.0, gt=0, description="Timeout for one-shot synthesis requests")
    flush_threshold: int = Field(default=900, gt=0, lt=2000, description="Unflushed characters allowed before an automatic Flush")
    flush_every: int = Field(default=3, gt=0, description="Send a Flush after this many streamed segments")
    send_interval_ms: int = Field(default=10, ge=0, description="Pause between streamed segments")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def has_credential(self) -> bool:
        return bool(self.deepgram_api_key)


def load_config(config_path: Optional[Path] = None) -> ClarionConfig:
    if config_path is None:
        config_path = Path(".env")

    if config_path.exists():
        load_dotenv(config_path)
        logger.info(f"Loaded environment variables from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables only")

    try:
        config = ClarionConfig(
            deepgram_api_key=os.getenv("DEEPGRAM_API_KEY") or None,
            voice_model=os.getenv("VOICE_MODEL", DEFAULT_VOICE_MODEL),
            language_detection=os.getenv("LANGUAGE_DETECTION", "true").lower() in ("true", "1", "yes"),
            rest_max_chars=int(os.getenv("REST_MAX_CHARS", "1000")),
            rest_timeout_s=float(os.getenv("REST_TIMEOUT_S", "30.0")),
            flush_threshold=int(os.getenv("FLUSH_THRESHOLD", "900")),
            flush_every=int(os.getenv("FLUSH_EVERY", "3")),
            send_interval_ms=int(os.getenv("SEND_INTERVAL_MS", "10")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        # The key is optional at load time; speak() logs and does nothing without it
        if not config.deepgram_api_key:
            logger.warning("DEEPGRAM_API_KEY is not set. Speech will be disabled until a key is configured.")

        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise


def create_example_env_file(path: Path = Path(".env.example")):
    example_content = f"""# Deepgram API Key - Get from https://console.deepgram.com/
DEEPGRAM_API_KEY=your_deepgram_api_key_here

# Aura voice for English text
VOICE_MODEL={DEFAULT_VOICE_MODEL}

# Use a per-language voice when French, Spanish, Japanese, German, Dutch or Italian is detected
LANGUAGE_DETECTION=true

# Texts shorter than this are synthesized in one REST request; longer ones are streamed
REST_MAX_CHARS=1000
REST_TIMEOUT_S=30.0

# Streaming session tuning
FLUSH_THRESHOLD=900
FLUSH_EVERY=3
SEND_INTERVAL_MS=10

# Logging level
LOG_LEVEL=INFO
"""

    with open(path, "w") as f:
        f.write(example_content)

    logger.info(f"Created example environment file at {path}")


def setup_logging(log_level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
