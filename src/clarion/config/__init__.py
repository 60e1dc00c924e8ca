from .settings import ClarionConfig, create_example_env_file, load_config, setup_logging

__all__ = ["ClarionConfig", "create_example_env_file", "load_config", "setup_logging"]
