from .config import (
    ConfigurationError,
    ManipulationDetectionConfig,
    get_config,
    get_config_manager,
)
from .env import load_env
from .logging_setup import setup_logging
from .paths import ROOT_DIR as project_root
