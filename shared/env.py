import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env(root: Optional[Path]):
    if root is None:
        return
    # Base .env
    load_dotenv(root / ".env", override=False)
    # Environment-specific overrides (production.env, staging.env)
    env = os.getenv("ENVIRONMENT", "development")
    load_dotenv(root / "config" / f"{env}.env", override=False)
    # Secrets override
    load_dotenv(root / "secrets" / ".env.runtime", override=False)
    # Export root for portability
    os.environ.setdefault("ORACLE_INTEGRITY_ROOT", str(root))
