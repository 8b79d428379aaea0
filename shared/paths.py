import os
from pathlib import Path

# The root directory of the project
ROOT_DIR = Path(os.path.dirname(os.path.abspath(__file__))).parent
