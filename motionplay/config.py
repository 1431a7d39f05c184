"""Viewer configuration loaded from config.yaml."""

import yaml
from pathlib import Path

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"


def load_config(path=None):
    """Read a YAML config file (defaults to the packaged config.yaml)."""
    path = Path(path) if path is not None else _CONFIG_PATH
    with open(path) as f:
        return yaml.safe_load(f)


CONFIG = load_config()

SKELETON = CONFIG["skeleton"]
DEFAULT_JOINTS_NUM = int(CONFIG["ric"]["default_joints_num"])
NPY_RIC_COLUMNS = int(CONFIG["ric"]["npy_columns"])
NPY_JOINTS_NUM = int(CONFIG["ric"]["npy_joints_num"])
DEFAULT_FPS = float(CONFIG["playback"]["fps"])
