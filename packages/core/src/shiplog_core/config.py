import base64
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "repos_dir": "~/.cache/shiplog/repos",  # persistent clones for the local backend
    "clone_size_limit_kb": 60000,  # repos above this (GitHub `size`, KB) use the remote backend
    "branch_scoped": True,  # only look for previous runs on the deployed branch
    "max_attempt_hops": 50,
    "per_page": 100,
    "pr_file_workers": 8,
    "github_base_url": "https://api.github.com",
    "paths": None,  # explicit path filters; None = use the workflow's on.push paths
}


def get_env(name: str) -> Optional[str]:
    """Read an environment variable, also accepting the GitHub Actions INPUT_ form.

    Empty strings count as unset.
    """
    value = os.environ.get(name) or os.environ.get(f"INPUT_{name}")
    return value or None


def _decode_private_key(value: Optional[str]) -> Optional[str]:
    if not value or value.lstrip().startswith("-----BEGIN"):
        return value
    # Anything that is not PEM is taken to be base64-encoded PEM.
    return base64.b64decode(value).decode("utf-8")


def load_config(config_path: str = ".shiplog.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .shiplog.yml in the current directory
      3. CLI argument overrides
    Credentials and the ``paths`` input are then resolved from the environment.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if config.get("paths") is None:
        config["paths"] = get_env("SHIPLOG_PATHS")
    elif isinstance(config["paths"], list):
        # The YAML file may list paths; the resolver takes the input-string form.
        config["paths"] = "\n".join(config["paths"])

    config["github_token"] = get_env("GITHUB_TOKEN")
    config["github_app_id"] = get_env("GITHUB_APP_ID")
    config["github_app_private_key"] = _decode_private_key(get_env("GITHUB_APP_PRIVATE_KEY"))
    config["github_app_installation_id"] = get_env("GITHUB_APP_INSTALLATION_ID")

    return config
