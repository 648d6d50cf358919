"""
This module encapsulates the reading and processing of the config file
/etc/licensekeeper.yaml and provides callers with a mechanism to access the
various properties specified therein.
"""

import os
import sys

import yaml

# Read/validate the configuration file
# An explicit path in the environment wins, then the system config, then the
# development config in the working directory
CONFIG_PATH = os.environ.get("LICENSEKEEPER_CONFIG")
if not CONFIG_PATH:
    if os.name == "nt":  # Windows
        CONFIG_PATH = r"C:\ProgramData\LicenseKeeper\licensekeeper.yaml"
    else:  # Unix-like (Linux, macOS, BSD)
        CONFIG_PATH = "/etc/licensekeeper.yaml"

    if not os.path.exists(CONFIG_PATH):
        if os.path.exists("licensekeeper-dev.yaml"):
            CONFIG_PATH = "licensekeeper-dev.yaml"
        elif os.path.exists("licensekeeper-dev.yaml.example"):
            CONFIG_PATH = "licensekeeper-dev.yaml.example"

DEFAULT_LOG_LEVELS = "INFO|WARNING|ERROR|CRITICAL"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Defaults for the "license" section.  Durations are in seconds.
LICENSE_DEFAULTS = {
    "auto_renew_enabled": True,
    "auto_renew_offset_seconds": 72 * 3600,
    "renewal_interval_seconds": 7 * 24 * 3600,
    "multi_instance_enabled": False,
    "tenant_id": 1,
    "server_url": "https://license.licensekeeper.io/v1",
    "instance_role": "main",
    "instance_id": None,
    "activation_key": None,
    "backoff_initial_seconds": 5,
    "backoff_max_seconds": 3600,
    "shutdown_grace_seconds": 10,
    "default_feature_enabled": True,
    "management_token_secret": "",  # nosec B105 - empty default, not a hardcoded secret
    "management_token_algorithm": "HS256",
    "management_token_ttl_seconds": 3600,
}


def apply_defaults(raw_config):
    """
    Fill in every key the rest of the package relies on.  Keys already present
    in the file are left untouched.
    """
    loaded = raw_config if isinstance(raw_config, dict) else {}

    if not "logging" in loaded.keys() or loaded["logging"] is None:
        loaded["logging"] = {}
    if not "level" in loaded["logging"].keys():
        loaded["logging"]["level"] = DEFAULT_LOG_LEVELS
    if not "format" in loaded["logging"].keys():
        loaded["logging"]["format"] = DEFAULT_LOG_FORMAT

    if not "license" in loaded.keys() or loaded["license"] is None:
        loaded["license"] = {}
    for key, value in LICENSE_DEFAULTS.items():
        if not key in loaded["license"].keys():
            loaded["license"][key] = value

    return loaded


def load_config(path):
    """
    Read a YAML configuration file and return it with defaults applied.
    A missing file yields the defaults alone.
    """
    if not path or not os.path.exists(path):
        return apply_defaults({})

    with open(path, "r", encoding="utf-8") as file:
        return apply_defaults(yaml.safe_load(file))


try:
    config = load_config(CONFIG_PATH)
except yaml.YAMLError as exc:
    if hasattr(exc, "problem_mark"):
        mark = exc.problem_mark
        print(
            f"Error in {CONFIG_PATH} at line {mark.line + 1}, column {mark.column + 1}",
            file=sys.stderr,
        )
    sys.exit(1)


def get_config():
    """
    This function allows a caller to retrieve the config object.
    """
    return config


def get_license_config():
    """
    Get the "license" section of the configuration.
    """
    return config["license"]


def get_log_levels():
    """
    Get the pipe-separated logging levels configuration.
    """
    return config["logging"]["level"]


def get_log_format():
    """
    Get the logging format string.
    """
    return config["logging"]["format"]


def get_log_file():
    """
    Get the log file path if specified.
    """
    return config["logging"].get("file")
