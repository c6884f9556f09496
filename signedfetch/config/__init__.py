import collections
import json
import logging
import os
import re
from base64 import b64decode
from copy import deepcopy
from typing import Any, List, Tuple

from yaml import safe_load as yaml_load

from signedfetch.validation.install import validate_install_configuration


class MissingConfigException(Exception):
    pass


log = logging.getLogger(__name__)

DEFAULT_YAML_PATH = "/config/signedfetch.yml"
JSON_ENV_PREFIX = "JSONCONFIG___"

TRUE_STRINGS = ("true", "True", "TRUE", "on", "On", "ON")
FALSE_STRINGS = ("false", "False", "FALSE", "off", "Off", "OFF")

default_config = {
    "signing": {
        "key_name": None,
        "excluded_params": [],
        "http": {
            "timeouts": [10, 30],
            "verify_ssl": True,
        },
    },
}


def update(d, u):
    """Deep merges `u` over a copy of `d`"""
    merged = deepcopy(d)
    for k, v in u.items():
        current = merged.get(k)
        if isinstance(v, collections.abc.Mapping) and isinstance(
            current, collections.abc.Mapping
        ):
            merged[k] = update(current, v)
        else:
            merged[k] = v
    return merged


class ConfigHelper(object):
    """
    Settings in order of precedence: `A__B__C` environment variables, the
    YAML file named by SIGNEDFETCH_YML, then `default_config`.
    """

    def __init__(self):
        self._params = None
        self.loaded_files = {}

    def load_env_var(self):
        val = {}
        for env_var in os.environ:
            if env_var.startswith("__") or "__" not in env_var:
                continue
            path, data = self._parse_path_and_value_from_envvar(env_var)
            current = val
            for c in path[:-1]:
                current = current.setdefault(c.lower(), {})
            current[path[-1].lower()] = data
        return val

    def _env_var_value_cast(self, data):
        if not isinstance(data, str):
            return data
        if data in TRUE_STRINGS:
            return True
        if data in FALSE_STRINGS:
            return False
        if re.match(r"^-?\d+$", data):
            return int(data)
        return data

    def _parse_path_and_value_from_envvar(
        self, env_var_name: str
    ) -> Tuple[List[str], Any]:
        """
        SIGNING__KEY_NAME=value becomes (["SIGNING", "KEY_NAME"], "value").
        With the JSONCONFIG___ prefix the value is decoded as JSON first,
        which is how lists such as `excluded_params` are set.
        """
        data = os.getenv(env_var_name)
        if env_var_name.startswith(JSON_ENV_PREFIX):
            env_var_name = env_var_name[len(JSON_ENV_PREFIX) :]
            data = json.loads(data)
        return env_var_name.split("__"), self._env_var_value_cast(data)

    @property
    def params(self):
        if self._params is None:
            merged = update(
                update(default_config, self.yaml_content()), self.load_env_var()
            )
            self.set_params(validate_install_configuration(merged))
        return self._params

    def set_params(self, val):
        self._params = val

    def get(self, *args):
        current_p = self.params
        for el in args:
            try:
                current_p = current_p[el]
            except (KeyError, TypeError):
                raise MissingConfigException(args)
        return current_p

    def load_yaml_file(self):
        with open(os.getenv("SIGNEDFETCH_YML", DEFAULT_YAML_PATH), "r") as c:
            return c.read()

    def yaml_content(self):
        try:
            return yaml_load(self.load_yaml_file()) or {}
        except FileNotFoundError:
            return {}

    def load_filename_from_path(self, *args):
        """
        Reads the file a config entry points at. The entry is either a plain
        path or a {"source_type": "filepath" | "base64env", "value": ...}
        descriptor. Contents are read once and kept.
        """
        if args in self.loaded_files:
            return self.loaded_files[args]
        location = self.get(*args)
        if isinstance(location, dict):
            source_type = location.get("source_type")
            if source_type == "base64env":
                self.loaded_files[args] = b64decode(location.get("value")).decode()
                return self.loaded_files[args]
            if source_type != "filepath":
                raise MissingConfigException(args)
            location = location.get("value")
        try:
            with open(location, "r") as _file:
                self.loaded_files[args] = _file.read()
        except FileNotFoundError:
            log.exception(
                "Unable to read file specified in config",
                extra=dict(file_location=location, path_args=list(args)),
            )
            raise
        return self.loaded_files[args]


config_class_instance = ConfigHelper()


def _get_config_instance():
    return config_class_instance


def get_config(*path, default=None):
    try:
        return _get_config_instance().get(*path)
    except MissingConfigException:
        return default


def load_file_from_path_at_config(*args):
    return _get_config_instance().load_filename_from_path(*args)


def get_verify_ssl(service):
    if get_config(service, "http", "verify_ssl") is False:
        return False
    return get_config(service, "http", "ssl_pem") or os.getenv(
        "REQUESTS_CA_BUNDLE", True
    )
