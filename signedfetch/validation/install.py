"""Configuration options that affect every signing fetcher in the process"""

import logging

from cerberus import Validator

log = logging.getLogger(__name__)


def check_param_name(field, value, error):
    if not value or value != value.strip():
        error(field, "Not a valid parameter name")


# Where to find the file with the container's private key. It can be either a
# plain path or a {"source_type": ..., "value": ...} descriptor
key_file_fields = {"type": ["string", "dict"], "nullable": True}

http_fields = {
    # [connect, read] in seconds
    "timeouts": {
        "type": "list",
        "minlength": 2,
        "maxlength": 2,
        "schema": {"type": "number", "min": 0},
    },
    "verify_ssl": {"type": "boolean"},
    "ssl_pem": {"type": "string"},
}

signing_fields = {
    # URL where the container publishes its public certificate
    "key_name": {"type": "string", "nullable": True},
    "key_file": key_file_fields,
    # Inline private key (PEM or base64 PKCS#8)
    "private_key": {"type": "string", "nullable": True},
    "key_passphrase": {"type": "string", "nullable": True},
    # Name of a registered signature method, RSA-SHA1 unless set
    "signature_method": {"type": "string"},
    # Proxy control parameters never signed, on top of the built-in table
    "excluded_params": {
        "type": "list",
        "schema": {"type": "string", "check_with": check_param_name},
    },
    "http": {"type": "dict", "schema": http_fields},
}

config_schema = {
    "signing": {"type": "dict", "schema": signing_fields},
}


def validate_install_configuration(inputted_dict):
    validator = Validator(allow_unknown=True)
    is_valid = validator.validate(inputted_dict, config_schema)
    if not is_valid:
        log.warning(
            "Configuration considered invalid, using dict as it is",
            extra=dict(errors=validator.errors),
        )
        return inputted_dict
    return validator.document
