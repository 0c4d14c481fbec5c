from os import environ

import yaml
from dotenv import find_dotenv
from pydantic import ValidationError

from app.helpers.config_models.root import RootModel

_CONFIG_ENV = "CONFIG_JSON"
_CONFIG_FILE = "config.yaml"


def load_config() -> RootModel:
    """
    Load the application configuration.

    The JSON from the `CONFIG_JSON` environment variable takes precedence over the `config.yaml` file, which is searched from the current directory up to the root.
    """
    # Try to load JSON from env
    if _CONFIG_ENV in environ:
        config = RootModel.model_validate_json(environ[_CONFIG_ENV])
        print(f'Config loaded from env "{_CONFIG_ENV}"')  # noqa: T201
        return config

    # Try to load YAML from file
    print(f'Cannot find env "{_CONFIG_ENV}", trying to load from file')  # noqa: T201
    path = find_dotenv(
        filename=_CONFIG_FILE,
        usecwd=True,
    )
    if not path:
        raise ValueError(f'Cannot find config file "{_CONFIG_FILE}"')

    with open(
        encoding="utf-8",
        file=path,
    ) as f:
        # An empty file is a valid config, all fields have defaults
        config = RootModel.model_validate(yaml.safe_load(f) or {})
        print(f'Config loaded from file "{path}"')  # noqa: T201
        return config


# Load config
try:
    CONFIG = load_config()

# Pretty print validation errors
except ValidationError as e:
    err = "Config values are not valid:"
    for i, error in enumerate(e.errors()):
        err += f"\n{i + 1}. At {'.'.join(str(loc) for loc in error['loc'])}: {error['msg']} (input value: {error['input']})"
    raise ValueError(err)
