from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required by a client engine.

    Attributes:
        env_key (str): The raw key of the setting, without the "<TYPE>_<ENGINE>_" prefix (e.g. "BASE_URL").
        val_type (str): The expected type of the value. Supported types are "string", "number", "bool" and "list".
        default (str | int | float | bool | list | None): Value used when the setting is absent. If None, the setting is required.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None
