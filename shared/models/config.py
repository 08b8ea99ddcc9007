from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    One environment setting a client reads, without its client/engine prefix.

    Attributes:
        env_key (str): Key suffix, e.g. "PROJECT_ID" for STORE_FIRESTORE_PROJECT_ID.
        val_type (str): How the raw value is parsed: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the setting as mandatory.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
