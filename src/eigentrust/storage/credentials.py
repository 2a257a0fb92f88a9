"""Database credentials for the ratings store.

The credentials file is a small JSON document::

    {"url": "db.example.com:5432/app", "user": "reader", "password": "..."}

``url`` is host[:port]/database without a scheme.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from sqlalchemy.engine import URL, make_url

from eigentrust.exceptions import CredentialsError

DEFAULT_DRIVER = "postgresql+psycopg2"


class DatabaseCredentials(BaseModel):
    """Connection parameters read from the credentials file."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str = Field(min_length=1, description="host[:port]/database")
    user: str = Field(min_length=1)
    password: SecretStr

    def sqlalchemy_url(self, driver: str = DEFAULT_DRIVER) -> URL:
        """SQLAlchemy URL with the credentials filled in.

        The password is passed through ``URL.set`` so special characters
        need no escaping.
        """
        base = make_url(f"{driver}://{self.url}")
        return base.set(username=self.user, password=self.password.get_secret_value())


def load_credentials(path: str | Path) -> DatabaseCredentials:
    """Read and validate a JSON credentials file.

    Raises:
        CredentialsError: File missing or unreadable, invalid JSON, or
            a required key missing.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CredentialsError(str(path), f"cannot read credentials file ({e.strerror})") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CredentialsError(str(path), f"invalid JSON at line {e.lineno}") from e
    if not isinstance(data, dict):
        raise CredentialsError(str(path), "expected a JSON object")

    try:
        return DatabaseCredentials.model_validate(data)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise CredentialsError(str(path), f"missing or invalid fields: {', '.join(fields)}") from e
