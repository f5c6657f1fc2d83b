""" Client configuration, loadable from a JSON file or the environment """

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

import msgspec

from .coding import JSONDecoder, JSONEncoder, KeyDecodingStrategy, KeyEncodingStrategy

DEFAULT_USER_AGENT = "APIConnect/0.1.0"
ENV_PREFIX = "APICONNECT_"


@dataclass
class Configuration:
    """Settings shared by every call a client makes."""
    timeout: float = 60.0
    logger_name: str = "APIConnect"
    key_encoding_strategy: KeyEncodingStrategy = KeyEncodingStrategy.USE_DEFAULT_KEYS
    key_decoding_strategy: KeyDecodingStrategy = KeyDecodingStrategy.USE_DEFAULT_KEYS
    user_agent: Optional[str] = DEFAULT_USER_AGENT
    default_headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Coerce strategy names and validate values."""
        self.key_encoding_strategy = KeyEncodingStrategy(self.key_encoding_strategy)
        self.key_decoding_strategy = KeyDecodingStrategy(self.key_decoding_strategy)
        self.timeout = float(self.timeout)
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(self.logger_name)

    def encoder(self) -> JSONEncoder:
        return JSONEncoder(self.key_encoding_strategy)

    def decoder(self) -> JSONDecoder:
        return JSONDecoder(self.key_decoding_strategy)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["key_encoding_strategy"] = self.key_encoding_strategy.value
        data["key_decoding_strategy"] = self.key_decoding_strategy.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Configuration":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        try:
            return msgspec.convert(dict(data), type=cls, strict=False)
        except msgspec.ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}")

    @classmethod
    def from_file(cls, path: str) -> "Configuration":
        """Load a configuration from a JSON file."""
        try:
            with open(path, 'r', encoding='utf-8') as f: raw_config = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found at {path}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration file {path} must contain a JSON object")
        return cls.from_dict(raw_config)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None,
                 base: Optional["Configuration"] = None) -> "Configuration":
        """Override `base` (or the defaults) with `<PREFIX><FIELD>` environment variables.

        `default_headers` is read as a JSON object.
        """
        environ = os.environ if environ is None else environ
        data = (base or cls()).to_dict()
        for name in data:
            value = environ.get(f"{prefix}{name.upper()}")
            if value is None:
                continue
            if name == "default_headers":
                try:
                    data[name] = json.loads(value)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON in {prefix}{name.upper()}: {e}")
            else:
                data[name] = value
        return cls.from_dict(data)
