import os
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import ConfigurationError

ROOT = 0
MERGE_TAG = 0
DTYPE = np.int64


@dataclass(frozen=True)
class MergeConfig:
    root: int = ROOT
    tag: int = MERGE_TAG
    dtype: type = DTYPE
    # Seconds to wait for each receive; None blocks forever
    timeout: Optional[float] = None
    check_sorted: bool = True
    verbose: bool = False

    def __post_init__(self):
        if self.root != ROOT:
            raise ConfigurationError(f"root must be {ROOT}, got {self.root}")
        if self.tag < 0:
            raise ConfigurationError(f"tag must be non-negative, got {self.tag}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if not np.issubdtype(np.dtype(self.dtype), np.number):
            raise ConfigurationError(f"dtype must be numeric, got {self.dtype}")

    @classmethod
    def from_env(cls, environ=None, **overrides):
        """Build a config from HYPERMERGE_* environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        try:
            if environ.get("HYPERMERGE_TIMEOUT"):
                values["timeout"] = float(environ["HYPERMERGE_TIMEOUT"])
            if environ.get("HYPERMERGE_TAG"):
                values["tag"] = int(environ["HYPERMERGE_TAG"])
        except ValueError as e:
            raise ConfigurationError(f"bad HYPERMERGE_* value: {e}") from e
        verbose = environ.get("HYPERMERGE_VERBOSE", "")
        if verbose:
            values["verbose"] = verbose.lower() in ("1", "true", "yes", "on")
        values.update(overrides)
        return cls(**values)
