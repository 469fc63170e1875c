# scalar_aad/core/config.py
from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Configuration owned by a Tape."""
    # Reproduce the historical subtract rule (second operand also gets +grad)
    legacy_subtract_grad: bool = False

    # Validate parent indices and op arity when nodes are recorded
    check_arity: bool = True

    # Logging
    verbose: bool = False
