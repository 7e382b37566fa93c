"""
Centralized constants for the replay model.

This module provides single-source-of-truth values for framework addresses,
system types and artifact names that are used across multiple modules.

Environment variable overrides:
- SUI_REPLAY_DEFAULT_REBATE_RATE: Rebate rate (basis points) used when the gas
  report does not carry one
- SUI_REPLAY_MAX_VALUE_LENGTH: Truncation width for rendered pure values in the CLI
"""

from __future__ import annotations

import os

# =============================================================================
# Framework Addresses
# =============================================================================

STDLIB_ADDRESS = "0x1"
SUI_FRAMEWORK_ADDRESS = "0x2"

# Well-known modules and structs
SUI_MODULE = "sui"
SUI_STRUCT = "SUI"
COIN_MODULE = "coin"
COIN_STRUCT = "Coin"
PACKAGE_MODULE = "package"
UPGRADE_CAP_STRUCT = "UpgradeCap"
STD_OPTION_MODULE = "option"
STD_OPTION_STRUCT = "Option"

# Display label for packages resolved through the object catalog
MOVE_PACKAGE_LABEL = "MovePackage"

# =============================================================================
# Gas
# =============================================================================

# Basis-point denominator for the storage rebate rate
REBATE_RATE_DENOMINATOR = 10_000

# Rebate rate used when the gas report omits it (99%)
DEFAULT_REBATE_RATE = int(os.environ.get("SUI_REPLAY_DEFAULT_REBATE_RATE", "9900"))

# =============================================================================
# Presentation
# =============================================================================

# 0x + 66 hex chars (33 bytes)
MAX_VALUE_LENGTH = int(os.environ.get("SUI_REPLAY_MAX_VALUE_LENGTH", "68"))

# =============================================================================
# Artifacts
# =============================================================================

ARTIFACT_CACHE = "replay_cache_summary"
ARTIFACT_TRANSACTION = "transaction_data"
ARTIFACT_EFFECTS = "transaction_effects"
ARTIFACT_GAS = "transaction_gas_report"
ARTIFACT_CALL_INFO = "move_call_info"

# Ingestion order is significant: later stages read what earlier stages derived.
ARTIFACT_ORDER = (
    ARTIFACT_CACHE,
    ARTIFACT_TRANSACTION,
    ARTIFACT_EFFECTS,
    ARTIFACT_GAS,
    ARTIFACT_CALL_INFO,
)

REQUIRED_ARTIFACTS = frozenset({ARTIFACT_CACHE, ARTIFACT_TRANSACTION})

ARTIFACT_FILENAMES = {name: f"{name}.json" for name in ARTIFACT_ORDER}
