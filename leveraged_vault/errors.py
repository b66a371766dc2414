"""Vault error taxonomy.

Every error carries a stable ``code`` so keepers and users can recognise the
failure reason without parsing messages.
"""
from __future__ import annotations


class VaultError(Exception):
    """Base class for all vault errors."""

    code = "VAULT_ERROR"

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.code}: {message}" if message else self.code


class ConfigurationError(VaultError, ValueError):
    """Invalid parameter relationships at construction."""

    code = "CONFIGURATION_ERROR"


class PreconditionError(VaultError):
    """A call's precondition does not hold."""

    code = "PRECONDITION_FAILED"


class AssetNotEligible(PreconditionError):
    code = "ASSET_NOT_ELIGIBLE"


class ZeroCollateral(PreconditionError):
    code = "ZERO_COLLATERAL"


class RebalanceNotDue(PreconditionError):
    code = "REBALANCE_NOT_DUE"


class InsolventVault(PreconditionError):
    """Shares are outstanding but no assets back them."""

    code = "INSOLVENT_VAULT"


class ReentrantCall(PreconditionError):
    code = "REENTRANT_CALL"


class RebalanceInProgress(ReentrantCall):
    code = "REBALANCE_IN_PROGRESS"


class RoundingError(VaultError):
    """A computed share or asset amount rounds to zero."""

    code = "ROUNDING_ERROR"


class ZeroShares(RoundingError):
    code = "ZERO_SHARES"


class ZeroAssets(RoundingError):
    code = "ZERO_ASSETS"


class AllowanceError(VaultError):
    code = "ALLOWANCE_ERROR"


class InsufficientAllowance(AllowanceError):
    code = "INSUFFICIENT_ALLOWANCE"


class InsufficientShares(VaultError):
    code = "INSUFFICIENT_SHARES"


class OracleError(VaultError):
    code = "ORACLE_ERROR"


class OraclePriceUnavailable(OracleError):
    code = "ORACLE_PRICE_UNAVAILABLE"


class ProtocolCallError(VaultError):
    """An external protocol rejected a call."""

    code = "PROTOCOL_CALL_FAILED"
