"""
Oracle Script Engine - Aggregation and Selection Module

This module provides the deterministic core of the oracle scripts:
- DeploymentConfig: Static provider and capability tables per deployment
- SymbolRouter: Groups requested symbols by the providers serving them
- RequestPlanner: Builds per-provider request payloads
- ResponseReconciler: Two-level median over validator reports
- DeterministicSelector: SHA3-256 based provider selection
- VRFGate: VRF proof verification before releasing randomness
- PriceOracleScript / PairOracleScript / RandomnessOracleScript: prepare and
  execute phases
"""

from .DeploymentConfig import (
    CapabilityTable,
    PairDeployment,
    PriceDeployment,
    Provider,
    RandomnessDeployment,
    SingleSourceDeployment,
    available_deployments,
    load_deployment,
    parse_deployment,
)
from .DeterministicSelector import select_index, select_index_precomputed
from .PriceOracleScript import (
    PairOracleScript,
    PriceOracleScript,
    PriceResult,
    SingleSourceOracleScript,
)
from .RandomnessOracleScript import RandomnessOracleScript
from .RequestPlanner import ProviderRequest, RequestPlanner
from .ResponseReconciler import ReconciliationResult, ResponseReconciler, SingleSourceAggregator
from .SymbolRouter import SymbolRouter
from .VRFGate import VRFGate, majority

__all__ = [
    "CapabilityTable",
    "PairDeployment",
    "PairOracleScript",
    "PriceDeployment",
    "PriceOracleScript",
    "PriceResult",
    "Provider",
    "ProviderRequest",
    "RandomnessDeployment",
    "RandomnessOracleScript",
    "ReconciliationResult",
    "RequestPlanner",
    "ResponseReconciler",
    "SingleSourceAggregator",
    "SingleSourceDeployment",
    "SingleSourceOracleScript",
    "SymbolRouter",
    "VRFGate",
    "available_deployments",
    "load_deployment",
    "majority",
    "parse_deployment",
    "select_index",
    "select_index_precomputed",
]
