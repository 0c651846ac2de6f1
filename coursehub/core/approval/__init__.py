"""Approval workflow module.

Implements approval chain templates, step authority and the sequential
workflow engine.
"""

from .chain import ChainStep, validate_chain, get_chain, implicit_chain
from .authority import Actor, RoleGrant, AuthorityChecker
from .engine import WorkflowEngine, StepOutcome

__all__ = [
    "ChainStep",
    "validate_chain",
    "get_chain",
    "implicit_chain",
    "Actor",
    "RoleGrant",
    "AuthorityChecker",
    "WorkflowEngine",
    "StepOutcome",
]
