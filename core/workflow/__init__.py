"""Contract workflow: state machine, façade, document store and collaborators."""

from core.workflow.facade import ContractWorkflow
from core.workflow.state_machine import TRANSITIONS, ContractStateMachine
from core.workflow.store import ContractStore, InMemoryContractStore, PostgresContractStore

__all__ = [
    "ContractWorkflow",
    "ContractStateMachine",
    "TRANSITIONS",
    "ContractStore",
    "InMemoryContractStore",
    "PostgresContractStore",
]
