"""Executor nodes for staged plan execution."""

from journal_rag.executor.nodes.degrade_plan import degrade_plan
from journal_rag.executor.nodes.package_results import package_results
from journal_rag.executor.nodes.plan_gate import plan_gate
from journal_rag.executor.nodes.run_stages import make_run_stages_node

__all__ = [
    "plan_gate",
    "degrade_plan",
    "make_run_stages_node",
    "package_results",
]
