# src/journal_rag/executor/graph.py

from __future__ import annotations

from typing import Optional

from langgraph.graph import END, START, StateGraph

from journal_rag.config import ExecutorConfig
from journal_rag.executor.adapters import EmbeddingAdapter, QueryStoreAdapter
from journal_rag.executor.nodes import degrade_plan, make_run_stages_node, package_results, plan_gate
from journal_rag.executor.state import ExecutorState


def make_executor_graph(
    *,
    store: QueryStoreAdapter,
    embedder: EmbeddingAdapter,
    config: Optional[ExecutorConfig] = None,
):
    config = config or ExecutorConfig()

    g = StateGraph(ExecutorState)

    g.add_node("plan_gate", plan_gate)
    g.add_node("degrade_plan", degrade_plan)
    g.add_node("run_stages", make_run_stages_node(store, embedder, config))
    g.add_node("package_results", package_results)

    g.add_edge(START, "plan_gate")

    # A plan that fails schema validation is replaced, never executed
    def route_after_gate(state: ExecutorState):
        return "run_stages" if state.get("plan_valid", False) else "degrade_plan"

    g.add_conditional_edges("plan_gate", route_after_gate, ["run_stages", "degrade_plan"])

    g.add_edge("degrade_plan", "run_stages")
    g.add_edge("run_stages", "package_results")
    g.add_edge("package_results", END)

    return g.compile()
