"""Base class for LangGraph flows: node logging, error recording and execution."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

from langgraph.graph import StateGraph

from roomiematch.utils.errors import FirestoreUnavailableError, GraphExecutionError
from roomiematch.utils.logging_config import logger


class BaseGraph(ABC):
    """Abstract base class for all LangGraph implementations.

    Nodes record failures in state (``error`` / ``error_code``) and later nodes
    short-circuit on them; ``run`` is the single entry point used by routes.
    """

    name = "graph"

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self.logger = logger
        self._compiled = None

    @abstractmethod
    def build_graph(self) -> StateGraph:
        """Build and return the StateGraph instance."""

    def _log_node_execution(self, node_name: str, state: dict) -> None:
        self.logger.debug("%s.%s user=%s", self.name, node_name, state.get("user_id"))

    def _log_node_error(self, node_name: str, error: Exception) -> None:
        """Log node failure without leaking profile data."""

        self.logger.error("%s.%s failed: %s", self.name, node_name, str(error))

    @staticmethod
    def _fail(state: dict, code: str, message: str, **extra) -> dict:
        """Return ``state`` marked with a machine-readable failure."""

        return {**state, "error": message, "error_code": code, **extra}

    def compile(self):
        """Build and compile the graph once per instance."""

        if self._compiled is None:
            self._compiled = self.build_graph().compile()
        return self._compiled

    def run(self, initial_state: dict) -> dict:
        """Invoke the graph and log a one-line summary.

        Store outages propagate unchanged; any other unexpected exception
        becomes GraphExecutionError.
        """

        start_time = time.time()
        try:
            result = self.compile().invoke(initial_state)
        except FirestoreUnavailableError:
            raise
        except Exception as exc:
            self.logger.exception("%s graph crashed", self.name)
            raise GraphExecutionError(str(exc)) from exc

        elapsed = time.time() - start_time
        self.logger.info(
            "%s summary: user=%s success=%s code=%s time=%.2fs",
            self.name,
            initial_state.get("user_id"),
            not result.get("error"),
            result.get("error_code"),
            elapsed,
        )
        if elapsed > self.timeout:
            self.logger.warning(
                "%s graph exceeded %ss budget (%.2fs)", self.name, self.timeout, elapsed
            )
        return result
