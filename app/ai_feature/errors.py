from typing import Iterable


class AgentError(Exception):
    """Base class for failures inside the attendance agent."""


class LLMNotConfiguredError(AgentError):
    pass


class SqlGenerationError(AgentError):
    pass


class ExecutionError(AgentError):
    pass


class MissingTablesError(ExecutionError):
    def __init__(self, tables: Iterable[str]):
        self.tables = sorted(tables)
        super().__init__(
            "Database is missing required tables for this query: "
            + ", ".join(self.tables)
        )
