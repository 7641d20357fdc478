"""
Optional execution observers for the Enigma evaluator
Debuggers and visualizers subclass ExecutionObserver; evaluation never depends on them
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from call_stack import StackFrame


class OutputKind(Enum):
    LOG = "log"
    ERROR = "error"
    RETURN_VALUE = "return_value"
    ASSIGNMENT = "assignment"


class ExecutionObserver:
    """No-op hooks called by the evaluator as it runs"""

    def before_step(self, node, env):
        pass

    def during_step(self, node, env, message: str):
        pass

    def after_step(self, node, env, result):
        pass

    def on_output(self, kind: OutputKind, text: str):
        pass

    def on_call_push(self, frame: StackFrame):
        pass

    def on_call_pop(self, frame: StackFrame):
        pass


@dataclass
class Step:
    phase: str
    node: Any
    detail: Optional[str] = None


class RecordingObserver(ExecutionObserver):
    """Keeps every event in memory, in order"""

    def __init__(self):
        self.steps: List[Step] = []
        self.outputs: List[tuple] = []
        self.calls: List[tuple] = []

    def before_step(self, node, env):
        self.steps.append(Step("before", node))

    def during_step(self, node, env, message):
        self.steps.append(Step("during", node, message))

    def after_step(self, node, env, result):
        self.steps.append(Step("after", node, result.inspect() if result is not None else None))

    def on_output(self, kind, text):
        self.outputs.append((kind, text))

    def on_call_push(self, frame):
        self.calls.append(("push", frame.function_name))

    def on_call_pop(self, frame):
        self.calls.append(("pop", frame.function_name))

    def output_lines(self, kind: OutputKind = OutputKind.LOG) -> List[str]:
        return [text for output_kind, text in self.outputs if output_kind == kind]
