"""
Call stack tracking for the Enigma Programming Language
Frames are recorded for every call so runtime errors can show a trace
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from source_map import Position


class FrameType(Enum):
    USER_FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    BUILTIN = "builtin"


@dataclass(frozen=True)
class StackFrame:
    function_name: str
    position: Optional[Position]
    frame_type: FrameType = FrameType.USER_FUNCTION
    arguments: list = field(default_factory=list)

    def __str__(self):
        location = f" (line {self.position.line}, column {self.position.column})" if self.position else ""
        return f"at {self.function_name}{location}"


class CallStack:
    """Live stack of active calls, innermost last"""

    def __init__(self):
        self.frames: List[StackFrame] = []

    def push(self, frame: StackFrame):
        self.frames.append(frame)

    def pop(self) -> Optional[StackFrame]:
        if not self.frames:
            return None
        return self.frames.pop()

    def depth(self) -> int:
        return len(self.frames)

    def snapshot(self) -> List[StackFrame]:
        """Copy of the frames, most recent call first"""
        return list(reversed(self.frames))

    def clear(self):
        self.frames.clear()


def format_stack_trace(frames: List[StackFrame]) -> str:
    """Render frames (most recent first) one per line"""
    if not frames:
        return "No stack trace available"
    return "\n".join(f"  {frame}" for frame in frames)
