"""TextPolish: resilient chat-completion orchestration for text refinement."""

from .agent import RefinementOutcome, RefinementStage, refine, run_refinement, translate
from .errors import ChatCancelledError, ChatError, ErrorKind
from .models import AgentOption, AgentResponse, ChatCompletionResult, ChatConfig, ChatMessage
from .parsing import parse_agent_response

__all__ = [
    "AgentOption",
    "AgentResponse",
    "ChatCancelledError",
    "ChatCompletionResult",
    "ChatConfig",
    "ChatError",
    "ChatMessage",
    "ErrorKind",
    "RefinementOutcome",
    "RefinementStage",
    "parse_agent_response",
    "refine",
    "run_refinement",
    "translate",
]
