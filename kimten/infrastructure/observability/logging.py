import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone

from kimten.infrastructure.config.settings import get_settings


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    service_name: Optional[str] = None
) -> None:
    """Configure structlog for applications embedding Kimten.

    Arguments left as ``None`` come from the KIMTEN_LOG_LEVEL,
    KIMTEN_LOG_FORMAT and KIMTEN_SERVICE_NAME settings. The library itself
    never calls this.
    """

    settings = get_settings()
    log_level = log_level or settings.log_level
    log_format = log_format or settings.log_format
    service_name = service_name or settings.service_name

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp entries with a UTC timestamp and the Kimten bound to the current turn"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    kimten_name = structlog.contextvars.get_contextvars().get("kimten")
    if kimten_name and "kimten" not in event_dict:
        event_dict["kimten"] = kimten_name

    return event_dict


class AgentLogger:
    """Specialized logger for turn and tool events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_turn_event(
        self,
        event_type: str,
        kimten_name: Optional[str],
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.logger.info(
            "turn_event",
            event_type=event_type,
            kimten_name=kimten_name,
            data=data or {},
            **kwargs
        )

    def log_tool_execution(
        self,
        tool_name: str,
        input_data: Dict[str, Any],
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        # Argument values may carry user data; only their names are logged
        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            input_keys=sorted(input_data.keys()),
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_memory_update(
        self,
        kimten_name: Optional[str],
        action: str,
        size: int
    ):
        self.logger.debug(
            "memory_update",
            kimten_name=kimten_name,
            action=action,
            size=size
        )


# Global logger instance
agent_logger = AgentLogger("kimten")


class TurnMetrics:
    """Per-instance counters for turns, tool calls and memory size"""

    def __init__(self):
        self.turns = 0
        self.turn_failures = 0
        self.tool_calls = 0
        self.tool_errors: Dict[str, int] = {}
        self.memory_size = 0
        self._latency = {"count": 0, "sum": 0.0, "min": float("inf"), "max": 0.0}

    def record_turn(self, duration_ms: Optional[float] = None, success: bool = True):
        self.turns += 1
        if not success:
            self.turn_failures += 1
            return

        latency = self._latency
        latency["count"] += 1
        latency["sum"] += duration_ms or 0.0
        latency["min"] = min(latency["min"], duration_ms or 0.0)
        latency["max"] = max(latency["max"], duration_ms or 0.0)

    def record_tool_call(self, tool_name: str, success: bool = True):
        self.tool_calls += 1
        if not success:
            self.tool_errors[tool_name] = self.tool_errors.get(tool_name, 0) + 1

    def set_memory_size(self, size: int):
        self.memory_size = size

    def summary(self) -> Dict[str, Any]:
        latency = self._latency
        count = latency["count"]
        return {
            "turns": self.turns,
            "turn_failures": self.turn_failures,
            "tool_calls": self.tool_calls,
            "tool_errors": dict(self.tool_errors),
            "memory_size": self.memory_size,
            "latency_ms": {
                "count": count,
                "avg": latency["sum"] / count if count else 0,
                "min": latency["min"] if count else 0,
                "max": latency["max"],
            },
        }
