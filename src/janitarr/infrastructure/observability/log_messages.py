"""Structured log message templates for consistent, human-readable logging.

Hey future me - the process log (stdout) and the activity log (database) are different
things. The activity log is what operators browse in the UI; these templates are for the
process log, where a multi-line block with context and a hint beats a bare
"Error: connection refused". Example:

    🔴 Detection Failed
    ├─ Server: Movies (radarr)
    ├─ Operation: detect_missing
    ├─ Reason: Connection refused
    └─ 💡 Check that the server URL is reachable from the janitarr container

Usage:
    from janitarr.infrastructure.observability.log_messages import LogMessages

    logger.warning(LogMessages.detection_failed(server="Movies", server_type="radarr",
                                                operation="detect_missing", error=str(e)))
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A reusable log message template with placeholders."""

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Args:
            **kwargs: Values to fill into template placeholders

        Returns:
            Formatted multi-line log message with icon, title, fields, and optional hint
        """
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value_template) in enumerate(field_items):
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"
            try:
                value = value_template.format(**kwargs)
            except KeyError as e:
                value = f"<missing: {e}>"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            try:
                hint_text = self.hint.format(**kwargs)
            except KeyError as e:
                hint_text = f"<missing: {e}>"
            lines.append(f"└─ 💡 {hint_text}")

        return "\n".join(lines)


class LogMessages:
    """Collection of standardized log message templates.

    Template categories:
    - Worker lifecycle (scheduler, retention worker)
    - Automation cycles (start, completion)
    - Per-server failures (detection, search trigger)
    """

    # === Worker Lifecycle ===

    @staticmethod
    def worker_started(
        worker: str,
        interval: int | None = None,
        config: dict[str, Any] | None = None,
    ) -> str:
        """Format a worker start message.

        Args:
            worker: Worker name
            interval: Check interval in seconds (if applicable)
            config: Additional config to display
        """
        fields: dict[str, str] = {}
        if interval:
            fields["Interval"] = f"{interval}s"
        if config:
            for key, value in config.items():
                fields[key] = str(value)

        return LogTemplate(icon="✅", title=f"{worker} Started", fields=fields).format()

    @staticmethod
    def worker_failed(worker: str, error: str, will_retry: bool = True) -> str:
        """Format a worker failure message."""
        fields = {"Error": error}
        hint = "Will retry on next tick" if will_retry else "Worker stopped"
        return LogTemplate(
            icon="🔴", title=f"{worker} Failed", fields=fields, hint=hint
        ).format()

    # === Automation Cycles ===

    @staticmethod
    def cycle_started(is_manual: bool, server_count: int | None = None) -> str:
        """Format a cycle start message."""
        title = (
            "Manual automation cycle started"
            if is_manual
            else "Scheduled automation cycle started"
        )
        fields: dict[str, str] = {}
        if server_count is not None:
            fields["Servers"] = str(server_count)
        return LogTemplate(icon="🔄", title=title, fields=fields).format()

    @staticmethod
    def cycle_completed(
        total_searches: int,
        total_failures: int,
        duration_seconds: float,
    ) -> str:
        """Format a cycle completion message."""
        title = f"Automation cycle complete: {total_searches} searches triggered"
        if total_failures:
            title += f", {total_failures} failures"
        icon = "✅" if total_failures == 0 else "⚠️"
        return LogTemplate(
            icon=icon,
            title=title,
            fields={"Duration": f"{duration_seconds:.1f}s"},
        ).format()

    # === Per-server failures ===

    @staticmethod
    def detection_failed(
        server: str,
        server_type: str,
        operation: str,
        error: str,
    ) -> str:
        """Format a per-server detection failure."""
        return LogTemplate(
            icon="🔴",
            title="Detection Failed",
            fields={
                "Server": f"{server} ({server_type})",
                "Operation": operation,
                "Reason": error,
            },
            hint="Check that the server URL is reachable and the API key is valid",
        ).format()

    @staticmethod
    def search_failed(
        server: str,
        category: str,
        item_id: int,
        error: str,
    ) -> str:
        """Format a per-item search trigger failure."""
        return LogTemplate(
            icon="⚠️",
            title="Search Trigger Failed",
            fields={
                "Server": server,
                "Category": category,
                "Item": str(item_id),
                "Reason": error,
            },
        ).format()
