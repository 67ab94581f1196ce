"""
Agent Logger for Markdown Execution Logs.
Human-readable record of conversations, tool calls and voice sessions.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from nova_support.config import LANGUAGE_NAMES

logger = logging.getLogger(__name__)


class AgentLogger:
    """
    Markdown logger for agent execution.

    Documents:
    - Session starts and customer/language switches
    - Tool calls with their structured results
    - Turn outcomes (final, exhausted, failed)
    - Voice connection status changes
    - Errors and system events

    Entries go through a queue drained by a background task when an event
    loop is running, and are written synchronously otherwise.
    """

    def __init__(self, log_path: str = "logs/agent_log.md"):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._running = False

        self._start_writer()

    def _start_writer(self):
        """Start the background log writer if a loop is running."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop, entries are written synchronously
            return
        self._writer_task = asyncio.create_task(self._write_loop())
        self._running = True

    async def _write_loop(self):
        """Background loop to write logs asynchronously."""
        while True:
            try:
                entry = await self._queue.get()
                self._sync_write(entry)
            except asyncio.CancelledError:
                break

    def _sync_write(self, entry: str):
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry)
                f.write("\n")
        except OSError as e:
            logger.error(f"Failed to write log: {e}")

    async def _log(self, entry: str):
        if self._running and self._writer_task:
            await self._queue.put(entry)
        else:
            self._sync_write(entry)

    # =========================
    # Public Logging Methods
    # =========================

    async def log_session_start(
        self,
        session_id: str,
        customer_id: str,
        language: str = "en",
        channel: str = "text"
    ):
        """Log the start of a new session."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        entry = f"""
---

## 🆕 Session Started: `{session_id}`

**Timestamp:** {timestamp}
**Channel:** {channel}
**Customer:** {customer_id}
**Language:** {LANGUAGE_NAMES.get(language, language)}

---
"""
        await self._log(entry)

    async def log_tool_call(
        self,
        session_id: str,
        tool_name: str,
        tool_input: Dict[str, Any],
        tool_output: Dict[str, Any],
        latency_ms: Optional[float] = None
    ):
        """Log a tool call and its result."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        status = "✅" if tool_output.get("success") else "⚠️"

        # Truncate long outputs
        output_str = json.dumps(tool_output, indent=2, ensure_ascii=False, default=str)
        if len(output_str) > 500:
            output_str = output_str[:500] + "\n  ... (truncated)"

        input_str = json.dumps(tool_input, indent=2, ensure_ascii=False, default=str)

        entry = f"""#### 🔧 Tool Call: `{tool_name}` {status} | {timestamp}

**Session:** `{session_id}`

**Input:**
```json
{input_str}
```

**Output:**
```json
{output_str}
```
{f'**Execution Time:** {latency_ms:.0f}ms' if latency_ms else ''}
"""
        await self._log(entry)

    async def log_turn_complete(
        self,
        session_id: str,
        user_text: str,
        agent_text: str,
        language: str,
        state: str,
        tool_names: List[str],
        latency_ms: Optional[float] = None
    ):
        """Log a complete conversation turn."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        display_response = agent_text
        if len(display_response) > 500:
            display_response = display_response[:500] + "..."

        tools_used = ", ".join(tool_names) if tool_names else "None"

        entry = f"""### ✅ Turn Complete | {timestamp}

**Session:** `{session_id}`
**Language:** {language}
**Outcome:** `{state}`

**User:** "{user_text}"

> {display_response}

| Metric | Value |
|--------|-------|
| Latency | {f'{latency_ms:.0f}ms' if latency_ms else 'N/A'} |
| Tool Calls | {len(tool_names)} |

**Tools Used:** {tools_used}

---
"""
        await self._log(entry)

    async def log_voice_status(
        self,
        session_id: str,
        previous: str,
        current: str
    ):
        """Log a voice connection status change."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### 🎙️ Voice Status | {timestamp}

**Session:** `{session_id}`
**Transition:** `{previous}` → `{current}`
"""
        await self._log(entry)

    async def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None
    ):
        """Log an error."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### ❌ Error | {timestamp}

**Session:** `{session_id}`
**Type:** `{error_type}`
**Message:** {error_message}
"""

        if stack_trace:
            entry += f"""
<details>
<summary>Stack Trace</summary>

```
{stack_trace}
```

</details>
"""

        await self._log(entry)

    async def log_system_event(
        self,
        event: str,
        details: Dict[str, Any]
    ):
        """Log a system event."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        details_str = ""
        for key, value in details.items():
            details_str += f"- **{key}:** {value}\n"

        entry = f"""### ⚙️ System Event | {timestamp}

**Event:** {event}

{details_str}
---
"""
        await self._log(entry)

    async def initialize_log(self, version: str = "1.0.0"):
        """Initialize the log file with header."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        languages = "\n".join(f"- {name} ({code})" for code, name in LANGUAGE_NAMES.items())
        header = f"""# 🛍️ Nova Support Execution Log

**Generated:** {timestamp}
**Version:** {version}

---

## System Overview

Execution log of the Nova customer support agent.

**Channels:** text chat, live voice, storefront

**Tools:** search_products, get_my_orders, add_to_cart, place_order, escalate_issue

**Supported Languages:**
{languages}

---

## Execution Log

"""

        # Overwrite file with header
        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(header)

        logger.info(f"Agent log initialized: {self.log_path}")

    async def close(self):
        """Close the logger and flush pending entries."""
        self._running = False

        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass

        # Write any remaining entries
        while not self._queue.empty():
            try:
                entry = self._queue.get_nowait()
                self._sync_write(entry)
            except asyncio.QueueEmpty:
                break

        logger.info("Agent logger closed")
