"""
Java Runner - Execute Java commands with a resolved runtime.
"""

from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from ..provisioning.orchestrator import JreCacheHit
from .process import LaunchResult, ProcessLauncher, StdoutSink


class JavaRunner:
    """A java executable bound to a ProcessLauncher"""

    def __init__(
        self,
        java_executable: Path,
        jre_cache_hit: JreCacheHit,
        process_launcher: Optional[ProcessLauncher] = None,
        logger: Optional[Any] = None,
    ):
        self.java_executable = Path(java_executable)
        self.jre_cache_hit = jre_cache_hit
        self.logger = logger or structlog.get_logger(__name__)
        self.process_launcher = process_launcher or ProcessLauncher(logger=self.logger)

    async def run(
        self,
        args: Sequence[str],
        stdin_payload: Optional[str] = None,
        stdout_sink: Optional[StdoutSink] = None,
    ) -> LaunchResult:
        return await self.process_launcher.run(self.java_executable, args, stdin_payload, stdout_sink)

    async def execute(
        self,
        args: Sequence[str],
        stdin_payload: Optional[str] = None,
        stdout_sink: Optional[StdoutSink] = None,
    ) -> bool:
        result = await self.run(args, stdin_payload, stdout_sink)
        return result.succeeded

    def __repr__(self) -> str:
        """String representation"""
        return f"JavaRunner(java_executable={self.java_executable}, jre_cache_hit={self.jre_cache_hit.name})"
