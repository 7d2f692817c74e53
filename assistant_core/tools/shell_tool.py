import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from assistant_core.domain.exceptions import ExecutionError, ValidationError
from .base import Tool, ensure_mapping, optional_str, require_list
from .definitions import ToolDef, ToolParam


@dataclass
class ShellCommand:
    command: str
    args: List[str]


class ShellTool(Tool):
    """按顺序执行一组命令（不经过 shell 解释），返回拼接后的标准输出。"""

    definition = ToolDef(
        name="shell_tool",
        description="按顺序执行一组 Linux 命令并返回拼接后的输出",
        params={
            "commands": ToolParam(
                name="commands",
                description=(
                    "命令列表。每个命令包含字符串字段 command 与可选的字符串数组 args，"
                    "例如 `ls -ltrah` 表示为 {\"command\": \"ls\", \"args\": [\"-ltrah\"]}"
                ),
                required=True,
                schema={
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "command": {"type": "string"},
                            "args": {"type": "array", "items": {"type": "string"}},
                        },
                        "required": ["command"],
                    },
                },
            ),
            "stdin": ToolParam(
                name="stdin",
                description="可选，作为第一条命令标准输入的文本",
                required=False,
                schema={"type": "string"},
            ),
        },
    )

    def __init__(self, cwd: Optional[Path] = None, timeout: float = 60.0):
        self._cwd = cwd
        self._timeout = timeout

    def execute(self, arguments: Dict[str, Any]) -> str:
        arguments = ensure_mapping(self.name, arguments)
        commands = self._parse_commands(require_list(self.name, arguments, "commands"))
        stdin = optional_str(self.name, arguments, "stdin")

        results: List[str] = []
        for idx, cmd in enumerate(commands):
            results.append(self._run(cmd, stdin if idx == 0 else None))
        return "\n".join(results)

    def _parse_commands(self, raw_commands: List[Any]) -> List[ShellCommand]:
        if not raw_commands:
            raise ValidationError(code="INVALID_ARGUMENTS", message=f"{self.name}: `commands` must not be empty")
        commands: List[ShellCommand] = []
        for idx, raw in enumerate(raw_commands):
            if not isinstance(raw, dict):
                raise ValidationError(
                    code="INVALID_ARGUMENTS",
                    message=f"{self.name}: command {idx} must be an object",
                )
            command = raw.get("command")
            if not isinstance(command, str) or not command.strip():
                raise ValidationError(
                    code="INVALID_ARGUMENTS",
                    message=f"{self.name}: command {idx} is missing `command`",
                )
            args = raw.get("args") or []
            if not isinstance(args, list) or not all(isinstance(a, (str, int, float)) for a in args):
                raise ValidationError(
                    code="INVALID_ARGUMENTS",
                    message=f"{self.name}: command {idx} `args` must be an array of strings",
                )
            commands.append(ShellCommand(command=command.strip(), args=[str(a) for a in args]))
        return commands

    def _run(self, cmd: ShellCommand, stdin: Optional[str]) -> str:
        try:
            proc = subprocess.run(
                [cmd.command, *cmd.args],
                input=stdin,
                capture_output=True,
                text=True,
                cwd=str(self._cwd) if self._cwd else None,
                timeout=self._timeout,
            )
        except FileNotFoundError:
            raise ExecutionError(
                code="COMMAND_NOT_FOUND",
                message=f"Command `{cmd.command}` not found. Please ensure the command exists and is in the PATH.",
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                code="COMMAND_TIMEOUT",
                message=f"Command `{cmd.command}` timed out after {self._timeout:g}s",
            )
        except OSError as exc:
            raise ExecutionError(
                code="COMMAND_FAILED",
                message=f"Failed to execute command `{cmd.command}` due to error: {exc}",
            )
        if proc.returncode != 0:
            raise ExecutionError(
                code="COMMAND_FAILED",
                message=f"Command `{cmd.command}` failed with error: {proc.stderr.strip()}",
                exit_code=proc.returncode,
            )
        return proc.stdout.strip()
