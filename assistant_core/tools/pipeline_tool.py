"""流水线工具：在一次工具调用内按顺序串联多个工具。

参数格式::

    {"steps": [
        {"tool": "shell_tool", "args": {"commands": [{"command": "ls"}]}},
        {"tool": "shell_tool", "args": {"from_step": 0, "field": "stdin",
                                        "commands": [{"command": "wc", "args": ["-l"]}]}}
    ]}

输入解析规则：
- args 为普通对象时原样使用；其中字符串里的 ``${id}`` 仅在 id 是更早步骤声明的步骤 id 时
  替换为该步骤的输出，其他 ``${...}`` 文本（如 ``${HOME}``、``${1}``）保持不变。
- args 含 ``from_step`` 时为引用形式：去掉 from_step/field 后的其余字段照常使用，
  再把第 from_step 步的完整输出（整段字符串，不做裁剪或解析）写入 ``field`` 指定的字段。
- 只能引用严格位于当前步骤之前的步骤；所有引用在第一步执行前统一校验。

执行语义：严格串行；任一步失败立即停止，整体失败信息中包含步骤序号、工具名与底层错误，
已完成步骤的输出不会返回给调用方。流水线步骤本身不允许再是流水线。
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from assistant_core.domain.exceptions import BusinessError, ExecutionError, ValidationError
from assistant_core.infrastructure.logging.logger import logger
from .base import Tool, ensure_mapping, require_list
from .definitions import ToolDef, ToolParam
from .registry import ToolRegistry


PIPELINE_TOOL_NAME = "pipeline_tool"
REFERENCE_KEYS = ("from_step", "field")
_PLACEHOLDER = re.compile(r"\$\{([A-Za-z0-9_\-]+)\}")


@dataclass(frozen=True)
class StepReference:
    from_step: int
    field: str


@dataclass
class PipelineStep:
    index: int
    tool: str
    args: Dict[str, Any] = field(default_factory=dict)
    source: Optional[StepReference] = None
    step_id: Optional[str] = None

    @property
    def label(self) -> str:
        label = f"[step {self.index}] {self.tool}"
        if self.step_id:
            label += f" ({self.step_id})"
        return label


def _invalid(message: str, **extra: Any) -> ValidationError:
    return ValidationError(code="INVALID_PIPELINE", message=f"Invalid pipeline: {message}", **extra)


class PipelineTool(Tool):
    definition = ToolDef(
        name=PIPELINE_TOOL_NAME,
        description=(
            "按顺序执行一组工具调用，可将前一步的输出作为后续步骤的输入。"
            "steps 必须是 JSON 数组而不是字符串；每一步的 args 也必须是 JSON 对象。"
            "引用前一步输出有两种方式：args 中写 {\"from_step\": N, \"field\": \"字段名\"}，"
            "或给步骤声明 id，在字符串参数中使用 ${步骤id} 占位符。流水线不能嵌套。"
        ),
        params={
            "steps": ToolParam(
                name="steps",
                description="按执行顺序排列的步骤列表",
                required=True,
                schema={
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "properties": {
                            "tool": {"type": "string", "description": "要调用的工具名"},
                            "args": {
                                "type": "object",
                                "description": "传给工具的参数，或 {from_step, field} 引用形式",
                            },
                            "id": {"type": "string", "description": "可选的步骤 id，用于 ${id} 占位符"},
                        },
                        "required": ["tool"],
                    },
                },
            )
        },
    )

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    def execute(self, arguments: Dict[str, Any]) -> str:
        steps = self.parse_steps(arguments)
        outputs: List[str] = []
        ids: Dict[str, int] = {}

        for step in steps:
            payload = self.resolve_input(step, outputs, ids)
            logger.log(
                logging.INFO,
                "Pipeline step started",
                extra={"extra": {"step_index": step.index, "tool_name": step.tool}},
            )
            try:
                tool = self._registry.lookup(step.tool)
                output = tool.execute(payload)
            except BusinessError as exc:
                raise self._step_failure(step, exc.message, exc.code) from exc
            except Exception as exc:
                logger.exception(
                    "Pipeline step crashed",
                    extra={"extra": {"step_index": step.index, "tool_name": step.tool}},
                )
                raise self._step_failure(step, str(exc) or type(exc).__name__, "TOOL_CRASHED") from exc

            outputs.append(output)
            if step.step_id:
                ids[step.step_id] = step.index

        return "\n\n".join(f"{step.label}\n{outputs[step.index]}" for step in steps)

    def parse_steps(self, arguments: Dict[str, Any]) -> List[PipelineStep]:
        """把原始参数解析为步骤列表，并在执行前完成全部校验。"""

        arguments = ensure_mapping(self.name, arguments)
        try:
            raw_steps = require_list(self.name, arguments, "steps")
        except ValidationError as exc:
            raise _invalid(exc.message) from exc
        if not raw_steps:
            raise _invalid("`steps` must contain at least one step")

        # 全部声明过的步骤 id，用于识别指向当前或后续步骤的占位符
        declared_ids = {
            raw["id"] for raw in raw_steps if isinstance(raw, dict) and isinstance(raw.get("id"), str)
        }
        steps: List[PipelineStep] = []
        known_ids: Dict[str, int] = {}
        for index, raw in enumerate(raw_steps):
            step = self._parse_step(index, raw, known_ids, declared_ids)
            if step.step_id:
                known_ids[step.step_id] = index
            steps.append(step)
        return steps

    def _parse_step(
        self, index: int, raw: Any, known_ids: Dict[str, int], declared_ids: Set[str]
    ) -> PipelineStep:
        if not isinstance(raw, dict):
            raise _invalid(f"step {index} must be an object", step_index=index)

        tool_name = raw.get("tool")
        if not isinstance(tool_name, str) or not tool_name.strip():
            raise _invalid(f"step {index} is missing a tool name", step_index=index)
        tool_name = tool_name.strip()
        if tool_name == self.name:
            raise _invalid(
                f"step {index} ({tool_name}) cannot itself be a pipeline",
                step_index=index,
                tool_name=tool_name,
            )

        step_id = raw.get("id")
        if step_id is not None:
            if not isinstance(step_id, str) or not step_id.strip():
                raise _invalid(f"step {index} has an invalid id", step_index=index)
            if step_id in known_ids:
                raise _invalid(f"step {index} reuses id `{step_id}`", step_index=index)
            if step_id.isdigit():
                raise _invalid(f"step {index} id `{step_id}` must not be numeric", step_index=index)

        # 兼容早期格式中的 parameters 字段
        args = raw.get("args", raw.get("parameters"))
        if args is None:
            args = {}
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError as exc:
                raise _invalid(f"step {index} args are not valid JSON: {exc.msg}", step_index=index) from exc
        if not isinstance(args, dict):
            raise _invalid(f"step {index} args must be an object", step_index=index)

        source = None
        if "from_step" in args:
            source = self._parse_reference(index, args)
            args = {k: v for k, v in args.items() if k not in REFERENCE_KEYS}

        for ref in _placeholders(args):
            # 未声明的 ${...} 是普通文本
            if ref in declared_ids and ref not in known_ids:
                raise _invalid(
                    f"step {index} placeholder `${{{ref}}}` does not name an earlier step",
                    step_index=index,
                )

        return PipelineStep(index=index, tool=tool_name, args=args, source=source, step_id=step_id)

    @staticmethod
    def _parse_reference(index: int, args: Dict[str, Any]) -> StepReference:
        from_step = args.get("from_step")
        if isinstance(from_step, bool) or not isinstance(from_step, int):
            raise _invalid(f"step {index} `from_step` must be an integer", step_index=index)
        if from_step < 0 or from_step >= index:
            raise _invalid(
                f"step {index} references step {from_step}, only earlier steps can be referenced",
                step_index=index,
                from_step=from_step,
            )
        target_field = args.get("field")
        if not isinstance(target_field, str) or not target_field.strip():
            raise _invalid(f"step {index} reference is missing `field`", step_index=index)
        return StepReference(from_step=from_step, field=target_field)

    @staticmethod
    def resolve_input(step: PipelineStep, outputs: List[str], ids: Dict[str, int]) -> Dict[str, Any]:
        """计算某一步实际传给工具的参数。"""

        def lookup(ref: str) -> Optional[str]:
            position = ids.get(ref)
            return outputs[position] if position is not None else None

        payload = _interpolate(step.args, lookup)
        if step.source is not None:
            payload[step.source.field] = outputs[step.source.from_step]
        return payload

    def _step_failure(self, step: PipelineStep, message: str, cause_code: str) -> ExecutionError:
        logger.log(
            logging.WARNING,
            "Pipeline halted",
            extra={"extra": {"step_index": step.index, "tool_name": step.tool, "cause_code": cause_code}},
        )
        return ExecutionError(
            code="PIPELINE_STEP_FAILED",
            message=f"Pipeline step {step.index} ({step.tool}) failed: {message}",
            step_index=step.index,
            tool_name=step.tool,
            cause_code=cause_code,
        )


def _placeholders(value: Any) -> List[str]:
    if isinstance(value, str):
        return _PLACEHOLDER.findall(value)
    if isinstance(value, dict):
        return [ref for item in value.values() for ref in _placeholders(item)]
    if isinstance(value, list):
        return [ref for item in value for ref in _placeholders(item)]
    return []


def _substitute(match: "re.Match[str]", lookup) -> str:
    value = lookup(match.group(1))
    return match.group(0) if value is None else value


def _interpolate(value: Any, lookup) -> Any:
    if isinstance(value, str):
        return _PLACEHOLDER.sub(lambda m: _substitute(m, lookup), value)
    if isinstance(value, dict):
        return {k: _interpolate(v, lookup) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate(v, lookup) for v in value]
    return value
