"""Report tree produced by the diff engine."""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class ReportNode:
    """A node of the comparison report.

    The root node collects one child per detected conflict.
    """

    context: str
    kind: Optional[str] = None
    values: tuple[Any, Any] = (None, None)
    children: List["ReportNode"] = field(default_factory=list)

    def add(self, context: str, kind: str, value0: Any, value1: Any) -> "ReportNode":
        node = ReportNode(context=context, kind=kind, values=(value0, value1))
        self.children.append(node)
        return node

    def describe(self) -> str:
        value0, value1 = self.values
        return f"{self.context}: {self.kind} differs: {value0!r} vs {value1!r}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"context": self.context}
        if self.kind:
            data["kind"] = self.kind
            data["values"] = [_jsonable(v) for v in self.values]
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


def new_report() -> ReportNode:
    return ReportNode(context="/")
