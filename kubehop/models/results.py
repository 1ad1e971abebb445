"""Outcome envelope returned by remote operations."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

GENERIC_FAILURE = "remote operation reported failure without details"


class LogEntry(BaseModel):
    timestamp: str = ""
    level: str = "info"
    message: str = ""


class CommandDetails(BaseModel):
    """Structured diagnostic payload attached to a result."""
    status: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    data: Any = None


class CommandResult(BaseModel):
    """Recursive result of a remote script.

    Multi-command operations report one nested entry per step in
    ``command_results`` (``commandResults`` on the wire), so a failure can be
    traced to the exact step that broke.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    command_results: List["CommandResult"] = Field(default_factory=list, alias="commandResults")
    output: Optional[str] = None
    logs: List[LogEntry] = Field(default_factory=list)
    details: Optional[CommandDetails] = None

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # backends send null for empty lists
        if isinstance(data, dict):
            data = dict(data)
            for key in ("commandResults", "command_results", "logs"):
                if key in data and data[key] is None:
                    del data[key]
        return data

    @model_validator(mode="after")
    def failure_has_diagnostics(self) -> "CommandResult":
        # success=false must carry an error or a failed step
        if not self.success and not self.error and not any(not r.success for r in self.command_results):
            self.error = self.message or GENERIC_FAILURE
        return self

    @property
    def is_partial(self) -> bool:
        """Failed overall, but at least one step went through."""
        return not self.success and any(r.success for r in self.command_results)

    @property
    def has_failed_steps(self) -> bool:
        return bool(self.failed_steps())

    def failed_steps(self) -> List["CommandResult"]:
        """Failed leaf steps, depth first."""
        failed: List[CommandResult] = []
        for step in self.command_results:
            nested = step.failed_steps()
            if nested:
                failed.extend(nested)
            elif not step.success:
                failed.append(step)
        return failed

    def succeeded_steps(self) -> List["CommandResult"]:
        return [step for step in self.command_results if step.success]

    def summary(self) -> str:
        text = self.message or ("ok" if self.success else "failed")
        if self.error:
            text = f"{text}: {self.error}" if self.message else self.error
        return text

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


CommandResult.model_rebuild()
