"""Stage models - the declared units of work in a pipeline."""

import shlex
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence
from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class CommandSpec(BaseModel):
    """
    An external command: the program to launch, its arguments and the
    environment overrides applied on top of the inherited environment.
    
    The program is resolved against the search path only when the stage
    is launched, never at construction time.
    
    Overrides are passed as ``env={...}`` and stored as sorted
    ``(name, value)`` pairs so the whole command is deeply immutable and
    hashable; ``env`` reads them back as a read-only mapping.
    """
    
    model_config = ConfigDict(frozen=True)
    
    program: str
    """Executable name or path."""
    
    args: tuple[str, ...] = ()
    """Ordered argument strings passed to the program."""
    
    env_overrides: tuple[tuple[str, str], ...] = ()
    """Environment variables overriding the inherited process environment."""
    
    @model_validator(mode="before")
    @classmethod
    def _env_to_pairs(cls, data: Any) -> Any:
        if isinstance(data, dict) and "env" in data:
            data = dict(data)
            env = data.pop("env") or {}
            data["env_overrides"] = tuple(sorted((str(k), str(v)) for k, v in dict(env).items()))
        return data
    
    @field_validator("program")
    @classmethod
    def _program_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("program must not be empty")
        return value
    
    @property
    def env(self) -> Mapping[str, str]:
        """Read-only view of the environment overrides."""
        return MappingProxyType(dict(self.env_overrides))
    
    @property
    def argv(self) -> list[str]:
        """The full argument vector, program first."""
        return [self.program, *self.args]
    
    def display(self) -> str:
        """Render the command as a shell-quoted string (for logs only)."""
        return shlex.join(self.argv)


class Stage(BaseModel):
    """
    One named unit of work in the pipeline, backed by an external command.
    
    Stages are immutable once constructed. A pipeline is an ordered
    sequence of stages; the order of the sequence is the execution order.
    """
    
    model_config = ConfigDict(frozen=True)
    
    label: str
    """Human-readable name announced before the stage runs."""
    
    command: CommandSpec
    """The command this stage executes."""
    
    @field_validator("label")
    @classmethod
    def _label_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("label must not be empty")
        # The label is announced as a single marker line
        if "\n" in value or "\r" in value:
            raise ValueError("label must not contain line breaks")
        return value
    
    @classmethod
    def from_argv(
        cls,
        label: str,
        argv: Sequence[str],
        env: Optional[dict[str, str]] = None,
    ) -> "Stage":
        """
        Build a stage from a label and an argument vector.
        
        Example:
            Stage.from_argv("Run doc tests", ["cargo", "test", "--doc"])
        """
        if not argv:
            raise ValueError(f"Stage '{label}' has an empty command")
        program, *args = argv
        return cls(
            label=label,
            command=CommandSpec(program=program, args=tuple(args), env=dict(env or {})),
        )
