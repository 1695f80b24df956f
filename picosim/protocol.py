"""Messages exchanged between the editor client and the compilation server."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Language(Enum):
    C = "C"


class Target(Enum):
    RISCV = "RiscV"


def _require(data: Any, key: str, kind: type) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise ValueError(f"missing field {key!r}")
    value = data[key]
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} has the wrong type")
    return value


def _enum(kind: type[Enum], value: Any) -> Any:
    try:
        return kind(value)
    except ValueError as exc:
        raise ValueError(f"unknown {kind.__name__}: {value!r}") from exc


@dataclass(frozen=True)
class SourceCode:
    filename: str
    code: str


@dataclass(frozen=True)
class CompilationRequest:
    """A request to compile one or more source files."""

    lang: Language
    source: list[SourceCode] = field(default_factory=list)
    target: Target = Target.RISCV
    compiler_options: Any = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "lang": self.lang.value,
            "source": [{"filename": s.filename, "code": s.code} for s in self.source],
            "target": self.target.value,
            "compiler_options": self.compiler_options,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CompilationRequest":
        """Parse from decoded JSON; raises ValueError if malformed."""
        lang = _enum(Language, _require(data, "lang", str))
        target = _enum(Target, _require(data, "target", str))
        sources = [
            SourceCode(
                filename=_require(item, "filename", str), code=_require(item, "code", str)
            )
            for item in _require(data, "source", list)
        ]
        return cls(
            lang=lang,
            source=sources,
            target=target,
            compiler_options=data.get("compiler_options"),
        )


@dataclass(frozen=True)
class CompilationStatusRequest:
    """A request for the state of a compilation job."""

    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id}

    @classmethod
    def from_dict(cls, data: Any) -> "CompilationStatusRequest":
        return cls(id=_require(data, "id", str))


@dataclass(frozen=True)
class InProgress:
    id: str


@dataclass(frozen=True)
class Done:
    uf2: bytes
    disassembler: str


@dataclass(frozen=True)
class ErrorResponse:
    message: str


CompilationResponse = Union[InProgress, Done, ErrorResponse]


def response_to_dict(response: CompilationResponse) -> dict[str, Any]:
    """JSON-ready representation of a compilation response."""
    match response:
        case InProgress(id=job_id):
            return {"InProgress": {"id": job_id}}
        case Done(uf2=uf2, disassembler=dis):
            return {"Done": {"uf2": list(uf2), "disassembler": dis}}
        case ErrorResponse(message=message):
            return {"Error": {"message": message}}
    raise TypeError(f"not a compilation response: {response!r}")


def response_from_dict(data: Any) -> CompilationResponse:
    """Parse a compilation response; raises ValueError if malformed."""
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError("compilation response must have exactly one variant")
    ((tag, body),) = data.items()
    if tag == "InProgress":
        return InProgress(id=_require(body, "id", str))
    if tag == "Done":
        raw = _require(body, "uf2", list)
        if not all(isinstance(b, int) and not isinstance(b, bool) for b in raw):
            raise ValueError("field 'uf2' must hold bytes")
        try:
            uf2 = bytes(raw)
        except ValueError as exc:
            raise ValueError("field 'uf2' must hold bytes") from exc
        return Done(uf2=uf2, disassembler=_require(body, "disassembler", str))
    if tag == "Error":
        return ErrorResponse(message=_require(body, "message", str))
    raise ValueError(f"unknown compilation response variant {tag!r}")


def c_request(code: str) -> CompilationRequest:
    """Request to compile a single C file named main.c for RISC-V."""
    return CompilationRequest(
        lang=Language.C,
        source=[SourceCode(filename="main.c", code=code)],
        target=Target.RISCV,
        compiler_options=None,
    )