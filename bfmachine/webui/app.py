from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, validator

from bfmachine.errors import InvalidConfiguration, InvalidProgram, MachineError, StepLimitExceeded
from bfmachine.machine import ExecutionState, Machine
from bfmachine.memory import DEFAULT_SIZE, MAX_VALUE, MIN_VALUE, Memory
from bfmachine.program import Program
from bfmachine.streams import BufferedInput, BufferedOutput
from bfmachine.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)


def _string_to_input_bytes(data: str) -> List[int]:
    return [ord(ch) for ch in data]


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "pc": state.pc,
        "command": state.command,
        "pointer": state.pointer,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "output": state.output,
        "code_length": state.code_length,
    }


def _calculate_total_steps(
    program: Program,
    input_template: List[int],
    memory_size: int = DEFAULT_SIZE,
    cell_min: int = MIN_VALUE,
    cell_max: int = MAX_VALUE,
    cap: int = 10000,
) -> tuple[int, bool]:
    memory = Memory(size=memory_size, minimum=cell_min, maximum=cell_max)
    machine = Machine(
        program=program,
        memory=memory,
        input=BufferedInput(input_template, eof_value=memory.default_value),
        output=BufferedOutput(),
        max_steps=cap,
    )
    try:
        machine.run()
    except StepLimitExceeded:
        logger.debug("Dry run reached the %d step cap", cap)
        return cap, True
    except MachineError as exc:
        logger.warning("Dry run stopped after %d steps: %s", machine.steps, exc)
    return machine.steps, machine.steps >= cap


class ProgramRequest(BaseModel):
    code: str = ""


class ValidationResponse(BaseModel):
    valid: bool
    instruction_count: int
    instructions: str
    error: Optional[str]


class SessionConfiguration(BaseModel):
    code: str = ""
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)
    memory_size: int = Field(default=DEFAULT_SIZE, ge=1)
    cell_min: int = MIN_VALUE
    cell_max: int = MAX_VALUE

    @validator("cell_max")
    def validate_cell_range(cls, value: int, values: dict) -> int:
        minimum = values.get("cell_min", MIN_VALUE)
        if value < minimum:
            raise ValueError("cell_max must not be smaller than cell_min")
        return value


class SessionState(BaseModel):
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: Optional[str]
    code_length: int


class SessionPayload(BaseModel):
    session_id: str
    code: str
    instructions: str
    state: SessionState
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class StepResponse(BaseModel):
    session_id: str
    code: str
    states: List[SessionState]
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def create_app(
    store: Optional[SessionStore] = None,
    *,
    static_dir: Optional[Path] = None,
) -> FastAPI:
    session_store = store if store is not None else SessionStore()
    app = FastAPI(title="bfmachine WebUI API", version="0.1.0")

    static_directory = static_dir or Path(__file__).resolve().parent / "static"
    if static_directory.exists():
        app.mount("/static", StaticFiles(directory=str(static_directory)), name="static")

        @app.get("/", response_class=FileResponse)
        def serve_index() -> FileResponse:
            index_path = static_directory / "index.html"
            if not index_path.exists():
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="index.html not found",
                )
            return FileResponse(index_path)

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _serialize_states(states: List[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _build_payload(record: SessionRecord) -> SessionPayload:
        session = record.session
        state = session.current_state()
        return SessionPayload(
            session_id=record.session_id,
            code=session.code,
            instructions=session.instructions,
            state=SessionState(**_state_to_dict(state)),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _build_step_response(record: SessionRecord, states: List[ExecutionState]) -> StepResponse:
        session = record.session
        return StepResponse(
            session_id=record.session_id,
            code=session.code,
            states=_serialize_states(states),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _conflict(record: SessionRecord, exc: MachineError) -> HTTPException:
        logger.warning("Session %s stopped: %s", record.session_id, exc)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    @app.post("/api/program/validate", response_model=ValidationResponse)
    def validate_program(payload: ProgramRequest) -> ValidationResponse:
        program = Program.from_source(payload.code)
        error: Optional[str] = None
        try:
            program.validate()
        except InvalidProgram as exc:
            error = str(exc)
        return ValidationResponse(
            valid=error is None,
            instruction_count=program.size,
            instructions="".join(program.instructions),
            error=error,
        )

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        input_bytes = _string_to_input_bytes(payload.input)
        try:
            record: SessionRecord = session_store.create_session(
                code=payload.code,
                input_template=input_bytes,
                tape_window=payload.tape_window,
                max_steps=payload.max_steps,
                history_limit=payload.history_limit,
                memory_size=payload.memory_size,
                cell_min=payload.cell_min,
                cell_max=payload.cell_max,
            )
        except (InvalidProgram, InvalidConfiguration) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        record.total_steps, record.total_steps_capped = _calculate_total_steps(
            record.session.program,
            input_bytes,
            memory_size=payload.memory_size,
            cell_min=payload.cell_min,
            cell_max=payload.cell_max,
        )
        logger.info(
            "Created session %s (%d instructions)",
            record.session_id,
            record.session.program.size,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        try:
            record = session_store.reset(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _get_record(session_id)
        try:
            states = list(record.session.step_forward(payload.count))
        except MachineError as exc:
            raise _conflict(record, exc) from exc
        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        record = _get_record(session_id)
        session: VisualizerSession = record.session
        original_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            original_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None

        try:
            states = list(session.run_until_break(payload.limit))
        except MachineError as exc:
            raise _conflict(record, exc) from exc
        finally:
            if payload.ignore_breakpoints and original_breakpoints is not None:
                session.breakpoints = set(original_breakpoints)
                session.hit_breakpoint = None

        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.session.add_breakpoint(payload.pc)
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, pc: int) -> SessionPayload:
        record = _get_record(session_id)
        removed = record.session.remove_breakpoint(pc)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at pc={pc}",
            )
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        removed = session_store.remove(session_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        logger.info("Deleted session %s", session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
