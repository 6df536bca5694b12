"""
Runs Endpoint
=============
Starts checkfix sessions in the background and reports on them.

Routes:
    POST /runs           — validate the target and config, schedule the run
    GET  /runs/{run_id}  — status, plus the RunResult once finished

Target and configuration errors are reported synchronously (400) so a
caller never polls a run that could not have started. Runs live in an
in-process registry and are lost on restart.
"""
import os
import uuid
import logging
import threading
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel, Field

from checkfix.agents.controller import ConvergenceController
from checkfix.core import config
from checkfix.core.errors import CheckfixError
from checkfix.executor.command_resolver import ensure_available, select_agent
from checkfix.executor.process_supervisor import ProcessSupervisor
from checkfix.models.run_result import RunResult
from checkfix.services.config_loader import load_session_config
from checkfix.services.targets import build_target

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["Runs"])

RunStatus = Literal["pending", "running", "done", "failed", "interrupted"]


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class RunRequest(BaseModel):
    root: Optional[str] = None              # Working directory; defaults to the server's cwd
    files: List[str] = Field(default_factory=list)
    repo: bool = False
    dry_run: bool = False
    max_iterations: Optional[int] = None
    consecutive: Optional[int] = None
    cli: Optional[str] = None


class RunAccepted(BaseModel):
    run_id: str
    status: RunStatus
    target: str


class RunStatusResponse(BaseModel):
    run_id: str
    status: RunStatus
    target: str
    result: Optional[RunResult] = None
    error: str = ""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
_runs: Dict[str, RunStatusResponse] = {}
_runs_lock = threading.Lock()


def _update(run_id: str, **changes) -> None:
    with _runs_lock:
        current = _runs[run_id]
        _runs[run_id] = current.model_copy(update=changes)


def reset_registry() -> None:
    with _runs_lock:
        _runs.clear()


def _execute(run_id: str, controller: ConvergenceController) -> None:
    """Background task body; runs in the worker threadpool."""
    _update(run_id, status="running")
    try:
        result = controller.run()
    except CheckfixError as exc:
        logger.error("[RUN:%s] %s", run_id, exc.reason)
        _update(run_id, status="failed", error=exc.reason)
        return
    logger.info("[RUN:%s] finished: %s %s", run_id, result.status, result.reason)
    _update(run_id, status=result.status, result=result)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", status_code=202, response_model=RunAccepted)
async def start_run(request: RunRequest, background_tasks: BackgroundTasks):
    # Relative file paths are taken from the requested root
    files = [os.path.join(request.root or "", name) for name in request.files]
    try:
        target = build_target(files=files, repo=request.repo, root=request.root)
        session_config, agent_values = load_session_config(
            target.root,
            overrides={
                "max_iterations": request.max_iterations,
                "consecutive_passes": request.consecutive,
                "dry_run": request.dry_run or None,
            },
        )
        agent = select_agent(
            request.cli, agent_values, config.CHECKFIX_CLI, config.CHECKFIX_CLI_CMD
        )
        if not session_config.dry_run:
            ensure_available(agent)
    except CheckfixError as exc:
        raise HTTPException(status_code=400, detail=exc.reason)

    supervisor = ProcessSupervisor(
        agent.command,
        timeout_seconds=session_config.timeout_seconds,
        stall_threshold_seconds=session_config.stall_threshold_seconds,
        retries=session_config.retries,
        cwd=target.root,
        dry_run=session_config.dry_run,
        label=agent.name,
    )
    controller = ConvergenceController(target, supervisor, session_config)

    run_id = uuid.uuid4().hex[:12]
    entry = RunStatusResponse(run_id=run_id, status="pending", target=target.summary())
    with _runs_lock:
        _runs[run_id] = entry

    logger.info("[RUN:%s] scheduled: %s (cli=%s)", run_id, entry.target, agent.name)
    background_tasks.add_task(_execute, run_id, controller)
    return RunAccepted(run_id=run_id, status=entry.status, target=entry.target)


@router.get("/{run_id}", response_model=RunStatusResponse)
async def get_run(run_id: str):
    with _runs_lock:
        entry = _runs.get(run_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return entry
