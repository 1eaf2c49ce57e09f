#!/usr/bin/env python3
"""Pagesmith - HTTP entry point for the synthesis pipeline."""

import logging
import os
import threading
import time
import uuid

from flask import Flask, jsonify, request

from core.errors import GenerationError, PlanningError
from core.orchestrator import Orchestrator
from utils.folder_naming import get_output_dir

app = Flask(__name__)
orchestrator = Orchestrator()
history = []

# Finished runs keyed by job_id: {id: {"result": ..., "created": timestamp}}
_jobs = {}
_jobs_lock = threading.Lock()
_MAX_JOBS = 50  # prevent unbounded memory growth
_JOB_TTL = 3600  # expire jobs after 1 hour


def _cleanup_jobs():
    """Remove expired jobs. Called under _jobs_lock."""
    now = time.time()
    expired = [jid for jid, job in _jobs.items() if now - job["created"] > _JOB_TTL]
    for jid in expired:
        del _jobs[jid]
    # If still over limit, remove oldest
    if len(_jobs) > _MAX_JOBS:
        by_age = sorted(_jobs.items(), key=lambda x: x[1]["created"])
        for jid, _ in by_age[:len(_jobs) - _MAX_JOBS]:
            del _jobs[jid]


def _store_job(result):
    """Store a job and return its ID."""
    job_id = str(uuid.uuid4())[:8]
    with _jobs_lock:
        _cleanup_jobs()
        _jobs[job_id] = {"result": result, "created": time.time()}
    return job_id


def _get_job(job_id):
    """Get the stored result for a job ID, or None if not found/expired."""
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job and time.time() - job["created"] > _JOB_TTL:
            _jobs.pop(job_id, None)
            job = None
    return job["result"] if job else None


def _tasks_to_list(tasks):
    return [
        {
            "id": t.id,
            "name": t.name,
            "description": t.description,
            "dependencies": sorted(t.dependencies),
            "files": t.files,
            "status": t.status,
        }
        for t in tasks
    ]


def _read_requirement():
    data = request.get_json(silent=True)
    if not data or not str(data.get("requirement", "")).strip():
        return None, {}
    return str(data["requirement"]).strip(), data


@app.route("/api/synthesize", methods=["POST"])
def api_synthesize():
    """Run the whole pipeline synchronously and return the project files."""
    requirement, data = _read_requirement()
    if requirement is None:
        return jsonify({"error": "Missing requirement"}), 400

    build = bool(data.get("build", True))
    output_dir = get_output_dir(requirement) if data.get("write", False) else None

    try:
        result = orchestrator.synthesize(requirement, build=build, output_dir=output_dir)
    except PlanningError as e:
        return jsonify({"error": str(e), "stage": "planning"}), 422
    except GenerationError as e:
        return jsonify({"error": str(e), "stage": "generation", "task_id": e.task_id}), 502

    payload = {
        "requirement": requirement,
        "files": result.files,
        "feedback": result.feedback,
        "tasks": _tasks_to_list(result.tasks),
        "status": "done" if result.ok else "needs_attention",
        "output_dir": output_dir,
    }
    payload["job_id"] = _store_job(payload)
    history.append({
        "job_id": payload["job_id"],
        "requirement": requirement,
        "status": payload["status"],
        "file_count": len(result.files),
    })
    return jsonify(payload)


@app.route("/api/plan", methods=["POST"])
def api_plan():
    """Compile requirements and plan tasks without generating anything."""
    requirement, _ = _read_requirement()
    if requirement is None:
        return jsonify({"error": "Missing requirement"}), 400

    state = orchestrator.create_state(requirement)
    try:
        orchestrator.compile_requirements(state)
        orchestrator.plan(state)
    except PlanningError as e:
        return jsonify({"error": str(e), "stage": "planning"}), 422

    return jsonify({
        "requirement": requirement,
        "requirements": state.requirements.render(),
        "tasks": _tasks_to_list(state.tasks),
        "dry_run": True,
    })


@app.route("/api/status/<job_id>")
def api_status(job_id):
    result = _get_job(job_id)
    if not result:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(result)


@app.route("/api/history")
def api_history():
    return jsonify(history)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    port = int(os.environ.get("PORT", 5001))
    print(f"Pagesmith running at http://localhost:{port}")
    app.run(debug=False, port=port)
