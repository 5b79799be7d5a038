# -*- coding: utf-8 -*-
"""
Bulk preview/publish job operations for SharePoint import.

A bulk job is submitted to the admin API and then polled on a fixed
interval until the API reports it stopped. Each call gets its own
BulkJobSession holding the timer, the failure counter and the outcome, so
concurrent jobs never share polling state.
"""

import threading
from datetime import datetime

import requests

from .errors import JobSubmissionError, JobTimeoutError
from .models import JOB_STATE_STOPPED, OPERATION_PATHS, BulkJob, JobResult
from .utils import format_duration, is_debug_enabled

ADMIN_API = 'https://admin.hlx.page'

DEFAULT_POLL_INTERVAL_MS = 4000

# Consecutive failed status calls tolerated before giving up on a job
MAX_CONSECUTIVE_FAILURES = 6

SUBMITTED = 'submitted'
POLLING = 'polling'
STOPPED = 'stopped'
ABORTED = 'aborted'


def _parse_time(value):
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def job_duration_seconds(start_time, stop_time):
    """Seconds between two ISO timestamps, or None if either is missing."""
    start = _parse_time(start_time)
    stop = _parse_time(stop_time)
    if start is None or stop is None:
        return None
    return (stop - start).total_seconds()


def parse_job_details(status):
    """
    Validate the shape of a job details body.

    Args:
        status: Decoded JSON body of the details endpoint

    Returns:
        tuple: (status dict, progress dict, list of resource dicts)

    Raises:
        ValueError: The body, its progress, its data or a resource is not an object
    """
    if not isinstance(status, dict):
        raise ValueError("job details are not a JSON object")
    progress = status.get('progress') or {}
    if not isinstance(progress, dict):
        raise ValueError(f"job progress is not a JSON object: {progress!r:.100}")
    data = status.get('data') or {}
    if not isinstance(data, dict):
        raise ValueError(f"job data is not a JSON object: {data!r:.100}")
    resources = data.get('resources') or []
    if not isinstance(resources, list) or not all(isinstance(r, dict) for r in resources):
        raise ValueError("job resources are not a list of JSON objects")
    return status, progress, resources


def submit_job(operation, owner, repo, branch, paths, force_update=False, admin_url=ADMIN_API, session=None):
    """
    Submit a bulk preview or publish job.

    Args:
        operation (str): 'preview' or 'publish'
        owner (str): Repository owner
        repo (str): Repository name
        branch (str): Branch name
        paths (list): Content paths to process
        force_update (bool): Force the update even if content is unchanged
        admin_url (str): Admin API base URL
        session (requests.Session): Optional session, injected by tests

    Returns:
        BulkJob: The submitted job

    Raises:
        ValueError: Unknown operation
        JobSubmissionError: The admin API rejected the submission
    """
    if operation not in OPERATION_PATHS:
        raise ValueError(f"Unknown bulk operation '{operation}', expected one of {sorted(OPERATION_PATHS)}")

    http = session or requests
    endpoint = f"{admin_url}/{OPERATION_PATHS[operation]}/{owner}/{repo}/{branch}/*"
    print(f"[*] {operation.capitalize()}ing content for {len(paths)} urls using "
          f"{owner} : {repo} : {branch}{' with force' if force_update else ''}.")

    try:
        response = http.post(endpoint, json={'paths': list(paths), 'forceUpdate': bool(force_update)},
                             timeout=(10, 60))
    except requests.exceptions.RequestException as e:
        raise JobSubmissionError(f"Failed to bulk {operation} {len(paths)} URLs on {owner}/{repo}: {e}") from e

    if not 200 <= response.status_code < 300:
        raise JobSubmissionError(
            f"Failed to bulk {operation} {len(paths)} URLs on {owner}/{repo}: "
            f"{response.status_code} {response.text}"
        )

    try:
        name = response.json()['job']['name']
    except (ValueError, KeyError, TypeError) as e:
        raise JobSubmissionError(f"Bulk {operation} response did not name a job: {response.text[:300]}") from e

    print(f"[✓] Bulk {operation} job submitted: {name}")
    return BulkJob(name=name, operation=operation, owner=owner, repo=repo, branch=branch)


class BulkJobSession:
    """
    Poll one bulk job until it stops or the failure budget is exhausted.

    States: submitted -> polling -> stopped, or polling -> aborted.

    The timer re-arms itself before each poll so a slow status call does not
    delay the schedule; a tick that finds the previous poll still running is
    skipped, so polls never overlap.
    """

    def __init__(self, job, poll_interval_ms=DEFAULT_POLL_INTERVAL_MS,
                 max_failures=MAX_CONSECUTIVE_FAILURES, admin_url=ADMIN_API,
                 session=None, timer_factory=threading.Timer):
        self.job = job
        self.interval = poll_interval_ms / 1000.0
        self.max_failures = max_failures
        self.admin_url = admin_url
        self.http = session or requests
        self.timer_factory = timer_factory

        self.state = SUBMITTED
        self.consecutive_failures = 0
        self.result = None
        self.error = None

        self._timer = None
        self._cancelled = False
        self._state_lock = threading.Lock()
        self._poll_lock = threading.Lock()
        self._done = threading.Event()

    @property
    def details_url(self):
        job = self.job
        return (f"{self.admin_url}/job/{job.owner}/{job.repo}/{job.branch}/"
                f"{job.operation_path}/{job.name}/details")

    @property
    def cancelled(self):
        return self._cancelled

    def start(self):
        """Start polling on the fixed interval."""
        with self._state_lock:
            if self.state != SUBMITTED:
                raise RuntimeError(f"Job session already {self.state}")
            self.state = POLLING
        self._schedule()

    def _schedule(self):
        with self._state_lock:
            if self._cancelled:
                return
            timer = self.timer_factory(self.interval, self._tick)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self):
        """
        Stop the polling timer. Safe to call any number of times.

        Returns:
            bool: True if this call cancelled the timer, False if already cancelled
        """
        with self._state_lock:
            if self._cancelled:
                return False
            self._cancelled = True
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()
        return True

    def _tick(self):
        if self._cancelled:
            return
        self._schedule()

        if not self._poll_lock.acquire(blocking=False):
            if is_debug_enabled():
                print(f"[DEBUG] Previous status call for job {self.job.name} still running, skipping tick")
            return
        try:
            if not self._cancelled:
                self.poll_once()
        except Exception as e:
            self._record_failure(e)
        finally:
            self._poll_lock.release()

    def poll_once(self):
        """
        Fetch the job details once and advance the state machine.

        Network errors, non-2xx statuses and malformed bodies all count as
        one failed poll.

        Returns:
            str: The session state after this poll
        """
        try:
            response = self.http.get(self.details_url, timeout=(10, 30))
            if not 200 <= response.status_code < 300:
                raise ValueError(f"HTTP {response.status_code}: {response.text[:200]}")
            status, progress, resources = parse_job_details(response.json())
        except (requests.exceptions.RequestException, ValueError) as e:
            return self._record_failure(e)

        processed = progress.get('processed', 0)
        label = self.job.operation

        if status.get('state') != JOB_STATE_STOPPED:
            self.consecutive_failures = 0
            print(f"[*] Bulk {label}: {processed} urls processed so far.")
            return self.state

        if is_debug_enabled():
            for resource in resources:
                print(f"[DEBUG] {resource.get('path')} ({resource.get('status')})")

        duration = job_duration_seconds(status.get('startTime'), status.get('stopTime'))
        result = JobResult(
            processed=processed,
            failed=progress.get('failed', 0),
            total=progress.get('total', 0),
            duration_seconds=duration,
            resources=resources,
        )
        print(f"[✓] Bulk {label} completed in {format_duration(duration)}, "
              f"{result.processed} urls processed, out of {result.total}.")
        self.consecutive_failures = 0
        self._finish(STOPPED, result=result)
        return self.state

    def _record_failure(self, error):
        self.consecutive_failures += 1
        print(f"[!] Failed to get status for job {self.job.name} "
              f"({self.consecutive_failures}/{self.max_failures}): {error}")
        if self.consecutive_failures >= self.max_failures:
            self._finish(ABORTED, error=JobTimeoutError(
                f"Failed to get status for job {self.job.name} after {self.consecutive_failures} attempts. "
                f"Completion cannot be guaranteed. Please verify yourself.",
                job_name=self.job.name, failures=self.consecutive_failures
            ))
        return self.state

    def _finish(self, state, result=None, error=None):
        self.cancel()
        with self._state_lock:
            if self._done.is_set():
                return
            self.state = state
            self.result = result
            self.error = error
        self._done.set()

    def wait(self, timeout=None):
        """
        Block until the job stops or polling is aborted.

        Returns:
            JobResult: Final progress counters

        Raises:
            JobTimeoutError: The failure budget was exhausted
            TimeoutError: `timeout` elapsed first (the session keeps polling)
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"Job {self.job.name} still {self.state} after {timeout}s")
        if self.error is not None:
            raise self.error
        return self.result


def submit_and_await(operation, owner, repo, branch, paths, force_update=False,
                     poll_interval_ms=DEFAULT_POLL_INTERVAL_MS, admin_url=ADMIN_API, session=None):
    """
    Submit a bulk job and wait for it to finish.

    Args:
        operation (str): 'preview' or 'publish'
        owner (str): Repository owner
        repo (str): Repository name
        branch (str): Branch name
        paths (list): Content paths to process
        force_update (bool): Force the update even if content is unchanged
        poll_interval_ms (int): Status polling interval (default: 4000)
        admin_url (str): Admin API base URL
        session (requests.Session): Optional session, injected by tests

    Returns:
        JobResult: processed and failed counters (plus total, duration, resources)

    Raises:
        JobSubmissionError: The submission was rejected
        JobTimeoutError: Status polling failed too many times in a row

    Note:
        The polling timer is always cancelled before this function returns.
    """
    job = submit_job(operation, owner, repo, branch, paths, force_update=force_update,
                     admin_url=admin_url, session=session)
    poller = BulkJobSession(job, poll_interval_ms=poll_interval_ms, admin_url=admin_url, session=session)
    try:
        poller.start()
        return poller.wait()
    finally:
        poller.cancel()
