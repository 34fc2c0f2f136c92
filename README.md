# samedi

A library for tracking learning sessions against study plans. A session
starts on a plan (and optionally one chunk of it), runs until it is stopped,
and records its duration in whole minutes, notes and artifacts (URLs or file
paths). Sessions are stored in SQLite through the standard library's
`sqlite3` module; there are no other dependencies.

## Install

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `samedi.session`: the `Session` dataclass and the `SessionError` and
  `SessionNotFoundError` exceptions.
- `samedi.repository`: `create_schema(conn)`, which creates the `sessions`
  table, and `SQLiteRepository`, which stores sessions on a `sqlite3`
  connection. `Repository` is the protocol the service expects.
- `samedi.service`: `SessionService` with its request and result types
  `StartRequest`, `StopRequest`, `Status`, `ChunkStats`, and the
  `PlanService` protocol with `PlanChunk`.

## Usage

```python
import sqlite3

from samedi.repository import SQLiteRepository, create_schema
from samedi.service import SessionService, StartRequest, StopRequest

conn = sqlite3.connect(":memory:")
create_schema(conn)

service = SessionService(SQLiteRepository(conn), None)

session = service.start(StartRequest(plan_id="rust-basics", chunk_id="chunk-001"))
print(session.is_active())          # True

stopped = service.stop(StopRequest(notes="Finished ownership chapter",
                                   artifacts=["/notes/ownership.md"]))
print(stopped.elapsed_time())       # e.g. "0m", "1h 15m"

print(service.get_session_count("rust-basics"))
print(service.get_total_duration("rust-basics"))
```

Only one session can be active at a time: starting another while one runs
raises a `SessionError`, and so does stopping when nothing is active. An
empty plan ID is rejected by `start`, `list`, `get_by_plan` and the chunk
queries.

`SQLiteRepository.get`, `update` and `delete` raise `SessionNotFoundError`
for an unknown ID; other database failures are raised as `SessionError`.
`list(plan_id, limit)` returns sessions newest first; an empty plan ID means
every plan and a limit of zero or less means no limit.

### Plans and chunks

Pass an object implementing `PlanService` (`get`, `get_chunk`,
`update_chunk_status`) instead of `None` to have `SessionService` check that
plans exist and update chunk status:

- starting a session on a plan the plan service cannot find raises
  `SessionError`;
- starting a session on a `not-started` chunk marks it `in-progress`;
- stopping a session marks the chunk `completed` once the total time of its
  completed sessions reaches the chunk's planned duration (chunks already
  `completed` or `skipped` are left alone).

Chunk status updates are best effort; a failure there never undoes a start
or stop.

### Status and statistics

- `get_status()` returns a `Status` with the active session (if any), up to
  five recent sessions (from the active session's plan, or from all plans
  when nothing is active) and `has_more`, true when five were returned.
- `get_chunk_sessions(plan_id, chunk_id)` returns the sessions of one chunk;
  `get_chunk_stats(plan_id, chunk_id)` returns a `ChunkStats` with their
  count and the minutes spent in completed ones.
- `list_all()` returns every session across all plans, newest first.

## What it does not do

This package has no command-line program and stores only sessions: it
creates no table for plans or chunks and does not read plan files. Plan
checks and chunk status changes happen only through a `PlanService` object
that you supply.