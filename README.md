# judgeapi

Building blocks for the backend of a small online judge: user accounts with
bcrypt-hashed passwords, JSON Web Tokens, programming problems, request logs and
a per-user history of submissions, all stored in MongoDB through pymongo. The
HTTP side is a set of Werkzeug handlers and middleware, each a callable that
takes a `werkzeug.wrappers.Request` and returns a `Response`.

## Modules

- `judgeapi.auth` – `create_token(username)` issues an HS256 token that expires
  after 24 hours; `verify_token(token_string)` checks signature and expiry and
  returns the username, or raises `TokenError`. `hash_password` returns a bcrypt
  hash (passwords over 72 bytes raise `ValueError`) and `check_password(hashed,
  password)` tells whether a password matches. The signing key is a fixed value
  in the module, `SECRET_KEY`.
- `judgeapi.users` – `UserService(db)` works on the `users` collection:
  `create_user`, `get_user_by_username`, `get_user_by_id`, `get_all_users`,
  `update_user`, `delete_user` and `validate_user_password`. Failures raise
  `UserError` with messages such as `"user already exists"`, `"user not found"`
  or `"username contains invalid characters"`. `is_sanitized(text)` rejects text
  holding any of ``< > " ' $ { } [ ] | \ ^ ` ``.
- `judgeapi.problems` – `Problem`, `TestCase` and `ParamType` dataclasses, and
  `ProblemService(db)` reading the `problems` collection with
  `get_problem_by_id` (`ValueError` for a malformed id, `LookupError` if absent)
  and `get_all_problems`.
- `judgeapi.compile` – `CompileResult` and `CompileResponse`, and
  `generate_response(output, expected_output)`, which compares outputs pairwise
  and sets the overall status to `Success` or `Error`.
- `judgeapi.logs` – `LogEntry` (duration in seconds, stored in nanoseconds),
  `UserSolution` and `LogsService(db)` on the `logs` collection. Solutions are
  built from `/compile` log entries, newest first; `solution_status` classifies
  a stored compile response as `passed`, `partial` or `failed`, and
  `format_duration` renders durations such as `1.5ms` or `1h2m3.5s`.
- `judgeapi.middleware` – `body_capture_middleware`, `authenticate_middleware`,
  `cors_middleware`, and the factories `db_logging_middleware(db)` and
  `repeated_request_middleware(db)`, which return middleware.
- `judgeapi.user_handlers` – `sign_up(db)` (answers `201` with a token) and
  `log_in(db)` (answers `200` with a token).
- `judgeapi.problem_handlers` – `get_all_problems(db)` and
  `get_problem_by_id(db)`.
- `judgeapi.log_handlers` – `get_logs(db)`, `get_user_solutions(db)` and
  `get_all_user_solutions(db)`.

## Handlers and middleware

Every handler factory takes a pymongo database and returns a handler. A
middleware takes a handler and returns a handler, so they are composed by
plain function application.

`authenticate_middleware` lets `/logIn` and `/signUp` through; on other paths it
requires an `Authorization` header, drops its first seven characters (the
`Bearer ` prefix), verifies the rest and stores the username in
`request.environ` under `judgeapi.middleware.USERNAME_KEY`. A missing header
gives `401 Authorization header required`, a bad token `401 Invalid token`.

`cors_middleware` adds permissive CORS headers to every response and answers
`OPTIONS` requests with `200` itself.

`db_logging_middleware(db)` writes a `LogEntry` for each request after the
handler has run. On `/logIn` and `/signUp` the username is read from the body
kept by `body_capture_middleware`; elsewhere the `code` and `problemId` fields
of the body kept by `repeated_request_middleware` are recorded, and for
`/compile` the response body too.

`repeated_request_middleware(db)` keeps the full request body for the logger and
looks for a log whose stored body equals a fresh bcrypt hash of the request
body; if one is found it answers with that log's status and an empty body.

Handlers that read a path parameter (`get_problem_by_id`,
`get_user_solutions`) take it from the dictionary stored in `request.environ`
under `judgeapi.log_handlers.PATH_PARAMS_KEY`, key `"id"`. The code that
matches the URL has to put it there.

A sign-up body looks like:

```json
{"username": "alice", "email": "alice@example.com", "password": "password"}
```

Authenticated requests carry `Authorization: Bearer token`, where `token` is
the value returned by `/signUp` or `/logIn`.

## Example

```python
from pymongo import MongoClient
from werkzeug.serving import run_simple
from werkzeug.wrappers import Request

from judgeapi.middleware import authenticate_middleware, cors_middleware
from judgeapi.problem_handlers import get_all_problems

db = MongoClient("mongodb://localhost:27017")["judge"]
problems = cors_middleware(authenticate_middleware(get_all_problems(db)))


@Request.application
def app(request):
    return problems(request)


run_simple("localhost", 8080, app)
```

## What the package does not do

- It has no assembled application and no URL routing: the handlers and
  middleware have to be wired to paths, and path parameters placed in the
  environ, by the code that uses them.
- It has no `/compile` endpoint. Nothing here sends code to a grading service or
  caches grading results; `judgeapi.compile` only models and compares results.
- It has no command and no server of its own, and it does not open the MongoDB
  connection: pass in a pymongo database.

## Tests

The test suite uses pytest and is installed with the `test` extra.