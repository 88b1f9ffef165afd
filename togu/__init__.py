"""
Togu — Community Q&A Client over an Eventually-Consistent Record Store
=======================================================================
Questions, answers, votes, points and badges live in a remote,
spreadsheet-backed record store that offers no transactions and no
read-after-write guarantee.  Togu keeps a responsive local view of that
store and converges it back to the server's authoritative state.

Package layout::

    togu/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Badge names + the canonical level formula
    ├── errors.py          # Exception taxonomy
    ├── models.py          # Domain dataclasses (Question, Answer, ...)
    ├── session.py         # One signed-in user's wired-up services
    ├── store/
    │   ├── client.py      # httpx binding: list / get / create / update
    │   ├── formula.py     # filterByFormula builders
    │   └── records.py     # Wire-level record shapes (pydantic)
    ├── engine/
    │   ├── retry.py       # Bounded retry / polling with backoff
    │   ├── jobs.py        # Detached background jobs
    │   ├── debounce.py    # Single-slot cancellable timer
    │   └── milestones.py  # Pure milestone → badge predicates
    ├── services/
    │   ├── identity.py    # Auth claims → store user id
    │   ├── users.py       # User records + points path
    │   ├── questions.py   # Question queries and creation
    │   ├── answers.py     # Answer queries and creation
    │   ├── votes.py       # At-most-once vote ledger
    │   ├── badges.py      # Idempotent badge awarder
    │   ├── notifications.py # Single-slot badge toast
    │   ├── feed.py        # Paginated, debounced, overlaid feed
    │   ├── detail.py      # Per-question answers + votes
    │   ├── contributions.py # Post question / answer
    │   ├── profile.py     # Profile with isolated sub-fetches
    │   └── leaderboard.py # Top users by points
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → claims → session
        └── routes/        # Feed, questions, profile endpoints
"""

__version__ = "0.1.0"
