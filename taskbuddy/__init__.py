# TaskBuddy: personal task board core
#
# Components:
#   schema.py      - Data model (Task, TaskStatus, TaskCategory, FilterCategory)
#   backends.py    - Persistence service backends (SQLite, HTTP)
#   store.py       - Task store with reload-after-mutation
#   filters.py     - Search / category / due-date filter engine
#   view.py        - Lanes, collapsed sections, responsive board/list mode
#   drag.py        - Drag, menu and checkbox status transitions
#   identity.py    - Identity provider session
#   attachments.py - Blob storage and attachment flow
#   board.py       - Controller wiring the pieces together
#   server.py      - JSON task server (Flask)
#   config.py      - YAML/env configuration and logging setup
