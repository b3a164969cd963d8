"""
Story Loop Test Suite.

- Poll cycle tests (bootstrap, advance, repair, failures)
- Recovery inspection tests
- Scheduler loop tests
- StoryEngine wiring tests
"""
