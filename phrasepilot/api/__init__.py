"""PhrasePilot presentation adapters.

Architectural role:
- Defines the external interaction boundary (terminal and HTTP).
- Performs input validation and renders `RephraseResult` values.
- Delegates all provider work to `phrasepilot.llm`.
"""
