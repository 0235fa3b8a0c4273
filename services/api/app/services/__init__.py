"""Services for usage quotas, AI analysis and persistence.

Services are organized into:
- quota/: Free-tier usage policy, stores, tracker and server ledger
- core/: Orchestration and business logic (analyses, usage reset loop)
- providers/: External API wrappers (Claude, YouTube transcripts)
- utils/: Internal utilities (parsing, YouTube URLs, usage wiring)
"""
