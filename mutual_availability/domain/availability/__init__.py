"""
Availability Domain

Computes when a user, a relationship (couple) or an ad-hoc group of users is
free for an activity of a given length.

Pipeline:
- providers.py   Concurrent busy-data fan-out across calendar gateways
- intervals.py   Busy-interval merging and gap finding
- windows.py     Candidate slot generation from weekday preference windows
- conflicts.py   Notice, horizon, busy and commitment filtering
- rating.py      excellent / good / fair rating
- service.py     Orchestration, suggestions, open windows, preferences

Persistence lives in repository.py, HTTP endpoints in router.py.
"""

from .router import router
from .service import AvailabilityOrchestrator, PreferenceService

__all__ = ["router", "AvailabilityOrchestrator", "PreferenceService"]
