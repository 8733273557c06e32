"""
Vigil
=====

A lifecycle engine for employee compliance records: licenses and
certifications that expire, and onboarding inductions that fall due.

A record's status is never stored as the truth; it is derived from its dates
and progress every time it is read.

Import structure
----------------
`import vigil` is intentionally cheap: sub‑modules are imported on demand.
Only :pymod:`vigil.db` and :pymod:`vigil.registry_db` need SQLModel
(:class:`vigil.activity.DBActivityLogger` loads it when first used), and
:pymod:`vigil.dispatch` needs httpx.

Sub‑modules
~~~~~~~~~~~
- :pymod:`vigil.models`       – ``ComplianceRecord`` dataclass + status / kind enums
- :pymod:`vigil.status`       – status resolver (the only place with the expiry boundaries)
- :pymod:`vigil.lifecycle`    – transition table and ``LifecycleController``
- :pymod:`vigil.aggregation`  – filter / sort / paginate / summarize
- :pymod:`vigil.alerts`       – alert selection and ranking
- :pymod:`vigil.registry`     – in‑memory ``RecordStore``
- :pymod:`vigil.registry_db`  – SQLite‑backed ``DBRecordStore``
- :pymod:`vigil.dispatch`     – reminder channels
- :pymod:`vigil.activity`     – audit trail
- :pymod:`vigil.errors`       – exception hierarchy (each carries its HTTP status)
- :pymod:`vigil.settings`     – env‑driven configuration

Quick start
-----------
>>> from datetime import datetime, timedelta
>>> from vigil.models import ComplianceRecord, RecordKind
>>> from vigil.status import resolve_status
>>> now = datetime(2024, 3, 1, 9, 0)
>>> lic = ComplianceRecord("lic-1", "emp-7", RecordKind.LICENSE, "First Aid",
...                        due_date=now + timedelta(days=5))
>>> resolve_status(lic, now)
Resolution(status=<DerivedStatus.EXPIRING_SOON: 'Expiring Soon'>, days_until_due=5)
"""

__all__ = [
    "models",
    "status",
    "lifecycle",
    "aggregation",
    "alerts",
    "registry",
    "registry_db",
    "dispatch",
    "activity",
]

__version__ = "0.1.0"
