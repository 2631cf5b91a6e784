"""Core package for the quiz generator's settings migration engine.

The public entry point is :class:`quizsys.migration.SettingsMigrator`; the
registry types live in :mod:`quizsys.registry`.
"""

__all__: list[str] = []
