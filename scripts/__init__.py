"""
Mzima DB Tools Scripts Package

This package contains the maintenance scripts for the property-management
database, organized into logical subdirectories:

- database/: remote client, table discovery and analysis, schema backup,
  table archiving/rollback/removal, migrations and schema verification
"""
