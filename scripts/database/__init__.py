"""
Database Management Scripts

This module contains utilities for database operations:
- REST/RPC access to the hosted backend
- Table discovery, analysis and schema backup
- Table archiving, rollback and removal
- Migrations and schema verification
"""
