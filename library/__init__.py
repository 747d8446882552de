"""
Lending core for the Library Management API.

This package contains:
- Domain records and read views
- Domain errors
- Relational schema and row mappers
- Loan ledger, book and user stores
- Library service orchestrating the borrow/return lifecycle
"""

__version__ = "1.0.0"
