"""
FastAPI RESTful API for the Library Management System.

This module provides a REST API for:
- User registration and lookup
- Book catalogue browsing and creation
- Borrowing and returning books with a rating
"""
